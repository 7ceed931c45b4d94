"""
Cache decorators for async repository functions.
"""
import hashlib
import json
from functools import wraps
from typing import Callable, Any
from sqlalchemy.ext.asyncio import AsyncSession
from eventease.cache.redis_client import cache
from eventease.core.logging import logger


def cached(key_prefix: str, expire: int = 300):
    """
    Cache the JSON-serializable result of an async function.

    Keys are ``{key_prefix}:{hash of arguments}``; database sessions are left
    out of the hash. Invalidate with ``invalidate(key_prefix)``.

    Usage:
        @cached('events:list', expire=300)
        async def list_events(db, page=1):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            cache_key = f"{key_prefix}:{cache_key_for(args, kwargs)}"

            cached_value = await cache.get(cache_key)
            if cached_value is not None:
                logger.debug(f"Cache hit for key: {cache_key}")
                return cached_value

            logger.debug(f"Cache miss for key: {cache_key}")
            result = await func(*args, **kwargs)
            await cache.set(cache_key, result, expire)
            return result
        return wrapper
    return decorator


async def invalidate(key_prefix: str) -> int:
    """Drop every cached entry stored under ``key_prefix``."""
    return await cache.delete_pattern(f"{key_prefix}:*")


def cache_key_for(args: tuple, kwargs: dict) -> str:
    """Stable hash of call arguments, ignoring SQLAlchemy sessions."""
    key_data = {
        'args': [str(arg) for arg in args if not isinstance(arg, AsyncSession)],
        'kwargs': {k: str(v) for k, v in kwargs.items() if not isinstance(v, AsyncSession)},
    }
    key_string = json.dumps(key_data, sort_keys=True)
    return hashlib.sha256(key_string.encode()).hexdigest()
