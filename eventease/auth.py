import uuid
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from eventease.core.exceptions import UnauthorizedError
from eventease.core.logging import logger
from eventease.core.security import decode_token, is_token_revoked
from eventease.db.models.user import User
from eventease.db.repositories import get_user
from eventease.db.session import get_session

# auto_error=False so a missing header is reported as 401 by us, and optional
# endpoints can proceed anonymously.
security = HTTPBearer(auto_error=False)


async def resolve_token(token: str, session: AsyncSession) -> User:
    """
    Resolve a bearer access token to its account.

    Raises:
        UnauthorizedError: If the token is revoked, invalid, expired, not an
            access token, or names an unknown account
    """
    if await is_token_revoked(token):
        raise UnauthorizedError("Token has been revoked")

    try:
        payload = decode_token(token)
    except ValueError as e:
        logger.debug(f"Rejected bearer token: {e}")
        raise UnauthorizedError()

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise UnauthorizedError()

    user = await get_user(session, user_id)
    if not user:
        raise UnauthorizedError()
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session)
) -> User:
    """Account behind the ``Authorization: Bearer`` header; 401 without one."""
    if credentials is None:
        raise UnauthorizedError("Not authenticated")
    return await resolve_token(credentials.credentials, session)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session)
) -> Optional[User]:
    """Like ``get_current_user`` but anonymous callers (or bad tokens) get None."""
    if credentials is None:
        return None
    try:
        return await resolve_token(credentials.credentials, session)
    except UnauthorizedError:
        return None
