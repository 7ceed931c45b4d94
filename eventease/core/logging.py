"""
Application-wide loguru setup. Import ``logger`` from here, never from loguru
directly, so the sinks below are installed first.
"""
import sys
from loguru import logger
from eventease.core.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

logger.remove()
logger.add(sys.stdout, format=CONSOLE_FORMAT, level=settings.log_level, colorize=True)

if settings.ENVIRONMENT == "production":
    logger.add(
        settings.LOG_FILE,
        format=FILE_FORMAT,
        level="INFO",
        rotation="100 MB",
        retention="14 days",
        compression="zip",
        enqueue=True,
    )

__all__ = ["logger"]
