"""Logging configuration for the Cashé NLP bot."""

import os
import sys
from typing import Any, Optional

from loguru import logger

from .config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}"


def _error_log_path() -> str:
    """Errors go next to the main log file: logs/app.log -> logs/cashe-errors.log."""
    return os.path.join(os.path.dirname(settings.log_file) or ".", "cashe-errors.log")


def setup_logger():
    """Setup the console sink and, outside serverless deployments, rotating file sinks."""

    logger.remove()
    level = "DEBUG" if settings.debug else settings.log_level.upper()

    logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT, colorize=True)

    # Serverless file systems are read-only
    if not os.getenv("VERCEL"):
        try:
            logger.add(
                settings.log_file,
                level="DEBUG",
                format=FILE_FORMAT,
                rotation=settings.log_rotation,
                retention=settings.log_retention,
                compression="zip",
            )
            logger.add(
                _error_log_path(),
                level="ERROR",
                format=FILE_FORMAT,
                rotation="1 day",
                retention=settings.log_retention,
                compression="zip",
            )
        except Exception as e:
            logger.warning(f"File logging not available: {e}")

    logger.configure(extra={"name": "cashe"})
    return logger


# Initialize logger
setup_logger()


def get_logger(name: Optional[str] = None):
    """Get a logger instance for a specific module."""
    if name:
        return logger.bind(name=name)
    return logger


def chat_label(platform: Any, platform_user_id: str) -> str:
    """
    Identify a chat in log lines without writing out the full id.

    WhatsApp ids are phone numbers, so only their last four digits are kept:
    ``whatsapp:…0000``. Telegram chat ids are logged as they are.
    """
    platform_value = getattr(platform, "value", platform)
    user_id = str(platform_user_id or "")
    if platform_value == "whatsapp" and len(user_id) > 4:
        user_id = f"…{user_id[-4:]}"
    return f"{platform_value}:{user_id}"
