"""
Logging Configuration
loguru sinks for the service, with standard-library logging routed through them

Every record carries ``service`` and ``environment`` extras plus the ``name``
bound by ``get_logger``. Access and audit lines (grants, revocations, link
redemptions) go through the same sinks; secrets never do, so callers log magic
link tokens through ``redact_token``.
"""

import logging
import sys
from typing import Any

from loguru import logger as loguru_logger

from docgov.core.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

# Library loggers whose handlers are replaced by the loguru bridge
ROUTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")

# Chatty at INFO; SQL echo is controlled by DEBUG on the engine instead
QUIET_LOGGERS = ("sqlalchemy", "aiosqlite", "asyncpg", "urllib3", "minio")


class InterceptHandler(logging.Handler):
    """Forward standard-library log records to loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.bind(name=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging() -> None:
    """Install console and optional file sinks and route stdlib logging into them"""
    loguru_logger.remove()
    loguru_logger.configure(
        extra={
            "name": "docgov",
            "service": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
        }
    )

    if settings.DEBUG:
        loguru_logger.add(sys.stdout, format=CONSOLE_FORMAT, level="DEBUG", colorize=True)
    else:
        # One JSON object per line for the log shipper
        loguru_logger.add(sys.stdout, level=settings.LOG_LEVEL, serialize=True)

    if settings.LOG_FILE:
        loguru_logger.add(
            settings.LOG_FILE,
            rotation="50 MB",
            retention="14 days",
            compression="gz",
            level=settings.LOG_LEVEL,
            serialize=True,
            enqueue=True,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers = [InterceptHandler()]
        routed.propagate = False
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    """Logger bound to a module name"""
    return loguru_logger.bind(name=name)


def redact_token(token: str) -> str:
    """Short prefix of a bearer secret, enough to correlate log lines"""
    if not token:
        return "<empty>"
    return f"{token[:6]}...({len(token)})"
