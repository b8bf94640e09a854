"""
logging_config.py — Loguru setup for PO Manager

Loguru is the only logging backend. Service modules keep using
logging.getLogger("po_manager.<area>"); those records are forwarded to
Loguru by _InterceptHandler together with the originating logger name.

Business Rules:
- No print(); routers use loguru directly, services use stdlib loggers
- Every record carries extra["request_id"] ("-" outside a request)
- Production (APP_ENV=production): JSON lines to stdout + rotating file
- Development: coloured single-line output including the request id
- File sink rotates at 50 MB, keeps 7 days, gzip-compressed

Called by: po_manager/main.py (lifespan startup)
Depends on: environment (LOG_LEVEL, APP_ENV, LOG_FILE)
"""

import logging
import os
import sys

from loguru import logger

_DEV_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[request_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)

_DEFAULT_LOG_FILE = "/var/log/po_manager/po_manager.log"

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")


def _production_sinks(level: str) -> None:
    logger.add(sys.stdout, level=level, format="{message}", serialize=True)
    logger.add(
        os.getenv("LOG_FILE", _DEFAULT_LOG_FILE),
        level=level,
        rotation="50 MB",
        retention="7 days",
        compression="gz",
        serialize=True,
    )


def _development_sinks(level: str) -> None:
    logger.add(sys.stdout, level=level, format=_DEV_FORMAT, colorize=True)


def setup_logging() -> None:
    """Replace Loguru's default sink and route stdlib logging into it.

    Safe to call more than once; each call starts from a clean handler set.
    """
    logger.remove()
    logger.configure(extra={"request_id": "-"})

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    production = os.getenv("APP_ENV", "development").lower() == "production"

    if production:
        _production_sinks(level)
    else:
        _development_sinks(level)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging configured (level={level}, production={production})")


class _InterceptHandler(logging.Handler):
    """Forward stdlib records to Loguru, keeping the stdlib logger name."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk past logging's own frames so Loguru reports the real caller
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.bind(channel=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )
