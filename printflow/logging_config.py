"""
logging_config.py — Loguru setup for PrintFlow

Loguru is the only sink. The settlement services log through
logging.getLogger("printflow.<area>"); those records are forwarded to
Loguru so API, scripts and services share one output stream.

Business Rules:
- Production (https APP_URL, not localhost) writes JSON lines to stdout
  and to a rotating file under LOG_DIR
- Development writes a colored console line
- Ledger writes log at INFO; delivery failures at WARNING or above
- Records logged inside request_context() carry the request id

Called by: printflow/main.py (lifespan), scripts/*
Depends on: loguru
"""

import inspect
import logging
import os
import sys
from contextlib import contextmanager

from loguru import logger

QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "pdfminer", "weasyprint", "fontTools")

DEV_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | {message} {extra}"
)


def _is_production() -> bool:
    url = os.getenv("APP_URL", "")
    return url.startswith("https://") and "localhost" not in url


class _ToLoguru(logging.Handler):
    """Forward stdlib records to Loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging() -> None:
    """Replace all Loguru handlers and route stdlib logging into Loguru."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    production = _is_production()

    logger.remove()
    if production:
        logger.add(sys.stdout, level=level, format="{message}", serialize=True)
        log_dir = os.getenv("LOG_DIR", "/var/log/printflow")
        logger.add(
            os.path.join(log_dir, "printflow.log"),
            level=level,
            serialize=True,
            rotation="50 MB",
            retention="7 days",
            compression="gz",
        )
    else:
        logger.add(sys.stdout, level=level, format=DEV_FORMAT, colorize=True)

    logging.basicConfig(handlers=[_ToLoguru()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging ready (level={}, json={})", level, production)


@contextmanager
def request_context(request_id: str, **fields):
    """Bind request_id (and any extra fields) to every record logged inside."""
    with logger.contextualize(request_id=request_id, **fields):
        yield
