# studio_cache/core/logging.py
"""Loguru setup for the service.

Every record carries an ``extra[cache]`` field: the name a ``Cache`` binds
to its own records, or ``-`` for everything else. Per-cache DEBUG chatter
(evictions, expirations) is dropped unless ``log_cache_events`` is on.
"""
import inspect
import logging
import sys
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from studio_cache.core.config import Settings

NO_CACHE = "-"

# Loggers of libraries that log through the stdlib
INTERCEPTED_LOGGERS = [
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
]


class InterceptHandler(logging.Handler):
    """Re-emit stdlib ``logging`` records through Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def cache_event_filter(show_cache_events: bool) -> Callable[[dict], bool]:
    """Build a sink filter that hides cache-bound records below INFO."""
    info_no = logger.level("INFO").no

    def accept(record: dict) -> bool:
        if show_cache_events:
            return True
        if record["extra"].get("cache", NO_CACHE) == NO_CACHE:
            return True
        return record["level"].no >= info_no

    return accept


def _handlers(settings: Settings) -> list[dict[str, Any]]:
    shared = {
        "filter": cache_event_filter(settings.log_cache_events),
        "serialize": settings.log_serialize,
        "backtrace": settings.log_backtrace,
        "diagnose": settings.log_diagnose,
    }
    handlers = [
        {
            "sink": sys.stderr,
            "format": "{message}" if settings.log_serialize else settings.log_format,
            "level": settings.effective_console_log_level,
            "colorize": not settings.log_serialize,
            **shared,
        }
    ]

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            {
                "sink": str(log_path),
                "format": settings.log_format,
                "level": settings.effective_file_log_level,
                "rotation": settings.log_rotation,
                "retention": settings.log_retention,
                "compression": settings.log_compression or None,
                **shared,
            }
        )
    return handlers


def route_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in INTERCEPTED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False


def setup_logging(settings: Settings) -> None:
    """
    Replace Loguru's sinks with the ones described by ``settings``.

    Installs a stderr sink, plus a rotating file sink when ``log_file`` is
    set, gives every record a default ``cache`` extra, and sends uvicorn and
    fastapi output through Loguru.

    Args:
        settings: Settings holding the logging configuration
    """
    logger.configure(handlers=_handlers(settings), extra={"cache": NO_CACHE})
    route_stdlib_logging()

    logger.info(
        f"Logging configured: console={settings.effective_console_log_level}, "
        f"file={settings.effective_file_log_level if settings.log_file else 'disabled'}, "
        f"cache_events={settings.log_cache_events}"
    )
