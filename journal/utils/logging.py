"""Structured logging setup."""
import logging
import sys

import structlog

from config.settings import get_settings

_configured = False


def configure_logging(level: str = None, json_output: bool = None):
    """
    Configure structlog for the process.

    Console rendering in development, JSON lines everywhere else.
    """
    global _configured
    settings = get_settings()
    level = (level or settings.LOG_LEVEL).upper()
    if json_output is None:
        json_output = settings.ENV != "development"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str):
    """Get a structured logger bound to a module name."""
    if not _configured:
        configure_logging()
    return structlog.get_logger(name).bind(logger=name)
