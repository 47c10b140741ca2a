"""Structured logging setup."""
import logging
import sys

import structlog


def configure_logging(level: str = "INFO"):
    """
    Configure structlog for the engine and the collaboration hub.

    Console rendering when attached to a TTY, JSON lines otherwise.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if sys.stderr.isatty():
        processors = shared_processors + [structlog.dev.ConsoleRenderer()]
    else:
        processors = shared_processors + [structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Route stdlib loggers (uvicorn, websockets, httpx) to the same stream
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())

    return structlog.get_logger()


def get_logger(name=None):
    return structlog.get_logger(name)
