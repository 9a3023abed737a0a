"""structlog setup.

Learn: Every module logs through structlog.get_logger(). This installs the
processor chain once at startup: contextvars (request_id from the
middleware), level, timestamp, exception formatting, then either a JSON
renderer (production) or the colored console renderer (development).
"""

import logging
import sys

import structlog

from pubrelay.config import settings


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog and route stdlib logging (uvicorn, redis) to stdout."""
    level = (level or settings.log_level).upper()
    fmt = fmt or settings.log_format

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
