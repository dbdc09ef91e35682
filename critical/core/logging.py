"""Structured logging for the API, the worker and the generator."""

import logging
import sys
from typing import Any, List, Optional

import structlog

from .config import settings

# Third-party loggers that report every outgoing request.
NOISY_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def configure_logging(level: int | str | None = None) -> None:
    """Route structlog events through stdlib logging on stdout.

    Events are rendered as JSON unless ``CRITICAL_LOG_JSON`` is disabled, in
    which case the console renderer is used for local development.
    """

    log_level = level or settings.log_level or (logging.DEBUG if settings.debug else logging.INFO)
    if isinstance(log_level, str):
        log_level = log_level.upper()

    renderer: Any = (
        structlog.processors.JSONRenderer() if settings.log_json else structlog.dev.ConsoleRenderer(colors=False)
    )
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stdout)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


def bound_context(**values: Any):
    """Attach ``values`` to every event logged inside the ``with`` block."""

    return structlog.contextvars.bound_contextvars(**values)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Create a structured logger."""

    return structlog.get_logger(name or "critical")
