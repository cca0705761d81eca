"""Structured logging configuration using structlog.

``configure_logging`` sets up structlog processors and routes the stdlib root
logger through them, rendering JSON for machine consumption or coloured
console output while developing against a repository.
"""

from __future__ import annotations

import logging
import sys

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from gitcontents.config import Settings

# Event keys whose values must never reach a log sink.
REDACTED_KEYS: frozenset[str] = frozenset({"token", "auth_token", "authorization"})

# Third-party loggers that log every request line at INFO.
NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")


def redact_secrets(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Replace credential values in the event dict with a placeholder."""
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def configure_logging(*, json_logs: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        json_logs: When *True* (default), render logs as JSON.
            When *False*, use a colourful console renderer.
        log_level: Root log level name (e.g. ``"INFO"``, ``"DEBUG"``).
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        redact_secrets,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    # Request lines from the transport are only useful when debugging
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if log_level.upper() == "DEBUG" else logging.WARNING
        )


def configure_logging_from_settings(settings: Settings) -> None:
    """Configure logging from ``Settings``: console output when ``debug`` is set."""
    configure_logging(json_logs=not settings.debug, log_level=settings.log_level)
