"""Structured logging configuration for crowdledger.

Configures structlog on top of stdlib logging handlers:
- JSON and console output formats
- Size-based file rotation
- Correlation IDs tying a host invocation to every event it emits
- Instance and method context bound per call

Example usage:
    >>> from crowdledger.config import LoggingConfig
    >>> from crowdledger.logging import setup_logging, get_logger, bind_call_context
    >>>
    >>> setup_logging(LoggingConfig(level="INFO", format="json"))
    >>> bind_call_context(instance_id="well.factory", method="add_expense")
    >>> get_logger(__name__).info("expense_recorded", amount=200)
"""

from __future__ import annotations

import contextvars
import logging
import logging.handlers
import sys
from typing import Any

import structlog

from crowdledger.config import LoggingConfig

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def add_correlation_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add correlation_id to the event if one is set in context.

    Args:
        logger: Logger instance (unused, required by structlog protocol)
        method_name: Log method name (unused, required by structlog protocol)
        event_dict: Current event dictionary to augment

    Returns:
        Event dictionary with correlation_id added if available
    """
    correlation_id = _correlation_id.get()
    if correlation_id is not None:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def bind_call_context(instance_id: str, method: str) -> None:
    """Bind the ledger instance and called method to all subsequent logs.

    Args:
        instance_id: Identifier of the ledger instance being invoked
        method: Name of the method being applied
    """
    structlog.contextvars.bind_contextvars(instance_id=instance_id, method=method)


def clear_call_context() -> None:
    structlog.contextvars.unbind_contextvars("instance_id", "method")


def setup_logging(config: LoggingConfig) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        config: Logging configuration from CrowdledgerConfig
    """
    log_level = getattr(logging, config.level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    if config.file is not None:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.handlers.RotatingFileHandler(
            filename=config.file,
            maxBytes=config.rotation_size_mb * 1024 * 1024,
            backupCount=config.retention_count,
            encoding="utf-8",
        )
    else:
        handler = logging.StreamHandler(sys.stdout)

    handler.setLevel(log_level)
    root_logger.addHandler(handler)

    if config.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            # instance_id and method from bind_call_context
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)
