"""
Centralized logging configuration using structlog.

Events are key/value structured. Request-scoped values (correlation_id,
user_id) are bound through contextvars by the middleware and by the auth
dependency, so every event logged while serving a request carries them.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from portfolio_api.core.config import Settings


# Keys whose values must never reach the log output
SENSITIVE_KEYS = frozenset({
    "password",
    "hashed_password",
    "token",
    "access_token",
    "authorization",
    "jwt_secret_key",
})


def redact_sensitive_values(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credentials that were passed as log fields."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def stringify_ids(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Render correlation and user ids as strings so JSON consumers see one type."""
    for key in ("correlation_id", "user_id"):
        value = event_dict.get(key)
        if value is not None:
            event_dict[key] = str(value)
    return event_dict


def configure_logging(settings: Settings) -> None:
    """
    Configure structlog and the standard library root logger.

    JSON rendering is meant for deployments; LOG_FORMAT=text switches to the
    console renderer for local development.

    Args:
        settings: Application settings providing LOG_LEVEL, LOG_FORMAT and DATABASE_ECHO
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # SQL statements only when explicitly requested
    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_sensitive_values,
        stringify_ids,
    ]

    if settings.log_format.lower() == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**kwargs: Any) -> None:
    """
    Bind values to every event logged for the rest of the current request.

    Example:
        bind_request_context(user_id=42, active_role="verifier")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
