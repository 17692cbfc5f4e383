"""
Centralized structlog configuration.

This module sets up structured logging with:
- JSON formatting for production, pretty console for development
- Origin-address hashing in production
- Redaction of credentials, OTP codes and secrets

Unlike a module-level setup, nothing happens at import time: create_app()
calls setup_logging() with the loaded LoggingSettings.
"""

import hashlib
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog
from structlog.types import EventDict, Processor

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "password",
    "token",
    "access_token",
    "refresh_token",
    "confirmation_token",
    "code",
    "otp",
    "secret",
    "authorization",
    "cookie",
}

_SENSITIVE_FRAGMENTS = ("password", "token", "secret", "otp")

# Keys produced by the processors themselves; never redacted
_RESERVED_KEYS = {"level", "event", "timestamp", "logger"}

_hash_addresses = False


def hash_ip(ip_address: str) -> str:
    """
    Hash an origin address for privacy in production.

    In production, returns SHA-256 hash (first 16 chars).
    In development, returns the original address for easier debugging.
    """
    if _hash_addresses and ip_address:
        return hashlib.sha256(ip_address.encode()).hexdigest()[:16]
    return ip_address


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in _RESERVED_KEYS:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            fragment in lowered for fragment in _SENSITIVE_FRAGMENTS
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str = "console") -> None:
    """Configure structlog processors for the given output format."""
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event=15,
            sort_keys=False,
        )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str = "INFO") -> None:
    """Route stdlib logging to stdout and quiet noisy third-party loggers."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    *,
    env: str = "development",
    sentry_enabled: Optional[bool] = None,
) -> None:
    """
    Initialize logging for the application.

    Should be called once, early in application startup.
    """
    global _hash_addresses
    _hash_addresses = env == "production"

    configure_stdlib_logging(log_level)
    configure_structlog(log_format)

    structlog.get_logger(__name__).info(
        "logging_initialized",
        env=env,
        log_level=log_level,
        log_format=log_format,
        sentry_enabled=bool(sentry_enabled),
    )
