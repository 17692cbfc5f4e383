"""
Logger factory and helpers.

Provides:
- get_logger(): Get a configured logger instance
- hash_ip(): Hash origin addresses for privacy
- log_with_context(): Bind common context to a logger
- setup_logging(): Configure structlog (re-exported from logging_config)
"""

from typing import Optional

import structlog
from structlog.stdlib import BoundLogger

from shared.logging_config import hash_ip as _hash_ip
from shared.logging_config import setup_logging


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("session_registered", principal_id="u1", device_id="d1")
    """
    return structlog.get_logger(name)


def hash_ip(ip_address: Optional[str]) -> Optional[str]:
    """Hash an origin address (production only); passes None through."""
    if ip_address is None:
        return None
    return _hash_ip(ip_address)


def log_with_context(logger: BoundLogger, **context) -> BoundLogger:
    """Bind context to a logger for all subsequent log calls."""
    return logger.bind(**context)


__all__ = ["get_logger", "hash_ip", "log_with_context", "setup_logging"]
