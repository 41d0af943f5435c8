"""
Logging configuration.

Module loggers use logging.getLogger(__name__). Two named channels carry
the events that must be independently searchable:

- editorial.security: credential probing, email mismatches, bad tokens
- editorial.audit: state changes performed by authors and admins
"""

import logging
from typing import Any

SECURITY_LOGGER_NAME = "editorial.security"
AUDIT_LOGGER_NAME = "editorial.audit"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

security_logger = logging.getLogger(SECURITY_LOGGER_NAME)
audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _format_context(context: dict[str, Any]) -> str:
    return " ".join(f"{key}={value!r}" for key, value in sorted(context.items()))


def log_security_event(message: str, **context: Any) -> None:
    """Record a security-relevant event (WARNING on editorial.security)."""
    security_logger.warning("%s %s", message, _format_context(context), extra={"type": "security"})


def log_audit_event(message: str, **context: Any) -> None:
    """Record an audit event (INFO on editorial.audit)."""
    audit_logger.info("%s %s", message, _format_context(context), extra={"type": "audit"})


def mask_token(token: Any) -> str:
    """First 8 characters of a token, never the whole value."""
    if not token or not isinstance(token, str):
        return "null"
    return token[:8] + "..."
