"""
Logging processors for structlog event processing.

This module provides processors for sanitizing sensitive data and for
normalizing identifiers before rendering.
"""

import re
import uuid
from typing import Any

_SENSITIVE_PATTERNS = [
    r"\bpassword\b",
    r"\btoken\b",
    r"\bsecret\b",
    r"_key\b",
    r"^key$",
    r"\bcredential\b",
    r"\bauthorization\b",
    r"\bcookie\b",
    r"^session_token$",
    r"^session_cookie$",
]

# Ids and names that look sensitive to the patterns above but are not.
_SAFE_FIELDS = {
    "cookie_name",
    "session_id_present",
}


def sanitize_sensitive_data(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive data from log entries.

    Redacts values whose key names look like credentials (passwords, tokens,
    cookies) so that raw session cookies never reach the log files.

    Args:
        _logger: Logger instance (unused)
        _name: Logger name (unused)
        event_dict: Event dictionary to sanitize

    Returns:
        Sanitized event dictionary
    """

    def sanitize_dict(d: dict[str, Any]) -> dict[str, Any]:
        sanitized: dict[str, Any] = {}
        for key, value in d.items():
            if isinstance(value, dict):
                sanitized[key] = sanitize_dict(value)
                continue
            key_lower = str(key).lower()
            if key_lower in _SAFE_FIELDS:
                sanitized[key] = value
            elif any(re.search(pattern, key_lower) for pattern in _SENSITIVE_PATTERNS):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = value
        return sanitized

    return sanitize_dict(event_dict)


def stringify_uuids(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Render UUID values as plain strings so JSON output stays readable."""
    for key, value in list(event_dict.items()):
        if isinstance(value, uuid.UUID):
            event_dict[key] = str(value)
    return event_dict
