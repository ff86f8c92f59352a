"""
Centralized error codes for worldserver realtime events.

Every rejection a client can observe is one of these codes, delivered as an
``{"type": "error", "code": ...}`` frame on the originating connection.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes sent to clients."""

    # Auth
    AUTH_REQUIRED = "AUTH_REQUIRED"

    # Validation
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    EMPTY_MESSAGE = "EMPTY_MESSAGE"
    INVALID_PLAYER_STATE = "INVALID_PLAYER_STATE"
    INVALID_INVITE_TARGET = "INVALID_INVITE_TARGET"
    INVALID_INVITE_ID = "INVALID_INVITE_ID"
    INVALID_KICK_TARGET = "INVALID_KICK_TARGET"
    INVALID_PROMOTION_TARGET = "INVALID_PROMOTION_TARGET"
    INVALID_SIGNAL_PAYLOAD = "INVALID_SIGNAL_PAYLOAD"

    # Policy / permission
    NOT_PARTY_MANAGER_OR_LEADER = "NOT_PARTY_MANAGER_OR_LEADER"
    NOT_PARTY_LEADER = "NOT_PARTY_LEADER"
    CANNOT_KICK_LEADER = "CANNOT_KICK_LEADER"
    PARTY_MEDIA_RESTRICTED = "PARTY_MEDIA_RESTRICTED"
    INVITE_SELF_NOT_ALLOWED = "INVITE_SELF_NOT_ALLOWED"

    # State conflict
    TARGET_ALREADY_IN_PARTY = "TARGET_ALREADY_IN_PARTY"
    TARGET_ALREADY_MANAGER = "TARGET_ALREADY_MANAGER"
    NOT_IN_PARTY = "NOT_IN_PARTY"
    TARGET_NOT_IN_PARTY = "TARGET_NOT_IN_PARTY"
    PARTY_NOT_FOUND = "PARTY_NOT_FOUND"

    # Availability
    TARGET_OFFLINE = "TARGET_OFFLINE"
    TARGET_NOT_FOUND = "TARGET_NOT_FOUND"
    SIGNAL_TARGET_NOT_FOUND = "SIGNAL_TARGET_NOT_FOUND"

    # Rate limiting
    INVITE_COOLDOWN = "INVITE_COOLDOWN"

    # Expiry
    INVITE_EXPIRED = "INVITE_EXPIRED"

    # System
    PERSISTENCE_UNAVAILABLE = "PERSISTENCE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def build_error_event(code: ErrorCode | str, **context: Any) -> dict[str, Any]:
    """
    Create an error event frame.

    Args:
        code: Error code
        **context: Extra fields placed next to the code (e.g. retryAfterMs)

    Returns:
        Error event dictionary ready for serialization
    """
    value = code.value if isinstance(code, ErrorCode) else code
    return {"type": "error", "code": value, **context}
