"""
Exception hierarchy for worldserver.

Coordinator operations signal expected rejections by raising RealtimeRejection;
the dispatch loop turns them into error events. Persistence failures raise
DatabaseError and are never allowed to reach the transport layer.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .error_types import ErrorCode, build_error_event
from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ErrorContext:
    """Contextual information for error reporting."""

    connection_id: str | None = None
    user_id: str | None = None
    party_id: str | None = None
    operation: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "connection_id": self.connection_id,
            "user_id": self.user_id,
            "party_id": self.party_id,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class WorldServerError(Exception):
    """
    Base exception for all worldserver errors.

    Carries structured context and tracks whether it has been logged so that
    log_exception_once does not report it twice.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = details or {}
        self._already_logged = False

    @property
    def already_logged(self) -> bool:
        """Whether this exception has already been written to the log."""
        return self._already_logged

    def mark_logged(self) -> None:
        """Mark this exception as logged."""
        self._already_logged = True

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context.to_dict(),
            "details": self.details,
        }


class DatabaseError(WorldServerError):
    """Database operation errors."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        operation: str = "unknown",
        table: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, context, **kwargs)
        self.operation = operation
        self.table = table
        self.details["operation"] = operation
        if table:
            self.details["table"] = table


class MembershipConflictError(DatabaseError):
    """A user already holds a party membership (unique constraint on user id)."""

    def __init__(self, user_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"User {user_id} already belongs to a party",
            context,
            operation="add_member",
            table="party_members",
        )
        self.user_id = user_id


class ConfigurationError(WorldServerError):
    """Configuration errors."""


class RealtimeRejection(WorldServerError):
    """
    An expected, client-visible rejection of a realtime operation.

    Args:
        code: Error code reported to the client
        **payload: Extra event fields (camelCase, sent verbatim)
    """

    def __init__(self, code: ErrorCode, **payload: Any):
        super().__init__(code.value)
        self.code = code
        self.payload = payload

    def to_event(self) -> dict[str, Any]:
        """Build the error event for the originating connection."""
        return build_error_event(self.code, **self.payload)


class PartyNotFoundError(DatabaseError):
    """The party a mutation targets has been deleted."""

    def __init__(self, party_id: str, context: ErrorContext | None = None):
        super().__init__(f"Party {party_id} does not exist", context, operation="add_member", table="parties")
        self.party_id = party_id
