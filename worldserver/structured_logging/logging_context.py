"""
Context management utilities for structured logging.

Connection handlers bind the connection id (and user id when known) so that
every log entry emitted while a message is processed carries it.
"""

from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


def bind_connection_context(
    connection_id: str | None = None,
    user_id: str | None = None,
    message_type: str | None = None,
    **kwargs: Any,
) -> None:
    """
    Bind connection context to the current logging context.

    Args:
        connection_id: Realtime connection id
        user_id: Authenticated user id, if any
        message_type: Inbound message kind being processed
        **kwargs: Additional context variables
    """
    context_vars = {
        "connection_id": connection_id,
        "user_id": user_id,
        "message_type": message_type,
        **kwargs,
    }
    bind_contextvars(**{k: v for k, v in context_vars.items() if v is not None})


def clear_connection_context() -> None:
    """Clear the current connection context from logging."""
    clear_contextvars()


def get_current_context() -> dict[str, Any]:
    """Get the current logging context."""
    try:
        return structlog.contextvars.get_contextvars()
    except (AttributeError, KeyError):
        return {}
