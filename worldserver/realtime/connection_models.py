"""
Data models for connection management.

A ConnectionMetadata exists for exactly as long as its transport session is
open. Only the ConnectionRegistry stores these; other components look them up
by connection id.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..persistence.records import UserIdentity


class Transport(Protocol):
    """
    Outbound side of one client connection.

    send() must not block: it queues the frame and returns. It may raise when
    the connection is closed or its queue is full.
    """

    def send(self, event: dict[str, Any]) -> None: ...


@dataclass
class ConnectionMetadata:
    """A live connection and the identity resolved when it opened."""

    connection_id: str
    transport: Transport
    user: UserIdentity | None = None
    # Cached; refreshed whenever the user's membership changes.
    party_id: str | None = None
    connected_at: float = field(default_factory=time.time)

    @property
    def user_id(self) -> str | None:
        return self.user.id if self.user is not None else None
