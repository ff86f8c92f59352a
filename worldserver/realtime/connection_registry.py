"""
Connection registry for realtime clients.

Maps connection ids to the user behind them and back. A user may hold any
number of simultaneous connections; a user is online exactly when at least
one of them is registered.
"""

import uuid
from collections.abc import Iterable
from typing import Any

from ..persistence.records import UserIdentity
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import ConnectionMetadata, Transport

logger = get_logger(__name__)


class ConnectionRegistry:
    """
    In-memory connection tracking and best-effort fan-out.

    All methods are synchronous; nothing here awaits, so a registry update is
    never interleaved with another handler.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionMetadata] = {}
        self._user_connections: dict[str, set[str]] = {}

    def on_connect(self, transport: Transport, user: UserIdentity | None, party_id: str | None = None) -> str:
        """
        Register a new connection.

        Args:
            transport: Outbound side of the connection
            user: Resolved identity, or None for anonymous connections
            party_id: The user's party at connect time

        Returns:
            The new, process-unique connection id
        """
        connection_id = str(uuid.uuid4())
        self._connections[connection_id] = ConnectionMetadata(
            connection_id=connection_id,
            transport=transport,
            user=user,
            party_id=party_id if user is not None else None,
        )
        if user is not None:
            self._user_connections.setdefault(user.id, set()).add(connection_id)
        logger.info(
            "Connection registered",
            connection_id=connection_id,
            user_id=user.id if user else None,
            party_id=party_id,
        )
        return connection_id

    def on_disconnect(self, connection_id: str) -> ConnectionMetadata | None:
        """Remove every registry entry for the connection and return its metadata."""
        metadata = self._connections.pop(connection_id, None)
        if metadata is None:
            return None
        user_id = metadata.user_id
        if user_id is not None:
            connection_ids = self._user_connections.get(user_id)
            if connection_ids is not None:
                connection_ids.discard(connection_id)
                if not connection_ids:
                    del self._user_connections[user_id]
        logger.info("Connection unregistered", connection_id=connection_id, user_id=user_id)
        return metadata

    def get(self, connection_id: str) -> ConnectionMetadata | None:
        return self._connections.get(connection_id)

    def all_connections(self) -> list[ConnectionMetadata]:
        return list(self._connections.values())

    def find_connections_for_user(self, user_id: str) -> set[str]:
        """Ids of every live connection held by the user."""
        return set(self._user_connections.get(user_id, ()))

    def find_any_live_connection_for_user(self, user_id: str) -> str | None:
        """One live connection id of the user, or None when the user is offline."""
        connection_ids = self._user_connections.get(user_id)
        if not connection_ids:
            return None
        return min(connection_ids, key=lambda cid: self._connections[cid].connected_at)

    def is_online(self, user_id: str) -> bool:
        return bool(self._user_connections.get(user_id))

    def set_party_for_user(self, user_id: str, party_id: str | None) -> list[str]:
        """
        Update the cached party id on all of a user's connections.

        Returns:
            Ids of connections whose cached party id actually changed
        """
        changed: list[str] = []
        for connection_id in self._user_connections.get(user_id, ()):
            metadata = self._connections[connection_id]
            if metadata.party_id != party_id:
                metadata.party_id = party_id
                changed.append(connection_id)
        return changed

    def send(self, connection_id: str, event: dict[str, Any]) -> bool:
        """
        Push an event to one connection.

        Returns:
            True if the frame was queued, False if the connection is gone or refused it
        """
        metadata = self._connections.get(connection_id)
        if metadata is None:
            return False
        try:
            metadata.transport.send(event)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: one broken transport must not abort a fan-out to the others
            logger.warning(
                "Failed to push event to connection",
                connection_id=connection_id,
                event_type=event.get("type"),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True

    def send_many(self, connection_ids: Iterable[str], event: dict[str, Any]) -> int:
        """Push an event to several connections; returns how many accepted it."""
        return sum(1 for connection_id in connection_ids if self.send(connection_id, event))

    def send_to_user(self, user_id: str, event: dict[str, Any]) -> int:
        """Push an event to every live connection of a user."""
        return self.send_many(self.find_connections_for_user(user_id), event)

    def broadcast(self, event: dict[str, Any], exclude: str | None = None) -> int:
        """Push an event to every connection (optionally skipping one)."""
        targets = [cid for cid in self._connections if cid != exclude]
        return self.send_many(targets, event)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections
