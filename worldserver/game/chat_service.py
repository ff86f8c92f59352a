"""
Chat relay for worldserver.

Two independently bounded logs: one global, one per party. Sending appends to
the log (evicting the oldest entry once full) and pushes the message to its
audience.
"""

import time
from collections import deque
from collections.abc import Callable
from typing import Any

from ..error_types import ErrorCode
from ..exceptions import RealtimeRejection
from ..persistence import PartyPersistence
from ..realtime.connection_registry import ConnectionRegistry
from ..realtime.envelope import build_event
from ..structured_logging.enhanced_logging_config import get_logger
from .chat_message import ChatMessage

logger = get_logger(__name__)


class ChatRelay:
    """Global and party chat with bounded history replay."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        persistence: PartyPersistence,
        max_history: int = 100,
        max_party_history: int = 100,
        max_length: int = 500,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._persistence = persistence
        self._max_party_history = max_party_history
        self._max_length = max_length
        self._clock = clock
        self._global_log: deque[ChatMessage] = deque(maxlen=max_history)
        self._party_logs: dict[str, deque[ChatMessage]] = {}

    def _prepare(self, connection_id: str, text: Any) -> tuple[str, ChatMessage]:
        connection = self._registry.get(connection_id)
        if connection is None or connection.user is None:
            raise RealtimeRejection(ErrorCode.AUTH_REQUIRED)
        cleaned = text.strip() if isinstance(text, str) else ""
        if not cleaned:
            raise RealtimeRejection(ErrorCode.EMPTY_MESSAGE)
        message = ChatMessage(text=cleaned[: self._max_length], created_at=self._clock(), author=connection.user)
        return connection.user.id, message

    async def send_global(self, connection_id: str, text: Any) -> ChatMessage:
        """
        Append a message to the global log and broadcast it to every connection.

        Raises:
            RealtimeRejection: AUTH_REQUIRED for anonymous senders, EMPTY_MESSAGE for blank text
        """
        user_id, message = self._prepare(connection_id, text)
        self._global_log.append(message)
        delivered = self._registry.broadcast(build_event("chat:new", message=message.to_dict()))
        logger.debug("Global chat message sent", user_id=user_id, message_id=message.id, delivered=delivered)
        return message

    async def send_party_chat(self, connection_id: str, text: Any) -> ChatMessage:
        """
        Append a message to the sender's party log and push it to every live
        connection of every current member.

        Raises:
            RealtimeRejection: AUTH_REQUIRED, EMPTY_MESSAGE, or NOT_IN_PARTY
        """
        user_id, prepared = self._prepare(connection_id, text)
        membership = await self._persistence.get_membership(user_id)
        if membership is None:
            raise RealtimeRejection(ErrorCode.NOT_IN_PARTY)
        message = ChatMessage(
            text=prepared.text,
            created_at=prepared.created_at,
            author=prepared.author,
            party_id=membership.party_id,
            id=prepared.id,
        )
        members = await self._persistence.list_members(membership.party_id)
        log = self._party_logs.setdefault(membership.party_id, deque(maxlen=self._max_party_history))
        log.append(message)
        event = build_event("party:chat:new", message=message.to_dict())
        delivered = 0
        for member in members:
            delivered += self._registry.send_to_user(member.user_id, event)
        logger.debug(
            "Party chat message sent",
            user_id=user_id,
            party_id=membership.party_id,
            message_id=message.id,
            delivered=delivered,
        )
        return message

    def global_history(self) -> list[dict[str, Any]]:
        return [message.to_dict() for message in self._global_log]

    def party_history(self, party_id: str | None) -> list[dict[str, Any]]:
        if party_id is None:
            return []
        return [message.to_dict() for message in self._party_logs.get(party_id, ())]

    def drop_party_log(self, party_id: str) -> None:
        """Forget a deleted party's chat log."""
        if self._party_logs.pop(party_id, None) is not None:
            logger.debug("Party chat log dropped", party_id=party_id)
