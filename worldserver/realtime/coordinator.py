"""
Realtime coordinator: the single entry point for connection lifecycle and
inbound message dispatch.

One coordinator is constructed per process and owns every piece of volatile
state (registry, presence, invites, chat logs). Tests construct a fresh one
per case.
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..config.models import RealtimeConfig
from ..error_types import ErrorCode, build_error_event
from ..exceptions import ConfigurationError, DatabaseError, RealtimeRejection
from ..game.chat_service import ChatRelay
from ..game.party_invites import InviteBook
from ..game.party_service import PartyService
from ..persistence import PartyPersistence
from ..persistence.records import UserIdentity
from ..structured_logging.enhanced_logging_config import get_logger, log_exception_once
from ..structured_logging.logging_context import bind_connection_context, clear_connection_context
from .connection_models import ConnectionMetadata, Transport
from .connection_registry import ConnectionRegistry
from .envelope import build_event
from .message_validator import (
    MESSAGE_TYPES,
    ChatSendMessage,
    InboundMessage,
    MessageValidationError,
    PartyChatSendMessage,
    PartyInviteMessage,
    PartyInviteRespondMessage,
    PartyKickMessage,
    PartyPromoteMessage,
    PlayerMediaMessage,
    PlayerUpdateMessage,
    RtcSignalMessage,
    WebSocketMessageValidator,
)
from .player_state import PlayerStateStore
from .signaling import MediaSignalingRelay

logger = get_logger(__name__)

MessageHandler = Callable[[ConnectionMetadata, Any], Awaitable[None]]


class RealtimeCoordinator:
    """
    Routes inbound messages to the presence, party, chat and signaling
    components and turns their rejections into error events.

    Per-connection messages are handled in arrival order by the caller's
    receive loop; handlers of different connections interleave at awaits.
    """

    def __init__(
        self,
        persistence: PartyPersistence,
        config: RealtimeConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        config = config or RealtimeConfig()
        self.config = config
        self.persistence = persistence
        self.registry = ConnectionRegistry()
        self.presence = PlayerStateStore(self.registry, clock)
        self.chat = ChatRelay(
            self.registry,
            persistence,
            max_history=config.max_chat_history,
            max_party_history=config.max_party_chat_history,
            max_length=config.max_chat_message_length,
            clock=clock,
        )
        self.invites = InviteBook(config.invite_ttl_seconds, config.invite_cooldown_seconds, clock)
        self.parties = PartyService(self.registry, persistence, self.invites, self.chat)
        self.signaling = MediaSignalingRelay(self.registry)
        self.validator = WebSocketMessageValidator(max_message_size=config.max_message_size)

        self._handlers: dict[str, MessageHandler] = {
            "chat:send": self._on_chat_send,
            "party:chat:send": self._on_party_chat_send,
            "party:invite": self._on_party_invite,
            "party:invite:respond": self._on_party_invite_respond,
            "party:leave": self._on_party_leave,
            "party:kick": self._on_party_kick,
            "party:promote": self._on_party_promote,
            "player:update": self._on_player_update,
            "player:media": self._on_player_media,
            "rtc:signal": self._on_rtc_signal,
        }
        missing = MESSAGE_TYPES - self._handlers.keys()
        if missing:
            raise ConfigurationError(f"No handler registered for message types: {sorted(missing)}")

    def get_supported_message_types(self) -> list[str]:
        return sorted(self._handlers)

    async def connect(self, transport: Transport, user: UserIdentity | None) -> str:
        """
        Register a connection and push its initial state.

        The user's party id is read once before registration, so a persistence
        failure here leaves no trace in memory.
        """
        party_id = None
        if user is not None:
            membership = await self.persistence.get_membership(user.id)
            party_id = membership.party_id if membership is not None else None
        first_connection = user is not None and not self.registry.is_online(user.id)
        connection_id = self.registry.on_connect(transport, user, party_id)

        self.registry.send(
            connection_id,
            build_event(
                "session:info",
                clientId=connection_id,
                authenticated=user is not None,
                user=user.to_public_dict() if user is not None else None,
            ),
        )
        self.registry.send(connection_id, build_event("chat:history", messages=self.chat.global_history()))
        if party_id is not None:
            self.registry.send(
                connection_id,
                build_event("party:chat:history", messages=self.chat.party_history(party_id)),
            )
        self.registry.send(connection_id, build_event("player:snapshot", players=self.presence.snapshot()))

        if user is not None:
            try:
                self.registry.send(connection_id, await self.parties.build_party_state(user.id))
                if first_connection:
                    await self.parties.refresh_roster(user.id)
            except DatabaseError as e:
                log_exception_once(
                    logger, "error", "Failed to send initial party state", exc=e, connection_id=connection_id
                )
                self.registry.send(connection_id, build_error_event(ErrorCode.PERSISTENCE_UNAVAILABLE))
        return connection_id

    async def handle_message(self, connection_id: str, raw: str | bytes) -> None:
        """
        Parse one inbound frame and run the matching operation.

        Never raises: rejections, persistence failures and unexpected errors
        all become an error event on the originating connection.
        """
        connection = self.registry.get(connection_id)
        if connection is None:
            logger.warning("Message received for unknown connection", connection_id=connection_id)
            return
        try:
            message = self.validator.parse(raw)
        except MessageValidationError as e:
            logger.info("Rejected invalid payload", connection_id=connection_id, error_type=e.error_type)
            self.registry.send(connection_id, build_error_event(ErrorCode.INVALID_PAYLOAD))
            return

        handler = self._handlers[message.type]  # type: ignore[attr-defined]
        bind_connection_context(
            connection_id=connection_id,
            user_id=connection.user_id,
            message_type=message.type,  # type: ignore[attr-defined]
        )
        try:
            await handler(connection, message)
        except RealtimeRejection as e:
            logger.info("Realtime operation rejected", code=e.code.value, **e.payload)
            self.registry.send(connection_id, e.to_event())
        except DatabaseError as e:
            log_exception_once(logger, "error", "Persistence failure while handling message", exc=e)
            self.registry.send(connection_id, build_error_event(ErrorCode.PERSISTENCE_UNAVAILABLE))
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: a handler bug drops the message, not the connection
            logger.error(
                "Unhandled error while handling message",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            self.registry.send(connection_id, build_error_event(ErrorCode.INTERNAL_ERROR))
        finally:
            clear_connection_context()

    async def disconnect(self, connection_id: str) -> None:
        """Unregister a connection, broadcast its departure and tidy party state."""
        metadata = self.registry.on_disconnect(connection_id)
        if metadata is None:
            return
        self.presence.remove(connection_id)
        try:
            await self.parties.disconnect_cleanup(connection_id, metadata.user_id)
        except DatabaseError as e:
            log_exception_once(
                logger,
                "error",
                "Persistence failure during disconnect cleanup",
                exc=e,
                connection_id=connection_id,
                user_id=metadata.user_id,
            )

    async def _on_chat_send(self, connection: ConnectionMetadata, message: ChatSendMessage) -> None:
        await self.chat.send_global(connection.connection_id, message.text)

    async def _on_party_chat_send(self, connection: ConnectionMetadata, message: PartyChatSendMessage) -> None:
        await self.chat.send_party_chat(connection.connection_id, message.text)

    async def _on_party_invite(self, connection: ConnectionMetadata, message: PartyInviteMessage) -> None:
        await self.parties.invite(
            connection.connection_id,
            target_user_id=message.target_user_id,
            target_client_id=message.target_client_id,
        )

    async def _on_party_invite_respond(
        self, connection: ConnectionMetadata, message: PartyInviteRespondMessage
    ) -> None:
        await self.parties.respond_to_invite(connection.user_id, message.invite_id, message.accept)

    async def _on_party_leave(self, connection: ConnectionMetadata, _message: InboundMessage) -> None:
        await self.parties.leave(connection.user_id)

    async def _on_party_kick(self, connection: ConnectionMetadata, message: PartyKickMessage) -> None:
        await self.parties.kick(connection.user_id, message.target_user_id)

    async def _on_party_promote(self, connection: ConnectionMetadata, message: PartyPromoteMessage) -> None:
        await self.parties.promote(connection.user_id, message.target_user_id)

    async def _on_player_update(self, connection: ConnectionMetadata, message: PlayerUpdateMessage) -> None:
        self.presence.set_player_state(connection.connection_id, message.state)

    async def _on_player_media(self, connection: ConnectionMetadata, message: PlayerMediaMessage) -> None:
        self.presence.set_player_media(connection.connection_id, message.mic_muted, message.camera_enabled)

    async def _on_rtc_signal(self, connection: ConnectionMetadata, message: RtcSignalMessage) -> None:
        self.signaling.relay_signal(connection.connection_id, message.to_client_id, message.signal)
