"""
Inbound WebSocket message validation for worldserver.

Checks the frame size and JSON nesting depth, then parses the frame into one
of the closed set of inbound message models. Field-level semantics (e.g. an
empty invite id) are checked by the services, which know the right error
code; this layer only rejects frames that are not a known message at all.
"""

import json
from typing import Annotated, Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class MessageValidationError(Exception):
    """Raised when an inbound frame cannot be turned into a known message."""

    def __init__(self, message: str, error_type: str = "validation_error"):
        self.message = message
        self.error_type = error_type
        super().__init__(self.message)


class InboundMessage(BaseModel):
    """Base for client-to-server messages. Unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ChatSendMessage(InboundMessage):
    type: Literal["chat:send"]
    text: Any = None


class PartyChatSendMessage(InboundMessage):
    type: Literal["party:chat:send"]
    text: Any = None


class PartyInviteMessage(InboundMessage):
    type: Literal["party:invite"]
    target_user_id: Any = Field(default=None, alias="targetUserId")
    target_client_id: Any = Field(default=None, alias="targetClientId")


class PartyInviteRespondMessage(InboundMessage):
    type: Literal["party:invite:respond"]
    invite_id: Any = Field(default=None, alias="inviteId")
    accept: Any = None


class PartyLeaveMessage(InboundMessage):
    type: Literal["party:leave"]


class PartyKickMessage(InboundMessage):
    type: Literal["party:kick"]
    target_user_id: Any = Field(default=None, alias="targetUserId")


class PartyPromoteMessage(InboundMessage):
    type: Literal["party:promote"]
    target_user_id: Any = Field(default=None, alias="targetUserId")


class PlayerUpdateMessage(InboundMessage):
    type: Literal["player:update"]
    state: Any = None


class PlayerMediaMessage(InboundMessage):
    type: Literal["player:media"]
    mic_muted: Any = Field(default=None, alias="micMuted")
    camera_enabled: Any = Field(default=None, alias="cameraEnabled")


class RtcSignalMessage(InboundMessage):
    type: Literal["rtc:signal"]
    to_client_id: Any = Field(default=None, alias="toClientId")
    signal: Any = None


ClientMessage = Annotated[
    ChatSendMessage
    | PartyChatSendMessage
    | PartyInviteMessage
    | PartyInviteRespondMessage
    | PartyLeaveMessage
    | PartyKickMessage
    | PartyPromoteMessage
    | PlayerUpdateMessage
    | PlayerMediaMessage
    | RtcSignalMessage,
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[Any] = TypeAdapter(ClientMessage)

MESSAGE_TYPES: frozenset[str] = frozenset(
    get_args(model.model_fields["type"].annotation)[0]
    for model in (
        ChatSendMessage,
        PartyChatSendMessage,
        PartyInviteMessage,
        PartyInviteRespondMessage,
        PartyLeaveMessage,
        PartyKickMessage,
        PartyPromoteMessage,
        PlayerUpdateMessage,
        PlayerMediaMessage,
        RtcSignalMessage,
    )
)


class WebSocketMessageValidator:
    """
    Validates inbound WebSocket frames.

    Implements:
    - Frame size limit
    - JSON depth limit
    - Parsing into the closed set of inbound message types
    """

    MAX_MESSAGE_SIZE = 16 * 1024
    MAX_JSON_DEPTH = 10

    def __init__(self, max_message_size: int | None = None, max_json_depth: int | None = None):
        self.max_message_size = max_message_size or self.MAX_MESSAGE_SIZE
        self.max_json_depth = max_json_depth or self.MAX_JSON_DEPTH

    def validate_size(self, data: str | bytes) -> None:
        """
        Raises:
            MessageValidationError: If the frame exceeds the size limit
        """
        size = len(data) if isinstance(data, bytes) else len(data.encode("utf-8"))
        if size > self.max_message_size:
            logger.warning("Message size exceeds limit", size=size, max_size=self.max_message_size)
            raise MessageValidationError(
                f"Message size {size} bytes exceeds maximum {self.max_message_size} bytes",
                error_type="size_limit_exceeded",
            )

    def _calculate_depth(self, obj: Any, current_depth: int = 0) -> int:
        if current_depth > self.max_json_depth:
            return current_depth
        if isinstance(obj, dict):
            if not obj:
                return current_depth
            return max(self._calculate_depth(v, current_depth + 1) for v in obj.values())
        if isinstance(obj, list):
            if not obj:
                return current_depth
            return max(self._calculate_depth(item, current_depth + 1) for item in obj)
        return current_depth

    def parse(self, raw: str | bytes) -> InboundMessage:
        """
        Turn a raw frame into a typed message.

        Raises:
            MessageValidationError: On oversize, malformed JSON, excessive depth,
                a non-object frame, or an unknown message type
        """
        self.validate_size(raw)
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MessageValidationError(f"Invalid JSON: {e}", error_type="invalid_json") from e
        if not isinstance(data, dict):
            raise MessageValidationError("Message must be a JSON object", error_type="invalid_type")
        depth = self._calculate_depth(data)
        if depth > self.max_json_depth:
            logger.warning("JSON depth exceeds limit", depth=depth, max_depth=self.max_json_depth)
            raise MessageValidationError(
                f"JSON depth {depth} exceeds maximum {self.max_json_depth}",
                error_type="depth_limit_exceeded",
            )
        try:
            return _client_message_adapter.validate_python(data)
        except ValidationError as e:
            logger.debug("Unrecognized message", message_type=data.get("type"), errors=e.error_count())
            raise MessageValidationError(
                f"Unrecognized message: {data.get('type')!r}",
                error_type="schema_validation_failed",
            ) from e
