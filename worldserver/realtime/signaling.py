"""
Media signaling relay.

Forwards opaque WebRTC handshake payloads (offers, answers, ICE candidates)
between two connections. Payload contents are never inspected.
"""

from typing import Any

from ..error_types import ErrorCode
from ..exceptions import RealtimeRejection
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_registry import ConnectionRegistry
from .envelope import build_event

logger = get_logger(__name__)


class MediaSignalingRelay:
    """Point-to-point signaling gated by party membership."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    def can_exchange_media(self, from_connection_id: str, to_connection_id: str) -> bool:
        """
        Media may flow between two connections when neither is in a party, or
        both are in the same one. Uses the registry's cached party ids.
        """
        source = self._registry.get(from_connection_id)
        target = self._registry.get(to_connection_id)
        if source is None or target is None:
            return False
        return source.party_id == target.party_id

    def relay_signal(self, from_connection_id: str, to_connection_id: Any, payload: Any) -> None:
        """
        Forward an opaque handshake payload verbatim to another connection.

        Any JSON value except null is accepted as the signal.

        Raises:
            RealtimeRejection: INVALID_SIGNAL_PAYLOAD, SIGNAL_TARGET_NOT_FOUND or PARTY_MEDIA_RESTRICTED
        """
        if not isinstance(to_connection_id, str) or not to_connection_id:
            raise RealtimeRejection(ErrorCode.INVALID_SIGNAL_PAYLOAD)
        if payload is None or to_connection_id == from_connection_id:
            raise RealtimeRejection(ErrorCode.INVALID_SIGNAL_PAYLOAD)
        if to_connection_id not in self._registry:
            raise RealtimeRejection(ErrorCode.SIGNAL_TARGET_NOT_FOUND)
        if not self.can_exchange_media(from_connection_id, to_connection_id):
            logger.debug(
                "Signal blocked by party media policy",
                from_connection_id=from_connection_id,
                to_connection_id=to_connection_id,
            )
            raise RealtimeRejection(ErrorCode.PARTY_MEDIA_RESTRICTED)
        self._registry.send(to_connection_id, build_event("rtc:signal", fromClientId=from_connection_id, signal=payload))
