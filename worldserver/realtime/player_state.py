"""
Presence and avatar state for live connections.

Player state (position, rotation, inventory) and media flags are kept per
connection, replaced wholesale on every update, and broadcast to every
connection including the sender.
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..error_types import ErrorCode
from ..exceptions import RealtimeRejection
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_registry import ConnectionRegistry
from .envelope import build_event, timestamp_to_iso

logger = get_logger(__name__)


@dataclass(frozen=True)
class Vector3:
    x: float
    y: float
    z: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(frozen=True)
class PlayerState:
    """Avatar transform and inventory as last reported by a connection."""

    position: Vector3
    rotation: Vector3
    inventory: list[str] = field(default_factory=list)
    updated_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.position.to_dict(),
            "rotation": self.rotation.to_dict(),
            "inventory": list(self.inventory),
            "updatedAt": timestamp_to_iso(self.updated_at),
        }


@dataclass(frozen=True)
class PlayerMedia:
    mic_muted: bool = False
    camera_enabled: bool = True


def _is_finite_number(value: Any) -> bool:
    # bool is an int subclass and is not a coordinate.
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


def sanitize_vector(value: Any) -> Vector3 | None:
    """Return a Vector3 if value is an object with finite numeric x, y and z."""
    if not isinstance(value, dict):
        return None
    x, y, z = value.get("x"), value.get("y"), value.get("z")
    if not all(_is_finite_number(component) for component in (x, y, z)):
        return None
    return Vector3(float(x), float(y), float(z))


def sanitize_player_state(raw: Any, now: float) -> PlayerState | None:
    """
    Validate an inbound player state.

    Position and rotation are required; a non-list inventory is treated as
    empty and non-string inventory entries are dropped.
    """
    if not isinstance(raw, dict):
        return None
    position = sanitize_vector(raw.get("position"))
    rotation = sanitize_vector(raw.get("rotation"))
    if position is None or rotation is None:
        return None
    inventory = raw.get("inventory")
    items = [item for item in inventory if isinstance(item, str)] if isinstance(inventory, list) else []
    return PlayerState(position=position, rotation=rotation, inventory=items, updated_at=now)


class PlayerStateStore:
    """Per-connection avatar and media state with broadcast on change."""

    def __init__(self, registry: ConnectionRegistry, clock: Callable[[], float] = time.time) -> None:
        self._registry = registry
        self._clock = clock
        self._states: dict[str, PlayerState] = {}
        self._media: dict[str, PlayerMedia] = {}

    def get_state(self, connection_id: str) -> PlayerState | None:
        return self._states.get(connection_id)

    def get_media(self, connection_id: str) -> PlayerMedia:
        return self._media.get(connection_id, PlayerMedia())

    def set_player_state(self, connection_id: str, raw_state: Any) -> PlayerState:
        """
        Replace a connection's avatar state and broadcast it.

        Raises:
            RealtimeRejection: INVALID_PLAYER_STATE when position or rotation is malformed
        """
        state = sanitize_player_state(raw_state, self._clock())
        if state is None:
            raise RealtimeRejection(ErrorCode.INVALID_PLAYER_STATE)
        self._states[connection_id] = state
        self._registry.broadcast(build_event("player:update", player=self.player_payload(connection_id)))
        return state

    def set_player_media(self, connection_id: str, mic_muted: Any, camera_enabled: Any) -> PlayerMedia:
        """Store media flags and broadcast them. The camera counts as enabled unless explicitly false."""
        media = PlayerMedia(mic_muted=mic_muted is True, camera_enabled=camera_enabled is not False)
        self._media[connection_id] = media
        self._registry.broadcast(
            build_event(
                "player:media",
                player={
                    **self._identity(connection_id),
                    "micMuted": media.mic_muted,
                    "cameraEnabled": media.camera_enabled,
                },
            )
        )
        return media

    def _identity(self, connection_id: str) -> dict[str, Any]:
        connection = self._registry.get(connection_id)
        user = connection.user if connection is not None else None
        return {
            "clientId": connection_id,
            "userId": user.id if user else None,
            "name": user.display_name if user else None,
            "avatarUrl": user.avatar_url if user else None,
            "partyId": connection.party_id if connection is not None else None,
        }

    def player_payload(self, connection_id: str) -> dict[str, Any] | None:
        """Snapshot-shaped description of one connection's avatar, or None if it has none."""
        state = self._states.get(connection_id)
        if state is None:
            return None
        media = self.get_media(connection_id)
        return {
            **self._identity(connection_id),
            "micMuted": media.mic_muted,
            "cameraEnabled": media.camera_enabled,
            "state": state.to_dict(),
        }

    def snapshot(self) -> list[dict[str, Any]]:
        """Every live connection that has reported an avatar state."""
        players = []
        for connection in self._registry.all_connections():
            payload = self.player_payload(connection.connection_id)
            if payload is not None:
                players.append(payload)
        return players

    def remove(self, connection_id: str) -> None:
        """Forget a closed connection and tell everyone else it left."""
        self._states.pop(connection_id, None)
        self._media.pop(connection_id, None)
        self._registry.broadcast(build_event("player:leave", clientId=connection_id), exclude=connection_id)
        logger.debug("Player state removed", connection_id=connection_id)
