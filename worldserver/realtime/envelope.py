"""
Event envelope utilities for worldserver realtime messages.

Outbound frames are flat JSON objects: a ``type`` discriminator followed by
the event's own camelCase fields, e.g. ``{"type": "player:leave", "clientId": "..."}``.
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from typing import Any


class UUIDEncoder(json.JSONEncoder):
    """JSON encoder that renders UUIDs and datetimes as strings."""

    def default(self, o: Any) -> Any:
        if isinstance(o, uuid.UUID):
            return str(o)
        if isinstance(o, datetime):
            return isoformat_z(o)
        return super().default(o)


def isoformat_z(value: datetime) -> str:
    """ISO 8601 UTC with millisecond precision and a 'Z' suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def timestamp_to_iso(timestamp: float) -> str:
    """Convert a unix timestamp to the wire time format."""
    return isoformat_z(datetime.fromtimestamp(timestamp, UTC))


def build_event(event_type: str, **fields: Any) -> dict[str, Any]:
    """
    Create an outbound event frame.

    Args:
        event_type: Event kind, e.g. "chat:new"
        **fields: Event fields, placed next to the type

    Returns:
        Event dictionary ready for encode_event()
    """
    return {"type": event_type, **fields}


def encode_event(event: dict[str, Any]) -> str:
    """Serialize an event for the wire."""
    return json.dumps(event, cls=UUIDEncoder, separators=(",", ":"))
