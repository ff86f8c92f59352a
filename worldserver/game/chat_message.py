"""
Chat message model.

Messages are kept only in bounded in-memory logs; nothing here is persisted.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any

from ..persistence.records import UserIdentity
from ..realtime.envelope import timestamp_to_iso


@dataclass(frozen=True)
class ChatMessage:
    """
    A chat line with a snapshot of its author.

    The author snapshot is taken at send time so later profile changes do not
    rewrite history.
    """

    text: str
    created_at: float
    author: UserIdentity
    party_id: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "createdAt": timestamp_to_iso(self.created_at),
            "user": self.author.to_public_dict(),
        }
