"""
Plain records returned by the persistence layer.

The realtime coordinator never holds ORM instances; repositories convert rows
into these frozen dataclasses before returning them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..models.party import PartyMemberRole


@dataclass(frozen=True)
class UserIdentity:
    """Stable identity of an account, resolved once per connection."""

    id: str
    name: str | None = None
    email: str | None = None
    avatar_url: str | None = None

    @property
    def display_name(self) -> str:
        """Name shown to other users: name, else email, else a placeholder."""
        return self.name or self.email or "User"

    def to_public_dict(self) -> dict[str, Any]:
        """Author/leader snapshot embedded in chat messages and invites."""
        return {"id": self.id, "name": self.display_name, "avatarUrl": self.avatar_url}


@dataclass(frozen=True)
class PartyRecord:
    """A persisted party."""

    id: str
    leader_id: str
    created_at: datetime


@dataclass(frozen=True)
class MembershipRecord:
    """A user's membership row together with the party's current leader."""

    id: str
    party_id: str
    user_id: str
    role: PartyMemberRole
    created_at: datetime
    leader_id: str

    @property
    def is_leader(self) -> bool:
        """LEADER is derived from the party row, never stored."""
        return self.user_id == self.leader_id

    @property
    def can_manage(self) -> bool:
        """Leaders and managers may invite and kick."""
        return self.is_leader or self.role == PartyMemberRole.MANAGER

    @property
    def effective_role(self) -> str:
        """Role as presented to clients: LEADER, MANAGER or MEMBER."""
        return "LEADER" if self.is_leader else self.role.value


@dataclass(frozen=True)
class MemberRecord:
    """A membership joined with the member's identity."""

    membership: MembershipRecord
    user: UserIdentity

    @property
    def user_id(self) -> str:
        return self.membership.user_id


@dataclass(frozen=True)
class DepartureRecord:
    """Outcome of a member leaving: who leads now, or whether the party is gone."""

    party_id: str
    user_id: str
    was_leader: bool
    new_leader_id: str | None = None
    party_deleted: bool = False
