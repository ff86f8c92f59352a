"""
Party persistence interface consumed by the realtime coordinator.

Every method is atomic at the row level. Nothing here is coordinated with the
coordinator's in-memory state; callers re-read before they mutate.
"""

from typing import Protocol

from ..models.party import PartyMemberRole
from .records import DepartureRecord, MemberRecord, MembershipRecord, PartyRecord, UserIdentity

__all__ = [
    "DepartureRecord",
    "MemberRecord",
    "MembershipRecord",
    "PartyPersistence",
    "PartyRecord",
    "UserIdentity",
]


class PartyPersistence(Protocol):
    """Operations the party coordinator needs from durable storage."""

    async def get_membership(self, user_id: str) -> MembershipRecord | None: ...

    async def get_party(self, party_id: str) -> PartyRecord | None: ...

    async def create_party(self, leader_id: str) -> MembershipRecord:
        """Create a party led by leader_id with the leader as its only member."""
        ...

    async def add_member(self, party_id: str, user_id: str, role: PartyMemberRole) -> MembershipRecord:
        """Raises MembershipConflictError when the user already has a membership."""
        ...

    async def remove_member(self, party_id: str, user_id: str) -> bool:
        """Remove a non-leader member of party_id; False when that no longer describes user_id."""
        ...

    async def leave_party(self, user_id: str) -> DepartureRecord | None:
        """
        Remove the user's membership in one step with its consequences: a departing
        leader hands over to the earliest-joined remaining member, and a party left
        empty is deleted. None when the user has no membership.
        """
        ...

    async def delete_party(self, party_id: str) -> None: ...

    async def set_member_role(self, party_id: str, user_id: str, role: PartyMemberRole) -> bool: ...

    async def list_members(self, party_id: str) -> list[MemberRecord]:
        """Members ordered by join time, ties broken by membership row id."""
        ...

    async def find_user_by_id(self, user_id: str) -> UserIdentity | None: ...
