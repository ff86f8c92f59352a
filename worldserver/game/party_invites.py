"""
Pending party invites and per-pair invite cooldowns.

Both live only in memory. Expiry is evaluated lazily: callers sweep before
they read, and an expired entry is never returned as valid.
"""

import math
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..persistence.records import UserIdentity
from ..realtime.envelope import timestamp_to_iso
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_INVITE_TTL_SECONDS = 20.0
DEFAULT_INVITE_COOLDOWN_SECONDS = 8.0


@dataclass(frozen=True)
class PendingInvite:
    """An offer for target_user_id to join party_id, made by inviter."""

    id: str
    target_user_id: str
    inviter: UserIdentity
    party_id: str
    created_at: float
    expires_at: float

    @property
    def inviter_id(self) -> str:
        return self.inviter.id

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "partyId": self.party_id,
            "leader": self.inviter.to_public_dict(),
            "createdAt": timestamp_to_iso(self.created_at),
            "expiresAt": timestamp_to_iso(self.expires_at),
        }


class InviteBook:
    """
    Invite index keyed by target user id, then invite id.

    A target may hold one pending invite per inviter; re-inviting replaces the
    previous one. Cooldowns are keyed by the ordered (inviter, target) pair.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_INVITE_TTL_SECONDS,
        cooldown_seconds: float = DEFAULT_INVITE_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._cooldown = cooldown_seconds
        self._clock = clock
        self._by_target: dict[str, dict[str, PendingInvite]] = {}
        self._cooldowns: dict[tuple[str, str], float] = {}

    def sweep_expired(self) -> list[PendingInvite]:
        """Drop expired invites and cooldowns; returns the invites dropped."""
        now = self._clock()
        expired: list[PendingInvite] = []
        for target_user_id in list(self._by_target):
            invites = self._by_target[target_user_id]
            for invite_id in [iid for iid, invite in invites.items() if invite.is_expired(now)]:
                expired.append(invites.pop(invite_id))
            if not invites:
                del self._by_target[target_user_id]
        for pair in [pair for pair, until in self._cooldowns.items() if until <= now]:
            del self._cooldowns[pair]
        if expired:
            logger.debug("Expired party invites swept", count=len(expired))
        return expired

    def create(self, inviter: UserIdentity, target_user_id: str, party_id: str) -> PendingInvite:
        """Record a new invite, replacing any earlier one from the same inviter to the same target."""
        now = self._clock()
        invites = self._by_target.setdefault(target_user_id, {})
        for invite_id in [iid for iid, invite in invites.items() if invite.inviter_id == inviter.id]:
            del invites[invite_id]
        invite = PendingInvite(
            id=str(uuid.uuid4()),
            target_user_id=target_user_id,
            inviter=inviter,
            party_id=party_id,
            created_at=now,
            expires_at=now + self._ttl,
        )
        invites[invite.id] = invite
        return invite

    def pop(self, target_user_id: str, invite_id: str) -> PendingInvite | None:
        """Remove and return a live invite addressed to target_user_id."""
        invites = self._by_target.get(target_user_id)
        if not invites:
            return None
        invite = invites.pop(invite_id, None)
        if not invites:
            del self._by_target[target_user_id]
        if invite is None or invite.is_expired(self._clock()):
            return None
        return invite

    def pending_for(self, target_user_id: str) -> list[PendingInvite]:
        """Unexpired invites addressed to the user, oldest first."""
        now = self._clock()
        invites = self._by_target.get(target_user_id, {})
        return sorted(
            (invite for invite in invites.values() if not invite.is_expired(now)),
            key=lambda invite: invite.created_at,
        )

    def cooldown_remaining(self, inviter_id: str, target_user_id: str) -> float:
        """Seconds left before inviter may invite target again (0 when allowed)."""
        until = self._cooldowns.get((inviter_id, target_user_id))
        if until is None:
            return 0.0
        return max(0.0, until - self._clock())

    def retry_after_ms(self, inviter_id: str, target_user_id: str) -> int:
        return math.ceil(self.cooldown_remaining(inviter_id, target_user_id) * 1000)

    def start_cooldown(self, inviter_id: str, target_user_id: str) -> None:
        self._cooldowns[(inviter_id, target_user_id)] = self._clock() + self._cooldown

    def _remove_where(self, predicate: Callable[[PendingInvite], bool]) -> list[PendingInvite]:
        removed: list[PendingInvite] = []
        for target_user_id in list(self._by_target):
            invites = self._by_target[target_user_id]
            for invite_id in [iid for iid, invite in invites.items() if predicate(invite)]:
                removed.append(invites.pop(invite_id))
            if not invites:
                del self._by_target[target_user_id]
        return removed

    def cancel_involving(self, user_id: str) -> list[PendingInvite]:
        """Cancel every invite where the user is the target or the inviter."""
        return self._remove_where(lambda invite: user_id in (invite.target_user_id, invite.inviter_id))

    def cancel_from_inviter(self, inviter_id: str) -> list[PendingInvite]:
        return self._remove_where(lambda invite: invite.inviter_id == inviter_id)

    def cancel_for_party(self, party_id: str) -> list[PendingInvite]:
        return self._remove_where(lambda invite: invite.party_id == party_id)

    def has_party_invites(self, party_id: str) -> bool:
        return any(
            invite.party_id == party_id for invites in self._by_target.values() for invite in invites.values()
        )

    def cancel_for_target(self, target_user_id: str) -> list[PendingInvite]:
        return self._remove_where(lambda invite: invite.target_user_id == target_user_id)

    def clear_cooldowns_involving(self, user_id: str) -> None:
        for pair in [pair for pair in self._cooldowns if user_id in pair]:
            del self._cooldowns[pair]

    def __len__(self) -> int:
        return sum(len(invites) for invites in self._by_target.values())
