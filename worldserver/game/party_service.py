"""
Party membership coordinator for worldserver.

Parties and memberships are persisted; invites and cooldowns are in-memory
(see party_invites). Every operation that mutates membership re-reads the
rows it depends on immediately before mutating, since handlers for other
connections may run whenever this one awaits the persistence layer.

After a mutation the affected users are resynced: their cached party id is
refreshed on every connection, and each of their connections receives a fresh
party:state.
"""

from collections.abc import Iterable
from typing import Any

from ..error_types import ErrorCode
from ..exceptions import MembershipConflictError, PartyNotFoundError, RealtimeRejection
from ..models.party import PartyMemberRole
from ..persistence import MemberRecord, PartyPersistence
from ..persistence.records import UserIdentity
from ..realtime.connection_registry import ConnectionRegistry
from ..realtime.envelope import build_event
from ..structured_logging.enhanced_logging_config import get_logger
from .chat_service import ChatRelay
from .party_invites import InviteBook, PendingInvite

logger = get_logger(__name__)


def _find_member(members: Iterable[MemberRecord], user_id: str) -> MemberRecord | None:
    return next((member for member in members if member.user_id == user_id), None)


def _require_user_id(user_id: str | None) -> str:
    if user_id is None:
        raise RealtimeRejection(ErrorCode.AUTH_REQUIRED)
    return user_id


class PartyService:
    """
    Party lifecycle: implicit creation, invites, leave with leader succession,
    kick, promote, and disconnect cleanup.

    Permission model: LEADER is derived from party.leader_id; leaders and
    MANAGERs may invite and kick; only the leader may promote.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        persistence: PartyPersistence,
        invites: InviteBook,
        chat: ChatRelay,
    ) -> None:
        self._registry = registry
        self._persistence = persistence
        self._invites = invites
        self._chat = chat
        self._logger = get_logger(__name__)

    @property
    def invites(self) -> InviteBook:
        return self._invites

    async def ensure_manageable_party_or_create(self, user_id: str) -> tuple[str, bool, bool]:
        """
        Return the user's party, creating one with the user as leader if needed.

        Returns:
            (party_id, can_manage, created)
        """
        membership = await self._persistence.get_membership(user_id)
        if membership is not None:
            return membership.party_id, membership.can_manage, False
        try:
            membership = await self._persistence.create_party(user_id)
        except MembershipConflictError:
            # Another handler of the same user created or joined a party first.
            membership = await self._persistence.get_membership(user_id)
            if membership is None:
                raise
            return membership.party_id, membership.can_manage, False
        self._logger.info("Party created implicitly", user_id=user_id, party_id=membership.party_id)
        return membership.party_id, True, True

    def _resolve_invite_target(self, target_user_id: Any, target_client_id: Any) -> str:
        if target_user_id is not None:
            if not isinstance(target_user_id, str) or not target_user_id.strip():
                raise RealtimeRejection(ErrorCode.INVALID_INVITE_TARGET)
            return target_user_id.strip()
        if isinstance(target_client_id, str) and target_client_id:
            target_connection = self._registry.get(target_client_id)
            if target_connection is None:
                raise RealtimeRejection(ErrorCode.TARGET_OFFLINE)
            if target_connection.user_id is None:
                raise RealtimeRejection(ErrorCode.INVALID_INVITE_TARGET)
            return target_connection.user_id
        raise RealtimeRejection(ErrorCode.INVALID_INVITE_TARGET)

    def _check_cooldown(self, inviter_id: str, target_id: str) -> None:
        if self._invites.cooldown_remaining(inviter_id, target_id) > 0:
            raise RealtimeRejection(
                ErrorCode.INVITE_COOLDOWN,
                retryAfterMs=self._invites.retry_after_ms(inviter_id, target_id),
            )

    async def _discard_unused_party(self, user_id: str, party_id: str) -> None:
        """Undo an implicit party creation when the invite that needed it fails."""
        members = await self._persistence.list_members(party_id)
        if [member.user_id for member in members] == [user_id] and not self._invites.has_party_invites(party_id):
            await self._persistence.delete_party(party_id)
            self._chat.drop_party_log(party_id)
            self._logger.info("Implicit party discarded", party_id=party_id, user_id=user_id)
            return
        # Someone joined in the meantime; the party stands.
        await self.resync_users([user_id])

    async def invite(
        self,
        inviter_connection_id: str,
        target_user_id: Any = None,
        target_client_id: Any = None,
    ) -> PendingInvite:
        """
        Invite a user into the inviter's party, creating the party if the
        inviter has none.

        The target may be named by user id or by one of their connection ids.
        No invite is recorded when any precondition fails.

        Raises:
            RealtimeRejection: AUTH_REQUIRED, INVALID_INVITE_TARGET, INVITE_SELF_NOT_ALLOWED,
                TARGET_NOT_FOUND, NOT_PARTY_MANAGER_OR_LEADER, TARGET_ALREADY_IN_PARTY,
                TARGET_OFFLINE or INVITE_COOLDOWN
        """
        connection = self._registry.get(inviter_connection_id)
        if connection is None or connection.user is None:
            raise RealtimeRejection(ErrorCode.AUTH_REQUIRED)
        inviter = connection.user
        target_id = self._resolve_invite_target(target_user_id, target_client_id)
        if target_id == inviter.id:
            raise RealtimeRejection(ErrorCode.INVITE_SELF_NOT_ALLOWED)

        self._invites.sweep_expired()
        target = await self._persistence.find_user_by_id(target_id)
        if target is None:
            raise RealtimeRejection(ErrorCode.TARGET_NOT_FOUND)
        inviter_membership = await self._persistence.get_membership(inviter.id)
        if inviter_membership is not None and not inviter_membership.can_manage:
            raise RealtimeRejection(ErrorCode.NOT_PARTY_MANAGER_OR_LEADER)
        if await self._persistence.get_membership(target_id) is not None:
            raise RealtimeRejection(ErrorCode.TARGET_ALREADY_IN_PARTY)
        if not self._registry.is_online(target_id):
            raise RealtimeRejection(ErrorCode.TARGET_OFFLINE)
        self._check_cooldown(inviter.id, target_id)

        party_id, can_manage, created = await self.ensure_manageable_party_or_create(inviter.id)
        if not can_manage:
            raise RealtimeRejection(ErrorCode.NOT_PARTY_MANAGER_OR_LEADER)
        # In-memory state may have moved while the party was being created.
        try:
            if not self._registry.is_online(target_id):
                raise RealtimeRejection(ErrorCode.TARGET_OFFLINE)
            self._check_cooldown(inviter.id, target_id)
        except RealtimeRejection:
            if created:
                await self._discard_unused_party(inviter.id, party_id)
            raise

        invite = self._invites.create(inviter, target_id, party_id)
        self._invites.start_cooldown(inviter.id, target_id)
        self._registry.send_to_user(target_id, build_event("party:invite", invite=invite.to_dict()))
        self._registry.send(
            inviter_connection_id,
            build_event("party:invite:sent", inviteId=invite.id, targetUserId=target_id),
        )
        await self.resync_users([inviter.id, target_id] if created else [target_id])
        self._logger.info(
            "Party invite sent",
            invite_id=invite.id,
            party_id=party_id,
            inviter_id=inviter.id,
            target_user_id=target_id,
        )
        return invite

    async def respond_to_invite(self, user_id: str | None, invite_id: Any, accept: Any) -> str | None:
        """
        Accept or decline a pending invite. An invite can be answered once.

        Returns:
            The joined party id when accepted, otherwise None

        Raises:
            RealtimeRejection: AUTH_REQUIRED, INVALID_INVITE_ID, INVALID_PAYLOAD, INVITE_EXPIRED,
                TARGET_ALREADY_IN_PARTY or PARTY_NOT_FOUND
        """
        user_id = _require_user_id(user_id)
        if not isinstance(invite_id, str) or not invite_id:
            raise RealtimeRejection(ErrorCode.INVALID_INVITE_ID)
        if not isinstance(accept, bool):
            raise RealtimeRejection(ErrorCode.INVALID_PAYLOAD)

        self._invites.sweep_expired()
        invite = self._invites.pop(user_id, invite_id)
        if invite is None:
            await self.resync_users([user_id])
            raise RealtimeRejection(ErrorCode.INVITE_EXPIRED, inviteId=invite_id)

        if not accept:
            self._notify_resolved(invite, accepted=False)
            await self.resync_users([user_id])
            self._logger.info("Party invite declined", invite_id=invite.id, user_id=user_id)
            return None

        try:
            if await self._persistence.get_membership(user_id) is not None:
                raise RealtimeRejection(ErrorCode.TARGET_ALREADY_IN_PARTY)
            if await self._persistence.get_party(invite.party_id) is None:
                raise RealtimeRejection(ErrorCode.PARTY_NOT_FOUND)
            try:
                await self._persistence.add_member(invite.party_id, user_id, PartyMemberRole.MEMBER)
            except MembershipConflictError as e:
                raise RealtimeRejection(ErrorCode.TARGET_ALREADY_IN_PARTY) from e
            except PartyNotFoundError as e:
                raise RealtimeRejection(ErrorCode.PARTY_NOT_FOUND) from e
        except RealtimeRejection:
            await self.resync_users([user_id])
            raise

        # Membership is exclusive, so the user's other offers are moot.
        self._invites.cancel_for_target(user_id)
        members = await self._persistence.list_members(invite.party_id)
        await self.resync_users([user_id, *(member.user_id for member in members)])
        self._notify_resolved(invite, accepted=True)
        self._logger.info("Party invite accepted", invite_id=invite.id, party_id=invite.party_id, user_id=user_id)
        return invite.party_id

    def _notify_resolved(self, invite: PendingInvite, *, accepted: bool) -> None:
        self._registry.send_to_user(
            invite.inviter_id,
            build_event(
                "party:invite:resolved",
                inviteId=invite.id,
                targetUserId=invite.target_user_id,
                accepted=accepted,
            ),
        )

    async def leave(self, user_id: str | None) -> None:
        """
        Leave the current party.

        A departing leader hands leadership to the earliest-joined remaining
        member; a leader leaving alone deletes the party.

        Raises:
            RealtimeRejection: AUTH_REQUIRED or NOT_IN_PARTY
        """
        user_id = _require_user_id(user_id)
        # Removal and succession are a single persistence call.
        departure = await self._persistence.leave_party(user_id)
        if departure is None:
            raise RealtimeRejection(ErrorCode.NOT_IN_PARTY)
        party_id = departure.party_id
        affected = [user_id]

        if departure.party_deleted:
            self._chat.drop_party_log(party_id)
            affected.extend(invite.target_user_id for invite in self._invites.cancel_for_party(party_id))
            self._logger.info("Party deleted after last member left", party_id=party_id, user_id=user_id)
        elif departure.new_leader_id is not None:
            self._logger.info(
                "Party leader left, leadership transferred",
                party_id=party_id,
                user_id=user_id,
                new_leader_id=departure.new_leader_id,
            )
        else:
            self._logger.info("Member left party", party_id=party_id, user_id=user_id)

        affected.extend(invite.target_user_id for invite in self._invites.cancel_from_inviter(user_id))
        if not departure.party_deleted:
            affected.extend(member.user_id for member in await self._persistence.list_members(party_id))
        await self.resync_users(affected)

    async def kick(self, acting_user_id: str | None, target_user_id: Any) -> None:
        """
        Remove another member from the actor's party.

        Raises:
            RealtimeRejection: AUTH_REQUIRED, INVALID_KICK_TARGET, NOT_IN_PARTY,
                NOT_PARTY_MANAGER_OR_LEADER, TARGET_NOT_IN_PARTY or CANNOT_KICK_LEADER
        """
        acting_user_id = _require_user_id(acting_user_id)
        if not isinstance(target_user_id, str) or not target_user_id or target_user_id == acting_user_id:
            raise RealtimeRejection(ErrorCode.INVALID_KICK_TARGET)
        actor = await self._persistence.get_membership(acting_user_id)
        if actor is None:
            raise RealtimeRejection(ErrorCode.NOT_IN_PARTY)
        if not actor.can_manage:
            raise RealtimeRejection(ErrorCode.NOT_PARTY_MANAGER_OR_LEADER)

        members = await self._persistence.list_members(actor.party_id)
        fresh_actor = _find_member(members, acting_user_id)
        if fresh_actor is None:
            raise RealtimeRejection(ErrorCode.NOT_IN_PARTY)
        if not fresh_actor.membership.can_manage:
            raise RealtimeRejection(ErrorCode.NOT_PARTY_MANAGER_OR_LEADER)
        target = _find_member(members, target_user_id)
        if target is None:
            raise RealtimeRejection(ErrorCode.TARGET_NOT_IN_PARTY)
        if target.membership.is_leader:
            raise RealtimeRejection(ErrorCode.CANNOT_KICK_LEADER)

        if not await self._persistence.remove_member(actor.party_id, target_user_id):
            # The target left or inherited leadership since the roster was read.
            current = await self._persistence.get_membership(target_user_id)
            if current is not None and current.party_id == actor.party_id and current.is_leader:
                raise RealtimeRejection(ErrorCode.CANNOT_KICK_LEADER)
            raise RealtimeRejection(ErrorCode.TARGET_NOT_IN_PARTY)
        affected = [acting_user_id, target_user_id, *(member.user_id for member in members)]
        affected.extend(invite.target_user_id for invite in self._invites.cancel_from_inviter(target_user_id))
        self._logger.info(
            "Member kicked from party",
            party_id=actor.party_id,
            acting_user_id=acting_user_id,
            target_user_id=target_user_id,
        )
        await self.resync_users(affected)

    async def promote(self, acting_user_id: str | None, target_user_id: Any) -> None:
        """
        Promote a MEMBER of the leader's party to MANAGER.

        Raises:
            RealtimeRejection: AUTH_REQUIRED, INVALID_PROMOTION_TARGET, NOT_IN_PARTY,
                NOT_PARTY_LEADER, TARGET_NOT_IN_PARTY or TARGET_ALREADY_MANAGER
        """
        acting_user_id = _require_user_id(acting_user_id)
        if not isinstance(target_user_id, str) or not target_user_id or target_user_id == acting_user_id:
            raise RealtimeRejection(ErrorCode.INVALID_PROMOTION_TARGET)
        actor = await self._persistence.get_membership(acting_user_id)
        if actor is None:
            raise RealtimeRejection(ErrorCode.NOT_IN_PARTY)
        if not actor.is_leader:
            raise RealtimeRejection(ErrorCode.NOT_PARTY_LEADER)

        members = await self._persistence.list_members(actor.party_id)
        fresh_actor = _find_member(members, acting_user_id)
        if fresh_actor is None:
            raise RealtimeRejection(ErrorCode.NOT_IN_PARTY)
        if not fresh_actor.membership.is_leader:
            raise RealtimeRejection(ErrorCode.NOT_PARTY_LEADER)
        target = _find_member(members, target_user_id)
        if target is None:
            raise RealtimeRejection(ErrorCode.TARGET_NOT_IN_PARTY)
        if target.membership.is_leader:
            raise RealtimeRejection(ErrorCode.INVALID_PROMOTION_TARGET)
        if target.membership.role == PartyMemberRole.MANAGER:
            raise RealtimeRejection(ErrorCode.TARGET_ALREADY_MANAGER)

        if not await self._persistence.set_member_role(actor.party_id, target_user_id, PartyMemberRole.MANAGER):
            raise RealtimeRejection(ErrorCode.TARGET_NOT_IN_PARTY)
        self._logger.info(
            "Member promoted to manager",
            party_id=actor.party_id,
            acting_user_id=acting_user_id,
            target_user_id=target_user_id,
        )
        await self.resync_users([acting_user_id, target_user_id, *(member.user_id for member in members)])

    async def disconnect_cleanup(self, connection_id: str, user_id: str | None) -> None:
        """
        Tidy up after a connection closed.

        Only acts once the user's last connection is gone: cancels invites the
        user sent or received, clears their cooldowns, and refreshes the online
        roster of their party.
        """
        if user_id is None or self._registry.is_online(user_id):
            return
        cancelled = self._invites.cancel_involving(user_id)
        self._invites.clear_cooldowns_involving(user_id)
        self._logger.info(
            "Party state cleaned up after last connection closed",
            connection_id=connection_id,
            user_id=user_id,
            cancelled_invites=len(cancelled),
        )
        affected = [invite.target_user_id for invite in cancelled if invite.target_user_id != user_id]
        await self.resync_users(affected)
        await self.refresh_roster(user_id)

    async def refresh_roster(self, user_id: str) -> None:
        """Resend party:state to the other members of user_id's party."""
        membership = await self._persistence.get_membership(user_id)
        if membership is None:
            return
        members = await self._persistence.list_members(membership.party_id)
        await self.resync_users(member.user_id for member in members if member.user_id != user_id)

    def _member_payload(self, member: MemberRecord) -> dict[str, Any]:
        user: UserIdentity = member.user
        return {
            "userId": user.id,
            "name": user.display_name,
            "email": user.email,
            "avatarUrl": user.avatar_url,
            "online": self._registry.is_online(user.id),
            "clientId": self._registry.find_any_live_connection_for_user(user.id),
            "isLeader": member.membership.is_leader,
            "role": member.membership.effective_role,
        }

    async def build_party_state(
        self,
        user_id: str,
        members_cache: dict[str, list[MemberRecord]] | None = None,
    ) -> dict[str, Any]:
        """Build the party:state event for one user from fresh reads."""
        membership = await self._persistence.get_membership(user_id)
        party = None
        if membership is not None:
            cache = members_cache if members_cache is not None else {}
            members = cache.get(membership.party_id)
            if members is None:
                members = await self._persistence.list_members(membership.party_id)
                cache[membership.party_id] = members
            leader_id = members[0].membership.leader_id if members else membership.leader_id
            party = {
                "id": membership.party_id,
                "leaderUserId": leader_id,
                "members": [self._member_payload(member) for member in members],
            }
        pending = [invite.to_dict() for invite in self._invites.pending_for(user_id)]
        return build_event("party:state", party=party, pendingInvites=pending)

    async def resync_users(self, user_ids: Iterable[str]) -> None:
        """
        Push fresh party state to every live connection of the given users.

        Connections whose cached party id changed also get the new party's
        chat history, and everyone is told about their new party id so media
        permissions can be re-evaluated client side.
        """
        self._invites.sweep_expired()
        members_cache: dict[str, list[MemberRecord]] = {}
        for user_id in dict.fromkeys(user_ids):
            if not self._registry.is_online(user_id):
                continue
            state = await self.build_party_state(user_id, members_cache)
            party_id = state["party"]["id"] if state["party"] is not None else None
            for connection_id in self._registry.set_party_for_user(user_id, party_id):
                self._registry.broadcast(build_event("player:party", clientId=connection_id, partyId=party_id))
                self._registry.send(
                    connection_id,
                    build_event("party:chat:history", messages=self._chat.party_history(party_id)),
                )
            self._registry.send_to_user(user_id, state)
