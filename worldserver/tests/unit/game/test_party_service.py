"""
Unit tests for PartyService.

Covers: ensure_manageable_party_or_create, invite preconditions, respond
(accept/decline/expired/races), leave with succession, kick, promote,
disconnect cleanup, and party:state payloads.
"""

import asyncio

import pytest

from worldserver.error_types import ErrorCode
from worldserver.exceptions import DatabaseError, MembershipConflictError, RealtimeRejection
from worldserver.models.party import PartyMemberRole

# pylint: disable=protected-access  # Reason: Test file - accessing protected members for unit testing
# pylint: disable=redefined-outer-name  # Reason: Test file - pytest fixture parameter names


@pytest.fixture
def parties(coordinator):
    return coordinator.parties


async def _party_of_two(world, parties, leader="alice", member="bob"):
    """Connect both users and have the leader's invite accepted."""
    leader_cid, leader_transport = await world.connect(leader)
    member_cid, member_transport = await world.connect(member)
    invite = await parties.invite(leader_cid, target_user_id=member)
    await parties.respond_to_invite(member, invite.id, True)
    return (leader_cid, leader_transport), (member_cid, member_transport)


async def _rejection(awaitable) -> RealtimeRejection:
    with pytest.raises(RealtimeRejection) as exc_info:
        await awaitable
    return exc_info.value


# ---- ensure_manageable_party_or_create ----
@pytest.mark.asyncio
async def test_ensure_creates_party_for_partyless_user(parties, store):
    store.add_user("alice")
    party_id, can_manage, created = await parties.ensure_manageable_party_or_create("alice")
    assert created is True
    assert can_manage is True
    assert store.parties[party_id].leader_id == "alice"
    assert store.member_ids(party_id) == ["alice"]


@pytest.mark.asyncio
async def test_ensure_returns_existing_membership(world, parties, store):
    await _party_of_two(world, parties)
    party_id, can_manage, created = await parties.ensure_manageable_party_or_create("bob")
    assert created is False
    assert can_manage is False
    assert party_id == store.party_of("alice")


@pytest.mark.asyncio
async def test_ensure_recovers_from_concurrent_creation(parties, store):
    """A unique-constraint conflict means someone else made the membership first."""
    store.add_user("alice")
    await store.create_party("alice")
    real_get = store.get_membership
    calls = 0

    async def stale_then_real(user_id):
        nonlocal calls
        calls += 1
        return None if calls == 1 else await real_get(user_id)

    store.get_membership = stale_then_real
    party_id, can_manage, created = await parties.ensure_manageable_party_or_create("alice")
    assert created is False
    assert can_manage is True
    assert party_id == store.party_of("alice")


# ---- invite ----
@pytest.mark.asyncio
async def test_invite_sends_invite_and_ack(world, parties, store):
    alice_cid, alice_transport = await world.connect("alice")
    _, bob_transport = await world.connect("bob")

    invite = await parties.invite(alice_cid, target_user_id="bob")

    assert invite.party_id == store.party_of("alice")
    received = bob_transport.last("party:invite")
    assert received["invite"]["id"] == invite.id
    assert received["invite"]["leader"]["id"] == "alice"
    assert alice_transport.last("party:invite:sent") == {
        "type": "party:invite:sent",
        "inviteId": invite.id,
        "targetUserId": "bob",
    }
    assert bob_transport.last("party:state")["pendingInvites"][0]["id"] == invite.id


@pytest.mark.asyncio
async def test_invite_by_client_id(world, parties):
    alice_cid, _ = await world.connect("alice")
    bob_cid, _ = await world.connect("bob")
    invite = await parties.invite(alice_cid, target_client_id=bob_cid)
    assert invite.target_user_id == "bob"


@pytest.mark.asyncio
async def test_invite_preconditions(world, parties, store):
    alice_cid, _ = await world.connect("alice")
    anon_cid, _ = await world.connect_anonymous()
    store.add_user("offline")

    assert (await _rejection(parties.invite(anon_cid, target_user_id="alice"))).code == ErrorCode.AUTH_REQUIRED
    assert (await _rejection(parties.invite(alice_cid))).code == ErrorCode.INVALID_INVITE_TARGET
    assert (await _rejection(parties.invite(alice_cid, target_user_id=7))).code == ErrorCode.INVALID_INVITE_TARGET
    assert (
        await _rejection(parties.invite(alice_cid, target_client_id=anon_cid))
    ).code == ErrorCode.INVALID_INVITE_TARGET
    assert (
        await _rejection(parties.invite(alice_cid, target_client_id="gone"))
    ).code == ErrorCode.TARGET_OFFLINE
    assert (
        await _rejection(parties.invite(alice_cid, target_user_id="alice"))
    ).code == ErrorCode.INVITE_SELF_NOT_ALLOWED
    assert (await _rejection(parties.invite(alice_cid, target_user_id="ghost"))).code == ErrorCode.TARGET_NOT_FOUND
    assert (await _rejection(parties.invite(alice_cid, target_user_id="offline"))).code == ErrorCode.TARGET_OFFLINE
    # No precondition failure creates a party.
    assert store.parties == {}


@pytest.mark.asyncio
async def test_member_cannot_invite(world, parties):
    _, (bob_cid, _) = await _party_of_two(world, parties)
    await world.connect("carol")
    rejection = await _rejection(parties.invite(bob_cid, target_user_id="carol"))
    assert rejection.code == ErrorCode.NOT_PARTY_MANAGER_OR_LEADER


@pytest.mark.asyncio
async def test_manager_can_invite(world, parties):
    await _party_of_two(world, parties)
    await parties.promote("alice", "bob")
    bob_cid = next(iter(world.coordinator.registry.find_connections_for_user("bob")))
    await world.connect("carol")
    invite = await parties.invite(bob_cid, target_user_id="carol")
    assert invite.inviter_id == "bob"


@pytest.mark.asyncio
async def test_invite_target_already_in_party(world, parties):
    (alice_cid, _), _ = await _party_of_two(world, parties)
    carol_cid, _ = await world.connect("carol")
    rejection = await _rejection(parties.invite(carol_cid, target_user_id="bob"))
    assert rejection.code == ErrorCode.TARGET_ALREADY_IN_PARTY
    rejection = await _rejection(parties.invite(alice_cid, target_user_id="bob"))
    assert rejection.code == ErrorCode.TARGET_ALREADY_IN_PARTY


@pytest.mark.asyncio
async def test_invite_cooldown(world, parties, clock):
    alice_cid, _ = await world.connect("alice")
    await world.connect("bob")
    await parties.invite(alice_cid, target_user_id="bob")

    clock.advance(2.5)
    rejection = await _rejection(parties.invite(alice_cid, target_user_id="bob"))
    assert rejection.code == ErrorCode.INVITE_COOLDOWN
    assert rejection.payload == {"retryAfterMs": 5500}

    clock.advance(5.5)
    await parties.invite(alice_cid, target_user_id="bob")
    assert len(parties.invites.pending_for("bob")) == 1


@pytest.mark.asyncio
async def test_invite_discards_implicit_party_when_target_goes_offline(world, parties, store):
    alice_cid, _ = await world.connect("alice")
    bob_cid, _ = await world.connect("bob")
    real_create = store.create_party

    async def create_then_drop_target(user_id):
        membership = await real_create(user_id)
        await world.coordinator.disconnect(bob_cid)
        return membership

    store.create_party = create_then_drop_target
    rejection = await _rejection(parties.invite(alice_cid, target_user_id="bob"))

    assert rejection.code == ErrorCode.TARGET_OFFLINE
    assert store.parties == {}
    assert store.memberships == {}
    assert parties.invites.pending_for("bob") == []
    assert world.coordinator.registry.get(alice_cid).party_id is None


@pytest.mark.asyncio
async def test_invite_discards_implicit_party_on_late_cooldown(world, parties, store):
    alice_cid, _ = await world.connect("alice")
    await world.connect("bob")
    real_create = store.create_party

    async def create_then_cool_down(user_id):
        membership = await real_create(user_id)
        parties.invites.start_cooldown("alice", "bob")
        return membership

    store.create_party = create_then_cool_down
    rejection = await _rejection(parties.invite(alice_cid, target_user_id="bob"))

    assert rejection.code == ErrorCode.INVITE_COOLDOWN
    assert store.parties == {}
    assert store.party_of("alice") is None


# ---- respond_to_invite ----
@pytest.mark.asyncio
async def test_accept_joins_party_as_member(world, parties, store):
    (_, alice_transport), (_, bob_transport) = await _party_of_two(world, parties)

    party_id = store.party_of("alice")
    assert store.party_of("bob") == party_id
    assert store.memberships["bob"].role == PartyMemberRole.MEMBER
    resolved = alice_transport.last("party:invite:resolved")
    assert resolved["accepted"] is True
    assert resolved["targetUserId"] == "bob"

    state = bob_transport.last("party:state")
    assert state["party"]["id"] == party_id
    assert state["party"]["leaderUserId"] == "alice"
    assert [(m["userId"], m["role"], m["isLeader"]) for m in state["party"]["members"]] == [
        ("alice", "LEADER", True),
        ("bob", "MEMBER", False),
    ]
    assert state["pendingInvites"] == []


@pytest.mark.asyncio
async def test_accept_updates_cached_party_and_announces(world, parties, store):
    (alice_cid, alice_transport), (bob_cid, bob_transport) = await _party_of_two(world, parties)
    party_id = store.party_of("alice")

    registry = world.coordinator.registry
    assert registry.get(bob_cid).party_id == party_id
    assert registry.get(alice_cid).party_id == party_id
    assert {"type": "player:party", "clientId": bob_cid, "partyId": party_id} in alice_transport.events
    assert bob_transport.last("party:chat:history") == {"type": "party:chat:history", "messages": []}


@pytest.mark.asyncio
async def test_decline_notifies_inviter(world, parties, store):
    alice_cid, alice_transport = await world.connect("alice")
    await world.connect("bob")
    invite = await parties.invite(alice_cid, target_user_id="bob")

    assert await parties.respond_to_invite("bob", invite.id, False) is None

    assert store.party_of("bob") is None
    assert alice_transport.last("party:invite:resolved") == {
        "type": "party:invite:resolved",
        "inviteId": invite.id,
        "targetUserId": "bob",
        "accepted": False,
    }


@pytest.mark.asyncio
async def test_respond_twice_is_expired(world, parties, store):
    alice_cid, _ = await world.connect("alice")
    _, bob_transport = await world.connect("bob")
    invite = await parties.invite(alice_cid, target_user_id="bob")
    await parties.respond_to_invite("bob", invite.id, True)
    calls_before = store.calls.count("add_member")

    rejection = await _rejection(parties.respond_to_invite("bob", invite.id, True))

    assert rejection.code == ErrorCode.INVITE_EXPIRED
    assert store.calls.count("add_member") == calls_before
    assert bob_transport.events[-1]["type"] == "party:state"


@pytest.mark.asyncio
async def test_respond_after_ttl_is_expired(world, parties, clock, store):
    alice_cid, _ = await world.connect("alice")
    await world.connect("bob")
    invite = await parties.invite(alice_cid, target_user_id="bob")
    clock.advance(20.0)
    rejection = await _rejection(parties.respond_to_invite("bob", invite.id, True))
    assert rejection.code == ErrorCode.INVITE_EXPIRED
    assert store.party_of("bob") is None


@pytest.mark.asyncio
async def test_respond_validation(parties):
    assert (await _rejection(parties.respond_to_invite(None, "x", True))).code == ErrorCode.AUTH_REQUIRED
    assert (await _rejection(parties.respond_to_invite("bob", "", True))).code == ErrorCode.INVALID_INVITE_ID
    assert (await _rejection(parties.respond_to_invite("bob", 3, True))).code == ErrorCode.INVALID_INVITE_ID
    assert (await _rejection(parties.respond_to_invite("bob", "x", "yes"))).code == ErrorCode.INVALID_PAYLOAD


@pytest.mark.asyncio
async def test_accept_second_invite_after_joining_is_rejected(world, parties, store):
    alice_cid, _ = await world.connect("alice")
    carol_cid, _ = await world.connect("carol")
    await world.connect("bob")
    from_alice = await parties.invite(alice_cid, target_user_id="bob")
    from_carol = await parties.invite(carol_cid, target_user_id="bob")

    await parties.respond_to_invite("bob", from_alice.id, True)

    # Joining cancels the other pending offers.
    rejection = await _rejection(parties.respond_to_invite("bob", from_carol.id, True))
    assert rejection.code == ErrorCode.INVITE_EXPIRED
    assert store.party_of("bob") == store.party_of("alice")


@pytest.mark.asyncio
async def test_concurrent_accepts_never_double_join(world, parties, store):
    """Two accepts racing on different invites end with exactly one membership."""
    alice_cid, _ = await world.connect("alice")
    carol_cid, _ = await world.connect("carol")
    await world.connect("bob")
    from_alice = await parties.invite(alice_cid, target_user_id="bob")
    from_carol = await parties.invite(carol_cid, target_user_id="bob")

    results = await asyncio.gather(
        parties.respond_to_invite("bob", from_alice.id, True),
        parties.respond_to_invite("bob", from_carol.id, True),
        return_exceptions=True,
    )

    joined = [result for result in results if isinstance(result, str)]
    rejected = [result for result in results if isinstance(result, RealtimeRejection)]
    assert len(joined) == 1
    assert len(rejected) == 1
    assert rejected[0].code == ErrorCode.TARGET_ALREADY_IN_PARTY
    assert store.party_of("bob") == joined[0]


@pytest.mark.asyncio
async def test_accept_into_deleted_party(world, parties, store):
    alice_cid, _ = await world.connect("alice")
    await world.connect("bob")
    invite = await parties.invite(alice_cid, target_user_id="bob")
    await store.delete_party(invite.party_id)

    rejection = await _rejection(parties.respond_to_invite("bob", invite.id, True))

    assert rejection.code == ErrorCode.PARTY_NOT_FOUND
    assert store.party_of("bob") is None


@pytest.mark.asyncio
async def test_accept_maps_membership_conflict(world, parties, store):
    alice_cid, _ = await world.connect("alice")
    await world.connect("bob")
    invite = await parties.invite(alice_cid, target_user_id="bob")
    store.failures["add_member"] = MembershipConflictError("bob")

    rejection = await _rejection(parties.respond_to_invite("bob", invite.id, True))

    assert rejection.code == ErrorCode.TARGET_ALREADY_IN_PARTY


# ---- leave ----
@pytest.mark.asyncio
async def test_leader_leave_transfers_to_earliest_member(world, parties, store):
    (alice_cid, _), _ = await _party_of_two(world, parties)
    await world.connect("carol")
    await parties.invite(alice_cid, target_user_id="carol")
    invite = parties.invites.pending_for("carol")[0]
    await parties.respond_to_invite("carol", invite.id, True)
    party_id = store.party_of("alice")

    await parties.leave("alice")

    assert store.parties[party_id].leader_id == "bob"
    assert store.member_ids(party_id) == ["bob", "carol"]
    assert store.party_of("alice") is None


@pytest.mark.asyncio
async def test_leave_resyncs_everyone_including_leaver(world, parties, store):
    (alice_cid, alice_transport), (_, bob_transport) = await _party_of_two(world, parties)
    alice_transport.clear()
    bob_transport.clear()

    await parties.leave("alice")

    assert alice_transport.last("party:state")["party"] is None
    assert bob_transport.last("party:state")["party"]["leaderUserId"] == "bob"
    assert world.coordinator.registry.get(alice_cid).party_id is None


@pytest.mark.asyncio
async def test_sole_leader_leave_deletes_party(world, parties, store):
    alice_cid, _ = await world.connect("alice")
    await world.connect("bob")
    invite = await parties.invite(alice_cid, target_user_id="bob")
    party_id = store.party_of("alice")

    await parties.leave("alice")

    assert party_id not in store.parties
    assert store.party_of("alice") is None
    # The party's outstanding invites die with it.
    assert parties.invites.pending_for("bob") == []
    assert (await _rejection(parties.respond_to_invite("bob", invite.id, True))).code == ErrorCode.INVITE_EXPIRED


@pytest.mark.asyncio
async def test_member_leave_keeps_party(world, parties, store):
    await _party_of_two(world, parties)
    party_id = store.party_of("alice")
    await parties.leave("bob")
    assert store.member_ids(party_id) == ["alice"]
    assert store.parties[party_id].leader_id == "alice"


@pytest.mark.asyncio
async def test_leave_without_party(parties):
    assert (await _rejection(parties.leave("nobody"))).code == ErrorCode.NOT_IN_PARTY
    assert (await _rejection(parties.leave(None))).code == ErrorCode.AUTH_REQUIRED


@pytest.mark.asyncio
async def test_leave_persistence_failure_propagates(world, parties, store):
    await _party_of_two(world, parties)
    party_id = store.party_of("alice")
    store.failures["leave_party"] = DatabaseError("connection reset")

    with pytest.raises(DatabaseError):
        await parties.leave("alice")

    assert store.member_ids(party_id) == ["alice", "bob"]
    assert store.parties[party_id].leader_id == "alice"


async def _party_of_three(world, parties):
    (alice_cid, _), _ = await _party_of_two(world, parties)
    await world.connect("carol")
    invite = await parties.invite(alice_cid, target_user_id="carol")
    await parties.respond_to_invite("carol", invite.id, True)
    return alice_cid


def _assert_leader_is_member(store, party_id):
    if party_id in store.parties:
        assert store.parties[party_id].leader_id in store.member_ids(party_id)
    else:
        assert store.member_ids(party_id) == []


@pytest.mark.asyncio
async def test_concurrent_leader_and_member_leave(world, parties, store):
    await _party_of_three(world, parties)
    party_id = store.party_of("alice")

    await asyncio.gather(parties.leave("alice"), parties.leave("bob"))

    assert store.member_ids(party_id) == ["carol"]
    assert store.parties[party_id].leader_id == "carol"
    _assert_leader_is_member(store, party_id)


@pytest.mark.asyncio
async def test_concurrent_leave_of_whole_party(world, parties, store):
    await _party_of_three(world, parties)
    party_id = store.party_of("alice")

    await asyncio.gather(parties.leave("alice"), parties.leave("bob"), parties.leave("carol"))

    assert party_id not in store.parties
    assert store.memberships == {}


@pytest.mark.asyncio
async def test_kick_racing_leader_leave(world, parties, store):
    await _party_of_three(world, parties)
    await parties.promote("alice", "carol")
    party_id = store.party_of("alice")

    results = await asyncio.gather(parties.leave("alice"), parties.kick("carol", "bob"), return_exceptions=True)

    assert results[0] is None
    _assert_leader_is_member(store, party_id)
    if isinstance(results[1], RealtimeRejection):
        assert results[1].code == ErrorCode.CANNOT_KICK_LEADER
        assert store.member_ids(party_id) == ["bob", "carol"]
    else:
        assert store.member_ids(party_id) == ["carol"]


@pytest.mark.asyncio
async def test_kick_target_inherits_leadership_after_roster_read(world, parties, store):
    await _party_of_three(world, parties)
    await parties.promote("alice", "carol")
    party_id = store.party_of("alice")
    real_remove = store.remove_member

    async def leader_leaves_first(target_party_id, user_id):
        await store.leave_party("alice")
        return await real_remove(target_party_id, user_id)

    store.remove_member = leader_leaves_first
    rejection = await _rejection(parties.kick("carol", "bob"))

    assert rejection.code == ErrorCode.CANNOT_KICK_LEADER
    assert store.parties[party_id].leader_id == "bob"
    assert store.member_ids(party_id) == ["bob", "carol"]


# ---- kick ----
@pytest.mark.asyncio
async def test_leader_kicks_member(world, parties, store):
    _, (bob_cid, bob_transport) = await _party_of_two(world, parties)
    party_id = store.party_of("alice")

    await parties.kick("alice", "bob")

    assert store.member_ids(party_id) == ["alice"]
    assert bob_transport.last("party:state")["party"] is None
    assert world.coordinator.registry.get(bob_cid).party_id is None


@pytest.mark.asyncio
async def test_kick_rules(world, parties, store):
    await _party_of_two(world, parties)
    outsider_cid, _ = await world.connect("olga")
    await world.connect("carol")
    await parties.invite(outsider_cid, target_user_id="carol")

    assert (await _rejection(parties.kick("alice", "alice"))).code == ErrorCode.INVALID_KICK_TARGET
    assert (await _rejection(parties.kick("alice", ""))).code == ErrorCode.INVALID_KICK_TARGET
    assert (await _rejection(parties.kick("bob", "alice"))).code == ErrorCode.NOT_PARTY_MANAGER_OR_LEADER
    assert (await _rejection(parties.kick("alice", "olga"))).code == ErrorCode.TARGET_NOT_IN_PARTY
    assert (await _rejection(parties.kick("carol", "bob"))).code == ErrorCode.NOT_IN_PARTY

    await parties.promote("alice", "bob")
    assert (await _rejection(parties.kick("bob", "alice"))).code == ErrorCode.CANNOT_KICK_LEADER
    assert store.member_ids(store.party_of("alice")) == ["alice", "bob"]


@pytest.mark.asyncio
async def test_manager_kicks_member(world, parties, store):
    (alice_cid, _), _ = await _party_of_two(world, parties)
    await world.connect("carol")
    invite = await parties.invite(alice_cid, target_user_id="carol")
    await parties.respond_to_invite("carol", invite.id, True)
    await parties.promote("alice", "bob")

    await parties.kick("bob", "carol")

    assert store.party_of("carol") is None


# ---- promote ----
@pytest.mark.asyncio
async def test_promote_member_to_manager(world, parties, store):
    _, (_, bob_transport) = await _party_of_two(world, parties)

    await parties.promote("alice", "bob")

    assert store.memberships["bob"].role == PartyMemberRole.MANAGER
    members = bob_transport.last("party:state")["party"]["members"]
    assert [m["role"] for m in members] == ["LEADER", "MANAGER"]


@pytest.mark.asyncio
async def test_promote_rules(world, parties, store):
    (alice_cid, _), _ = await _party_of_two(world, parties)
    await world.connect("carol")
    invite = await parties.invite(alice_cid, target_user_id="carol")
    await parties.respond_to_invite("carol", invite.id, True)
    await world.connect("olga")

    assert (await _rejection(parties.promote("alice", "alice"))).code == ErrorCode.INVALID_PROMOTION_TARGET
    assert (await _rejection(parties.promote("alice", None))).code == ErrorCode.INVALID_PROMOTION_TARGET
    assert (await _rejection(parties.promote("bob", "carol"))).code == ErrorCode.NOT_PARTY_LEADER
    assert (await _rejection(parties.promote("olga", "carol"))).code == ErrorCode.NOT_IN_PARTY
    assert (await _rejection(parties.promote("alice", "olga"))).code == ErrorCode.TARGET_NOT_IN_PARTY

    await parties.promote("alice", "bob")
    assert (await _rejection(parties.promote("alice", "bob"))).code == ErrorCode.TARGET_ALREADY_MANAGER
    # Managers cannot promote.
    assert (await _rejection(parties.promote("bob", "carol"))).code == ErrorCode.NOT_PARTY_LEADER


# ---- disconnect_cleanup ----
@pytest.mark.asyncio
async def test_disconnect_cleanup_waits_for_last_connection(world, parties, clock):
    alice_cid, _ = await world.connect("alice")
    second_cid, _ = await world.connect("alice")
    await world.connect("bob")
    await parties.invite(alice_cid, target_user_id="bob")
    registry = world.coordinator.registry

    registry.on_disconnect(alice_cid)
    await parties.disconnect_cleanup(alice_cid, "alice")
    assert len(parties.invites.pending_for("bob")) == 1

    registry.on_disconnect(second_cid)
    await parties.disconnect_cleanup(second_cid, "alice")
    assert parties.invites.pending_for("bob") == []
    assert parties.invites.cooldown_remaining("alice", "bob") == 0.0


@pytest.mark.asyncio
async def test_disconnect_cleanup_refreshes_roster(world, parties):
    (alice_cid, _), (_, bob_transport) = await _party_of_two(world, parties)
    bob_transport.clear()

    world.coordinator.registry.on_disconnect(alice_cid)
    await parties.disconnect_cleanup(alice_cid, "alice")

    members = bob_transport.last("party:state")["party"]["members"]
    alice_entry = next(m for m in members if m["userId"] == "alice")
    assert alice_entry["online"] is False
    assert alice_entry["clientId"] is None


# ---- build_party_state ----
@pytest.mark.asyncio
async def test_party_state_member_payload(world, parties, store):
    store.add_user("alice", name=None, email="alice@example.com", avatar_url="https://cdn/a.png")
    (alice_cid, _), _ = await _party_of_two(world, parties)

    state = await parties.build_party_state("bob")

    alice_entry = state["party"]["members"][0]
    assert alice_entry == {
        "userId": "alice",
        "name": "alice@example.com",
        "email": "alice@example.com",
        "avatarUrl": "https://cdn/a.png",
        "online": True,
        "clientId": alice_cid,
        "isLeader": True,
        "role": "LEADER",
    }


@pytest.mark.asyncio
async def test_party_state_for_partyless_user(parties):
    state = await parties.build_party_state("nobody")
    assert state == {"type": "party:state", "party": None, "pendingInvites": []}
