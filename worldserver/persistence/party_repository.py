"""
Party repository for async persistence operations.

SQLAlchemy implementation of PartyPersistence. Each call runs in its own
session and commits before returning, so every operation is atomic at the row
level and nothing is held open across coordinator awaits.
"""

# pylint: disable=too-few-public-methods  # Reason: Repository class with focused responsibility

from datetime import UTC

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..exceptions import DatabaseError, ErrorContext, MembershipConflictError, PartyNotFoundError
from ..models.party import Party, PartyMember, PartyMemberRole
from ..models.user import User
from ..structured_logging.enhanced_logging_config import get_logger
from .records import DepartureRecord, MemberRecord, MembershipRecord, PartyRecord, UserIdentity

logger = get_logger(__name__)


def _to_identity(user: User) -> UserIdentity:
    return UserIdentity(id=user.id, name=user.name, email=user.email, avatar_url=user.avatar_url)


def _to_membership(member: PartyMember, leader_id: str) -> MembershipRecord:
    return MembershipRecord(
        id=member.id,
        party_id=member.party_id,
        user_id=member.user_id,
        role=member.role,
        created_at=member.created_at.replace(tzinfo=UTC),
        leader_id=leader_id,
    )


class PartyRepository:
    """
    Repository for party and membership rows.

    The unique index on party_members.user_id is the final arbiter of the
    one-party-per-user rule; violations surface as MembershipConflictError.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker
        self._logger = get_logger(__name__)

    def _error(self, operation: str, error: Exception, **metadata: str) -> DatabaseError:
        context = ErrorContext(operation=operation, metadata=dict(metadata))
        self._logger.error("Party persistence failure", operation=operation, error=str(error), **metadata)
        db_error = DatabaseError(f"Error during {operation}: {error}", context, operation=operation, table="parties")
        db_error.mark_logged()
        return db_error

    async def get_membership(self, user_id: str) -> MembershipRecord | None:
        """Return the user's membership with the party's current leader, or None."""
        try:
            async with self._session_maker() as session:
                stmt = (
                    select(PartyMember, Party.leader_id)
                    .join(Party, Party.id == PartyMember.party_id)
                    .where(PartyMember.user_id == user_id)
                )
                row = (await session.execute(stmt)).first()
                if row is None:
                    return None
                member, leader_id = row
                return _to_membership(member, leader_id)
        except SQLAlchemyError as e:
            raise self._error("get_membership", e, user_id=user_id) from e

    async def get_party(self, party_id: str) -> PartyRecord | None:
        """Return the party row, or None when it no longer exists."""
        try:
            async with self._session_maker() as session:
                party = await session.get(Party, party_id)
                if party is None:
                    return None
                return PartyRecord(id=party.id, leader_id=party.leader_id, created_at=party.created_at.replace(tzinfo=UTC))
        except SQLAlchemyError as e:
            raise self._error("get_party", e, party_id=party_id) from e

    async def create_party(self, leader_id: str) -> MembershipRecord:
        """Create a party and its leader's membership in one transaction."""
        try:
            async with self._session_maker() as session, session.begin():
                party = Party(leader_id=leader_id)
                session.add(party)
                await session.flush()
                member = PartyMember(party_id=party.id, user_id=leader_id, role=PartyMemberRole.MEMBER)
                session.add(member)
                await session.flush()
                record = _to_membership(member, leader_id)
            self._logger.info("Party created", party_id=record.party_id, leader_id=leader_id)
            return record
        except IntegrityError as e:
            raise MembershipConflictError(leader_id) from e
        except SQLAlchemyError as e:
            raise self._error("create_party", e, leader_id=leader_id) from e

    async def _lock_party(self, session: AsyncSession, party_id: str) -> Party | None:
        # Serializes membership changes of one party; SQLite ignores FOR UPDATE
        # but only ever runs one writer.
        stmt = select(Party).where(Party.id == party_id).with_for_update()
        return (await session.execute(stmt)).scalar_one_or_none()

    async def add_member(self, party_id: str, user_id: str, role: PartyMemberRole) -> MembershipRecord:
        """Insert a membership row; the unique user index rejects double membership."""
        try:
            async with self._session_maker() as session, session.begin():
                party = await self._lock_party(session, party_id)
                if party is None:
                    raise PartyNotFoundError(party_id)
                member = PartyMember(party_id=party_id, user_id=user_id, role=role)
                session.add(member)
                await session.flush()
                record = _to_membership(member, party.leader_id)
            self._logger.info("Member added to party", party_id=party_id, user_id=user_id, role=role.value)
            return record
        except IntegrityError as e:
            raise MembershipConflictError(user_id) from e
        except SQLAlchemyError as e:
            raise self._error("add_member", e, party_id=party_id, user_id=user_id) from e

    async def remove_member(self, party_id: str, user_id: str) -> bool:
        """
        Delete a member's row from party_id unless they lead it.

        Returns False when the user is no longer a member of party_id or has
        become its leader.
        """
        try:
            async with self._session_maker() as session, session.begin():
                party = await self._lock_party(session, party_id)
                removed = False
                if party is not None and party.leader_id != user_id:
                    result = await session.execute(
                        delete(PartyMember).where(PartyMember.party_id == party_id, PartyMember.user_id == user_id)
                    )
                    removed = bool(result.rowcount)
            self._logger.info("Member removed from party", party_id=party_id, user_id=user_id, removed=removed)
            return removed
        except SQLAlchemyError as e:
            raise self._error("remove_member", e, party_id=party_id, user_id=user_id) from e

    async def leave_party(self, user_id: str) -> DepartureRecord | None:
        """
        Delete the user's membership and settle leadership in one transaction.

        A departing leader is replaced by the earliest-joined remaining member
        (ties broken by membership id); a party left with no members is deleted.
        """
        try:
            async with self._session_maker() as session, session.begin():
                party_id = await session.scalar(select(PartyMember.party_id).where(PartyMember.user_id == user_id))
                if party_id is None:
                    return None
                party = await self._lock_party(session, party_id)
                result = await session.execute(
                    delete(PartyMember).where(PartyMember.party_id == party_id, PartyMember.user_id == user_id)
                )
                if party is None or not result.rowcount:
                    return None

                was_leader = party.leader_id == user_id
                new_leader_id = None
                party_deleted = False
                if was_leader:
                    new_leader_id = await session.scalar(
                        select(PartyMember.user_id)
                        .where(PartyMember.party_id == party_id)
                        .order_by(PartyMember.created_at, PartyMember.id)
                        .limit(1)
                    )
                    if new_leader_id is None:
                        await session.execute(delete(Party).where(Party.id == party_id))
                        party_deleted = True
                    else:
                        party.leader_id = new_leader_id
            self._logger.info(
                "Member left party",
                party_id=party_id,
                user_id=user_id,
                new_leader_id=new_leader_id,
                party_deleted=party_deleted,
            )
            return DepartureRecord(
                party_id=party_id,
                user_id=user_id,
                was_leader=was_leader,
                new_leader_id=new_leader_id,
                party_deleted=party_deleted,
            )
        except SQLAlchemyError as e:
            raise self._error("leave_party", e, user_id=user_id) from e

    async def delete_party(self, party_id: str) -> None:
        """Delete the party and any remaining membership rows."""
        try:
            async with self._session_maker() as session, session.begin():
                await session.execute(delete(PartyMember).where(PartyMember.party_id == party_id))
                await session.execute(delete(Party).where(Party.id == party_id))
            self._logger.info("Party deleted", party_id=party_id)
        except SQLAlchemyError as e:
            raise self._error("delete_party", e, party_id=party_id) from e

    async def set_member_role(self, party_id: str, user_id: str, role: PartyMemberRole) -> bool:
        """Update the stored role of a member of party_id. Returns False when they are not one."""
        try:
            async with self._session_maker() as session, session.begin():
                await self._lock_party(session, party_id)
                result = await session.execute(
                    update(PartyMember)
                    .where(PartyMember.party_id == party_id, PartyMember.user_id == user_id)
                    .values(role=role)
                )
                updated = bool(result.rowcount)
            self._logger.info(
                "Member role updated", party_id=party_id, user_id=user_id, role=role.value, updated=updated
            )
            return updated
        except SQLAlchemyError as e:
            raise self._error("set_member_role", e, party_id=party_id, user_id=user_id) from e

    async def list_members(self, party_id: str) -> list[MemberRecord]:
        """Return members ordered by join time, then membership id."""
        try:
            async with self._session_maker() as session:
                stmt = (
                    select(PartyMember, User, Party.leader_id)
                    .join(User, User.id == PartyMember.user_id)
                    .join(Party, Party.id == PartyMember.party_id)
                    .where(PartyMember.party_id == party_id)
                    .order_by(PartyMember.created_at, PartyMember.id)
                )
                rows = (await session.execute(stmt)).all()
                return [
                    MemberRecord(membership=_to_membership(member, leader_id), user=_to_identity(user))
                    for member, user, leader_id in rows
                ]
        except SQLAlchemyError as e:
            raise self._error("list_members", e, party_id=party_id) from e

    async def find_user_by_id(self, user_id: str) -> UserIdentity | None:
        """Look up an account by id."""
        try:
            async with self._session_maker() as session:
                user = await session.get(User, user_id)
                return _to_identity(user) if user is not None else None
        except SQLAlchemyError as e:
            raise self._error("find_user_by_id", e, user_id=user_id) from e
