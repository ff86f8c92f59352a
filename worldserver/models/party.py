"""
Party and party membership models.

A user belongs to at most one party (unique index on party_members.user_id).
Leadership is stored on the party row only; a member's LEADER status is
derived by comparing ids, never stored as a role.
"""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_uuid, utc_now_naive
from .user import User


class PartyMemberRole(str, enum.Enum):
    """Stored membership roles."""

    MEMBER = "MEMBER"
    MANAGER = "MANAGER"


class Party(Base):
    """A group of users with exactly one leader."""

    __tablename__ = "parties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    leader_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)

    members: Mapped[list["PartyMember"]] = relationship(
        back_populates="party",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Party(id='{self.id}', leader_id='{self.leader_id}')>"


class PartyMember(Base):
    """Join row linking a user to a party with a role."""

    __tablename__ = "party_members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    party_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("parties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    role: Mapped[PartyMemberRole] = mapped_column(
        Enum(PartyMemberRole, name="party_member_role"), nullable=False, default=PartyMemberRole.MEMBER
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, nullable=False)

    party: Mapped[Party] = relationship(back_populates="members")
    user: Mapped[User] = relationship(back_populates="membership")

    def __repr__(self) -> str:
        return f"<PartyMember(user_id='{self.user_id}', party_id='{self.party_id}', role='{self.role.value}')>"
