"""SQLAlchemy models for worldserver."""

from .base import Base
from .party import Party, PartyMember, PartyMemberRole
from .user import Session, User

__all__ = ["Base", "Party", "PartyMember", "PartyMemberRole", "Session", "User"]
