"""
Shared SQLAlchemy DeclarativeBase for all models.

All models must inherit from this Base so string references in relationships
resolve through one registry.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy.orm import DeclarativeBase

from ..metadata import metadata


def new_uuid() -> str:
    """Generate a primary key value."""
    return str(uuid.uuid4())


def utc_now_naive() -> datetime:
    """Current time as naive UTC; stored naive to keep SQLite comparisons simple."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Shared declarative base for all worldserver models."""

    metadata = metadata
