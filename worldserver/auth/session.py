"""
Resolve the user behind a realtime connection from its session cookie.

Login and cookie issuance happen elsewhere; this module only reads the
session table. Anything that does not resolve to a live session yields an
anonymous (None) identity rather than an error.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Protocol
from urllib.parse import unquote

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.user import Session, User
from ..persistence.records import UserIdentity
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


def parse_cookies(header: str | None) -> dict[str, str]:
    """
    Parse a Cookie header into a name -> value mapping.

    Values are percent-decoded; malformed pairs without a name are skipped.
    """
    cookies: dict[str, str] = {}
    if not header:
        return cookies
    for pair in header.split(";"):
        raw_key, _, raw_value = pair.strip().partition("=")
        if not raw_key:
            continue
        cookies[raw_key] = unquote(raw_value)
    return cookies


class SessionResolver(Protocol):
    """Resolves the current user from request headers."""

    async def resolve_user(self, headers: Mapping[str, str]) -> UserIdentity | None: ...


class CookieSessionResolver:
    """Looks up a non-revoked, non-expired session row named by the session cookie."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession], cookie_name: str) -> None:
        self._session_maker = session_maker
        self._cookie_name = cookie_name

    async def resolve_user(self, headers: Mapping[str, str]) -> UserIdentity | None:
        session_id = parse_cookies(headers.get("cookie")).get(self._cookie_name)
        if not session_id:
            return None

        now = datetime.now(UTC).replace(tzinfo=None)
        stmt = (
            select(User)
            .join(Session, Session.user_id == User.id)
            .where(Session.id == session_id, Session.revoked_at.is_(None), Session.expires_at > now)
        )
        try:
            async with self._session_maker() as db_session:
                user = (await db_session.execute(stmt)).scalars().first()
        except SQLAlchemyError as e:
            # An unreachable session store degrades the connection to anonymous.
            logger.error("Session lookup failed", error=str(e), cookie_name=self._cookie_name)
            return None

        if user is None:
            logger.debug("Session cookie did not resolve to a live session", cookie_name=self._cookie_name)
            return None
        return UserIdentity(id=user.id, name=user.name, email=user.email, avatar_url=user.avatar_url)
