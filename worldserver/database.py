"""
Database configuration for worldserver.

Provides the async engine and session maker used by the persistence layer.
One DatabaseManager is created per process during application startup.
"""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .config.models import DatabaseConfig
from .exceptions import ConfigurationError
from .metadata import metadata
from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


def normalize_database_url(url: str) -> str:
    """Select async drivers for plain postgresql:// and sqlite:// URLs."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


class DatabaseManager:
    """
    Owns the async engine and session maker.

    SQLite connections get foreign keys enabled so ON DELETE CASCADE behaves
    the same as on PostgreSQL.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        if not config.url:
            raise ConfigurationError("Database URL is not configured")
        self.database_url = normalize_database_url(config.url)

        engine_kwargs: dict[str, Any] = {"echo": config.echo}
        if self.database_url.startswith("sqlite"):
            if ":memory:" in self.database_url:
                # A single shared connection keeps the in-memory database alive.
                engine_kwargs["poolclass"] = StaticPool
                engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs.update({"pool_size": config.pool_size, "pool_pre_ping": True})

        self.engine: AsyncEngine = create_async_engine(self.database_url, **engine_kwargs)
        if self.database_url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database engine created", dialect=self.engine.dialect.name)

    async def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        # Registers every mapped class on the shared metadata.
        from . import models  # noqa: F401  # pylint: disable=unused-import,import-outside-toplevel

        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Database schema ensured", tables=sorted(metadata.tables))

    async def close(self) -> None:
        """Dispose of pooled connections."""
        await self.engine.dispose()
        logger.info("Database engine disposed")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
