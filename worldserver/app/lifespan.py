"""
Application lifecycle for worldserver.

Startup builds the database engine, ensures the schema, and constructs the
one realtime coordinator the process will use. Pre-built services already on
app.state (as tests provide them) are left alone.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..auth.session import CookieSessionResolver
from ..config.models import AppConfig
from ..database import DatabaseManager
from ..persistence.party_repository import PartyRepository
from ..realtime.coordinator import RealtimeCoordinator
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger("worldserver.lifespan")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create realtime services on startup and dispose of the engine on shutdown."""
    config: AppConfig = app.state.config
    database: DatabaseManager | None = None

    if getattr(app.state, "coordinator", None) is None or getattr(app.state, "session_resolver", None) is None:
        database = DatabaseManager(config.database)
        await database.create_schema()
        if getattr(app.state, "coordinator", None) is None:
            app.state.coordinator = RealtimeCoordinator(PartyRepository(database.session_maker), config.realtime)
        if getattr(app.state, "session_resolver", None) is None:
            app.state.session_resolver = CookieSessionResolver(database.session_maker, config.session.cookie_name)
        app.state.database = database

    logger.info("worldserver started", ws_path=config.realtime.ws_path)
    try:
        yield
    finally:
        logger.info("worldserver shutting down", open_connections=len(app.state.coordinator.registry))
        if database is not None:
            await database.close()
