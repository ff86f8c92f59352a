"""
FastAPI application factory for worldserver.
"""

from fastapi import FastAPI

from .. import __version__
from ..api.real_time import build_realtime_router
from ..auth.session import SessionResolver
from ..config import get_config
from ..config.models import AppConfig
from ..realtime.coordinator import RealtimeCoordinator
from ..structured_logging.enhanced_logging_config import get_logger
from .lifespan import lifespan

logger = get_logger(__name__)


def create_app(
    config: AppConfig | None = None,
    *,
    coordinator: RealtimeCoordinator | None = None,
    session_resolver: SessionResolver | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application configuration (defaults to get_config())
        coordinator: Pre-built coordinator; built during startup when omitted
        session_resolver: Pre-built session resolver; built during startup when omitted

    Returns:
        FastAPI: The configured application
    """
    config = config or get_config()
    app = FastAPI(
        title="worldserver",
        description="Realtime presence, party and media signaling coordinator",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.coordinator = coordinator
    app.state.session_resolver = session_resolver
    app.include_router(build_realtime_router(config.realtime.ws_path))
    logger.info("Application created", ws_path=config.realtime.ws_path)
    return app
