"""
Real-time communication endpoint for worldserver.

The WebSocket route path is configurable, so the router is built per app.
"""

from fastapi import APIRouter, WebSocket

from ..error_types import ErrorCode, build_error_event
from ..realtime.websocket_handler import CLOSE_TRY_AGAIN_LATER, handle_websocket_connection
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket endpoint for presence, chat, party and signaling traffic.

    The user is resolved from the session cookie sent with the handshake;
    connections without a valid session are accepted as anonymous.
    """
    state = websocket.app.state
    coordinator = getattr(state, "coordinator", None)
    resolver = getattr(state, "session_resolver", None)
    if coordinator is None or resolver is None:
        # Must accept before a close frame can carry a reason.
        await websocket.accept()
        await websocket.send_json(build_error_event(ErrorCode.INTERNAL_ERROR))
        await websocket.close(code=CLOSE_TRY_AGAIN_LATER)
        logger.warning("WebSocket rejected: realtime services not initialized")
        return
    await handle_websocket_connection(websocket, coordinator, resolver)


def build_realtime_router(ws_path: str) -> APIRouter:
    """Create the router serving the realtime WebSocket at ws_path."""
    router = APIRouter(tags=["realtime"])
    router.add_api_websocket_route(ws_path, websocket_endpoint, name="realtime_ws")
    return router
