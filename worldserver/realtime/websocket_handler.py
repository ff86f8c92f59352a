"""
WebSocket transport and receive loop for worldserver.

Each accepted socket gets a WebSocketTransport whose send() only enqueues;
a writer task drains the queue onto the socket. Inbound frames are handed to
the coordinator one at a time, preserving per-connection order.
"""

import asyncio
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from ..auth.session import SessionResolver
from ..exceptions import DatabaseError
from ..structured_logging.enhanced_logging_config import get_logger, log_exception_once
from .coordinator import RealtimeCoordinator
from .envelope import encode_event

logger = get_logger(__name__)

DEFAULT_SEND_QUEUE_SIZE = 256
CLOSE_TRY_AGAIN_LATER = 1013


class TransportClosedError(RuntimeError):
    """Raised by WebSocketTransport.send() once the socket is gone."""


class WebSocketTransport:
    """Non-blocking outbound side of one WebSocket."""

    def __init__(self, websocket: WebSocket, max_queue_size: int = DEFAULT_SEND_QUEUE_SIZE) -> None:
        self._websocket = websocket
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False
        self._writer: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    def send(self, event: dict[str, Any]) -> None:
        """
        Queue an event for delivery.

        Raises:
            TransportClosedError: If the socket has closed
            asyncio.QueueFull: If the client is not keeping up
        """
        if self._closed:
            raise TransportClosedError("WebSocket transport is closed")
        self._queue.put_nowait(event)

    async def _write_loop(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            try:
                await self._websocket.send_text(encode_event(event))
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug("WebSocket writer stopped", error=str(e), error_type=type(e).__name__)
                self._closed = True
                return

    async def close(self) -> None:
        """Stop accepting events and wait for queued ones to flush."""
        self._closed = True
        if self._writer is None:
            return
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            self._writer.cancel()
        try:
            await self._writer
        except asyncio.CancelledError:
            logger.debug("WebSocket writer cancelled with events still queued")


async def _receive_loop(websocket: WebSocket, coordinator: RealtimeCoordinator, connection_id: str) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            logger.info("WebSocket disconnected", connection_id=connection_id, code=message.get("code"))
            return
        data = message.get("text")
        if data is None:
            data = message.get("bytes")
        if data is None:
            continue
        await coordinator.handle_message(connection_id, data)


async def handle_websocket_connection(
    websocket: WebSocket,
    coordinator: RealtimeCoordinator,
    resolver: SessionResolver,
) -> None:
    """
    Serve one WebSocket for its whole lifetime.

    Args:
        websocket: The (not yet accepted) WebSocket
        coordinator: Process-wide realtime coordinator
        resolver: Resolves the user from the handshake's cookies
    """
    await websocket.accept()
    user = await resolver.resolve_user(websocket.headers)
    transport = WebSocketTransport(websocket)
    transport.start()

    try:
        connection_id = await coordinator.connect(transport, user)
    except DatabaseError as e:
        log_exception_once(logger, "error", "Failed to register WebSocket connection", exc=e)
        await transport.close()
        await websocket.close(code=CLOSE_TRY_AGAIN_LATER)
        return

    try:
        await _receive_loop(websocket, coordinator, connection_id)
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected", connection_id=connection_id)
    except RuntimeError as e:
        # Starlette raises RuntimeError when receiving on a socket that is already closed.
        logger.warning("WebSocket connection lost", connection_id=connection_id, error=str(e))
    finally:
        await coordinator.disconnect(connection_id)
        await transport.close()
