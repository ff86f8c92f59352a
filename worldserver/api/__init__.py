"""HTTP and WebSocket routes for worldserver."""
