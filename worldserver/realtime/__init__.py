"""Realtime coordination: connections, presence, signaling and dispatch."""
