"""
worldserver - realtime coordinator for a shared multiplayer world.

Tracks live connections, avatar presence, parties, chat and peer-to-peer
media signaling for every client connected to one process.
"""

__version__ = "0.1.0"
