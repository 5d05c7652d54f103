"""Chat protocol, WebSocket client and SQLite storage for a room-based chat service."""

__version__ = "0.1.0"

__all__ = [
    "chat_client",
    "config",
    "database",
    "hashing",
    "network",
    "protocol",
    "schema",
    "timeutils",
]