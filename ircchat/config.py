"""Client configuration constants and input validation."""

from __future__ import annotations

import string

MAIN_ROOM_NAME = "general"
SYSTEM_SENDER_NAME = "System"
DEFAULT_SERVER = "127.0.0.1"
CLIENT_FILE_CONFIG = "/irc_chat/client_config/chat_servers.ini"
MAX_MESSAGE_LENGTH = 512
DEF_SERVER = "127.0.0.1"
CLIENT_FIRST_PORT = "9003"
CLIENT_SECOND_PORT = "9002"

SPECIAL_CHARS = "!#%?*()_-+=<>"

ALLOWED_CHARS: frozenset[str] = frozenset(
    string.digits + string.ascii_uppercase + string.ascii_lowercase + SPECIAL_CHARS
)


def is_allowed_input(text: str) -> bool:
    """True if every character of ``text`` is an allowed login/password character."""
    return all(char in ALLOWED_CHARS for char in text)