"""Wire protocol shared by the chat client and server: message types and payloads."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum


class MessageType(IntEnum):
    """Numeric message types carried in the ``type`` field of every payload."""

    GENERAL = 101
    INFO_NAME = 102
    LOGIN = 111
    CHANGE_NAME = 112
    CREATE_ROOM = 113
    ENTER_ROOM = 114
    ASK_ROOMS = 115
    LEAVE_ROOM = 116
    LEAVE_CHAT = 117
    REGISTER = 118
    CHECK_LOGIN = 119
    ASK_USERS = 121


USER_EXISTS = "user exists"
NAME_EXISTS = "name exists"
ROOM_EXISTS = "room exists"
LOGIN_EXISTS = "login exists"
NO_ROOM = "room does not exist"
ENTER_TWICE = "user already entered the room"
LEAVE_TWICE = "user is not in the room"
WRONG_LOGPASS = "wrong login or password"

LOG_FILE = "server_logs.txt"


class MessageBuilder:
    """Fluent builder of JSON protocol messages."""

    def __init__(self, message_type: int) -> None:
        self.data: dict[str, object] = {"type": int(message_type)}

    def add(self, key: str, value: str | list[str]) -> MessageBuilder:
        """Set ``key`` to a string or a list of strings and return the builder."""
        if isinstance(value, str):
            self.data[key] = value
        else:
            self.data[key] = [str(item) for item in value]
        return self

    def to_string(self) -> str:
        """Serialise the message as compact JSON with sorted keys."""
        return json.dumps(
            self.data, sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )

    def __str__(self) -> str:
        return self.to_string()


_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass
class IncomingMessage:
    """A chat message received from the server."""

    sender: str = ""
    room: str = ""
    text: str = ""
    timestamp: datetime = field(default_factory=lambda: _EPOCH)

    def formatted_time(self) -> str:
        """The timestamp as local ``HH:MM:SS``."""
        return self.timestamp.astimezone().strftime("%H:%M:%S")

    def to_string(self) -> str:
        """Render as ``time - sender - text``."""
        return f"{self.formatted_time()} - {self.sender} - {self.text}"

    def __str__(self) -> str:
        return self.to_string()


@dataclass
class OutgoingMessage:
    """A chat message to be sent to a room."""

    room: str
    text: str