"""Chat client logic: turns server replies into calls of user-supplied callbacks."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from .config import (
    CLIENT_FIRST_PORT,
    CLIENT_SECOND_PORT,
    MAIN_ROOM_NAME,
    SYSTEM_SENDER_NAME,
)
from .network import Client
from .protocol import ENTER_TWICE, IncomingMessage, MessageType, OutgoingMessage

log = logging.getLogger(__name__)

ERROR_PREFIX = "Ошибка: "
WELCOME_TEXT = ", добро пожаловать на сервер "

LoginHandler = Callable[[str], None]
MessageHandler = Callable[[IncomingMessage], None]
RoomListHandler = Callable[[set[str]], None]
ResultHandler = Callable[[bool, str], None]
RoomUsersHandler = Callable[[str, set[str]], None]
NewNameHandler = Callable[[str, str], None]

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class NetworkClient(Protocol):
    """What the chat client needs from the transport."""

    handler: Callable[[str], None] | None

    def start(self, host: str, in_port: str, out_port: str) -> None: ...
    def stop(self) -> None: ...
    def send_message(self, room: str, message: str) -> None: ...
    def create_room(self, room: str) -> None: ...
    def change_name(self, name: str) -> None: ...
    def leave_room(self, room: str) -> None: ...
    def enter_room(self, room: str) -> None: ...
    def ask_rooms(self) -> None: ...
    def ask_users(self, room: str) -> None: ...
    def register_user(self, user: str, password: str) -> None: ...
    def login_user(self, user: str, password: str) -> None: ...
    def leave_chat(self) -> None: ...


class ProtocolError(ValueError):
    """A server reply that does not follow the protocol."""


def _field(data: Mapping[str, Any], key: str) -> Any:
    if key not in data:
        raise ProtocolError(f"missing {key!r} field")
    return data[key]


def _as_str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ProtocolError(f"{key!r} is not a string")
    return value


def _text(data: Mapping[str, Any], key: str) -> str:
    return _as_str(_field(data, key), key)


def _string_set(data: Mapping[str, Any], key: str) -> set[str]:
    values = _field(data, key)
    if not isinstance(values, list):
        raise ProtocolError(f"{key!r} is not a list")
    return {_as_str(value, key) for value in values}


def _is_ok(data: Mapping[str, Any]) -> bool:
    return data.get("answer") == "OK"


def time_from_ns(unix_time_ns: int) -> datetime:
    """Convert a nanosecond Unix timestamp into an aware UTC datetime."""
    return _EPOCH + timedelta(microseconds=unix_time_ns // 1000)


class ChatClient:
    """Client session with a chat server.

    Requests go out through the network client; replies are dispatched to the
    ``on_*`` callbacks, any of which may be left as ``None``.
    """

    def __init__(self, server: str, network: NetworkClient | None = None) -> None:
        self.server = server
        self.on_login: LoginHandler | None = None
        self.on_message: MessageHandler | None = None
        self.on_room_list: RoomListHandler | None = None
        self.on_room_create: ResultHandler | None = None
        self.on_room_enter: ResultHandler | None = None
        self.on_room_exit: ResultHandler | None = None
        self.on_change_name: ResultHandler | None = None
        self.on_room_users: RoomUsersHandler | None = None
        self.on_other_user_new_name: NewNameHandler | None = None

        self._network: NetworkClient = network if network is not None else Client()
        self._network.handler = self.handle_network_message
        try:
            self._network.start(server, CLIENT_FIRST_PORT, CLIENT_SECOND_PORT)
        except Exception as exc:
            log.error("[Network] Connection error: %s", exc)
            raise

    def __enter__(self) -> ChatClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- requests ---

    def send_message(self, msg: OutgoingMessage) -> None:
        self._network.send_message(msg.room, msg.text)

    def create_room(self, room_name: str) -> None:
        log.debug("requesting creation of room %s", room_name)
        self._network.create_room(room_name)

    def change_username(self, new_username: str) -> None:
        self._network.change_name(new_username)

    def leave_room(self, room_name: str) -> None:
        self._network.leave_room(room_name)

    def join_room(self, room_name: str) -> None:
        self._network.enter_room(room_name)

    def request_room_list(self) -> None:
        self._network.ask_rooms()

    def request_users_for_room(self, room_name: str) -> None:
        log.debug("requesting users of room %s", room_name)
        self._network.ask_users(room_name)

    def register_user(self, user: str, password: str) -> None:
        self._network.register_user(user, password)

    def login_user(self, user: str, password: str) -> None:
        self._network.login_user(user, password)

    def logout(self) -> None:
        self._network.leave_chat()

    def close(self) -> None:
        """Stop the network client."""
        self._network.stop()

    # --- replies ---

    def handle_network_message(self, json_msg: str) -> None:
        """Dispatch one raw server reply; malformed replies become system messages."""
        log.debug("[Network] handling message: %s", json_msg)
        try:
            data = json.loads(json_msg)
            if not isinstance(data, dict):
                raise ProtocolError("message is not a JSON object")
            message_type = _field(data, "type")
            if isinstance(message_type, bool) or not isinstance(message_type, int):
                raise ProtocolError("'type' is not a number")
            handler = self._dispatch.get(message_type)
            if handler is None:
                log.warning("[Network] unknown message type: %s", message_type)
                return
            handler(self, data)
        except (ValueError, TypeError, KeyError) as exc:
            log.error("[Network] error handling message: %s", exc)
            if self.on_message is not None:
                self.on_message(
                    IncomingMessage(
                        sender=SYSTEM_SENDER_NAME,
                        room=MAIN_ROOM_NAME,
                        text=ERROR_PREFIX + str(exc),
                        timestamp=datetime.now(timezone.utc),
                    )
                )

    def _handle_general(self, data: dict[str, Any]) -> None:
        msg = IncomingMessage()
        has_content, has_room, has_user = (k in data for k in ("content", "room", "user"))
        if has_content and has_room and has_user:
            msg.sender = _text(data, "user")
            msg.room = _text(data, "room")
            msg.text = _text(data, "content")
            stamp = _field(data, "server_timestamp")
            if isinstance(stamp, bool) or not isinstance(stamp, int) or stamp < 0:
                raise ProtocolError("'server_timestamp' is not an unsigned number")
            msg.timestamp = time_from_ns(stamp)
        elif has_content and not has_room and not has_user:
            log.info("[Message] %s", _text(data, "content"))
        else:
            raise ProtocolError("Invalid GENERAL message format")
        if self.on_message is not None:
            self.on_message(msg)

    def _handle_login(self, data: dict[str, Any]) -> None:
        if self.on_message is None:
            return
        _text(data, "what")
        username = _text(data, "name")
        msg = IncomingMessage()
        if _is_ok(data):
            msg = IncomingMessage(
                sender=SYSTEM_SENDER_NAME,
                room=MAIN_ROOM_NAME,
                text=username + WELCOME_TEXT + self.server,
                timestamp=datetime.now(timezone.utc),
            )
        self.on_message(msg)
        if self.on_login is not None:
            self.on_login(username)

    def _handle_change_name(self, data: dict[str, Any]) -> None:
        if self.on_change_name is not None:
            self.on_change_name(_is_ok(data), _text(data, "what"))

    def _handle_enter_room(self, data: dict[str, Any]) -> None:
        if self.on_room_enter is None:
            return
        what = _text(data, "what")
        success = _is_ok(data) or (
            "reason" in data and _text(data, "reason") == ENTER_TWICE
        )
        self.on_room_enter(success, what)

    def _handle_leave_room(self, data: dict[str, Any]) -> None:
        if self.on_room_exit is not None:
            self.on_room_exit(_is_ok(data), _text(data, "what"))

    def _handle_create_room(self, data: dict[str, Any]) -> None:
        if self.on_room_create is not None:
            self.on_room_create(_is_ok(data), _text(data, "what"))

    def _handle_ask_rooms(self, data: dict[str, Any]) -> None:
        if self.on_room_list is not None and "rooms" in data:
            self.on_room_list(_string_set(data, "rooms"))

    def _handle_ask_users(self, data: dict[str, Any]) -> None:
        if self.on_room_users is not None and "users" in data:
            room = _text(data, "room")
            self.on_room_users(room, _string_set(data, "users"))

    def _handle_info_name(self, data: dict[str, Any]) -> None:
        if (
            self.on_other_user_new_name is not None
            and "new_name" in data
            and "old name" in data
        ):
            new_name = _text(data, "new_name")
            old_name = _text(data, "old name")
            self.on_other_user_new_name(old_name, new_name)

    _dispatch: dict[int, Callable[[ChatClient, dict[str, Any]], None]] = {
        MessageType.GENERAL: _handle_general,
        MessageType.LOGIN: _handle_login,
        MessageType.CHANGE_NAME: _handle_change_name,
        MessageType.ENTER_ROOM: _handle_enter_room,
        MessageType.LEAVE_ROOM: _handle_leave_room,
        MessageType.CREATE_ROOM: _handle_create_room,
        MessageType.ASK_ROOMS: _handle_ask_rooms,
        MessageType.ASK_USERS: _handle_ask_users,
        MessageType.INFO_NAME: _handle_info_name,
    }