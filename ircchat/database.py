"""SQLite storage of users, rooms and messages of the chat server."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from typing import Any

from .schema import Message, User, init_schema
from .timeutils import unix_time_to_date_time

log = logging.getLogger(__name__)

DEFAULT_DB_FILE = "chat.db"
PAGE_SIZE = 50

_USER_COLUMNS = """
    u.login,
    u.name,
    u.password_hash,
    r.role,
    u.is_deleted,
    u.unixtime
"""

_GET_USER_DATA = f"""
    SELECT {_USER_COLUMNS}
    FROM users AS u
    JOIN roles AS r ON u.roles_id = r.roles_id
    WHERE u.login = ?;
"""

_GET_ALL_USERS = f"""
    SELECT {_USER_COLUMNS}
    FROM users AS u
    JOIN roles AS r ON u.roles_id = r.roles_id;
"""

_GET_ACTIVE_USERS = f"""
    SELECT {_USER_COLUMNS}
    FROM users AS u
    JOIN roles AS r ON u.roles_id = r.roles_id
    WHERE u.is_deleted = 0;
"""

_GET_DELETED_USERS = f"""
    SELECT {_USER_COLUMNS}
    FROM users AS u
    JOIN roles AS r ON u.roles_id = r.roles_id
    WHERE u.is_deleted = 1;
"""

_GET_ROOM_ACTIVE_USERS = f"""
    SELECT {_USER_COLUMNS}
    FROM users AS u
    JOIN roles AS r ON u.roles_id = r.roles_id
    JOIN user_rooms AS ur ON u.users_id = ur.users_id
    JOIN rooms AS rm ON ur.rooms_id = rm.rooms_id
    WHERE rm.room = ?
      AND u.is_deleted = 0;
"""

_GET_USER_ROOMS = """
    SELECT r.room
    FROM rooms AS r
    JOIN user_rooms AS ur ON r.rooms_id = ur.rooms_id
    JOIN users AS u ON u.users_id = ur.users_id
    WHERE u.login = ?;
"""

_GET_ALL_PAIR_ROOMS_AND_USERS = """
    SELECT r.room, u.login
    FROM user_rooms AS ur
    JOIN rooms AS r ON ur.rooms_id = r.rooms_id
    JOIN users AS u ON ur.users_id = u.users_id;
"""

_CREATE_USER = """
    INSERT OR IGNORE INTO users(login, name, password_hash, roles_id, is_deleted, unixtime)
    VALUES (?, ?, ?, (SELECT roles_id FROM roles WHERE role = ?), ?, ?);
"""

_SET_USER_FOR_DELETE = "UPDATE users SET is_deleted = 1 WHERE login = ?;"

_DELETE_USER = """
    DELETE FROM users
    WHERE login = ?
      AND NOT EXISTS (
          SELECT 1 FROM user_rooms WHERE user_rooms.users_id = users.users_id
      );
"""

_DELETE_DELETED_USERS_WITHOUT_ROOM = """
    DELETE FROM users
    WHERE is_deleted = 1
      AND NOT EXISTS (
          SELECT 1 FROM user_rooms WHERE user_rooms.users_id = users.users_id
      );
"""

_CHANGE_USER_NAME = "UPDATE users SET name = ? WHERE login = ?;"
_CHANGE_ROOM_NAME = "UPDATE rooms SET room = ? WHERE room = ?;"

_ADD_USER_TO_ROOM = """
    INSERT OR IGNORE INTO user_rooms (users_id, rooms_id)
    VALUES (
        (SELECT users_id FROM users WHERE login = ?),
        (SELECT rooms_id FROM rooms WHERE room = ?)
    );
"""

_DELETE_USER_FROM_ROOM = """
    DELETE FROM user_rooms
    WHERE users_id = (SELECT users_id FROM users WHERE login = ?)
      AND rooms_id = (SELECT rooms_id FROM rooms WHERE room = ?);
"""

_MESSAGE_COLUMNS = """
    m.message,
    u.login AS user_login,
    r.room AS room_name,
    m.unixtime
"""

_GET_RECENT_ROOM_MESSAGES = f"""
    SELECT {_MESSAGE_COLUMNS}
    FROM messages AS m
    JOIN users AS u ON m.users_id = u.users_id
    JOIN rooms AS r ON m.rooms_id = r.rooms_id
    WHERE r.room = ?
    ORDER BY m.unixtime DESC
    LIMIT {PAGE_SIZE};
"""

_GET_MESSAGES_ROOM_AFTER = f"""
    SELECT {_MESSAGE_COLUMNS}
    FROM messages AS m
    JOIN users AS u ON m.users_id = u.users_id
    JOIN rooms AS r ON m.rooms_id = r.rooms_id
    WHERE r.room = ?
      AND m.unixtime < ?
    ORDER BY m.unixtime DESC
    LIMIT {PAGE_SIZE};
"""

_GET_COUNT_ROOM_MESSAGES = """
    SELECT COUNT(messages_id)
    FROM messages AS m
    JOIN rooms AS r ON m.rooms_id = r.rooms_id
    WHERE r.room = ?;
"""

_INSERT_MESSAGE = """
    INSERT INTO messages(message, unixtime, users_id, rooms_id, date, time)
    VALUES (
        ?, ?,
        (SELECT users_id FROM users WHERE login = ?),
        (SELECT rooms_id FROM rooms WHERE room = ?),
        ?, ?
    );
"""


class DatabaseNotOpenError(RuntimeError):
    """Raised when the database is used before :meth:`Database.open`."""


def _user_from_row(row: Sequence[Any]) -> User:
    login, name, password_hash, role, is_deleted, unixtime = row
    return User(
        login=login or "",
        name=name or "",
        password_hash=password_hash or "",
        role=role or "",
        is_deleted=bool(is_deleted),
        unixtime=int(unixtime or 0),
    )


def _message_from_row(row: Sequence[Any]) -> Message:
    text, user_login, room, unixtime = row
    return Message(
        message=text or "",
        unixtime=int(unixtime),
        user_login=user_login or "",
        room=room or "",
    )


class Database:
    """Chat database backed by a single SQLite file.

    Statements run in autocommit mode; failures raise ``sqlite3.Error``.
    """

    def __init__(self, db_file: str = DEFAULT_DB_FILE) -> None:
        self.db_file = db_file
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> Database:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- System ---

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """Open the database file and create the schema if needed; no-op if open."""
        if self._conn is not None:
            return
        conn = sqlite3.connect(
            self.db_file, isolation_level=None, check_same_thread=False
        )
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA foreign_keys = ON;")
            init_schema(conn)
        except sqlite3.Error:
            conn.close()
            raise
        self._conn = conn

    def close(self) -> None:
        """Close the database; no-op if already closed."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def version(self) -> str:
        """The schema version stored in the metadata table, or ``""`` if absent."""
        row = self._execute("SELECT key, value FROM metadata LIMIT 1;").fetchone()
        if row is None:
            return ""
        return row[1] or ""

    # --- Users ---

    def create_user(self, user: User) -> None:
        """Add a user; an existing login is left untouched."""
        self._execute(
            _CREATE_USER,
            (
                user.login,
                user.name,
                user.password_hash,
                user.role,
                int(user.is_deleted),
                user.unixtime,
            ),
        )

    def delete_user(self, user_login: str) -> None:
        """Mark a user deleted, and remove the row if the user is in no room."""
        self._execute(_SET_USER_FOR_DELETE, (user_login,))
        self._execute(_DELETE_USER, (user_login,))

    def is_user(self, user_login: str) -> bool:
        row = self._execute(
            "SELECT EXISTS (SELECT 1 FROM users WHERE login = ?);", (user_login,)
        ).fetchone()
        return bool(row[0])

    def is_alive_user(self, user_login: str) -> bool:
        row = self._execute(
            "SELECT EXISTS (SELECT 1 FROM users WHERE login = ? AND is_deleted = 0);",
            (user_login,),
        ).fetchone()
        return bool(row[0])

    def change_user_name(self, user_login: str, new_name: str) -> None:
        self._execute(_CHANGE_USER_NAME, (new_name, user_login))

    def get_user_data(self, user_login: str) -> User | None:
        row = self._execute(_GET_USER_DATA, (user_login,)).fetchone()
        return None if row is None else _user_from_row(row)

    def get_all_users(self) -> list[User]:
        return self._users(_GET_ALL_USERS)

    def get_active_users(self) -> list[User]:
        return self._users(_GET_ACTIVE_USERS)

    def get_deleted_users(self) -> list[User]:
        return self._users(_GET_DELETED_USERS)

    def get_user_rooms(self, user_login: str) -> list[str]:
        return [row[0] for row in self._execute(_GET_USER_ROOMS, (user_login,))]

    def get_all_rooms_with_registered_users(self) -> dict[str, set[str]]:
        """Map each room that has members to the logins registered in it."""
        result: dict[str, set[str]] = {}
        for room, login in self._execute(_GET_ALL_PAIR_ROOMS_AND_USERS):
            result.setdefault(room or "", set()).add(login or "")
        return result

    # --- Rooms ---

    def create_room(self, room: str, unixtime: int) -> None:
        """Add a room; an existing room is left untouched."""
        self._execute(
            "INSERT OR IGNORE INTO rooms (room, unixtime) VALUES (?, ?);",
            (room, unixtime),
        )

    def change_room_name(self, current_room_name: str, new_room_name: str) -> None:
        self._execute(_CHANGE_ROOM_NAME, (new_room_name, current_room_name))

    def delete_room(self, room: str) -> None:
        """Delete a room with its messages and memberships.

        Users marked deleted that are left without any room are removed too.
        """
        self._execute("DELETE FROM rooms WHERE room = ?;", (room,))
        try:
            self._execute(_DELETE_DELETED_USERS_WITHOUT_ROOM)
        except sqlite3.IntegrityError as exc:
            log.warning("could not purge deleted users: %s", exc)

    def is_room(self, room: str) -> bool:
        row = self._execute(
            "SELECT EXISTS (SELECT 1 FROM rooms WHERE room = ?);", (room,)
        ).fetchone()
        return bool(row[0])

    def add_user_to_room(self, user_login: str, room: str) -> None:
        """Register a user in a room; repeats and unknown rooms are ignored."""
        self._execute(_ADD_USER_TO_ROOM, (user_login, room))

    def get_room_active_users(self, room: str) -> list[User]:
        return [
            _user_from_row(row)
            for row in self._execute(_GET_ROOM_ACTIVE_USERS, (room,))
        ]

    def delete_user_from_room(self, user_login: str, room: str) -> None:
        """Remove a membership; the user's messages in the room are kept."""
        self._execute(_DELETE_USER_FROM_ROOM, (user_login, room))

    def get_rooms(self) -> list[str]:
        return [row[0] for row in self._execute("SELECT room FROM rooms;")]

    # --- Messages ---

    def insert_message(self, message: Message) -> None:
        date, time_of_day = unix_time_to_date_time(message.unixtime)
        self._execute(
            _INSERT_MESSAGE,
            (
                message.message,
                message.unixtime,
                message.user_login,
                message.room,
                date,
                time_of_day,
            ),
        )

    def get_recent_messages_room(self, room: str) -> list[Message]:
        """The newest messages of a room, newest first, at most one page."""
        return self._messages(_GET_RECENT_ROOM_MESSAGES, (room,))

    def get_messages_room_after(self, room: str, unixtime: int) -> list[Message]:
        """The next page of messages older than ``unixtime``, newest first."""
        return self._messages(_GET_MESSAGES_ROOM_AFTER, (room, unixtime))

    def get_count_room_messages(self, room: str) -> int:
        row = self._execute(_GET_COUNT_ROOM_MESSAGES, (room,)).fetchone()
        return int(row[0])

    # --- internals ---

    @property
    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseNotOpenError(f"database {self.db_file!r} is not open")
        return self._conn

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        return self._connection.execute(sql, tuple(params))

    def _users(self, sql: str) -> list[User]:
        return [_user_from_row(row) for row in self._execute(sql)]

    def _messages(self, sql: str, params: Iterable[Any]) -> list[Message]:
        return [_message_from_row(row) for row in self._execute(sql, params)]