"""Records stored by the chat database and the SQLite schema that holds them."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

SCHEMA_VERSION = "1"

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_USER)

_KEY = "integer primary key autoincrement"

_TABLES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("metadata", ("key text primary key", "value text")),
    ("roles", (f"roles_id {_KEY}", "role text unique not null")),
    (
        "rooms",
        (f"rooms_id {_KEY}", "room text unique not null", "unixtime integer not null"),
    ),
    (
        "users",
        (
            f"users_id {_KEY}",
            "login text unique not null",
            "name text not null",
            "password_hash text not null",
            "roles_id integer not null references roles(roles_id)",
            "is_deleted boolean not null default 0",
            "unixtime integer not null",
        ),
    ),
    (
        "messages",
        (
            f"messages_id {_KEY}",
            "message text not null",
            "unixtime integer not null",
            "users_id integer not null references users(users_id)",
            "rooms_id integer not null references rooms(rooms_id) on delete cascade",
            "date text not null",
            "time text not null",
        ),
    ),
    (
        "user_rooms",
        (
            f"user_rooms_id {_KEY}",
            "users_id integer not null references users(users_id) on delete cascade",
            "rooms_id integer not null references rooms(rooms_id) on delete cascade",
            "unique(users_id, rooms_id)",
        ),
    ),
)

_INDEXES: tuple[tuple[str, str, str], ...] = (
    ("idx_rooms_room", "rooms", "room"),
    ("idx_users_login", "users", "login"),
    ("idx_messages_room_user", "messages", "rooms_id, users_id"),
    ("idx_room_time", "messages", "rooms_id, unixtime desc"),
)


def _statements() -> list[str]:
    statements = [
        f"create table if not exists {name} ({', '.join(columns)})"
        for name, columns in _TABLES
    ]
    statements += [
        f"create index if not exists {index} on {table}({columns})"
        for index, table, columns in _INDEXES
    ]
    statements.append(
        "insert or ignore into metadata(key, value) "
        f"values ('schema_version', '{SCHEMA_VERSION}')"
    )
    role_rows = ", ".join(f"('{role}')" for role in ROLES)
    statements.append(f"insert or ignore into roles(role) values {role_rows}")
    return statements


INIT_SQL = ";\n".join(_statements()) + ";\n"


@dataclass
class User:
    """A registered chat user; ``unixtime`` is the registration time in nanoseconds."""

    login: str
    name: str
    password_hash: str
    role: str
    is_deleted: bool
    unixtime: int


@dataclass
class Message:
    """A chat message posted to a room; ``unixtime`` is in nanoseconds."""

    message: str
    unixtime: int
    user_login: str
    room: str


def init_schema(connection: sqlite3.Connection) -> None:
    """Create every table, index and seed row that is missing.

    Safe to call on an already initialised database. Raises ``sqlite3.Error``
    if the schema cannot be created.
    """
    connection.executescript(INIT_SQL)