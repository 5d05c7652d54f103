# ircchat

`ircchat` is a library for a chat service built around rooms. It contains these modules:

- **`ircchat.protocol`**: message type codes in `MessageType`, for example `GENERAL = 101` and `LOGIN = 111`. It also has the JSON request builder `MessageBuilder`, the records `IncomingMessage` and `OutgoingMessage`, and the server's reason strings, such as `ENTER_TWICE`.
- **`ircchat.config`**: client defaults and one check.
  - The defaults are `DEFAULT_SERVER`, `CLIENT_FIRST_PORT` (`"9003"`), `CLIENT_SECOND_PORT` (`"9002"`), `MAX_MESSAGE_LENGTH` (512), `MAIN_ROOM_NAME` and `SYSTEM_SENDER_NAME`.
  - `is_allowed_input(text)` is true when `text` holds only digits, English letters and the symbols `!#%?*()_-+=<>`.
- **`ircchat.hashing`**: `hash_password(password)` returns the lowercase hex SHA-256 digest of the password encoded as UTF-8.
- **`ircchat.timeutils`**: helpers for Unix timestamps in nanoseconds.
  - `unix_time_ns()` gives the current time.
  - `unix_time_to_date_time(ns)` gives the local `("YYYY-MM-DD", "HH:MM:SS")`, or `("error", "error")` when the value cannot be converted.
- **`ircchat.network`**: `Client`, which queues requests and exchanges them with a server over two WebSocket connections.
  - Requests go out on one connection and events come in on the other.
  - Its outgoing queue is `MessageQueue`.
- **`ircchat.schema`**: the `User` and `Message` records, plus `init_schema(connection)`, which creates the SQLite tables.
- **`ircchat.database`**: `Database`, the SQLite store of users, rooms, room membership and message history.
- **`ircchat.chat_client`**: `ChatClient`, which sends requests and decodes server replies into calls of your callbacks.

## Building requests

```python
from ircchat.protocol import MessageBuilder, MessageType

request = MessageBuilder(MessageType.GENERAL).add("room", "general").add("content", "hello")
print(request.to_string())   # {"content":"hello","room":"general","type":101}
```

The output is compact JSON with its keys sorted. `add` takes either a string or a list of strings.

## Credentials

```python
from ircchat.config import is_allowed_input
from ircchat.hashing import hash_password

assert is_allowed_input("alice_01")
digest = hash_password("password")   # 64 lowercase hex characters
```

## Storage

```python
from ircchat.database import Database
from ircchat.schema import Message, User
from ircchat.timeutils import unix_time_ns

with Database(":memory:") as db:
    db.create_room("general", unix_time_ns())
    db.create_user(User("alice", "Alice", "hash", "user", False, unix_time_ns()))
    db.add_user_to_room("alice", "general")
    db.insert_message(Message("Hello", unix_time_ns(), "alice", "general"))

    recent = db.get_recent_messages_room("general")      # up to 50, newest first
    older = db.get_messages_room_after("general", recent[-1].unixtime)
    print(db.get_count_room_messages("general"))
```

The default database file is `chat.db`.

**Opening.**
- `open()` turns on WAL journaling and foreign keys, then creates whatever parts of the schema are missing.
- `version()` returns the schema version that is stored in the database.
- Using a `Database` before it is opened raises `DatabaseNotOpenError`.
- SQL failures raise `sqlite3.Error`.

**Duplicates.**
- Creating a user or room that already exists leaves the existing one unchanged.
- Adding the same membership twice has no effect.
- Adding a membership to a room that does not exist has no effect.

**Deleting.**
- `delete_user` marks the user as deleted. The user's row is removed only when the user belongs to no room.
- `delete_room` deletes the room's messages and memberships along with the room. It also removes any users already marked as deleted who are left without a room.
- `delete_user_from_room` keeps the user's messages.

## Talking to a server

```python
from ircchat.chat_client import ChatClient
from ircchat.hashing import hash_password
from ircchat.protocol import OutgoingMessage

with ChatClient("127.0.0.1") as client:
    client.on_message = lambda msg: print(msg.to_string())
    client.on_room_list = lambda rooms: print(sorted(rooms))
    client.login_user("@alice", hash_password("password"))
    client.join_room("general")
    client.send_message(OutgoingMessage("general", "hi all"))
    client.request_room_list()
    client.logout()
```

**Connecting.** `ChatClient` starts connecting as soon as it is created. It reads events from port `9003` and sends requests to port `9002`. You can pass any object with the same methods as `Client` as `network=`.

**Callbacks.** Replies are delivered to whichever of these callbacks you set:

| Callback | Arguments |
| --- | --- |
| `on_message` | an `IncomingMessage` |
| `on_login` | the user name |
| `on_room_create` | success, text |
| `on_room_enter` | success, text |
| `on_room_exit` | success, text |
| `on_change_name` | success, text |
| `on_room_list` | a set of rooms |
| `on_room_users` | room, set of users |
| `on_other_user_new_name` | old name, new name |

Entering a room you are already in counts as success.

**Errors.** A malformed reply, or a connection error, reaches `on_message` as a system message in the main room whose text starts with `Ошибка: `. Replies of unknown types are ignored.

## What is not included

The package has no chat server and no command-line program. The `Database` class provides storage that a server could use, but nothing here listens for connections or routes messages between users. There is also no graphical interface and no handling of a configuration file; `CLIENT_FILE_CONFIG` is only a path constant.

## Running the tests

Install the `test` extra, then run `pytest` from the project directory.