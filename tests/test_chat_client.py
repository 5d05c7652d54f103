import json
import queue
import threading
from datetime import datetime, timezone

import pytest

from ircchat.chat_client import ERROR_PREFIX, WELCOME_TEXT, ChatClient
from ircchat.config import (
    CLIENT_FIRST_PORT,
    CLIENT_SECOND_PORT,
    MAIN_ROOM_NAME,
    SYSTEM_SENDER_NAME,
)
from ircchat.network import Client
from ircchat.protocol import IncomingMessage, MessageType, OutgoingMessage


class FakeNetwork:
    def __init__(self, fail_start=False):
        self.handler = None
        self.calls = []
        self.started = None
        self.stopped = False
        self.fail_start = fail_start

    def start(self, host, in_port, out_port):
        if self.fail_start:
            raise ConnectionError("refused")
        self.started = (host, in_port, out_port)

    def stop(self):
        self.stopped = True

    def send_message(self, room, message):
        self.calls.append(("send_message", room, message))

    def create_room(self, room):
        self.calls.append(("create_room", room))

    def change_name(self, name):
        self.calls.append(("change_name", name))

    def leave_room(self, room):
        self.calls.append(("leave_room", room))

    def enter_room(self, room):
        self.calls.append(("enter_room", room))

    def ask_rooms(self):
        self.calls.append(("ask_rooms",))

    def ask_users(self, room):
        self.calls.append(("ask_users", room))

    def register_user(self, user, password):
        self.calls.append(("register_user", user, password))

    def login_user(self, user, password):
        self.calls.append(("login_user", user, password))

    def leave_chat(self):
        self.calls.append(("leave_chat",))


@pytest.fixture
def net():
    return FakeNetwork()


@pytest.fixture
def chat(net):
    return ChatClient("10.0.0.1", network=net)


def reply(**fields):
    return json.dumps(fields)


def test_constructor_starts_network_with_ports(net, chat):
    assert net.started == ("10.0.0.1", CLIENT_FIRST_PORT, CLIENT_SECOND_PORT)
    assert net.handler == chat.handle_network_message


def test_constructor_reraises_start_error():
    with pytest.raises(ConnectionError):
        ChatClient("10.0.0.1", network=FakeNetwork(fail_start=True))


def test_requests_forwarded():
    password = "password"
    network = FakeNetwork()
    chat = ChatClient("10.0.0.1", network=network)
    chat.send_message(OutgoingMessage(room="general", text="hi"))
    chat.create_room("r1")
    chat.change_username("@bob")
    chat.leave_room("r1")
    chat.join_room("r2")
    chat.request_room_list()
    chat.request_users_for_room("r2")
    chat.register_user("bob", password)
    chat.login_user("bob", password)
    chat.logout()
    assert network.calls == [
        ("send_message", "general", "hi"),
        ("create_room", "r1"),
        ("change_name", "@bob"),
        ("leave_room", "r1"),
        ("enter_room", "r2"),
        ("ask_rooms",),
        ("ask_users", "r2"),
        ("register_user", "bob", password),
        ("login_user", "bob", password),
        ("leave_chat",),
    ]


def test_close_and_context_manager(net):
    with ChatClient("h", network=net) as chat:
        assert chat.server == "h"
    assert net.stopped is True


def test_general_message(chat):
    got = []
    chat.on_message = got.append
    chat.handle_network_message(
        reply(type=101, user="alice", room="r1", content="hello",
              server_timestamp=1_700_000_000_000_000_000)
    )
    assert len(got) == 1
    assert (got[0].sender, got[0].room, got[0].text) == ("alice", "r1", "hello")
    assert got[0].timestamp == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)


def test_general_content_only_delivers_empty_message(chat):
    got = []
    chat.on_message = got.append
    chat.handle_network_message(reply(type=101, content="server notice"))
    assert got == [IncomingMessage()]


def test_general_invalid_format_reports_error(net):
    chat = ChatClient("h", network=net)
    got = []
    chat.on_message = got.append
    net.handler(reply(type=101, room="r1"))
    assert len(got) == 1
    assert got[0].sender == SYSTEM_SENDER_NAME
    assert got[0].room == MAIN_ROOM_NAME
    assert got[0].text.startswith(ERROR_PREFIX)
    assert "Invalid GENERAL message format" in got[0].text


def test_non_json_reports_error(chat):
    got = []
    chat.on_message = got.append
    chat.handle_network_message("Error connect")
    assert len(got) == 1
    assert got[0].text.startswith(ERROR_PREFIX)


def test_missing_type_reports_error(chat):
    got = []
    chat.on_message = got.append
    chat.handle_network_message(reply(answer="OK"))
    assert "type" in got[0].text


def test_unknown_type_is_ignored(chat):
    got = []
    chat.on_message = got.append
    chat.handle_network_message(reply(type=999))
    assert got == []


def test_login_ok(chat):
    messages, logins = [], []
    chat.on_message = messages.append
    chat.on_login = logins.append
    chat.handle_network_message(
        reply(type=MessageType.LOGIN, answer="OK", what="", name="@bob")
    )
    assert messages[0].text == "@bob" + WELCOME_TEXT + "10.0.0.1"
    assert messages[0].sender == SYSTEM_SENDER_NAME
    assert messages[0].room == MAIN_ROOM_NAME
    assert logins == ["@bob"]


def test_login_failed_delivers_empty_message(chat):
    messages, logins = [], []
    chat.on_message = messages.append
    chat.on_login = logins.append
    chat.handle_network_message(
        reply(type=MessageType.LOGIN, answer="ERR", what="wrong login or password", name="@bob")
    )
    assert messages == [IncomingMessage()]
    assert logins == ["@bob"]


def test_login_without_message_handler_skips_login_handler(chat):
    logins = []
    chat.on_login = logins.append
    chat.handle_network_message(reply(type=MessageType.LOGIN, answer="OK", what="", name="x"))
    assert logins == []


@pytest.mark.parametrize("answer, expected", [("OK", True), ("ERR", False)])
def test_result_handlers(chat, answer, expected):
    got = []
    chat.on_change_name = lambda ok, what: got.append(("name", ok, what))
    chat.on_room_create = lambda ok, what: got.append(("create", ok, what))
    chat.on_room_exit = lambda ok, what: got.append(("exit", ok, what))
    chat.on_room_enter = lambda ok, what: got.append(("enter", ok, what))
    for type_ in (
        MessageType.CHANGE_NAME,
        MessageType.CREATE_ROOM,
        MessageType.LEAVE_ROOM,
        MessageType.ENTER_ROOM,
    ):
        chat.handle_network_message(reply(type=type_, answer=answer, what="room1"))
    assert got == [
        ("name", expected, "room1"),
        ("create", expected, "room1"),
        ("exit", expected, "room1"),
        ("enter", expected, "room1"),
    ]


def test_enter_room_twice_counts_as_success(chat):
    got = []
    chat.on_room_enter = lambda ok, what: got.append((ok, what))
    chat.handle_network_message(
        reply(type=MessageType.ENTER_ROOM, answer="ERR", what="r",
              reason="user already entered the room")
    )
    chat.handle_network_message(
        reply(type=MessageType.ENTER_ROOM, answer="ERR", what="r", reason="room does not exist")
    )
    assert got == [(True, "r"), (False, "r")]


def test_ask_rooms(chat):
    got = []
    chat.on_room_list = got.append
    chat.handle_network_message(reply(type=MessageType.ASK_ROOMS, rooms=["b", "a", "b"]))
    chat.handle_network_message(reply(type=MessageType.ASK_ROOMS))
    assert got == [{"a", "b"}]


def test_ask_users(chat):
    got = []
    chat.on_room_users = lambda room, users: got.append((room, users))
    chat.handle_network_message(reply(type=MessageType.ASK_USERS, room="r1", users=["@a", "@b"]))
    assert got == [("r1", {"@a", "@b"})]


def test_info_new_name(chat):
    got = []
    chat.on_other_user_new_name = lambda old, new: got.append((old, new))
    chat.handle_network_message(
        json.dumps({"type": MessageType.INFO_NAME, "old name": "@a", "new_name": "@b"})
    )
    assert got == [("@a", "@b")]


class _FakeConnection:
    def __init__(self, sent):
        self.sent = sent
        self.incoming = queue.Queue()

    def send(self, data):
        self.sent.put(data)

    def recv(self):
        item = self.incoming.get()
        if item is None:
            raise ConnectionError("closed")
        return item

    def close(self):
        self.incoming.put(None)


class _Connector:
    def __init__(self):
        self.sent = queue.Queue()
        self.connections = []
        self._lock = threading.Lock()

    def __call__(self, url):
        conn = _FakeConnection(self.sent)
        with self._lock:
            self.connections.append(conn)
        return conn


def test_wire_format_with_real_network_client():
    connector = _Connector()
    network = Client(connect=connector)
    with ChatClient("127.0.0.1", network=network) as chat:
        chat.send_message(OutgoingMessage(room="test_room", text="hello"))
        data = connector.sent.get(timeout=5)
    assert json.loads(data) == json.loads('{"content":"hello","room":"test_room","type":101}')