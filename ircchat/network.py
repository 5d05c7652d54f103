"""Chat client networking over two WebSocket connections, one per direction."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

import websocket

from .protocol import MessageBuilder, MessageType

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_IN_PORT = "9003"
DEFAULT_OUT_PORT = "9002"

CONNECT_ERROR = "Error connect"
READ_ERROR = "Read or connection error"

MessageHandler = Callable[[str], None]
ConnectionFactory = Callable[[str], Any]


class MessageQueue:
    """Thread-safe queue of outgoing messages drained in batches."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._messages: list[str] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def add(self, message: str) -> None:
        """Append a message and wake the consumer."""
        with self._cond:
            self._messages.append(message)
            self._cond.notify_all()

    def wait_on_message(self, func: Callable[[str], None]) -> None:
        """Pass queued messages to ``func`` in order until the queue is closed."""
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._messages or self._closed)
                if self._closed:
                    return
                batch, self._messages = self._messages, []
            for message in batch:
                func(message)

    def close(self) -> None:
        """Stop the consumer; messages still queued are dropped."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()


def _default_connect(url: str) -> Any:
    return websocket.create_connection(url)


class Client:
    """Network client sending requests on one socket and reading replies on another."""

    def __init__(
        self,
        handler: MessageHandler | None = None,
        connect: ConnectionFactory = _default_connect,
    ) -> None:
        self.handler = handler
        self._connect = connect
        self._queue = MessageQueue()
        self._finished = threading.Event()
        self._lock = threading.Lock()
        self._connections: list[Any] = []
        self._start_thread: threading.Thread | None = None
        self._getter_thread: threading.Thread | None = None

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self, host: str, in_port: str, out_port: str) -> None:
        """Connect in the background and begin exchanging messages."""
        self._start_thread = threading.Thread(
            target=self._sender, args=(host, in_port, out_port), daemon=True
        )
        self._start_thread.start()

    def send_message(self, room: str, message: str) -> None:
        self._queue.add(
            MessageBuilder(MessageType.GENERAL)
            .add("room", room)
            .add("content", message)
            .to_string()
        )

    def login_user(self, user: str, password: str) -> None:
        self._queue.add(
            MessageBuilder(MessageType.LOGIN)
            .add("user", user)
            .add("password", password)
            .to_string()
        )

    def register_user(self, user: str, password: str) -> None:
        self._queue.add(
            MessageBuilder(MessageType.REGISTER)
            .add("user", user)
            .add("password", password)
            .to_string()
        )

    def check_login(self, user: str, password: str) -> None:
        self._queue.add(
            MessageBuilder(MessageType.CHECK_LOGIN)
            .add("user", user)
            .add("password", password)
            .to_string()
        )

    def change_name(self, name: str) -> None:
        self._queue.add(MessageBuilder(MessageType.CHANGE_NAME).add("name", name).to_string())

    def create_room(self, room: str) -> None:
        self._queue.add(MessageBuilder(MessageType.CREATE_ROOM).add("room", room).to_string())

    def enter_room(self, room: str) -> None:
        self._queue.add(MessageBuilder(MessageType.ENTER_ROOM).add("room", room).to_string())

    def ask_rooms(self) -> None:
        self._queue.add(MessageBuilder(MessageType.ASK_ROOMS).to_string())

    def leave_room(self, room: str) -> None:
        self._queue.add(MessageBuilder(MessageType.LEAVE_ROOM).add("room", room).to_string())

    def leave_chat(self) -> None:
        self._queue.add(MessageBuilder(MessageType.LEAVE_CHAT).to_string())

    def ask_users(self, room: str) -> None:
        log.debug("requesting users for room %s", room)
        self._queue.add(MessageBuilder(MessageType.ASK_USERS).add("room", room).to_string())

    def stop(self) -> None:
        """Shut down both connections and wait for the worker threads."""
        self._finished.set()
        self._queue.close()
        with self._lock:
            connections = list(self._connections)
        for connection in connections:
            try:
                connection.close()
            except Exception:  # closing a dead socket is not an error here
                log.debug("error while closing connection", exc_info=True)
        current = threading.current_thread()
        for thread in (self._start_thread, self._getter_thread):
            if thread is not None and thread is not current and thread.is_alive():
                thread.join()

    def _notify(self, message: str) -> None:
        if self.handler is not None:
            self.handler(message)

    def _open(self, host: str, port: str) -> Any:
        connection = self._connect(f"ws://{host}:{port}/")
        with self._lock:
            self._connections.append(connection)
        if self._finished.is_set():
            connection.close()
        return connection

    def _sender(self, host: str, in_port: str, out_port: str) -> None:
        try:
            connection = self._open(host, out_port)
            self._getter_thread = threading.Thread(
                target=self._getter, args=(host, in_port), daemon=True
            )
            self._getter_thread.start()

            def write(message: str) -> None:
                if not self._finished.is_set():
                    connection.send(message)

            self._queue.wait_on_message(write)
        except Exception as exc:
            if not self._finished.is_set():
                log.error("[SENDER_ERROR] %s", exc)
                self._notify(CONNECT_ERROR)

    def _getter(self, host: str, in_port: str) -> None:
        try:
            connection = self._open(host, in_port)
            while not self._finished.is_set():
                data = connection.recv()
                if isinstance(data, bytes):
                    data = data.decode("utf-8")
                self._notify(data)
        except Exception as exc:
            if not self._finished.is_set():
                log.error("[GETTER_ERROR] %s", exc)
                self._notify(READ_ERROR)