"""Shared fixtures for cdpsdk tests.

Provides an httpx.MockTransport-backed HTTPClient and a fake WebSocketApp
whose run_forever() delivers queued frames on the client's reader thread.
"""

import json
import queue
import threading
from typing import Any, Callable

import httpx
import pytest
import websocket

from cdpsdk import HTTPClient, WebSocketClient

_STOP = object()


class RecordingHandler:
    """MockTransport handler that records requests and replies from a script."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.reply: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"success": True, "data": {}}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.reply(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_body(self) -> dict:
        return json.loads(self.last.content)

    def respond(self, data: dict | None = None, status: int = 200) -> None:
        self.reply = lambda request: httpx.Response(status, json={"success": True, "data": data or {}})


@pytest.fixture
def http_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def http_client(http_handler):
    client = HTTPClient("http://service.test", session_id="sess-1", transport=httpx.MockTransport(http_handler))
    yield client
    client.close()


class FakeWebSocketApp:
    """Stand-in for websocket.WebSocketApp.

    Frames passed to deliver() are handed to on_message from the thread
    running run_forever(), like the real reader.
    """

    def __init__(self, url, on_open=None, on_message=None, on_error=None, on_close=None, **kwargs):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.sent: list[dict] = []
        self.responder: Callable[["FakeWebSocketApp", dict], Any] | None = None
        self.refuse = False
        self.run_kwargs: dict = {}
        self._inbox: queue.Queue = queue.Queue()
        self._closed = threading.Event()

    def run_forever(self, **kwargs):
        self.run_kwargs = kwargs
        if self.refuse:
            self.on_error(self, ConnectionRefusedError("connection refused"))
            self.on_close(self, None, None)
            return

        self.on_open(self)
        while True:
            item = self._inbox.get()
            if item is _STOP:
                break
            self.on_message(self, item)
        self._closed.set()
        self.on_close(self, 1000, "bye")

    def send(self, message: str) -> None:
        if self._closed.is_set():
            raise websocket.WebSocketConnectionClosedException("socket is already closed.")
        frame = json.loads(message)
        self.sent.append(frame)
        if self.responder:
            self.responder(self, frame)

    def deliver(self, frame: dict | str) -> None:
        self._inbox.put(frame if isinstance(frame, str) else json.dumps(frame))

    def close(self) -> None:
        self._inbox.put(_STOP)

    def drop(self) -> None:
        """Server-side disconnect."""
        self._inbox.put(_STOP)


def echo_reply(app: FakeWebSocketApp, frame: dict) -> None:
    """Reply success with the request data echoed back."""
    app.deliver({"type": frame["type"], "requestId": frame["requestId"], "success": True, "data": frame.get("data", {})})


class AppFactory:
    """Creates FakeWebSocketApps and keeps the most recent one."""

    def __init__(self):
        self.apps: list[FakeWebSocketApp] = []
        self.responder: Callable[[FakeWebSocketApp, dict], Any] | None = echo_reply
        self.refuse = False

    def __call__(self, url, **kwargs) -> FakeWebSocketApp:
        app = FakeWebSocketApp(url, **kwargs)
        app.responder = self.responder
        app.refuse = self.refuse
        self.apps.append(app)
        return app

    @property
    def app(self) -> FakeWebSocketApp:
        return self.apps[-1]


@pytest.fixture
def app_factory() -> AppFactory:
    return AppFactory()


@pytest.fixture
def ws_client(app_factory):
    client = WebSocketClient("ws://service.test", session_id="ws-sess", connect_timeout=2, app_factory=app_factory)
    yield client
    client.close()


@pytest.fixture
def connected(ws_client):
    ws_client.connect()
    return ws_client
