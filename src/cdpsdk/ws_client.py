"""Persistent WebSocket client with request multiplexing.

WebSocketApp handles the socket, we handle correlation and event dispatch.
Any number of threads may call execute() concurrently; replies are matched
to callers by requestId, and frames carrying an event name go to handlers
registered with on_event().

PUBLIC API:
  - WebSocketClient: Multiplexed request/reply client over one WebSocket
  - ConnectionState: Client connection state
  - EventHandler: Signature for event callbacks
"""

import logging
import threading
import time
from collections import defaultdict
from concurrent.futures import Future, InvalidStateError
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Any, Callable

import websocket

from cdpsdk.config import DEFAULT_CONNECT_TIMEOUT, DEFAULT_REQUEST_TIMEOUT, DEFAULT_WS_URL, ClientConfig
from cdpsdk.errors import (
    CDPError,
    NotConnectedError,
    RequestCancelledError,
    RequestTimeoutError,
    SerializationError,
    ServerError,
    TransportError,
)
from cdpsdk.protocol import MessageType, Request, Response, decode_response, encode_request, peek_request_id

__all__ = ["WebSocketClient", "ConnectionState", "EventHandler"]

logger = logging.getLogger(__name__)

EventHandler = Callable[[Response], Any]

# Granularity of cancel-signal checks while waiting for a reply
_CANCEL_POLL_INTERVAL = 0.05


class ConnectionState(str, Enum):
    """Connection state of a WebSocketClient."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"


class WebSocketClient:
    """Multiplexed client over one persistent WebSocket.

    Request IDs come from a per-instance counter starting at 1 and are never
    reused. Each outstanding request owns one Future in the correlation table;
    the table lock is never held while waiting on it.

    Attributes:
        url: WebSocket endpoint.
        request_timeout: Default reply timeout for execute().
        connect_timeout: How long connect() waits for the handshake.
    """

    def __init__(
        self,
        url: str = DEFAULT_WS_URL,
        session_id: str | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        app_factory: Callable[..., Any] = websocket.WebSocketApp,
    ):
        """Initialize WebSocket client.

        Args:
            url: WebSocket endpoint (e.g. ws://localhost:3001)
            session_id: Session ID stamped on every request. Generated when blank.
            request_timeout: Default reply timeout in seconds
            connect_timeout: Handshake timeout in seconds
            app_factory: WebSocketApp-compatible constructor
        """
        self.url = url
        self._session_id = session_id or f"session-{time.time_ns()}"
        self.request_timeout = request_timeout
        self.connect_timeout = connect_timeout
        self._app_factory = app_factory

        # WebSocket ownership
        self._ws_app: Any | None = None
        self._ws_thread: threading.Thread | None = None
        self._connected = threading.Event()
        self._state = ConnectionState.DISCONNECTED
        self._last_error: Any = None

        # Request/response tracking
        self._next_id = 1
        self._pending: dict[int, Future] = {}
        self._lock = threading.Lock()

        # Event name -> handlers
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs) -> "WebSocketClient":
        """Build a client from a ClientConfig."""
        return cls(
            url=config.ws_url,
            session_id=config.session_id,
            request_timeout=config.request_timeout,
            connect_timeout=config.connect_timeout,
            **kwargs,
        )

    def __enter__(self) -> "WebSocketClient":
        self.connect()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting for a reply."""
        with self._lock:
            return len(self._pending)

    # Lifecycle

    def connect(self) -> None:
        """Open the WebSocket and start the reader thread.

        Raises:
            CDPError: If already connected or connecting.
            TransportError: If the handshake does not complete within connect_timeout.
        """
        with self._lock:
            if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED, ConnectionState.CLOSING):
                raise CDPError(f"Cannot connect while {self._state.value}")
            self._state = ConnectionState.CONNECTING
            self._last_error = None
            self._connected.clear()

            ws_app = self._app_factory(
                self.url,
                on_open=self._on_open,
                on_message=self._on_message,
                on_error=self._on_error,
                on_close=self._on_close,
            )
            self._ws_app = ws_app

        # Let WebSocketApp run the read loop in a thread
        ws_thread = threading.Thread(
            target=ws_app.run_forever,
            kwargs={
                "ping_interval": 30,  # Ping every 30s
                "ping_timeout": 10,  # Wait 10s for pong
                "reconnect": 0,  # Dropped connection stays dropped
                "skip_utf8_validation": True,
            },
            name="cdpsdk-ws-reader",
            daemon=True,
        )
        self._ws_thread = ws_thread
        ws_thread.start()

        # Wait for handshake, bail early if the reader already gave up
        deadline = time.monotonic() + self.connect_timeout
        while not self._connected.wait(timeout=_CANCEL_POLL_INTERVAL):
            if not ws_thread.is_alive() or time.monotonic() >= deadline:
                reason = self._last_error or "handshake timed out"
                self._abort_connect(ws_app, ws_thread)
                raise TransportError(f"failed to connect to WebSocket server {self.url}: {reason}")

        logger.info(f"Connected to {self.url} (session {self._session_id})")

    def _abort_connect(self, ws_app: Any, ws_thread: threading.Thread) -> None:
        with self._lock:
            if self._ws_app is ws_app:
                self._ws_app = None
                self._ws_thread = None
            if self._state == ConnectionState.CONNECTING:
                self._state = ConnectionState.DISCONNECTED

        try:
            ws_app.close()
        except Exception as e:
            logger.debug(f"Error closing failed connection: {e}")

        if ws_thread.is_alive():
            ws_thread.join(timeout=2)

    def close(self) -> None:
        """Close the connection and stop the reader. Repeated calls are no-ops."""
        with self._lock:
            if self._state not in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
                logger.debug(f"close() ignored, connection is {self._state.value}")
                return
            self._state = ConnectionState.CLOSING
            ws_app = self._ws_app
            ws_thread = self._ws_thread
            self._ws_app = None
            self._ws_thread = None

        if ws_app:
            ws_app.close()

        if ws_thread and ws_thread.is_alive() and ws_thread is not threading.current_thread():
            ws_thread.join(timeout=2)

        self._connected.clear()
        self._fail_pending(NotConnectedError("connection closed"))

        with self._lock:
            self._state = ConnectionState.CLOSED

        logger.info(f"Closed connection to {self.url}")

    # Requests

    def _send(
        self, type: MessageType | str, page_id: str | None, data: dict[str, Any] | None
    ) -> tuple[int, Future]:
        with self._lock:
            ws_app = self._ws_app
            if ws_app is None or self._state != ConnectionState.CONNECTED:
                raise NotConnectedError("not connected to WebSocket server")

            request_id = self._next_id
            self._next_id += 1

            future: Future = Future()
            self._pending[request_id] = future

        def _forget_if_cancelled(f: Future) -> None:
            if f.cancelled():
                self._discard(request_id)

        future.add_done_callback(_forget_if_cancelled)

        request = Request(
            type=type, session_id=self._session_id, page_id=page_id or "", request_id=request_id, data=data or {}
        )

        try:
            ws_app.send(encode_request(request))
        except SerializationError:
            self._discard(request_id)
            raise
        except (websocket.WebSocketException, OSError) as e:
            self._discard(request_id)
            logger.error(f"Failed to send request {request_id}: {e}")
            raise TransportError(f"failed to send request: {e}") from e

        logger.debug(f"Sent request {request_id} ({getattr(type, 'value', type)})")
        return request_id, future

    def send(self, type: MessageType | str, page_id: str | None = None, data: dict[str, Any] | None = None) -> Future:
        """Send a request without waiting.

        Returns a Future. Call future.result(timeout) to get the reply frame.
        A caller that stops waiting must call future.cancel(), which removes
        the request from the correlation table; otherwise the entry stays
        until the reply arrives or the connection closes.

        Args:
            type: Request type
            page_id: Target page ID
            data: Request data

        Returns:
            Future resolving to the reply Response
        """
        return self._send(type, page_id, data)[1]

    def execute(
        self,
        type: MessageType | str,
        page_id: str | None = None,
        data: dict[str, Any] | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Response:
        """Send a request and block until its reply.

        Args:
            type: Request type
            page_id: Target page ID
            data: Request data
            timeout: Override request_timeout
            cancel: Event that aborts the wait when set

        Returns:
            The reply frame

        Raises:
            NotConnectedError: If not connected
            RequestTimeoutError: If no reply arrives in time
            RequestCancelledError: If cancel is set first
            ServerError: If the reply has success=false
            TransportError: If the connection drops while waiting
        """
        request_id, future = self._send(type, page_id, data)
        timeout = self.request_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        name = getattr(type, "value", type)

        try:
            response = self._wait(future, deadline, cancel)
        except FutureTimeoutError:
            self._discard(request_id)
            raise RequestTimeoutError(f"request {name} timed out after {timeout:g} seconds") from None
        except RequestCancelledError:
            self._discard(request_id)
            raise

        if not response.success:
            raise ServerError(response.error, data=response.data, reply=response)
        return response

    def _wait(self, future: Future, deadline: float, cancel: threading.Event | None) -> Response:
        if cancel is None:
            return future.result(timeout=max(0.0, deadline - time.monotonic()))

        while True:
            if cancel.is_set():
                raise RequestCancelledError("request canceled")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise FutureTimeoutError()
            try:
                return future.result(timeout=min(_CANCEL_POLL_INTERVAL, remaining))
            except FutureTimeoutError:
                continue

    def _discard(self, request_id: int) -> None:
        """Drop a pending entry whose caller stopped waiting."""
        with self._lock:
            self._pending.pop(request_id, None)

    def _fail_pending(self, error: Exception) -> None:
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()

        for future in pending:
            try:
                future.set_exception(error)
            except InvalidStateError:
                pass

    # Events

    def on_event(self, event: str, handler: EventHandler) -> None:
        """Register handler for an event name.

        Handlers run in their own thread for every matching frame until the
        client is discarded.

        Args:
            event: Event name (e.g. "load", "console")
            handler: Callable receiving the event frame
        """
        with self._lock:
            self._handlers[event].append(handler)

    def off_event(self, event: str, handler: EventHandler) -> bool:
        """Unregister a handler.

        Returns:
            True if the handler was registered.
        """
        with self._lock:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
            return False

    def _dispatch_event(self, response: Response) -> None:
        with self._lock:
            handlers = list(self._handlers.get(response.event, ()))

        if not handlers:
            logger.debug(f"No handlers for event {response.event}")
            return

        for handler in handlers:
            self._fire_callback(handler, (response,), f"cdpsdk-event-{response.event}")

    def _fire_callback(self, callback: EventHandler, args: tuple, name: str) -> None:
        """Run callback off the reader thread."""
        threading.Thread(target=self._run_handler, args=(callback, args), daemon=True, name=name).start()

    def _run_handler(self, callback: EventHandler, args: tuple) -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.warning(f"Event handler {callback!r} failed: {e}")

    # WebSocketApp callbacks

    def _on_open(self, ws):
        """WebSocket opened."""
        with self._lock:
            if self._state != ConnectionState.CONNECTING or ws is not self._ws_app:
                return
            self._state = ConnectionState.CONNECTED
        self._connected.set()

    def _on_message(self, ws, message):
        """Route a frame: event -> handlers, requestId -> waiting caller, else drop."""
        try:
            response = decode_response(message)
        except SerializationError as e:
            request_id = peek_request_id(message)
            with self._lock:
                future = self._pending.pop(request_id, None) if request_id is not None else None
            if future is None:
                logger.warning(f"Dropping undecodable frame: {e}")
                return
            logger.warning(f"Undecodable reply for request {request_id}: {e}")
            try:
                future.set_exception(e)
            except InvalidStateError:
                pass
            return

        if response.event:
            self._dispatch_event(response)
            return

        if response.request_id is None:
            logger.debug(f"Dropping frame without requestId or event: type={response.type!r}")
            return

        with self._lock:
            future = self._pending.pop(response.request_id, None)

        if future is None:
            logger.debug(f"Dropping reply for unknown request {response.request_id}")
            return

        try:
            future.set_result(response)
        except InvalidStateError:
            # Caller cancelled the Future returned by send()
            pass

    def _on_error(self, ws, error):
        """WebSocket error."""
        self._last_error = error
        logger.error(f"WebSocket error: {error}")

    def _on_close(self, ws, code, reason):
        """WebSocket closed, by us or by the server."""
        logger.info(f"WebSocket closed: {code} {reason}")
        self._connected.clear()

        with self._lock:
            if self._ws_app is not None and ws is not self._ws_app:
                # Late callback from a previous connection
                return
            if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
                self._state = ConnectionState.DISCONNECTED
                self._ws_app = None
                self._ws_thread = None

        self._fail_pending(TransportError(f"connection closed: {reason or 'unknown'}"))

    # Browser

    def _call(self, type: MessageType, page_id: str | None = None, data: dict[str, Any] | None = None) -> dict:
        return self.execute(type, page_id, data).data

    def _text(self, type: MessageType, page_id: str, data: dict[str, Any]) -> str:
        text = self._call(type, page_id, data).get("text")
        if not isinstance(text, str):
            raise SerializationError("text not found in response")
        return text

    def start_browser(self, headless: bool = False) -> dict:
        return self._call(MessageType.START_BROWSER, data={"headless": headless})

    def connect_browser(self, port: int) -> dict:
        return self._call(MessageType.CONNECT_BROWSER, data={"port": port})

    def stop_browser(self) -> dict:
        return self._call(MessageType.STOP_BROWSER)

    # Pages

    def new_page(self, page_id: str) -> dict:
        return self._call(MessageType.NEW_PAGE, page_id)

    def close_page(self, page_id: str) -> dict:
        return self._call(MessageType.CLOSE_PAGE, page_id)

    def navigate(self, page_id: str, url: str) -> dict:
        return self._call(MessageType.NAVIGATE, page_id, {"url": url})

    def navigate_with_loaded_state(self, page_id: str, url: str) -> dict:
        return self._call(MessageType.NAVIGATE_WITH_LOADED_STATE, page_id, {"url": url})

    def reload(self, page_id: str) -> dict:
        return self._call(MessageType.RELOAD, page_id)

    def reload_with_loaded_state(self, page_id: str) -> dict:
        return self._call(MessageType.RELOAD_WITH_LOADED_STATE, page_id)

    def execute_script(self, page_id: str, script: str) -> dict:
        return self._call(MessageType.EXECUTE_SCRIPT, page_id, {"script": script})

    def get_title(self, page_id: str) -> dict:
        return self._call(MessageType.GET_TITLE, page_id)

    def get_url(self, page_id: str) -> dict:
        return self._call(MessageType.GET_URL, page_id)

    def get_html(self, page_id: str) -> dict:
        return self._call(MessageType.GET_HTML, page_id)

    def screenshot(self, page_id: str, format: str = "png") -> dict:
        return self._call(MessageType.SCREENSHOT, page_id, {"format": format})

    def wait_for_load_state_load(self, page_id: str) -> dict:
        return self._call(MessageType.WAIT_FOR_LOAD_STATE_LOAD, page_id)

    def wait_for_dom_content_loaded(self, page_id: str) -> dict:
        return self._call(MessageType.WAIT_FOR_DOM_CONTENT_LOADED, page_id)

    def wait_for_selector_state_visible(self, page_id: str, selector: str) -> dict:
        return self._call(MessageType.WAIT_FOR_SELECTOR_STATE_VISIBLE, page_id, {"selector": selector})

    def expect_response_text(self, page_id: str, url_or_predicate: str, callback: str) -> str:
        return self._text(
            MessageType.EXPECT_RESPONSE_TEXT, page_id, {"urlOrPredicate": url_or_predicate, "callback": callback}
        )

    def must_inner_text(self, page_id: str, selector: str) -> str:
        return self._text(MessageType.MUST_INNER_TEXT, page_id, {"selector": selector})

    def must_text_content(self, page_id: str, selector: str) -> str:
        return self._text(MessageType.MUST_TEXT_CONTENT, page_id, {"selector": selector})

    def suspend(self, page_id: str) -> dict:
        return self._call(MessageType.SUSPEND, page_id)

    def continue_page(self, page_id: str) -> dict:
        return self._call(MessageType.CONTINUE, page_id)

    def release(self, page_id: str) -> dict:
        return self._call(MessageType.RELEASE, page_id)

    def close_all(self, page_id: str) -> dict:
        return self._call(MessageType.CLOSE_ALL, page_id)

    def expect_ext_page(self, page_id: str, callback: str) -> dict:
        return self._call(MessageType.EXPECT_EXT_PAGE, page_id, {"callback": callback})

    def subscribe_events(self, page_id: str, events: list[str]) -> dict:
        """Ask the service to push the named events for a page."""
        return self._call(MessageType.SUBSCRIBE_EVENTS, page_id, {"events": list(events)})

    def random_wait(self, page_id: str, min: int, max: int) -> dict:
        """Server-side pause of a random duration between min and max milliseconds."""
        return self._call(MessageType.RANDOM_WAIT, page_id, {"min": min, "max": max})

    # Elements

    def element_exists(self, page_id: str, selector: str) -> dict:
        return self._call(MessageType.ELEMENT_EXISTS, page_id, {"selector": selector})

    def element_text(self, page_id: str, selector: str) -> dict:
        return self._call(MessageType.ELEMENT_TEXT, page_id, {"selector": selector})

    def element_click(self, page_id: str, selector: str) -> dict:
        return self._call(MessageType.ELEMENT_CLICK, page_id, {"selector": selector})

    def element_set_value(self, page_id: str, selector: str, value: str) -> dict:
        return self._call(MessageType.ELEMENT_SET_VALUE, page_id, {"selector": selector, "value": value})

    def element_wait(self, page_id: str, selector: str) -> dict:
        return self._call(MessageType.ELEMENT_WAIT, page_id, {"selector": selector})

    def element_attribute(self, page_id: str, selector: str, attribute: str) -> dict:
        return self._call(MessageType.ELEMENT_ATTRIBUTE, page_id, {"selector": selector, "attribute": attribute})

    def element_all_texts(self, page_id: str, selector: str) -> dict:
        return self._call(MessageType.ELEMENT_ALL_TEXTS, page_id, {"selector": selector})

    def element_all_attributes(self, page_id: str, selector: str, attribute: str | None = None) -> dict:
        data: dict[str, Any] = {"selector": selector}
        if attribute:
            data["attribute"] = attribute
        return self._call(MessageType.ELEMENT_ALL_ATTRIBUTES, page_id, data)

    def element_count(self, page_id: str, selector: str) -> dict:
        return self._call(MessageType.ELEMENT_COUNT, page_id, {"selector": selector})
