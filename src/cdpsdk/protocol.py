"""Wire format for the browser automation service.

Both transports speak JSON. HTTP replies use a {success, data, error}
envelope. The persistent channel exchanges frames that carry either a
requestId (correlated reply) or an event name (unsolicited notification).

PUBLIC API:
  - Operation: HTTP operations
  - ENDPOINTS: Operation -> (method, path)
  - MessageType: Persistent-channel request types
  - Envelope: Decoded HTTP reply
  - Request: Outbound persistent-channel frame
  - Response: Inbound persistent-channel frame
  - encode_body: Serialize an HTTP request body
  - decode_envelope: Parse an HTTP reply body
  - encode_request: Serialize an outbound frame
  - decode_response: Parse an inbound frame
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cdpsdk.errors import SerializationError


class Operation(str, Enum):
    """HTTP operations, one endpoint each."""

    # Browser
    START_BROWSER = "browser.start"
    CONNECT_BROWSER = "browser.connect"
    STOP_BROWSER = "browser.stop"

    # Page
    NEW_PAGE = "page.new"
    CLOSE_PAGE = "page.close"
    NAVIGATE = "page.navigate"
    NAVIGATE_WITH_LOADED_STATE = "page.navigateWithLoadedState"
    RELOAD = "page.reload"
    RELOAD_WITH_LOADED_STATE = "page.reloadWithLoadedState"
    EXECUTE_SCRIPT = "page.execute"
    GET_TITLE = "page.title"
    GET_URL = "page.url"
    GET_HTML = "page.html"
    SCREENSHOT = "page.screenshot"
    WAIT_FOR_LOAD_STATE_LOAD = "page.waitForLoadStateLoad"
    WAIT_FOR_DOM_CONTENT_LOADED = "page.waitForDomContentLoaded"
    WAIT_FOR_SELECTOR_VISIBLE = "page.waitForSelectorVisible"
    EXPECT_RESPONSE_TEXT = "page.expectResponseText"
    MUST_INNER_TEXT = "page.mustInnerText"
    MUST_TEXT_CONTENT = "page.mustTextContent"
    RELEASE = "page.release"
    CLOSE_ALL = "page.closeAll"
    EXPECT_EXT_PAGE = "page.expectExtPage"

    # Element
    ELEMENT_EXISTS = "element.exists"
    ELEMENT_TEXT = "element.text"
    ELEMENT_CLICK = "element.click"
    ELEMENT_HOVER = "element.hover"
    ELEMENT_SET_VALUE = "element.setValue"
    ELEMENT_WAIT = "element.wait"
    ELEMENT_ATTRIBUTE = "element.attribute"
    ELEMENT_ALL_TEXTS = "element.allTexts"
    ELEMENT_ALL_ATTRIBUTES = "element.allAttributes"
    ELEMENT_COUNT = "element.count"


ENDPOINTS: dict[Operation, tuple[str, str]] = {
    Operation.START_BROWSER: ("POST", "/api/browser/start"),
    Operation.CONNECT_BROWSER: ("POST", "/api/browser/connect"),
    Operation.STOP_BROWSER: ("POST", "/api/browser/stop"),
    Operation.NEW_PAGE: ("POST", "/api/page/new"),
    Operation.CLOSE_PAGE: ("POST", "/api/page/close"),
    Operation.NAVIGATE: ("POST", "/api/page/navigate"),
    Operation.NAVIGATE_WITH_LOADED_STATE: ("POST", "/api/page/navigate-with-loaded-state"),
    Operation.RELOAD: ("POST", "/api/page/reload"),
    Operation.RELOAD_WITH_LOADED_STATE: ("POST", "/api/page/reload-with-loaded-state"),
    Operation.EXECUTE_SCRIPT: ("POST", "/api/page/execute"),
    Operation.GET_TITLE: ("GET", "/api/page/title"),
    Operation.GET_URL: ("GET", "/api/page/url"),
    Operation.GET_HTML: ("GET", "/api/page/html"),
    Operation.SCREENSHOT: ("POST", "/api/page/screenshot"),
    Operation.WAIT_FOR_LOAD_STATE_LOAD: ("POST", "/api/page/wait-for-load-state-load"),
    Operation.WAIT_FOR_DOM_CONTENT_LOADED: ("POST", "/api/page/wait-for-dom-content-loaded"),
    Operation.WAIT_FOR_SELECTOR_VISIBLE: ("POST", "/api/page/wait-for-selector-visible"),
    Operation.EXPECT_RESPONSE_TEXT: ("POST", "/api/page/expect-response-text"),
    Operation.MUST_INNER_TEXT: ("POST", "/api/page/must-inner-text"),
    Operation.MUST_TEXT_CONTENT: ("POST", "/api/page/must-text-content"),
    Operation.RELEASE: ("POST", "/api/page/release"),
    Operation.CLOSE_ALL: ("POST", "/api/page/close-all"),
    Operation.EXPECT_EXT_PAGE: ("POST", "/api/page/expect-ext-page"),
    Operation.ELEMENT_EXISTS: ("POST", "/api/element/exists"),
    Operation.ELEMENT_TEXT: ("POST", "/api/element/text"),
    Operation.ELEMENT_CLICK: ("POST", "/api/element/click"),
    Operation.ELEMENT_HOVER: ("POST", "/api/element/hover"),
    Operation.ELEMENT_SET_VALUE: ("POST", "/api/element/setValue"),
    Operation.ELEMENT_WAIT: ("POST", "/api/element/wait"),
    Operation.ELEMENT_ATTRIBUTE: ("POST", "/api/element/attribute"),
    Operation.ELEMENT_ALL_TEXTS: ("POST", "/api/element/all-texts"),
    Operation.ELEMENT_ALL_ATTRIBUTES: ("POST", "/api/element/all-attributes"),
    Operation.ELEMENT_COUNT: ("POST", "/api/element/count"),
}


class MessageType(str, Enum):
    """Request types understood by the persistent channel."""

    START_BROWSER = "start_browser"
    STOP_BROWSER = "stop_browser"
    CONNECT_BROWSER = "connect_browser"
    NEW_PAGE = "new_page"
    CLOSE_PAGE = "close_page"
    NAVIGATE = "navigate"
    NAVIGATE_WITH_LOADED_STATE = "navigate_with_loaded_state"
    RELOAD = "reload"
    RELOAD_WITH_LOADED_STATE = "reload_with_loaded_state"
    EXECUTE_SCRIPT = "execute_script"
    GET_TITLE = "get_title"
    GET_URL = "get_url"
    GET_HTML = "get_html"
    SCREENSHOT = "screenshot"
    WAIT_FOR_LOAD_STATE_LOAD = "wait_for_load_state_load"
    WAIT_FOR_DOM_CONTENT_LOADED = "wait_for_dom_content_loaded"
    WAIT_FOR_SELECTOR_STATE_VISIBLE = "wait_for_selector_state_visible"
    EXPECT_RESPONSE_TEXT = "expect_response_text"
    MUST_INNER_TEXT = "must_inner_text"
    MUST_TEXT_CONTENT = "must_text_content"
    SUSPEND = "suspend"
    CONTINUE = "continue"
    RELEASE = "release"
    CLOSE_ALL = "close_all"
    EXPECT_EXT_PAGE = "expect_ext_page"
    ELEMENT_EXISTS = "element_exists"
    ELEMENT_TEXT = "element_text"
    ELEMENT_CLICK = "element_click"
    ELEMENT_SET_VALUE = "element_set_value"
    ELEMENT_WAIT = "element_wait"
    ELEMENT_ATTRIBUTE = "element_attribute"
    ELEMENT_ALL_TEXTS = "element_all_texts"
    ELEMENT_ALL_ATTRIBUTES = "element_all_attributes"
    ELEMENT_COUNT = "element_count"
    SUBSCRIBE_EVENTS = "subscribe_events"
    RANDOM_WAIT = "random_wait"


@dataclass
class Envelope:
    """Decoded HTTP reply.

    Attributes:
        success: Whether the service handled the call.
        data: Operation result, empty when absent.
        error: Server error message on failure.
    """

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str = ""


@dataclass
class Request:
    """Outbound persistent-channel frame."""

    type: str
    session_id: str = ""
    page_id: str = ""
    request_id: int | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation with empty fields omitted."""
        frame: dict[str, Any] = {"type": str(getattr(self.type, "value", self.type))}
        if self.session_id:
            frame["sessionId"] = self.session_id
        if self.page_id:
            frame["pageId"] = self.page_id
        if self.request_id is not None:
            frame["requestId"] = str(self.request_id)
        if self.data:
            frame["data"] = self.data
        return frame


@dataclass
class Response:
    """Inbound persistent-channel frame.

    A frame is a correlated reply when ``request_id`` is set, and an
    unsolicited notification when ``event`` is non-empty.
    """

    type: str = ""
    session_id: str = ""
    page_id: str = ""
    request_id: int | None = None
    success: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    error: str = ""
    event: str = ""
    event_data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""

    @property
    def is_event(self) -> bool:
        return bool(self.event)


def _dumps(obj: Any) -> str:
    try:
        return json.dumps(obj)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"failed to marshal request: {e}") from e


def _loads_object(raw: str | bytes, what: str) -> dict[str, Any]:
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"failed to unmarshal {what}: {e}") from e
    if not isinstance(obj, dict):
        raise SerializationError(f"failed to unmarshal {what}: expected JSON object, got {type(obj).__name__}")
    return obj


def _as_dict(value: Any, field: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SerializationError(f"failed to unmarshal {field}: expected JSON object, got {type(value).__name__}")
    return value


def _parse_request_id(value: Any) -> int | None:
    """Accept "17" or 17; anything else counts as absent."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            return None
    return None


def encode_body(payload: dict[str, Any] | None) -> bytes:
    """Serialize an HTTP request body.

    Raises:
        SerializationError: If the payload is not JSON-serializable.
    """
    return _dumps(payload or {}).encode("utf-8")


def decode_envelope(raw: str | bytes) -> Envelope:
    """Parse an HTTP reply body into an Envelope.

    Raises:
        SerializationError: If the body is not a JSON object, or its data is neither an object nor null.
    """
    obj = _loads_object(raw, "response")
    return Envelope(
        success=obj.get("success") is True,
        data=_as_dict(obj.get("data"), "data"),
        error=str(obj.get("error") or ""),
    )


def encode_request(request: Request) -> str:
    """Serialize an outbound frame.

    Raises:
        SerializationError: If the frame data is not JSON-serializable.
    """
    return _dumps(request.to_dict())


def decode_response(raw: str | bytes) -> Response:
    """Parse an inbound frame.

    Raises:
        SerializationError: If the frame is not a JSON object, or its data is neither an object nor null.
    """
    obj = _loads_object(raw, "message")
    return Response(
        type=str(obj.get("type") or ""),
        session_id=str(obj.get("sessionId") or ""),
        page_id=str(obj.get("pageId") or ""),
        request_id=_parse_request_id(obj.get("requestId")),
        success=obj.get("success") is True,
        data=_as_dict(obj.get("data"), "data"),
        error=str(obj.get("error") or ""),
        event=str(obj.get("event") or ""),
        event_data=_as_dict(obj.get("eventData"), "eventData"),
        timestamp=str(obj.get("timestamp") or ""),
    )


def peek_request_id(raw: str | bytes) -> int | None:
    """Best-effort requestId of a frame that decode_response rejected."""
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(obj, dict) or obj.get("event"):
        return None
    return _parse_request_id(obj.get("requestId"))


__all__ = [
    "Operation",
    "ENDPOINTS",
    "MessageType",
    "Envelope",
    "Request",
    "Response",
    "encode_body",
    "decode_envelope",
    "encode_request",
    "decode_response",
    "peek_request_id",
]
