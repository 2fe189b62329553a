"""HTTP client for the browser automation service.

One call per operation: build the body, POST (or GET) it to the operation's
endpoint, decode the {success, data, error} envelope.

PUBLIC API:
  - HTTPClient: Request/reply client with session and page caching
"""

import logging
import threading
from typing import Any, Dict, List, Optional

import httpx

from cdpsdk.config import DEFAULT_BASE_URL, DEFAULT_HTTP_TIMEOUT, ClientConfig
from cdpsdk.errors import SerializationError, ServerError, TransportError
from cdpsdk.locator import Locator
from cdpsdk.page import Page
from cdpsdk.protocol import ENDPOINTS, Operation, decode_envelope, encode_body

logger = logging.getLogger(__name__)


def _require(data: Dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    """Pull a typed field out of a reply's data object."""
    value = data.get(key)
    if isinstance(value, bool) and kind is not bool:
        value = None
    if not isinstance(value, kind):
        raise SerializationError(f"{key} not found in response")
    return value


def _string_list(data: Dict[str, Any], key: str) -> List[str]:
    values = _require(data, key, list)
    return [v if isinstance(v, str) else "" for v in values]


class HTTPClient:
    """Request/reply client for the automation service HTTP API.

    Stateless between calls apart from the cached session ID and page list,
    which start_browser() and connect_browser() fill in. The underlying
    httpx.Client pools connections and is safe to share between threads.

    Attributes:
        base_url: Base URL of the service (default: http://localhost:3000)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session_id: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize HTTP client.

        Args:
            base_url: Base URL of the service
            session_id: Session ID to reuse. Assigned by start/connect when omitted.
            timeout: Round-trip timeout in seconds
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._session_id = session_id or ""
        self._pages: List[str] = []
        self._lock = threading.Lock()
        self._client = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs) -> "HTTPClient":
        """Build a client from a ClientConfig."""
        return cls(base_url=config.base_url, session_id=config.session_id, timeout=config.timeout, **kwargs)

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    @property
    def session_id(self) -> str:
        with self._lock:
            return self._session_id

    @property
    def pages(self) -> List[str]:
        """Known page IDs (copy)."""
        with self._lock:
            return list(self._pages)

    def set_timeout(self, timeout: float) -> None:
        """Change the round-trip timeout for subsequent calls.

        Args:
            timeout: Timeout in seconds
        """
        self._client.timeout = httpx.Timeout(timeout)

    # Transport

    def _build_body(
        self, page_id: Optional[str], payload: Optional[Dict[str, Any]], session_id: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        session_id = session_id or self.session_id
        if session_id:
            body["sessionId"] = session_id
        if page_id:
            body["pageId"] = page_id
        if payload:
            body.update(payload)
        return body

    def _request(
        self,
        operation: Operation,
        page_id: Optional[str],
        payload: Optional[Dict[str, Any]],
        session_id: Optional[str] = None,
    ) -> httpx.Response:
        """Perform one round trip. Raises TransportError on any transport failure."""
        method, path = ENDPOINTS[operation]
        url = f"{self.base_url}{path}"
        body = self._build_body(page_id, payload, session_id)

        try:
            if method == "GET":
                params = {k: str(v) for k, v in body.items()}
                response = self._client.get(url, params=params)
            else:
                response = self._client.request(
                    method, url, content=encode_body(body), headers={"Content-Type": "application/json"}
                )
        except httpx.TimeoutException as e:
            logger.error(f"Request to {url} timed out: {e}")
            raise TransportError(f"request timed out: {e}") from e
        except httpx.ConnectError as e:
            logger.error(f"Failed to connect to {self.base_url}: {e}")
            raise TransportError(f"failed to connect to {self.base_url}: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error from {url}: {e}")
            raise TransportError(f"failed to send request: {e}") from e

        logger.debug(f"{method} {path} -> {response.status_code}")
        return response

    def send(
        self,
        operation: Operation,
        page_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Send one operation and return the decoded reply data.

        Args:
            operation: Operation to call
            page_id: Target page ID
            payload: Operation-specific fields merged into the body
            session_id: Session to address instead of the cached one

        Returns:
            The envelope's data object (empty dict if absent)

        Raises:
            TransportError: Connection failure, timeout, or bad status without a failure envelope
            SerializationError: Payload not encodable or reply not decodable
            ServerError: Reply had success=false
        """
        response = self._request(operation, page_id, payload, session_id)

        try:
            envelope = decode_envelope(response.content)
        except SerializationError:
            if not response.is_success:
                raise TransportError(
                    f"request failed with status {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )
            raise

        if not envelope.success:
            raise ServerError(envelope.error, data=envelope.data, status_code=response.status_code, reply=envelope)

        if not response.is_success:
            raise TransportError(
                f"request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        return envelope.data

    def send_binary(
        self,
        operation: Operation,
        page_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> bytes:
        """Send one operation and return the raw reply body.

        The success flag is not interpreted: any 2xx body is returned as-is.

        Raises:
            TransportError: Connection failure, timeout, or non-2xx status
            SerializationError: Payload not encodable
        """
        response = self._request(operation, page_id, payload, session_id)
        if not response.is_success:
            raise TransportError(f"request failed with status {response.status_code}", status_code=response.status_code)
        return response.content

    # Browser lifecycle

    def _cache_session(self, data: Dict[str, Any]) -> str:
        session_id = _require(data, "sessionId", str)
        pages = data.get("pages")
        with self._lock:
            self._session_id = session_id
            if isinstance(pages, list):
                self._pages = [p for p in pages if isinstance(p, str)]
        logger.info(f"Using session {session_id}")
        return session_id

    def start_browser(self, headless: bool = False) -> str:
        """Start a browser and adopt its session.

        Args:
            headless: Run without a visible window

        Returns:
            Session ID assigned by the service
        """
        payload: Dict[str, Any] = {}
        if headless:
            payload["headless"] = "new"
        return self._cache_session(self.send(Operation.START_BROWSER, payload=payload))

    def connect_browser(self, port: int) -> str:
        """Attach to an already running browser and adopt its session.

        Args:
            port: Browser debugging port

        Returns:
            Session ID assigned by the service
        """
        return self._cache_session(self.send(Operation.CONNECT_BROWSER, payload={"port": port}))

    def stop_browser(self) -> None:
        self.send(Operation.STOP_BROWSER)

    # Pages

    def new_page(self) -> Page:
        """Open a new page and track its ID."""
        data = self.send(Operation.NEW_PAGE)
        page_id = _require(data, "pageId", str)
        with self._lock:
            self._pages.append(page_id)
        return Page(self, page_id)

    def default_page(self) -> Page:
        """First known page.

        Raises:
            LookupError: If no pages are known
        """
        pages = self.pages
        if not pages:
            raise LookupError("no pages available")
        return Page(self, pages[0])

    def get_page(self, page_id: str) -> Page:
        """Known page by ID.

        Raises:
            LookupError: If the page ID is not known
        """
        if page_id not in self.pages:
            raise LookupError(f"page not found: {page_id}")
        return Page(self, page_id)

    def page(self, page_id: str) -> Page:
        """Facade for any page ID, known or not."""
        return Page(self, page_id)

    def locator(self, page_id: str, selector: str) -> Locator:
        return Locator(self, page_id, (selector,))

    def close_page(self, page_id: str) -> None:
        self.send(Operation.CLOSE_PAGE, page_id)
        with self._lock:
            if page_id in self._pages:
                self._pages.remove(page_id)

    # Navigation

    def navigate(self, page_id: str, url: str) -> None:
        self.send(Operation.NAVIGATE, page_id, {"url": url})

    def navigate_with_loaded_state(self, page_id: str, url: str) -> None:
        self.send(Operation.NAVIGATE_WITH_LOADED_STATE, page_id, {"url": url})

    def reload(self, page_id: str) -> None:
        self.send(Operation.RELOAD, page_id)

    def reload_with_loaded_state(self, page_id: str) -> None:
        self.send(Operation.RELOAD_WITH_LOADED_STATE, page_id)

    # Page info

    def execute_script(self, page_id: str, script: str) -> Any:
        """Run JavaScript in the page.

        Returns:
            The script's result as decoded JSON
        """
        return self.send(Operation.EXECUTE_SCRIPT, page_id, {"script": script}).get("result")

    def get_title(self, page_id: str) -> str:
        return _require(self.send(Operation.GET_TITLE, page_id), "title", str)

    def get_url(self, page_id: str) -> str:
        return _require(self.send(Operation.GET_URL, page_id), "url", str)

    def get_html(self, page_id: str) -> str:
        return _require(self.send(Operation.GET_HTML, page_id), "html", str)

    def screenshot(self, page_id: str, format: str = "png") -> bytes:
        """Capture the page.

        Args:
            page_id: Target page ID
            format: Image format ("png" or "jpeg")

        Returns:
            Image bytes exactly as served
        """
        return self.send_binary(Operation.SCREENSHOT, page_id, {"format": format})

    # Waiting

    def wait_for_load_state_load(self, page_id: str) -> None:
        self.send(Operation.WAIT_FOR_LOAD_STATE_LOAD, page_id)

    def wait_for_dom_content_loaded(self, page_id: str) -> None:
        self.send(Operation.WAIT_FOR_DOM_CONTENT_LOADED, page_id)

    def wait_for_selector_visible(self, page_id: str, selector: str) -> None:
        self.send(Operation.WAIT_FOR_SELECTOR_VISIBLE, page_id, {"selector": selector})

    # Advanced

    def expect_response_text(self, page_id: str, url_or_predicate: str, callback: str) -> str:
        """Run callback in the page and capture the text of the first matching response.

        Args:
            page_id: Target page ID
            url_or_predicate: URL or predicate source matching the response
            callback: JavaScript that triggers the request

        Returns:
            Response body text
        """
        data = self.send(
            Operation.EXPECT_RESPONSE_TEXT, page_id, {"urlOrPredicate": url_or_predicate, "callback": callback}
        )
        return _require(data, "text", str)

    def must_inner_text(self, page_id: str, selector: str) -> str:
        return _require(self.send(Operation.MUST_INNER_TEXT, page_id, {"selector": selector}), "text", str)

    def must_text_content(self, page_id: str, selector: str) -> str:
        return _require(self.send(Operation.MUST_TEXT_CONTENT, page_id, {"selector": selector}), "text", str)

    def release(self, page_id: str) -> None:
        self.send(Operation.RELEASE, page_id)

    def close_all(self, page_id: str) -> None:
        self.send(Operation.CLOSE_ALL, page_id)

    def expect_ext_page(self, page_id: str, callback: str) -> str:
        """Run callback and return the ID of the page it opens."""
        return _require(self.send(Operation.EXPECT_EXT_PAGE, page_id, {"callback": callback}), "pageId", str)

    # Elements

    def element_exists(self, page_id: str, selector: str) -> bool:
        return _require(self.send(Operation.ELEMENT_EXISTS, page_id, {"selector": selector}), "exists", bool)

    def element_text(self, page_id: str, selector: str) -> str:
        return _require(self.send(Operation.ELEMENT_TEXT, page_id, {"selector": selector}), "text", str)

    def element_click(self, page_id: str, selector: str) -> None:
        self.send(Operation.ELEMENT_CLICK, page_id, {"selector": selector})

    def element_hover(self, page_id: str, selector: str) -> None:
        self.send(Operation.ELEMENT_HOVER, page_id, {"selector": selector})

    def element_set_value(self, page_id: str, selector: str, value: str) -> None:
        self.send(Operation.ELEMENT_SET_VALUE, page_id, {"selector": selector, "value": value})

    def element_wait(self, page_id: str, selector: str, timeout: int = 10000) -> None:
        """Wait for an element to appear.

        Args:
            page_id: Target page ID
            selector: CSS selector
            timeout: Server-side wait in milliseconds
        """
        self.send(Operation.ELEMENT_WAIT, page_id, {"selector": selector, "timeout": timeout})

    def element_attribute(self, page_id: str, selector: str, attribute: str) -> str:
        data = self.send(Operation.ELEMENT_ATTRIBUTE, page_id, {"selector": selector, "attribute": attribute})
        return _require(data, "value", str)

    def element_all_texts(self, page_id: str, selector: str) -> List[str]:
        return _string_list(self.send(Operation.ELEMENT_ALL_TEXTS, page_id, {"selector": selector}), "texts")

    def element_all_attributes(self, page_id: str, selector: str, attribute: str) -> List[str]:
        data = self.send(Operation.ELEMENT_ALL_ATTRIBUTES, page_id, {"selector": selector, "attribute": attribute})
        return _string_list(data, "attributes")

    def element_count(self, page_id: str, selector: str) -> int:
        return int(_require(self.send(Operation.ELEMENT_COUNT, page_id, {"selector": selector}), "count", (int, float)))


__all__ = ["HTTPClient"]
