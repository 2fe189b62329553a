"""cdpsdk - client for a remote browser automation service.

Two transports talk to the same service: HTTPClient issues one HTTP round
trip per operation, WebSocketClient multiplexes many concurrent requests and
server-pushed events over one persistent connection. Page and Locator curry a
page ID and selector into HTTPClient calls.

PUBLIC API:
  - HTTPClient: Request/reply client
  - WebSocketClient: Persistent-channel client
  - ConnectionState: WebSocketClient connection state
  - Page: Page facade
  - Locator: Chainable selector facade
  - ClientConfig, load_config: Configuration
  - Operation, MessageType, Request, Response, Envelope: Wire types
  - CDPError and subclasses: Errors
  - __version__: Package version string
"""

from importlib.metadata import PackageNotFoundError, version

from cdpsdk.config import ClientConfig, load_config
from cdpsdk.errors import (
    CDPError,
    NotConnectedError,
    RequestCancelledError,
    RequestTimeoutError,
    SerializationError,
    ServerError,
    TransportError,
)
from cdpsdk.http_client import HTTPClient
from cdpsdk.locator import Locator
from cdpsdk.page import Page
from cdpsdk.protocol import Envelope, MessageType, Operation, Request, Response
from cdpsdk.ws_client import ConnectionState, WebSocketClient

try:
    __version__ = version("cdpsdk")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "HTTPClient",
    "WebSocketClient",
    "ConnectionState",
    "Page",
    "Locator",
    "ClientConfig",
    "load_config",
    "Operation",
    "MessageType",
    "Request",
    "Response",
    "Envelope",
    "CDPError",
    "TransportError",
    "NotConnectedError",
    "SerializationError",
    "ServerError",
    "RequestTimeoutError",
    "RequestCancelledError",
    "__version__",
]
