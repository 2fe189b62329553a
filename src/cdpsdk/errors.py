"""SDK exceptions.

PUBLIC API:
  - CDPError: Base exception for all SDK errors
  - TransportError: Connection, I/O or HTTP status failure
  - NotConnectedError: Persistent channel used while not connected
  - SerializationError: Request could not be encoded or reply could not be decoded
  - ServerError: Well-formed reply with success=false
  - RequestTimeoutError: Persistent-channel request exceeded its timeout
  - RequestCancelledError: Persistent-channel request cancelled by the caller
"""

from typing import Any


class CDPError(Exception):
    """Base exception for all SDK errors."""

    pass


class TransportError(CDPError):
    """Raised when the remote service cannot be reached or returns a bad status.

    Attributes:
        status_code: HTTP status code if a response was received.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotConnectedError(TransportError):
    """Raised when the persistent channel is used before connect()."""

    pass


class SerializationError(CDPError):
    """Raised when a payload cannot be encoded or a reply cannot be decoded."""

    pass


class ServerError(CDPError):
    """Raised when the service answers with success=false.

    The server message is kept verbatim in ``message``. Whatever else the
    reply carried is attached for diagnostics.

    Attributes:
        message: Server-supplied error string.
        data: Reply ``data`` object, empty if absent.
        status_code: HTTP status code (HTTP client only).
        reply: Decoded envelope or frame the error came from.
    """

    def __init__(
        self,
        message: str,
        data: dict[str, Any] | None = None,
        status_code: int | None = None,
        reply: Any = None,
    ):
        super().__init__(f"server error: {message}")
        self.message = message
        self.data = data or {}
        self.status_code = status_code
        self.reply = reply


class RequestTimeoutError(CDPError, TimeoutError):
    """Raised when no reply arrives within the request timeout."""

    pass


class RequestCancelledError(CDPError):
    """Raised when the caller's cancel signal fires before the reply arrives."""

    pass


__all__ = [
    "CDPError",
    "TransportError",
    "NotConnectedError",
    "SerializationError",
    "ServerError",
    "RequestTimeoutError",
    "RequestCancelledError",
]
