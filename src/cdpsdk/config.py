"""Configuration management for cdpsdk.

Handles client defaults from cdpsdk.toml.

Example cdpsdk.toml:

    [http]
    base_url = "http://localhost:3000"
    session_id = "my-session"
    timeout = 120

    [websocket]
    url = "ws://localhost:3001"
    request_timeout = 30
    connect_timeout = 10

PUBLIC API:
  - ClientConfig: Connection settings for both clients
  - load_config: Load settings from cdpsdk.toml
"""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "cdpsdk.toml"

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_WS_URL = "ws://localhost:3001"
DEFAULT_HTTP_TIMEOUT = 300.0
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 10.0


@dataclass
class ClientConfig:
    """Connection settings shared by HTTPClient and WebSocketClient.

    Attributes:
        base_url: Base URL of the HTTP API.
        ws_url: URL of the WebSocket endpoint.
        session_id: Session ID to reuse. Blank means assigned later.
        timeout: HTTP round-trip timeout in seconds.
        request_timeout: Persistent-channel reply timeout in seconds.
        connect_timeout: WebSocket handshake timeout in seconds.
    """

    base_url: str = DEFAULT_BASE_URL
    ws_url: str = DEFAULT_WS_URL
    session_id: Optional[str] = None
    timeout: float = DEFAULT_HTTP_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT


def _find_config_file() -> Optional[Path]:
    """Find cdpsdk.toml in current or parent directories."""
    current = Path.cwd()

    for parent in [current] + list(current.parents):
        config_file = parent / CONFIG_FILENAME
        if config_file.exists():
            return config_file

    return None


def _load_raw(path: Optional[Path] = None) -> dict:
    """Load raw configuration from file."""
    if path is None:
        path = _find_config_file()

    if path is None or not path.exists():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def load_config(path: Optional[Path] = None) -> ClientConfig:
    """Load client settings, falling back to defaults for anything missing.

    Args:
        path: Explicit config file. Searched upward from cwd when omitted.

    Returns:
        Populated ClientConfig.
    """
    data = _load_raw(path)
    http = data.get("http", {})
    ws = data.get("websocket", {})

    config = ClientConfig(
        base_url=http.get("base_url", DEFAULT_BASE_URL),
        ws_url=ws.get("url", DEFAULT_WS_URL),
        session_id=http.get("session_id") or ws.get("session_id") or None,
        timeout=float(http.get("timeout", DEFAULT_HTTP_TIMEOUT)),
        request_timeout=float(ws.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)),
        connect_timeout=float(ws.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT)),
    )
    logger.debug(f"Loaded config: {config}")
    return config


__all__ = ["ClientConfig", "load_config"]
