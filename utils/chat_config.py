import os
from dataclasses import dataclass
from typing import Optional

from services.chat.reconnect_policy import DEFAULT_RECONNECT_DELAY, ReconnectPolicy

DEFAULT_WS_BASE_URL = "ws://localhost:8081/hi"
DEFAULT_API_BASE_URL = "http://localhost:8081/hi"
DEFAULT_HTTP_TIMEOUT = 10.0


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} must be a number.") from exc


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} must be an integer.") from exc


@dataclass(frozen=True)
class ChatClientSettings:
    """
    Settings for the chat transport client, read from the environment.

    - CHAT_WS_BASE_URL: origin (plus prefix) of the websocket server.
    - CHAT_API_BASE_URL: origin (plus prefix) of the HTTP API used for history.
    - CHAT_RECONNECT_DELAY / CHAT_RECONNECT_BACKOFF / CHAT_RECONNECT_MAX_DELAY /
      CHAT_RECONNECT_MAX_ATTEMPTS: reconnection schedule; unset values keep the
      fixed three second retry without a cap.
    - CHAT_HTTP_TIMEOUT: timeout in seconds for history requests.
    """

    ws_base_url: str = DEFAULT_WS_BASE_URL
    api_base_url: str = DEFAULT_API_BASE_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    reconnect_policy: ReconnectPolicy = ReconnectPolicy()

    @classmethod
    def from_env(cls) -> "ChatClientSettings":
        try:
            policy = ReconnectPolicy(
                delay=_env_float("CHAT_RECONNECT_DELAY", DEFAULT_RECONNECT_DELAY),
                backoff_factor=_env_float("CHAT_RECONNECT_BACKOFF", 1.0),
                max_delay=_env_float("CHAT_RECONNECT_MAX_DELAY", None),
                max_attempts=_env_int("CHAT_RECONNECT_MAX_ATTEMPTS", None),
            )
        except ValueError as exc:
            raise RuntimeError(f"Invalid reconnection settings: {exc}") from exc

        return cls(
            ws_base_url=(os.getenv("CHAT_WS_BASE_URL") or DEFAULT_WS_BASE_URL).rstrip("/"),
            api_base_url=(os.getenv("CHAT_API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/"),
            http_timeout=_env_float("CHAT_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            reconnect_policy=policy,
        )
