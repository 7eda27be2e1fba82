"""Глобальные константы и настройки mcpr."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger("mcpr.core.config")

PROTOCOL_VERSION = "2024-11-05"
JSONRPC_VERSION = "2.0"
SESSION_HEADER = "mcp-session-id"
DEFAULT_SESSION_ID = "_default"

CLIENT_INFO: Dict[str, str] = {
    "name": "mcpr",
    "version": os.getenv("MCPR_VERSION", "0.1.0"),
}

LOG_LEVEL = os.getenv("MCPR_LOG_LEVEL", "INFO").strip().upper() or "INFO"


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        logger.warning("Invalid %s=%r, falling back to %s", name, raw, default)
        return default


@dataclass(slots=True)
class HttpServeConfig:
    """Настройки HTTP/SSE транспорта, получаемые из окружения."""

    host: str = "127.0.0.1"
    port: int = 8000
    sse_ping_seconds: int = 15
    require_session: bool = False

    @classmethod
    def from_env(cls) -> "HttpServeConfig":
        return cls(
            host=os.getenv("MCPR_HTTP_HOST", "127.0.0.1").strip() or "127.0.0.1",
            port=_get_int("MCPR_HTTP_PORT", 8000, minimum=1),
            sse_ping_seconds=_get_int("MCPR_SSE_PING_SECONDS", 15, minimum=1),
            require_session=_get_bool(os.getenv("MCPR_REQUIRE_SESSION")),
        )


@dataclass(slots=True)
class ClientConfig:
    """Настройки клиента (таймаут HTTP-запросов)."""

    timeout_ms: int = 30_000

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(timeout_ms=_get_int("MCPR_CLIENT_TIMEOUT_MS", 30_000))


__all__ = [
    "CLIENT_INFO",
    "ClientConfig",
    "DEFAULT_SESSION_ID",
    "HttpServeConfig",
    "JSONRPC_VERSION",
    "LOG_LEVEL",
    "PROTOCOL_VERSION",
    "SESSION_HEADER",
]
