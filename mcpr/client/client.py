"""MCPClient — клиентская сторона протокола поверх :class:`ClientTransport`.

Usage::

    with new_client_io("python", "-m", "mcpr", "serve") as client:
        client.initialize()
        tools = client.tools_list()
        result = client.tools_call("add", {"a": 2, "b": 3})
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from mcpr.client.transport import ClientTransport, HttpClientTransport, StdioClientTransport
from mcpr.core.config import CLIENT_INFO, JSONRPC_VERSION, PROTOCOL_VERSION
from mcpr.core.errors import ClientUsageError, JsonRpcCallError, TransportError

logger = logging.getLogger("mcpr.client.client")


def _require_name(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ClientUsageError(f"{what} must be a non-empty string")
    return value


def _require_mapping(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ClientUsageError(f"{what} must be a mapping")
    return dict(value)


class MCPClient:
    """Блокирующий JSON-RPC клиент MCP с монотонным счётчиком id (с 1)."""

    def __init__(self, transport: ClientTransport, *, client_info: Optional[Dict[str, Any]] = None) -> None:
        self._transport = transport
        self._client_info = dict(client_info or CLIENT_INFO)
        self._next_id = 1
        self._id_lock = threading.Lock()
        self.initialized = False
        self.server_info: Dict[str, Any] = {}
        self.server_capabilities: Dict[str, Any] = {}

    def __enter__(self) -> "MCPClient":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def close(self) -> None:
        self._transport.close()

    # --- низкоуровневые вызовы ---

    def _allocate_id(self) -> int:
        with self._id_lock:
            request_id = self._next_id
            self._next_id += 1
        return request_id

    def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Отправляет запрос и возвращает `result`; JSON-RPC error поднимается как JsonRpcCallError."""
        request_id = self._allocate_id()
        envelope = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "method": method,
            "params": params or {},
        }
        logger.debug("call %s id=%s", method, request_id)
        response = self._transport.request(envelope)

        response_id = response.get("id")
        error = response.get("error")
        # Ошибки разбора сервер возвращает с id=null.
        if response_id != request_id and not (error is not None and response_id is None):
            raise TransportError(f"Response id {response_id!r} does not match request id {request_id}")
        if error is not None:
            if not isinstance(error, dict):
                raise TransportError(f"Malformed error object: {error!r}")
            raise JsonRpcCallError(
                int(error.get("code", 0)),
                str(error.get("message", "")),
                error.get("data"),
            )
        if "result" not in response:
            raise TransportError(f"Response without result or error: {response!r}")
        return response["result"]

    def notify(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        envelope: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
        if params:
            envelope["params"] = params
        self._transport.send(envelope)

    # --- handshake ---

    def initialize(self, capabilities: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        result = self.call(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": capabilities or {},
                "clientInfo": self._client_info,
            },
        )
        self.server_info = dict(result.get("serverInfo") or {})
        self.server_capabilities = dict(result.get("capabilities") or {})
        self.notify("notifications/initialized")
        self.initialized = True
        logger.info("Connected to %s v%s", self.server_info.get("name"), self.server_info.get("version"))
        return result

    def _ensure_initialized(self) -> None:
        if not self.initialized:
            raise ClientUsageError("initialize() must be called before other methods")

    # --- удобные обёртки ---

    def ping(self) -> Dict[str, Any]:
        return self.call("ping")

    def tools_list(self) -> List[Dict[str, Any]]:
        self._ensure_initialized()
        return list(self.call("tools/list").get("tools", []))

    def tools_call(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        self._ensure_initialized()
        params = {
            "name": _require_name(name, "tool name"),
            "arguments": _require_mapping(arguments, "arguments"),
        }
        return self.call("tools/call", params)

    def prompts_list(self) -> List[Dict[str, Any]]:
        self._ensure_initialized()
        return list(self.call("prompts/list").get("prompts", []))

    def prompts_get(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        self._ensure_initialized()
        params = {
            "name": _require_name(name, "prompt name"),
            "arguments": _require_mapping(arguments, "arguments"),
        }
        return self.call("prompts/get", params)

    def resources_list(self) -> List[Dict[str, Any]]:
        self._ensure_initialized()
        return list(self.call("resources/list").get("resources", []))

    def resources_read(self, name: Optional[str] = None, *, uri: Optional[str] = None) -> Dict[str, Any]:
        self._ensure_initialized()
        if name is None and uri is None:
            raise ClientUsageError("resources_read requires a name or a uri")
        params: Dict[str, Any] = {}
        if name is not None:
            params["name"] = _require_name(name, "resource name")
        if uri is not None:
            params["uri"] = _require_name(uri, "resource uri")
        return self.call("resources/read", params)


def new_client_io(command: str, *args: str, env: Optional[Mapping[str, str]] = None) -> MCPClient:
    """Клиент к серверу, запущенному дочерним процессом."""
    return MCPClient(StdioClientTransport(command, *args, env=env))


def new_client_http(url: str, *, timeout_ms: Optional[int] = None) -> MCPClient:
    """Клиент к серверу по HTTP (`url` указывает на эндпоинт /mcp)."""
    return MCPClient(HttpClientTransport(url, timeout_ms=timeout_ms))


__all__ = ["MCPClient", "new_client_http", "new_client_io"]
