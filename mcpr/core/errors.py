"""Коды ошибок JSON-RPC и иерархия исключений mcpr."""

from __future__ import annotations

from typing import Any, Dict

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_NOT_INITIALIZED = -32002
UNKNOWN_SESSION = -32003


class McpError(Exception):
    """Ошибка протокольного уровня; движок превращает её в JSON-RPC error."""

    def __init__(self, message: str, *, code: int = INTERNAL_ERROR, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class CapabilityNotFoundError(McpError):
    """Запрошенный tool/resource/prompt не зарегистрирован на сервере."""

    def __init__(self, kind: str, name: Any, available: Any = None) -> None:
        super().__init__(
            f"{kind.capitalize()} not found",
            code=METHOD_NOT_FOUND,
            data={"name": name, "available": list(available or [])},
        )
        self.kind = kind
        self.name = name


class ClientError(Exception):
    """Базовая ошибка клиентской стороны."""


class ClientUsageError(ClientError):
    """Клиент используется неправильно (нет initialize, неверные параметры)."""


class TransportError(ClientError):
    """Транспорт не смог доставить запрос или получить ответ."""


class JsonRpcCallError(ClientError):
    """Сервер вернул JSON-RPC error на запрос клиента."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data


__all__ = [
    "CapabilityNotFoundError",
    "ClientError",
    "ClientUsageError",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "JsonRpcCallError",
    "METHOD_NOT_FOUND",
    "McpError",
    "PARSE_ERROR",
    "SERVER_NOT_INITIALIZED",
    "TransportError",
    "UNKNOWN_SESSION",
]
