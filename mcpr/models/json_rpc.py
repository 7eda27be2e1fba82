"""Pydantic-модели для JSON-RPC вызовов и параметров MCP."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr

RequestId = Union[StrictInt, StrictFloat, StrictStr]


class JsonRpcRequest(BaseModel):
    """Стандартный JSON-RPC 2.0 запрос (или уведомление, если нет `id`)."""

    jsonrpc: Literal["2.0"]
    method: StrictStr
    params: Optional[Union[Dict[str, Any], List[Any]]] = None
    id: Optional[RequestId] = None

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


class JsonRpcResponse(BaseModel):
    """Успешный JSON-RPC 2.0 ответ."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[RequestId] = None
    result: Any = None


class JsonRpcErrorObj(BaseModel):
    """Структура ошибки JSON-RPC 2.0."""

    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 ответ с ошибкой."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[RequestId] = None
    error: JsonRpcErrorObj

    def to_wire(self) -> Dict[str, Any]:
        payload = self.model_dump()
        if payload["error"].get("data") is None:
            payload["error"].pop("data", None)
        return payload


class InitializeParams(BaseModel):
    """Параметры метода `initialize` MCP."""

    protocolVersion: Optional[str] = None
    clientInfo: Dict[str, Any] = Field(default_factory=dict)
    capabilities: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "InitializeParams",
    "JsonRpcError",
    "JsonRpcErrorObj",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "RequestId",
]
