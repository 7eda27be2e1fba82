"""Протокольный движок MCP: разбор JSON-RPC, диспетчеризация и обёртка ответа.

Движок не зависит от транспорта: stdio и HTTP передают ему сырое сообщение
(или уже разобранный JSON) вместе с состоянием сессии и получают обратно
конверт ответа либо None для уведомлений.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from mcpr.capabilities.models import CapabilityKind, Resource
from mcpr.capabilities.registry import Server
from mcpr.core.config import PROTOCOL_VERSION
from mcpr.core.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SERVER_NOT_INITIALIZED,
    McpError,
)
from mcpr.engine.session import SessionPhase, SessionState
from mcpr.models.json_rpc import (
    InitializeParams,
    JsonRpcError,
    JsonRpcErrorObj,
    JsonRpcRequest,
    JsonRpcResponse,
)
from mcpr.models.schema import SchemaValidationError, coerce
from mcpr.responses.content import ContentItem

logger = logging.getLogger("mcpr.engine.dispatcher")

Envelope = Dict[str, Any]
MethodHandler = Callable[[Dict[str, Any], SessionState], Any]

# Методы, которые обслуживаются до initialize.
_PRE_INIT_METHODS = frozenset({"initialize", "ping"})


def json_rpc_error(code: int, message: str, *, data: Any = None, request_id: Any = None) -> Envelope:
    return JsonRpcError(
        error=JsonRpcErrorObj(code=code, message=message, data=data),
        id=request_id,
    ).to_wire()


def safe_request_id(message: Any) -> Any:
    if not isinstance(message, dict):
        return None
    request_id = message.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, (int, float, str)):
        return None
    return request_id


def _require_name(params: Dict[str, Any]) -> str:
    name = params.get("name")
    if name is None:
        raise SchemaValidationError("name", "required")
    if not isinstance(name, str):
        raise SchemaValidationError("name", "type", expected="string", actual=type(name).__name__)
    return name


def _validation_details(exc: ValidationError) -> List[Dict[str, Any]]:
    return exc.errors(include_url=False, include_context=False, include_input=False)  # type: ignore[return-value]


class ProtocolEngine:
    """Серверная state machine MCP поверх реестра `Server`."""

    def __init__(self, server: Server) -> None:
        self.server = server
        self._methods: Dict[str, MethodHandler] = {
            "initialize": self._handle_initialize,
            "notifications/initialized": self._handle_initialized_notification,
            "ping": self._handle_ping,
            "shutdown": self._handle_shutdown,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
            "resources/list": self._handle_resources_list,
            "resources/read": self._handle_resources_read,
            "prompts/list": self._handle_prompts_list,
            "prompts/get": self._handle_prompts_get,
        }

    # --- точки входа для транспортов ---

    def handle_raw(self, raw: Union[str, bytes], session: SessionState) -> Optional[Union[Envelope, List[Envelope]]]:
        """Разбирает сырые байты/строку и обрабатывает одиночный или batch-запрос."""
        # JSONDecodeError и UnicodeDecodeError наследуют ValueError; глубокая вложенность даёт RecursionError.
        try:
            text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
            payload = json.loads(text)
        except (ValueError, RecursionError) as exc:
            logger.warning("Failed to parse incoming message: %s", exc)
            return json_rpc_error(PARSE_ERROR, "Parse error", data=str(exc))
        return self.handle_payload(payload, session)

    def handle_payload(self, payload: Any, session: SessionState) -> Optional[Union[Envelope, List[Envelope]]]:
        if isinstance(payload, list):
            if not payload:
                return json_rpc_error(INVALID_REQUEST, "Invalid request", data="Empty batch")
            responses = [response for response in (self.handle_request(item, session) for item in payload) if response]
            return responses or None
        return self.handle_request(payload, session)

    def handle_request(self, message: Any, session: SessionState) -> Optional[Envelope]:
        """Обрабатывает один конверт; возвращает None для уведомлений."""
        try:
            request = JsonRpcRequest.model_validate(message)
        except ValidationError as exc:
            return json_rpc_error(
                INVALID_REQUEST,
                "Invalid request",
                data=_validation_details(exc),
                request_id=safe_request_id(message),
            )

        notification = request.is_notification
        logger.debug("Dispatching %s (id=%r, session=%s)", request.method, request.id, session.id)

        try:
            result = self._dispatch(request, session)
        except McpError as exc:
            if notification:
                logger.debug("Notification %s failed: %s", request.method, exc)
                return None
            return json_rpc_error(exc.code, exc.message, data=exc.data, request_id=request.id)
        except Exception as exc:
            logger.exception("Unhandled error while processing %s", request.method)
            if notification:
                return None
            return json_rpc_error(INTERNAL_ERROR, "Internal error", data=str(exc), request_id=request.id)

        if notification:
            return None
        return JsonRpcResponse(id=request.id, result=result).model_dump()

    # --- диспетчеризация ---

    def _dispatch(self, request: JsonRpcRequest, session: SessionState) -> Any:
        method = request.method
        if session.closed:
            raise McpError("Session closed", code=INVALID_REQUEST, data={"session": session.id})
        if not session.initialized and method not in _PRE_INIT_METHODS:
            raise McpError("Server not initialized", code=SERVER_NOT_INITIALIZED, data={"method": method})

        handler = self._methods.get(method)
        if handler is None:
            if method.startswith("notifications/") and request.is_notification:
                logger.debug("Ignoring client notification %s", method)
                return None
            raise McpError("Method not found", code=METHOD_NOT_FOUND, data={"method": method})

        params = request.params if request.params is not None else {}
        if not isinstance(params, dict):
            raise McpError("Invalid params", code=INVALID_PARAMS, data="params must be an object")
        return handler(params, session)

    # --- жизненный цикл сессии ---

    def _handle_initialize(self, params: Dict[str, Any], session: SessionState) -> Dict[str, Any]:
        try:
            parsed = InitializeParams.model_validate(params)
        except ValidationError as exc:
            raise McpError(
                "Invalid initialize params",
                code=INVALID_PARAMS,
                data=_validation_details(exc),
            ) from exc

        session.client_info = parsed.clientInfo
        session.client_capabilities = parsed.capabilities
        session.protocol_version = parsed.protocolVersion or PROTOCOL_VERSION
        session.phase = SessionPhase.INITIALIZED
        if not self.server.initialized:
            self.server.initialized = True

        logger.info(
            "Session %s initialized (client=%s, protocol=%s)",
            session.id,
            parsed.clientInfo.get("name", "unknown"),
            session.protocol_version,
        )
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": self.server.capabilities,
            "serverInfo": self.server.server_info,
            "instructions": self.server.description,
        }

    def _handle_initialized_notification(self, params: Dict[str, Any], session: SessionState) -> None:
        logger.debug("Client confirmed initialization for session %s", session.id)

    def _handle_ping(self, params: Dict[str, Any], session: SessionState) -> Dict[str, Any]:
        return {}

    def _handle_shutdown(self, params: Dict[str, Any], session: SessionState) -> Dict[str, Any]:
        session.phase = SessionPhase.CLOSED
        logger.info("Session %s closed", session.id)
        return {}

    # --- tools ---

    def _handle_tools_list(self, params: Dict[str, Any], session: SessionState) -> Dict[str, Any]:
        return {"tools": self.server.list(CapabilityKind.TOOL)}

    def _handle_tools_call(self, params: Dict[str, Any], session: SessionState) -> Dict[str, Any]:
        tool = self.server.lookup(CapabilityKind.TOOL, _require_name(params))
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        validated = coerce(tool.input_schema, arguments)  # type: ignore[union-attr]
        result = tool.invoke(validated)
        if result.is_error:
            logger.info("Tool %s returned an error result", tool.name)
        return result.to_result()

    # --- resources ---

    def _handle_resources_list(self, params: Dict[str, Any], session: SessionState) -> Dict[str, Any]:
        return {"resources": self.server.list(CapabilityKind.RESOURCE)}

    def _handle_resources_read(self, params: Dict[str, Any], session: SessionState) -> Dict[str, Any]:
        name = params.get("name")
        uri = params.get("uri")
        if name is None and uri is None:
            raise McpError("Invalid params", code=INVALID_PARAMS, data="'name' or 'uri' is required")
        found = self.server.find_resource(name=name, uri=uri)
        result = found.invoke(params)
        payload: Dict[str, Any] = {"contents": [self._resource_entry(found, item) for item in result.content]}
        if result.is_error:
            payload["isError"] = True
        return payload

    @staticmethod
    def _resource_entry(found: Resource, item: ContentItem) -> Dict[str, Any]:
        entry = item.to_wire()
        entry.setdefault("uri", found.uri)
        if found.mime_type:
            entry.setdefault("mimeType", found.mime_type)
        return entry

    # --- prompts ---

    def _handle_prompts_list(self, params: Dict[str, Any], session: SessionState) -> Dict[str, Any]:
        return {"prompts": self.server.list(CapabilityKind.PROMPT)}

    def _handle_prompts_get(self, params: Dict[str, Any], session: SessionState) -> Dict[str, Any]:
        prompt = self.server.lookup(CapabilityKind.PROMPT, _require_name(params))
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise SchemaValidationError("arguments", "type", expected="object", actual=type(arguments).__name__)
        missing = prompt.missing_arguments(arguments)  # type: ignore[union-attr]
        if missing:
            raise SchemaValidationError(missing[0], "required")

        result = prompt.invoke(arguments)
        payload: Dict[str, Any] = {
            "description": prompt.description,
            "messages": [{"role": "user", "content": item.to_wire()} for item in result.content],
        }
        if result.is_error:
            payload["isError"] = True
        return payload


__all__ = ["ProtocolEngine", "json_rpc_error", "safe_request_id"]
