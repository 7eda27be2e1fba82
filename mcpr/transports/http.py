"""HTTP+SSE транспорт MCP на FastAPI.

POST /mcp принимает конверт или batch, GET /mcp с `Accept: text/event-stream`
открывает поток серверных уведомлений.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from sse_starlette.sse import EventSourceResponse
from starlette.concurrency import run_in_threadpool

from mcpr.capabilities.registry import Server
from mcpr.core.config import (
    DEFAULT_SESSION_ID,
    LOG_LEVEL,
    PROTOCOL_VERSION,
    SESSION_HEADER,
    HttpServeConfig,
)
from mcpr.core.errors import PARSE_ERROR, SERVER_NOT_INITIALIZED, UNKNOWN_SESSION, McpError
from mcpr.engine.dispatcher import ProtocolEngine, json_rpc_error, safe_request_id
from mcpr.engine.session import SessionState, SessionStore
from mcpr.transports.events import NotificationBroker

logger = logging.getLogger("mcpr.transports.http")

router = APIRouter()


class McpSessionError(McpError):
    def __init__(self, message: str, *, code: int, status_code: int, data: Any = None) -> None:
        super().__init__(message, code=code, data=data)
        self.status_code = status_code


def _is_initialize(payload: Any) -> bool:
    if isinstance(payload, dict):
        return payload.get("method") == "initialize"
    if isinstance(payload, list):
        return any(_is_initialize(item) for item in payload)
    return False


def _resolve_session(request: Request, payload: Any) -> SessionState:
    state = request.app.state
    sessions: SessionStore = state.sessions
    config: HttpServeConfig = state.config

    session_id = request.headers.get(SESSION_HEADER)
    if session_id:
        session = sessions.get(session_id)
        if session is None:
            raise McpSessionError(
                f"Unknown sessionId '{session_id}'",
                code=UNKNOWN_SESSION,
                status_code=404,
            )
        return session

    if config.require_session:
        if _is_initialize(payload):
            return sessions.create()
        raise McpSessionError(
            f"Missing {SESSION_HEADER} header",
            code=SERVER_NOT_INITIALIZED,
            status_code=400,
        )
    return sessions.get_or_create(DEFAULT_SESSION_ID)


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/mcp")
async def mcp_events(request: Request):
    state = request.app.state
    accept = (request.headers.get("accept") or "").lower()
    if "text/event-stream" not in accept:
        engine: ProtocolEngine = state.engine
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": engine.server.server_info,
            "capabilities": engine.server.capabilities,
            "transport": {"type": "http", "endpoint": "/mcp", "events": "text/event-stream"},
        }

    broker: NotificationBroker = state.broker
    logger.info("SSE stream opened by %s", request.client.host if request.client else "unknown")
    return EventSourceResponse(
        broker.stream(),
        ping=state.config.sse_ping_seconds,
        headers={"X-Accel-Buffering": "no"},
    )


@router.post("/mcp")
async def mcp_rpc(request: Request) -> Response:
    body = await request.body()
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError) as exc:
        logger.warning("Malformed request body: %s", exc)
        return JSONResponse(json_rpc_error(PARSE_ERROR, "Parse error", data=str(exc)), status_code=400)

    try:
        session = _resolve_session(request, payload)
    except McpSessionError as exc:
        request_id = safe_request_id(payload)
        return JSONResponse(
            json_rpc_error(exc.code, exc.message, data=exc.data, request_id=request_id),
            status_code=exc.status_code,
        )

    engine: ProtocolEngine = request.app.state.engine
    # Обработчики могут блокироваться на I/O, поэтому уводим их в threadpool.
    result = await run_in_threadpool(engine.handle_payload, payload, session)

    headers = {SESSION_HEADER: session.id} if session.id != DEFAULT_SESSION_ID else {}
    if session.closed:
        request.app.state.sessions.discard(session.id)
    if result is None:
        return Response(status_code=202, headers=headers)
    return JSONResponse(result, headers=headers)


def create_app(server: Server, config: Optional[HttpServeConfig] = None) -> FastAPI:
    """Собирает FastAPI-приложение, обслуживающее `server` по HTTP и SSE."""
    config = config or HttpServeConfig.from_env()
    broker = NotificationBroker()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        server.serving = True
        server.add_listener(broker.publish)
        try:
            yield
        finally:
            server.remove_listener(broker.publish)
            server.serving = False

    app = FastAPI(
        title=server.name,
        description=server.description,
        version=server.version,
        lifespan=lifespan,
    )
    app.state.engine = ProtocolEngine(server)
    app.state.sessions = SessionStore()
    app.state.broker = broker
    app.state.config = config
    app.include_router(router)
    return app


def serve_http(
    server: Server,
    host: Optional[str] = None,
    port: Optional[int] = None,
    *,
    config: Optional[HttpServeConfig] = None,
) -> None:
    """Запускает HTTP-транспорт через uvicorn (блокирующий вызов)."""
    config = config or HttpServeConfig.from_env()
    if host:
        config.host = host
    if port:
        config.port = port
    app = create_app(server, config)
    logger.info("Serving %s v%s over HTTP on %s:%d", server.name, server.version, config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level=LOG_LEVEL.lower())


__all__ = ["create_app", "router", "serve_http"]
