from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import pytest

from mcpr.capabilities.registry import Server
from mcpr.engine.dispatcher import ProtocolEngine
from mcpr.engine.session import SessionState
from mcpr.main import create_example_server


@pytest.fixture
def server() -> Server:
    return create_example_server()


@pytest.fixture
def engine(server: Server) -> ProtocolEngine:
    return ProtocolEngine(server)


@pytest.fixture
def session() -> SessionState:
    return SessionState()


def make_request(method: str, params: Optional[Dict[str, Any]] = None, request_id: Any = 1) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        payload["params"] = params
    return payload


@pytest.fixture
def rpc(engine: ProtocolEngine, session: SessionState) -> Callable[..., Optional[Dict[str, Any]]]:
    def _call(method: str, params: Optional[Dict[str, Any]] = None, request_id: Any = 1) -> Optional[Dict[str, Any]]:
        return engine.handle_request(make_request(method, params, request_id), session)

    return _call


@pytest.fixture
def initialized_rpc(rpc: Callable[..., Optional[Dict[str, Any]]]) -> Callable[..., Optional[Dict[str, Any]]]:
    response = rpc("initialize", {"clientInfo": {"name": "pytest", "version": "1.0"}, "capabilities": {}}, 0)
    assert response is not None and "result" in response
    return rpc
