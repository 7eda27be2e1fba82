from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from mcpr.capabilities.models import new_tool
from mcpr.capabilities.registry import Server
from mcpr.core.config import PROTOCOL_VERSION
from mcpr.core.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SERVER_NOT_INITIALIZED,
)
from mcpr.engine.dispatcher import ProtocolEngine
from mcpr.engine.session import SessionPhase, SessionState
from mcpr.models.schema import property_number, property_string, schema
from mcpr.responses.content import response, text


def _initialize(engine: ProtocolEngine, session: SessionState) -> None:
    engine.handle_request(
        {"jsonrpc": "2.0", "id": 0, "method": "initialize", "params": {"clientInfo": {"name": "pytest"}}},
        session,
    )


def test_requests_before_initialize_are_rejected(rpc) -> None:
    reply = rpc("tools/list")

    assert reply["id"] == 1
    assert reply["error"]["code"] == SERVER_NOT_INITIALIZED
    assert reply["error"]["message"] == "Server not initialized"


def test_ping_is_allowed_before_initialize(rpc) -> None:
    assert rpc("ping", request_id="p-1") == {"jsonrpc": "2.0", "id": "p-1", "result": {}}


def test_initialize_returns_server_description(rpc, server, session) -> None:
    reply = rpc(
        "initialize",
        {"protocolVersion": PROTOCOL_VERSION, "clientInfo": {"name": "pytest", "version": "1"}, "capabilities": {}},
    )

    result = reply["result"]
    assert result["protocolVersion"] == PROTOCOL_VERSION
    assert result["serverInfo"] == {"name": "mcpr-example", "version": "0.1.0"}
    assert set(result["capabilities"]) == {"tools", "resources", "prompts"}
    assert server.initialized is True
    assert session.phase is SessionPhase.INITIALIZED
    assert session.client_info == {"name": "pytest", "version": "1"}


def test_tools_list_exposes_example_tools(initialized_rpc) -> None:
    tools = initialized_rpc("tools/list")["result"]["tools"]

    assert [tool["name"] for tool in tools] == ["add", "echo", "weighted_mean"]
    assert tools[0]["inputSchema"]["required"] == ["a", "b"]
    assert all("handler" not in tool for tool in tools)


def test_add_returns_text_five(initialized_rpc) -> None:
    reply = initialized_rpc("tools/call", {"name": "add", "arguments": {"a": 2, "b": 3}}, 7)

    assert reply == {
        "jsonrpc": "2.0",
        "id": 7,
        "result": {"content": [{"type": "text", "text": "5"}], "isError": False},
    }


def test_invalid_arguments_never_reach_handler(initialized_rpc) -> None:
    reply = initialized_rpc("tools/call", {"name": "add", "arguments": {"a": "x", "b": 3}})

    error = reply["error"]
    assert error["code"] == INVALID_PARAMS
    assert error["data"]["field"] == "a"
    assert error["data"]["reason"] == "type"


def test_missing_required_argument(initialized_rpc) -> None:
    reply = initialized_rpc("tools/call", {"name": "add", "arguments": {"a": 1}})

    assert reply["error"]["data"] == {"field": "b", "reason": "required"}


def test_unknown_tool_lists_available_names(initialized_rpc) -> None:
    reply = initialized_rpc("tools/call", {"name": "multiply", "arguments": {}})

    assert reply["error"]["code"] == METHOD_NOT_FOUND
    assert reply["error"]["data"] == {"name": "multiply", "available": ["add", "echo", "weighted_mean"]}


def test_unknown_method(initialized_rpc) -> None:
    reply = initialized_rpc("sampling/createMessage")

    assert reply["error"]["code"] == METHOD_NOT_FOUND
    assert reply["error"]["data"] == {"method": "sampling/createMessage"}


def test_domain_error_is_a_successful_exchange(initialized_rpc) -> None:
    reply = initialized_rpc("tools/call", {"name": "weighted_mean", "arguments": {"values": [1, 2], "weights": [1]}})

    assert "error" not in reply
    assert reply["result"]["isError"] is True
    assert reply["result"]["content"][0]["text"] == "values and weights must have the same length"


def test_weighted_mean(initialized_rpc) -> None:
    reply = initialized_rpc(
        "tools/call", {"name": "weighted_mean", "arguments": {"values": [1, 3], "weights": [1, 3]}}
    )

    assert reply["result"]["content"] == [{"type": "text", "text": "2.5"}]


def test_malformed_json_does_not_end_session(engine, session) -> None:
    _initialize(engine, session)

    broken = engine.handle_raw('{"jsonrpc": "2.0", "id": 1, "method": ', session)
    assert broken["id"] is None
    assert broken["error"]["code"] == PARSE_ERROR

    reply = engine.handle_raw(json.dumps({"jsonrpc": "2.0", "id": 2, "method": "ping"}), session)
    assert reply == {"jsonrpc": "2.0", "id": 2, "result": {}}


@pytest.mark.parametrize(
    "message, expected_id",
    [
        ({"jsonrpc": "1.0", "id": 3, "method": "ping"}, 3),
        ({"jsonrpc": "2.0", "id": "abc"}, "abc"),
        ({"jsonrpc": "2.0", "id": 4, "method": 42}, 4),
        ({"jsonrpc": "2.0", "id": {"nested": True}, "method": "ping"}, None),
        ("just a string", None),
    ],
)
def test_invalid_envelope(engine, session, message: Any, expected_id: Any) -> None:
    reply = engine.handle_request(message, session)

    assert reply["error"]["code"] == INVALID_REQUEST
    assert reply["id"] == expected_id


def test_notifications_produce_no_response(engine, session) -> None:
    _initialize(engine, session)

    assert engine.handle_request({"jsonrpc": "2.0", "method": "notifications/initialized"}, session) is None
    assert engine.handle_request({"jsonrpc": "2.0", "method": "notifications/cancelled"}, session) is None
    # Ошибочное уведомление тоже остаётся без ответа.
    assert engine.handle_request({"jsonrpc": "2.0", "method": "no/such/method"}, session) is None


def test_non_object_params_are_rejected(initialized_rpc, engine, session) -> None:
    reply = engine.handle_request({"jsonrpc": "2.0", "id": 9, "method": "tools/list", "params": [1, 2]}, session)

    assert reply["error"]["code"] == INVALID_PARAMS


def test_batch_preserves_order_and_skips_notifications(engine, session) -> None:
    _initialize(engine, session)

    replies = engine.handle_payload(
        [
            {"jsonrpc": "2.0", "id": "b", "method": "tools/call", "params": {"name": "echo", "arguments": {"text": "hi"}}},
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": "a", "method": "ping"},
        ],
        session,
    )

    assert [reply["id"] for reply in replies] == ["b", "a"]
    assert replies[0]["result"]["content"] == [{"type": "text", "text": "hi"}]


def test_empty_batch_is_invalid(engine, session) -> None:
    reply = engine.handle_payload([], session)

    assert reply["error"]["code"] == INVALID_REQUEST


def test_batch_of_notifications_has_no_response(engine, session) -> None:
    _initialize(engine, session)

    assert engine.handle_payload([{"jsonrpc": "2.0", "method": "notifications/initialized"}], session) is None


def test_handler_exception_becomes_internal_error(session) -> None:
    calls: List[Dict[str, Any]] = []

    def _crash(arguments: Dict[str, Any]) -> Any:
        calls.append(arguments)
        raise RuntimeError("boom")

    server = Server("crashy", "Crashing server", "0.0.1")
    server.register(new_tool("crash", "Always fails", schema({"n": property_number(default=1)}), _crash))
    engine = ProtocolEngine(server)
    _initialize(engine, session)

    reply = engine.handle_request(
        {"jsonrpc": "2.0", "id": 5, "method": "tools/call", "params": {"name": "crash"}}, session
    )

    assert reply["error"] == {"code": INTERNAL_ERROR, "message": "Internal error", "data": "boom"}
    assert calls == [{"n": 1}]
    assert engine.handle_request({"jsonrpc": "2.0", "id": 6, "method": "ping"}, session)["result"] == {}


def test_handler_receives_validated_arguments_once(session) -> None:
    calls: List[Dict[str, Any]] = []

    def _record(arguments: Dict[str, Any]) -> Any:
        calls.append(arguments)
        return response(text(arguments["mode"]))

    server = Server("recorder", "Recording server", "0.0.1")
    server.register(new_tool("record", "", schema({"mode": property_string(default="fast")}), _record))
    engine = ProtocolEngine(server)
    _initialize(engine, session)

    reply = engine.handle_request(
        {"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"name": "record", "arguments": {}}}, session
    )

    assert reply["result"]["content"] == [{"type": "text", "text": "fast"}]
    assert calls == [{"mode": "fast"}]


def test_resources_list_and_read(initialized_rpc) -> None:
    listed = initialized_rpc("resources/list")["result"]["resources"]
    assert listed == [
        {
            "name": "server-info",
            "description": "Name and version of this server as JSON.",
            "uri": "mcpr://server/info",
            "mimeType": "application/json",
        }
    ]

    by_name = initialized_rpc("resources/read", {"name": "server-info"})["result"]
    by_uri = initialized_rpc("resources/read", {"uri": "mcpr://server/info"})["result"]

    assert by_name == by_uri
    (entry,) = by_name["contents"]
    assert entry["uri"] == "mcpr://server/info"
    assert entry["mimeType"] == "application/json"
    assert json.loads(entry["text"]) == {"name": "mcpr-example", "version": "0.1.0"}


def test_resources_read_requires_name_or_uri(initialized_rpc) -> None:
    assert initialized_rpc("resources/read", {})["error"]["code"] == INVALID_PARAMS
    assert initialized_rpc("resources/read", {"uri": "mcpr://nope"})["error"]["code"] == METHOD_NOT_FOUND


def test_prompts(initialized_rpc) -> None:
    (prompt,) = initialized_rpc("prompts/list")["result"]["prompts"]
    assert prompt["name"] == "summarize"
    assert prompt["arguments"][0] == {"name": "text", "description": "Text to summarize", "required": True}

    missing = initialized_rpc("prompts/get", {"name": "summarize", "arguments": {"style": "short"}})
    assert missing["error"]["code"] == INVALID_PARAMS
    assert missing["error"]["data"] == {"field": "text", "reason": "required"}

    result = initialized_rpc("prompts/get", {"name": "summarize", "arguments": {"text": "MCP is a protocol."}})["result"]
    assert result["description"] == "Ask the model to summarize a piece of text."
    assert result["messages"] == [
        {
            "role": "user",
            "content": {
                "type": "text",
                "text": "Summarize the following text in a concise way:\n\nMCP is a protocol.",
            },
        }
    ]


def test_shutdown_closes_session(initialized_rpc, session) -> None:
    assert initialized_rpc("shutdown")["result"] == {}
    assert session.closed

    reply = initialized_rpc("ping", request_id=2)
    assert reply["error"]["code"] == INVALID_REQUEST
    assert reply["error"]["message"] == "Session closed"


def test_sessions_are_isolated(engine) -> None:
    first, second = SessionState(), SessionState()
    _initialize(engine, first)

    assert engine.handle_request({"jsonrpc": "2.0", "id": 1, "method": "tools/list"}, first)["result"]
    reply = engine.handle_request({"jsonrpc": "2.0", "id": 1, "method": "tools/list"}, second)
    assert reply["error"]["code"] == SERVER_NOT_INITIALIZED


def test_deeply_nested_message_is_a_parse_error(engine, session) -> None:
    reply = engine.handle_raw("[" * 100_000 + "]" * 100_000, session)

    assert reply["error"]["code"] == PARSE_ERROR
    assert engine.handle_raw(b'{"jsonrpc": "2.0", "id": 1, "method": "ping"}', session)["result"] == {}


def test_invalid_utf8_bytes_are_a_parse_error(engine, session) -> None:
    reply = engine.handle_raw(b"\xff\xfe", session)

    assert reply["error"]["code"] == PARSE_ERROR
    assert reply["id"] is None


@pytest.mark.parametrize("method", ["tools/call", "prompts/get"])
def test_missing_capability_name_is_invalid_params(initialized_rpc, method: str) -> None:
    reply = initialized_rpc(method, {"arguments": {}})

    assert reply["error"]["code"] == INVALID_PARAMS
    assert reply["error"]["data"] == {"field": "name", "reason": "required"}


def test_non_string_capability_name_is_invalid_params(initialized_rpc) -> None:
    reply = initialized_rpc("tools/call", {"name": 42, "arguments": {}})

    assert reply["error"]["code"] == INVALID_PARAMS
    assert reply["error"]["data"]["field"] == "name"
    assert reply["error"]["data"]["reason"] == "type"
