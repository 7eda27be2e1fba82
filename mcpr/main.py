"""Пример MCP-сервера и ASGI-приложение для uvicorn (`mcpr.main:app`).

Сервер регистрирует несколько демонстрационных capability; тот же объект
обслуживается и по stdio (`mcpr serve --transport stdio`), и по HTTP.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from mcpr.capabilities.models import new_prompt, new_resource, new_tool
from mcpr.capabilities.registry import Server
from mcpr.core.config import LOG_LEVEL
from mcpr.models.schema import property_array, property_number, property_string, schema
from mcpr.responses.content import ToolResult, error, response, text
from mcpr.transports.http import create_app

logger = logging.getLogger("mcpr")
if not logger.handlers:
    logging.basicConfig(level=LOG_LEVEL)


# =========================
# Хэндлеры
# =========================


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _handle_add(arguments: Dict[str, Any]) -> ToolResult:
    return response(text(_format_number(arguments["a"] + arguments["b"])))


def _handle_echo(arguments: Dict[str, Any]) -> ToolResult:
    return response(text(arguments["text"]))


def _handle_weighted_mean(arguments: Dict[str, Any]) -> ToolResult:
    values: List[float] = arguments["values"]
    weights: List[float] = arguments.get("weights") or [1.0] * len(values)
    # Доменная ошибка: обмен JSON-RPC успешен, но результат помечен isError.
    if len(values) != len(weights):
        return response(error("values and weights must have the same length"))
    if not values:
        return response(error("values must not be empty"))
    total = sum(weights)
    if total == 0:
        return response(error("weights must not sum to zero"))
    mean = sum(value * weight for value, weight in zip(values, weights)) / total
    return response(text(_format_number(mean)))


def _handle_summarize(arguments: Dict[str, Any]) -> ToolResult:
    style = arguments.get("style") or "concise"
    return response(text(f"Summarize the following text in a {style} way:\n\n{arguments['text']}"))


# =========================
# Сервер
# =========================


def create_example_server() -> Server:
    server = Server(
        name="mcpr-example",
        description="Example MCP server exposing arithmetic tools, a resource and a prompt.",
        version="0.1.0",
    )
    server.register(
        new_tool(
            name="add",
            description="Add two numbers.",
            input_schema=schema(
                {
                    "a": property_number("a", "First number", required=True),
                    "b": property_number("b", "Second number", required=True),
                }
            ),
            handler=_handle_add,
        )
    )
    server.register(
        new_tool(
            name="echo",
            description="Echo text back.",
            input_schema=schema({"text": property_string("Text", "Text to echo", required=True)}),
            handler=_handle_echo,
        )
    )
    server.register(
        new_tool(
            name="weighted_mean",
            description="Weighted arithmetic mean of a list of numbers.",
            input_schema=schema(
                {
                    "values": property_array("Values", "Numbers to average", property_number(), required=True),
                    "weights": property_array("Weights", "Optional weights, same length as values", property_number()),
                }
            ),
            handler=_handle_weighted_mean,
        )
    )
    server.register(
        new_resource(
            name="server-info",
            description="Name and version of this server as JSON.",
            uri="mcpr://server/info",
            mime_type="application/json",
            handler=lambda params: response(text(json.dumps(server.server_info))),
        )
    )
    server.register(
        new_prompt(
            name="summarize",
            description="Ask the model to summarize a piece of text.",
            arguments=[
                {"name": "text", "description": "Text to summarize", "required": True},
                {"name": "style", "description": "Summary style, e.g. concise or detailed"},
            ],
            handler=_handle_summarize,
        )
    )
    return server


SERVER = create_example_server()
app = create_app(SERVER)
