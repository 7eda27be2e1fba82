"""Описание capability сервера MCP: Tool, Resource, Prompt."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mcpr.models.schema import Schema
from mcpr.responses.content import ToolResult, as_result

Handler = Callable[[Dict[str, Any]], Any]


class CapabilityKind(str, Enum):
    TOOL = "tool"
    RESOURCE = "resource"
    PROMPT = "prompt"


class _Capability(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    handler: Handler = Field(exclude=True, repr=False)

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("capability name must not be empty")
        return value

    def invoke(self, params: Dict[str, Any]) -> ToolResult:
        """Вызывает хэндлер и нормализует ответ; исключения хэндлера не перехватываются."""
        return as_result(self.handler(params))


class Tool(_Capability):
    """Инструмент: вызывается с аргументами, проверенными по `input_schema`."""

    kind: Literal[CapabilityKind.TOOL] = CapabilityKind.TOOL
    input_schema: Schema

    @field_validator("input_schema")
    @classmethod
    def _object_schema(cls, value: Schema) -> Schema:
        if value.type != "object":
            raise ValueError("tool input_schema must be an object schema")
        return value

    def metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema.to_json_schema(),
        }


class Resource(_Capability):
    """Ресурс, адресуемый по имени или URI."""

    kind: Literal[CapabilityKind.RESOURCE] = CapabilityKind.RESOURCE
    uri: str
    mime_type: Optional[str] = None

    def metadata(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "uri": self.uri,
        }
        if self.mime_type:
            payload["mimeType"] = self.mime_type
        return payload


class PromptArgument(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    required: bool = False

    def as_mcp_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "required": self.required}


class Prompt(_Capability):
    """Шаблон промпта с упорядоченным списком аргументов."""

    kind: Literal[CapabilityKind.PROMPT] = CapabilityKind.PROMPT
    arguments: List[PromptArgument] = Field(default_factory=list)

    def metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [argument.as_mcp_dict() for argument in self.arguments],
        }

    def missing_arguments(self, params: Dict[str, Any]) -> List[str]:
        return [argument.name for argument in self.arguments if argument.required and argument.name not in params]


Capability = Union[Tool, Resource, Prompt]


def new_tool(name: str, description: str, input_schema: Schema, handler: Handler) -> Tool:
    return Tool(name=name, description=description, input_schema=input_schema, handler=handler)


def new_resource(
    name: str,
    description: str,
    uri: str,
    handler: Handler,
    mime_type: Optional[str] = None,
) -> Resource:
    return Resource(name=name, description=description, uri=uri, mime_type=mime_type, handler=handler)


def new_prompt(
    name: str,
    description: str,
    handler: Handler,
    arguments: Optional[List[Union[PromptArgument, Dict[str, Any]]]] = None,
) -> Prompt:
    parsed = [
        argument if isinstance(argument, PromptArgument) else PromptArgument.model_validate(argument)
        for argument in arguments or []
    ]
    return Prompt(name=name, description=description, arguments=parsed, handler=handler)


__all__ = [
    "Capability",
    "CapabilityKind",
    "Handler",
    "Prompt",
    "PromptArgument",
    "Resource",
    "Tool",
    "new_prompt",
    "new_resource",
    "new_tool",
]
