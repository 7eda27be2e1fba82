"""Адаптер сторонних описаний инструментов в формате function schema.

Принимает определения вида ``{"type": "function", "function": {...}}`` (или
внутренний объект ``{"name", "description", "parameters"}``) и приводит их
к обычному `Tool` перед регистрацией.
"""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mcpr.capabilities.models import Handler, Tool
from mcpr.models.schema import schema_from_json_schema


class FunctionToolDef(BaseModel):
    """Описание инструмента в формате function schema вместе с хэндлером."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    handler: Handler = Field(exclude=True, repr=False)

    @model_validator(mode="before")
    @classmethod
    def _unwrap_function(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("type") == "function" and isinstance(data.get("function"), dict):
            unwrapped = dict(data["function"])
            if "handler" in data:
                unwrapped["handler"] = data["handler"]
            return unwrapped
        return data


def tool_from_function_def(definition: FunctionToolDef) -> Tool:
    return Tool(
        name=definition.name,
        description=definition.description,
        input_schema=schema_from_json_schema(definition.parameters or {"type": "object"}),
        handler=definition.handler,
    )


__all__ = ["FunctionToolDef", "tool_from_function_def"]
