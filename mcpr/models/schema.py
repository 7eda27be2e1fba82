"""Модель схемы аргументов capability и её валидация.

Схема описывает допустимую форму входа инструмента: примитивный тип,
вложенные `items`/`properties`, перечисления и числовые границы. Схемы
строятся один раз при описании сервера и дальше не меняются (frozen).
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mcpr.core.errors import INVALID_PARAMS, McpError

SchemaKind = Literal["string", "number", "integer", "boolean", "array", "object", "enum"]
Number = Union[int, float]


class SchemaValidationError(McpError):
    """Значение не соответствует схеме (-32602, детали поля в `data`)."""

    def __init__(
        self,
        field: str,
        reason: str,
        *,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        data: Dict[str, Any] = {"field": field, "reason": reason}
        if expected is not None:
            data["expected"] = expected
        if actual is not None:
            data["actual"] = actual
        super().__init__("Invalid params", code=INVALID_PARAMS, data=data)
        self.field = field
        self.reason = reason
        self.expected = expected
        self.actual = actual

    def __str__(self) -> str:
        where = self.field or "<root>"
        if self.reason == "required":
            return f"'{where}' is required"
        return f"'{where}' failed {self.reason} check (expected {self.expected!r}, got {self.actual!r})"


class Schema(BaseModel):
    """Узел схемы: тип плюс атрибуты, специфичные для типа."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: SchemaKind
    title: Optional[str] = None
    description: Optional[str] = None
    required: bool = False
    items: Optional["Schema"] = None
    properties: Dict[str, "Schema"] = Field(default_factory=dict)
    enum_values: Optional[List[str]] = Field(default=None, alias="enum")
    default: Any = None
    minimum: Optional[Number] = None
    maximum: Optional[Number] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "Schema":
        kind = self.type
        if kind == "array" and self.items is None:
            raise ValueError("array schema requires 'items'")
        if kind != "array" and self.items is not None:
            raise ValueError(f"'items' is only allowed on array schemas, not {kind}")
        if kind != "object" and self.properties:
            raise ValueError(f"'properties' is only allowed on object schemas, not {kind}")
        if kind == "enum" and not self.enum_values:
            raise ValueError("enum schema requires at least one value")
        if self.enum_values is not None:
            if kind not in {"string", "enum"}:
                raise ValueError(f"'enum' is only allowed on string/enum schemas, not {kind}")
            if not self.enum_values:
                raise ValueError("'enum' must contain at least one value")
        has_bounds = self.minimum is not None or self.maximum is not None
        if has_bounds and kind not in {"number", "integer"}:
            raise ValueError(f"'minimum'/'maximum' are only allowed on numeric schemas, not {kind}")
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ValueError("'minimum' must not exceed 'maximum'")
        if self.default is not None:
            try:
                _check(self, self.default, "default")
            except SchemaValidationError as exc:
                raise ValueError(f"default value does not match schema: {exc}") from exc
        return self

    def to_json_schema(self) -> Dict[str, Any]:
        """JSON Schema, публикуемая в `tools/list`."""
        payload: Dict[str, Any] = {"type": "string" if self.type == "enum" else self.type}
        if self.title is not None:
            payload["title"] = self.title
        if self.description is not None:
            payload["description"] = self.description
        if self.enum_values is not None:
            payload["enum"] = list(self.enum_values)
        if self.items is not None:
            payload["items"] = self.items.to_json_schema()
        if self.type == "object":
            payload["properties"] = {name: sub.to_json_schema() for name, sub in self.properties.items()}
            required = [name for name, sub in self.properties.items() if sub.required]
            if required:
                payload["required"] = required
        if self.default is not None:
            payload["default"] = self.default
        if self.minimum is not None:
            payload["minimum"] = self.minimum
        if self.maximum is not None:
            payload["maximum"] = self.maximum
        return payload


Schema.model_rebuild()


# =========================
# Валидация
# =========================


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _items_of(schema: Schema) -> Schema:
    if schema.items is None:
        raise ValueError("array schema requires 'items'")
    return schema.items


def _type_error(path: str, expected: str, value: Any) -> SchemaValidationError:
    return SchemaValidationError(path, "type", expected=expected, actual=_json_type(value))


def _check(schema: Schema, value: Any, path: str) -> None:
    kind = schema.type
    if kind in {"string", "enum"}:
        if not isinstance(value, str):
            raise _type_error(path, "string", value)
        if schema.enum_values is not None and value not in schema.enum_values:
            raise SchemaValidationError(path, "enum", expected=list(schema.enum_values), actual=value)
    elif kind in {"number", "integer"}:
        if not _is_number(value):
            raise _type_error(path, kind, value)
        if kind == "integer" and isinstance(value, float) and not value.is_integer():
            raise _type_error(path, "integer", value)
        if schema.minimum is not None and value < schema.minimum:
            raise SchemaValidationError(path, "minimum", expected=schema.minimum, actual=value)
        if schema.maximum is not None and value > schema.maximum:
            raise SchemaValidationError(path, "maximum", expected=schema.maximum, actual=value)
    elif kind == "boolean":
        if not isinstance(value, bool):
            raise _type_error(path, "boolean", value)
    elif kind == "array":
        if not isinstance(value, (list, tuple)):
            raise _type_error(path, "array", value)
        item_schema = _items_of(schema)
        for index, item in enumerate(value):
            _check(item_schema, item, f"{path}[{index}]")
    elif kind == "object":
        if not isinstance(value, Mapping):
            raise _type_error(path, "object", value)
        for name, sub in schema.properties.items():
            child = _join(path, name)
            if name not in value:
                if sub.required:
                    raise SchemaValidationError(child, "required")
                continue
            _check(sub, value[name], child)


def validate(schema: Schema, value: Any) -> None:
    """Проверяет `value` по схеме; бросает SchemaValidationError при несоответствии.

    Функция чистая: вход не изменяется. Неизвестные ключи объектов
    пропускаются без проверки.
    """
    _check(schema, value, "")


def _fill_defaults(schema: Schema, value: Any) -> Any:
    if schema.type == "object" and isinstance(value, Mapping):
        result = dict(value)
        for name, sub in schema.properties.items():
            if name in result:
                result[name] = _fill_defaults(sub, result[name])
            elif sub.default is not None:
                result[name] = copy.deepcopy(sub.default)
        return result
    if schema.type == "array" and isinstance(value, (list, tuple)):
        item_schema = _items_of(schema)
        return [_fill_defaults(item_schema, item) for item in value]
    return value


def coerce(schema: Schema, value: Any) -> Any:
    """Валидирует и возвращает копию значения с подставленными default-полями."""
    validate(schema, value)
    return _fill_defaults(schema, copy.deepcopy(value))


# =========================
# Конструкторы
# =========================


def schema(
    properties: Optional[Dict[str, Schema]] = None,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Schema:
    """Корневая object-схема входа инструмента."""
    return Schema(type="object", title=title, description=description, properties=properties or {})


def property_string(
    title: Optional[str] = None,
    description: Optional[str] = None,
    required: bool = False,
    *,
    enum: Optional[List[str]] = None,
    default: Optional[str] = None,
) -> Schema:
    return Schema(
        type="string",
        title=title,
        description=description,
        required=required,
        enum_values=enum,
        default=default,
    )


def property_number(
    title: Optional[str] = None,
    description: Optional[str] = None,
    required: bool = False,
    *,
    integer: bool = False,
    minimum: Optional[Number] = None,
    maximum: Optional[Number] = None,
    default: Optional[Number] = None,
) -> Schema:
    return Schema(
        type="integer" if integer else "number",
        title=title,
        description=description,
        required=required,
        minimum=minimum,
        maximum=maximum,
        default=default,
    )


def property_boolean(
    title: Optional[str] = None,
    description: Optional[str] = None,
    required: bool = False,
    *,
    default: Optional[bool] = None,
) -> Schema:
    return Schema(type="boolean", title=title, description=description, required=required, default=default)


def property_array(
    title: Optional[str] = None,
    description: Optional[str] = None,
    items: Optional[Schema] = None,
    required: bool = False,
) -> Schema:
    return Schema(type="array", title=title, description=description, items=items, required=required)


def property_object(
    title: Optional[str] = None,
    description: Optional[str] = None,
    properties: Optional[Dict[str, Schema]] = None,
    required: bool = False,
) -> Schema:
    return Schema(
        type="object",
        title=title,
        description=description,
        properties=properties or {},
        required=required,
    )


def property_enum(
    title: Optional[str] = None,
    description: Optional[str] = None,
    values: Optional[List[str]] = None,
    required: bool = False,
    *,
    default: Optional[str] = None,
) -> Schema:
    return Schema(
        type="enum",
        title=title,
        description=description,
        enum_values=values,
        required=required,
        default=default,
    )


_SUPPORTED_JSON_TYPES = {"string", "number", "integer", "boolean", "array", "object"}


def schema_from_json_schema(raw: Mapping[str, Any], *, required: bool = False) -> Schema:
    """Строит Schema из JSON Schema (формат сторонних описаний инструментов)."""
    if not isinstance(raw, Mapping):
        raise ValueError(f"JSON schema must be an object, got {_json_type(raw)}")
    combinators = [key for key in ("anyOf", "oneOf", "allOf", "not") if key in raw]
    if combinators:
        raise ValueError(f"Unsupported JSON schema keyword(s): {', '.join(combinators)}")
    kind = raw.get("type")
    if kind is None:
        if "properties" not in raw:
            raise ValueError(f"Unsupported JSON schema without 'type': {dict(raw)!r}")
        kind = "object"
    if isinstance(kind, list):
        candidates = [item for item in kind if item != "null"]
        kind = candidates[0] if candidates else None
    if kind not in _SUPPORTED_JSON_TYPES:
        raise ValueError(f"Unsupported JSON schema type: {raw.get('type')!r}")

    enum_values = raw.get("enum")
    if enum_values is not None:
        if kind != "string" or not all(isinstance(item, str) for item in enum_values):
            raise ValueError("Only string enums are supported")
        enum_values = list(enum_values)

    items: Optional[Schema] = None
    if kind == "array":
        raw_items = raw.get("items")
        if not isinstance(raw_items, Mapping):
            raise ValueError("array schema without 'items' is not supported")
        items = schema_from_json_schema(raw_items)

    properties: Dict[str, Schema] = {}
    if kind == "object":
        required_names = set(raw.get("required") or [])
        for name, sub in (raw.get("properties") or {}).items():
            properties[name] = schema_from_json_schema(sub, required=name in required_names)

    return Schema(
        type=kind,
        title=raw.get("title"),
        description=raw.get("description"),
        required=required,
        items=items,
        properties=properties,
        enum_values=enum_values,
        default=raw.get("default"),
        minimum=raw.get("minimum"),
        maximum=raw.get("maximum"),
    )


__all__ = [
    "Schema",
    "SchemaKind",
    "SchemaValidationError",
    "coerce",
    "property_array",
    "property_boolean",
    "property_enum",
    "property_number",
    "property_object",
    "property_string",
    "schema",
    "schema_from_json_schema",
    "validate",
]
