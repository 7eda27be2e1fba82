from __future__ import annotations

import copy

import pytest

from mcpr.core.errors import INVALID_PARAMS
from mcpr.models.schema import (
    Schema,
    SchemaValidationError,
    coerce,
    property_array,
    property_boolean,
    property_enum,
    property_number,
    property_object,
    property_string,
    schema,
    schema_from_json_schema,
    validate,
)


@pytest.fixture
def order_schema() -> Schema:
    return schema(
        {
            "customer": property_object(
                "Customer",
                "Who placed the order",
                {
                    "name": property_string("Name", "Customer name", required=True),
                    "vip": property_boolean("VIP", "Priority customer", default=False),
                },
                required=True,
            ),
            "quantities": property_array("Quantities", "Units per line", property_number(integer=True, minimum=1)),
            "currency": property_enum("Currency", "ISO code", ["EUR", "USD"], default="EUR"),
            "discount": property_number("Discount", "Fraction", minimum=0, maximum=1),
        }
    )


def test_valid_nested_value_passes(order_schema: Schema) -> None:
    validate(order_schema, {"customer": {"name": "Ada"}, "quantities": [1, 2.0], "discount": 0.5})


def test_type_mismatch_reports_field_and_reason() -> None:
    add_schema = schema({"a": property_number(required=True), "b": property_number(required=True)})

    with pytest.raises(SchemaValidationError) as exc_info:
        validate(add_schema, {"a": "x", "b": 3})

    exc = exc_info.value
    assert exc.code == INVALID_PARAMS
    assert exc.data == {"field": "a", "reason": "type", "expected": "number", "actual": "string"}


def test_missing_required_nested_field_uses_dotted_path(order_schema: Schema) -> None:
    with pytest.raises(SchemaValidationError) as exc_info:
        validate(order_schema, {"customer": {"vip": True}})

    assert exc_info.value.field == "customer.name"
    assert exc_info.value.reason == "required"


def test_missing_required_top_level_object(order_schema: Schema) -> None:
    with pytest.raises(SchemaValidationError) as exc_info:
        validate(order_schema, {})
    assert exc_info.value.field == "customer"


def test_array_element_path(order_schema: Schema) -> None:
    with pytest.raises(SchemaValidationError) as exc_info:
        validate(order_schema, {"customer": {"name": "Ada"}, "quantities": [1, 2.5]})

    assert exc_info.value.field == "quantities[1]"
    assert exc_info.value.reason == "type"
    assert exc_info.value.expected == "integer"


def test_numeric_bounds_are_inclusive(order_schema: Schema) -> None:
    validate(order_schema, {"customer": {"name": "Ada"}, "discount": 0})
    validate(order_schema, {"customer": {"name": "Ada"}, "discount": 1})
    with pytest.raises(SchemaValidationError) as exc_info:
        validate(order_schema, {"customer": {"name": "Ada"}, "discount": 1.01})
    assert exc_info.value.reason == "maximum"
    with pytest.raises(SchemaValidationError) as exc_info:
        validate(order_schema, {"customer": {"name": "Ada"}, "quantities": [0]})
    assert exc_info.value.reason == "minimum"


def test_booleans_are_not_numbers() -> None:
    with pytest.raises(SchemaValidationError) as exc_info:
        validate(property_number(), True)
    assert exc_info.value.actual == "boolean"


def test_enum_membership_is_case_sensitive(order_schema: Schema) -> None:
    with pytest.raises(SchemaValidationError) as exc_info:
        validate(order_schema, {"customer": {"name": "Ada"}, "currency": "eur"})
    assert exc_info.value.reason == "enum"
    assert exc_info.value.expected == ["EUR", "USD"]


def test_string_with_enum_values() -> None:
    color = property_string("Color", enum=["red", "green"])
    validate(color, "red")
    with pytest.raises(SchemaValidationError):
        validate(color, "blue")


def test_unknown_keys_and_empty_arrays_pass(order_schema: Schema) -> None:
    validate(order_schema, {"customer": {"name": "Ada", "extra": 1}, "quantities": [], "comment": "hi"})


def test_validate_does_not_mutate_and_coerce_fills_defaults(order_schema: Schema) -> None:
    value = {"customer": {"name": "Ada"}}
    snapshot = copy.deepcopy(value)

    validate(order_schema, value)
    coerced = coerce(order_schema, value)

    assert value == snapshot
    assert coerced == {"customer": {"name": "Ada", "vip": False}, "currency": "EUR"}
    assert coerced["customer"] is not value["customer"]


def test_array_requires_items() -> None:
    with pytest.raises(ValueError):
        property_array("Values", "No item schema")


def test_enum_requires_values() -> None:
    with pytest.raises(ValueError):
        property_enum("Empty", "No values", [])


def test_bounds_must_be_ordered() -> None:
    with pytest.raises(ValueError):
        property_number(minimum=5, maximum=1)


def test_default_must_match_schema() -> None:
    with pytest.raises(ValueError):
        property_number(default="ten")


def test_schema_is_immutable(order_schema: Schema) -> None:
    with pytest.raises(Exception):
        order_schema.description = "changed"  # type: ignore[misc]


def test_to_json_schema_renders_required_and_enum(order_schema: Schema) -> None:
    rendered = order_schema.to_json_schema()

    assert rendered["type"] == "object"
    assert rendered["required"] == ["customer"]
    assert list(rendered["properties"]) == ["customer", "quantities", "currency", "discount"]
    assert rendered["properties"]["currency"] == {
        "type": "string",
        "title": "Currency",
        "description": "ISO code",
        "enum": ["EUR", "USD"],
        "default": "EUR",
    }
    assert rendered["properties"]["quantities"]["items"] == {"type": "integer", "minimum": 1}
    assert rendered["properties"]["customer"]["required"] == ["name"]


def test_schema_from_json_schema_preserves_semantics() -> None:
    parsed = schema_from_json_schema(
        {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path"},
                "max_bytes": {"type": "integer", "minimum": 1, "default": 200_000},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["path"],
        }
    )

    assert parsed.properties["path"].required is True
    assert parsed.properties["max_bytes"].type == "integer"
    assert coerce(parsed, {"path": "notes.md"}) == {"path": "notes.md", "max_bytes": 200_000}
    with pytest.raises(SchemaValidationError):
        validate(parsed, {"max_bytes": 10})


def test_schema_from_json_schema_rejects_unsupported_types() -> None:
    with pytest.raises(ValueError):
        schema_from_json_schema({"anyOf": [{"type": "string"}], "type": "null"})


@pytest.mark.parametrize(
    "property_schema",
    [
        {"anyOf": [{"type": "string"}, {"type": "array", "items": {"type": "object"}}]},
        {"oneOf": [{"type": "string"}, {"type": "number"}]},
        {"description": "No type given"},
    ],
)
def test_schema_from_json_schema_refuses_to_guess_types(property_schema) -> None:
    with pytest.raises(ValueError, match="Unsupported JSON schema"):
        schema_from_json_schema({"type": "object", "properties": {"content": property_schema}})


def test_untyped_object_with_properties_is_an_object() -> None:
    parsed = schema_from_json_schema({"properties": {"q": {"type": "string"}}})

    assert parsed.type == "object"


def test_array_schema_without_items_fails_loudly() -> None:
    broken = Schema.model_construct(type="array", items=None, properties={}, required=False)

    with pytest.raises(ValueError, match="items"):
        validate(broken, [1])
    with pytest.raises(ValueError, match="items"):
        coerce(broken, [])
