"""Tests for MCP JSON Schema -> Gemini schema translation."""

import copy

import pytest

from switchboard.errors import SchemaTranslationWarning
from switchboard.schema import (
    empty_object_schema,
    resolve_type,
    translate_property,
    translate_schema,
)


class TestResolveType:
    """Tests for JSON Schema type -> Gemini type mapping."""

    @pytest.mark.parametrize("declared, expected", [
        ("string", "STRING"),
        ("number", "NUMBER"),
        ("integer", "INTEGER"),
        ("boolean", "BOOLEAN"),
        ("array", "ARRAY"),
        ("object", "OBJECT"),
    ])
    def test_fixed_table(self, declared, expected):
        assert resolve_type(declared) == expected

    def test_type_list_picks_first_non_null(self):
        assert resolve_type(["null", "integer", "string"]) == "INTEGER"

    def test_null_only_is_unsupported(self):
        assert resolve_type("null") is None
        assert resolve_type(["null"]) is None

    def test_unknown_type_warns(self):
        with pytest.warns(SchemaTranslationWarning):
            assert resolve_type("date") is None


class TestTranslateSchema:
    """Tests for top-level schema translation."""

    def test_boolean_schema_gives_empty_object(self):
        with pytest.warns(SchemaTranslationWarning):
            assert translate_schema(True) == empty_object_schema()
        with pytest.warns(SchemaTranslationWarning):
            assert translate_schema(False) == empty_object_schema()

    def test_non_object_type_gives_empty_object(self):
        with pytest.warns(SchemaTranslationWarning):
            assert translate_schema({"type": "string"}) == empty_object_schema()

    def test_missing_type_gives_empty_object(self):
        with pytest.warns(SchemaTranslationWarning):
            assert translate_schema({"properties": {"a": {"type": "string"}}}) == {
                "type": "OBJECT", "properties": {}, "required": [],
            }

    def test_number_pair(self):
        schema = {
            "type": "object",
            "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
            "required": ["a", "b"],
        }
        assert translate_schema(schema) == {
            "type": "OBJECT",
            "properties": {
                "a": {"type": "NUMBER", "description": "Parameter a"},
                "b": {"type": "NUMBER", "description": "Parameter b"},
            },
            "required": ["a", "b"],
        }

    def test_description_carried(self):
        schema = {
            "type": "object",
            "properties": {"city": {"type": "string", "description": "City name"}},
        }
        result = translate_schema(schema)
        assert result["properties"]["city"]["description"] == "City name"
        assert result["required"] == []

    def test_dropped_property_keeps_siblings(self):
        schema = {
            "type": "object",
            "properties": {
                "nothing": {"type": "null"},
                "anything": True,
                "weird": {"type": "date"},
                "name": {"type": "string"},
            },
            "required": ["nothing", "name"],
        }
        with pytest.warns(SchemaTranslationWarning):
            result = translate_schema(schema)

        assert list(result["properties"]) == ["name"]
        assert result["required"] == ["name"]

    def test_keys_are_subset_of_input(self):
        schema = {
            "type": "object",
            "properties": {
                "a": {"type": ["string", "null"]},
                "b": {"type": "null"},
                "c": {"type": "array", "items": {"type": "integer"}},
                "d": {"type": "object", "properties": {"x": {"type": "boolean"}}},
            },
        }
        with pytest.warns(SchemaTranslationWarning):
            result = translate_schema(schema)
        assert set(result["properties"]) <= set(schema["properties"])
        assert set(result["properties"]) == {"a", "c", "d"}

    def test_input_not_mutated(self):
        schema = {
            "type": "object",
            "properties": {
                "tags": {"type": "array", "items": {"type": "string", "enum": ["x", "y"]}},
            },
            "required": ["tags"],
        }
        before = copy.deepcopy(schema)
        translate_schema(schema)
        assert schema == before


class TestTranslateProperty:
    """Tests for individual property translation."""

    def test_enum_only_on_strings(self):
        prop = translate_property("level", {"type": "number", "enum": [1, 2, 3]})
        assert prop == {"type": "NUMBER", "description": "Parameter level"}

    def test_string_enum_coerced(self):
        prop = translate_property("mode", {"type": "string", "enum": ["fast", 2, True]})
        assert prop["enum"] == ["fast", "2", "true"]

    def test_multi_type_uses_first_non_null(self):
        prop = translate_property("count", {"type": ["null", "integer"]})
        assert prop["type"] == "INTEGER"

    def test_array_items_recursed(self):
        prop = translate_property("ids", {
            "type": "array",
            "items": {"type": "integer", "description": "An id"},
        })
        assert prop["type"] == "ARRAY"
        assert prop["items"] == {"type": "INTEGER", "description": "An id"}

    def test_tuple_items_left_unset(self):
        with pytest.warns(SchemaTranslationWarning):
            prop = translate_property("pair", {
                "type": "array",
                "items": [{"type": "string"}, {"type": "number"}],
            })
        assert prop["type"] == "ARRAY"
        assert "items" not in prop

    def test_array_without_items(self):
        prop = translate_property("bag", {"type": "array"})
        assert prop == {"type": "ARRAY", "description": "Parameter bag"}

    def test_nested_objects(self):
        prop = translate_property("filter", {
            "type": "object",
            "properties": {
                "range": {
                    "type": "object",
                    "properties": {
                        "low": {"type": "number"},
                        "high": {"type": "number"},
                        "unit": {"type": "null"},
                    },
                    "required": ["low", "unit"],
                },
            },
            "required": ["range"],
        })
        assert prop["type"] == "OBJECT"
        assert prop["required"] == ["range"]
        inner = prop["properties"]["range"]
        assert set(inner["properties"]) == {"low", "high"}
        assert inner["required"] == ["low"]

    def test_object_without_properties(self):
        prop = translate_property("meta", {"type": "object"})
        assert prop == {"type": "OBJECT", "description": "Parameter meta"}

    def test_boolean_property_dropped(self):
        with pytest.warns(SchemaTranslationWarning):
            assert translate_property("any", True) is None
