"""Translate MCP tool input schemas into Gemini function-declaration schemas.

MCP servers describe tool parameters with JSON Schema. Gemini accepts a
narrower dialect: upper-case type names, a single type per node, string-only
enums, and no boolean ``true``/``false`` schemas. Anything that cannot be
expressed is dropped one property at a time with a
``SchemaTranslationWarning``; translation itself never fails.
"""

import json
import warnings
from typing import Any, Optional

from .errors import SchemaTranslationWarning


_TYPE_MAP = {
    "string": "STRING",
    "number": "NUMBER",
    "integer": "INTEGER",
    "boolean": "BOOLEAN",
    "array": "ARRAY",
    "object": "OBJECT",
}


def _warn(message: str) -> None:
    warnings.warn(message, SchemaTranslationWarning, stacklevel=3)


def empty_object_schema() -> dict:
    """The parameterless schema used for degraded top-level input."""
    return {"type": "OBJECT", "properties": {}, "required": []}


def resolve_type(declared: Any) -> Optional[str]:
    """Map a JSON Schema ``type`` to a Gemini type name.

    A list of candidate types resolves to its first non-null member.
    Returns None for ``null`` and for anything outside the fixed table.
    """
    if isinstance(declared, list):
        candidates = [t for t in declared if t is not None and t != "null"]
        return resolve_type(candidates[0]) if candidates else None

    if declared == "null":
        return None

    gemini_type = _TYPE_MAP.get(declared) if isinstance(declared, str) else None
    if gemini_type is None:
        _warn(f"Unsupported schema type: {declared!r}")
    return gemini_type


def _enum_values(values: list) -> list[str]:
    return [v if isinstance(v, str) else json.dumps(v) for v in values]


def _required(required: Any, properties: dict) -> list[str]:
    # Names whose property was dropped are dropped from required as well
    if not isinstance(required, list):
        return []
    return [name for name in required if isinstance(name, str) and name in properties]


def translate_property(name: str, node: Any) -> Optional[dict]:
    """Translate one property schema, or return None to drop it."""
    if isinstance(node, bool):
        _warn(f'Boolean schema for property "{name}" has no Gemini equivalent. Skipping.')
        return None
    if not isinstance(node, dict):
        _warn(f'Schema for property "{name}" is not an object. Skipping.')
        return None

    gemini_type = resolve_type(node.get("type"))
    if gemini_type is None:
        _warn(f'Could not map type {node.get("type")!r} for property "{name}". Skipping property.')
        return None

    prop: dict = {
        "type": gemini_type,
        "description": node.get("description") or f"Parameter {name}",
    }

    enum = node.get("enum")
    if gemini_type == "STRING" and isinstance(enum, list):
        prop["enum"] = _enum_values(enum)

    if gemini_type == "ARRAY":
        items = node.get("items")
        if isinstance(items, dict):
            item_schema = translate_property(f"{name}[]", items)
            if item_schema is not None:
                prop["items"] = item_schema
        elif items is not None:
            _warn(f'Array property "{name}" has an unsupported "items" schema. Items will be generic.')
    elif gemini_type == "OBJECT":
        nested = node.get("properties")
        if isinstance(nested, dict):
            prop["properties"] = translate_properties(nested)
            if "required" in node:
                prop["required"] = _required(node["required"], prop["properties"])

    return prop


def translate_properties(properties: Any) -> dict:
    """Translate a ``properties`` mapping, dropping entries that fail."""
    if not isinstance(properties, dict):
        return {}

    translated = {}
    for name, node in properties.items():
        prop = translate_property(name, node)
        if prop is not None:
            translated[name] = prop
    return translated


def translate_schema(schema: Any) -> dict:
    """Translate an object-typed input schema into a Gemini parameter schema.

    Args:
        schema: A JSON Schema node: a dict or a boolean schema.

    Returns:
        ``{"type": "OBJECT", "properties": {...}, "required": [...]}``. Input
        that is not an object schema yields the empty parameter schema.
    """
    if isinstance(schema, bool):
        _warn("Boolean schema has no Gemini parameter equivalent. Using an empty object schema.")
        return empty_object_schema()

    if not isinstance(schema, dict) or schema.get("type") != "object":
        _warn("Input schema is not of type 'object'. Using an empty object schema.")
        return empty_object_schema()

    properties = translate_properties(schema.get("properties"))
    return {
        "type": "OBJECT",
        "properties": properties,
        "required": _required(schema.get("required"), properties),
    }
