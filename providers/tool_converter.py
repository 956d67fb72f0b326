"""Convert canonical tool definitions to each provider's wire format.

Also hosts the tool-name codec: registry names use ``/`` as a category
separator, but provider function names must match ``^[a-zA-Z0-9_-]+$``.
"""
from __future__ import annotations

import copy
import re
from typing import Any, Dict, Iterable, List

from chat.errors import NameCollisionError
from chat.models import ToolDefinition

SEPARATOR = "/"
SEPARATOR_SUBSTITUTE = "__"
MAX_TOOL_NAME_LENGTH = 128

_FORBIDDEN = re.compile(r"[^A-Za-z0-9_-]")


# ------------------------------------------------------------------------------
# Name codec
# ------------------------------------------------------------------------------

def encode_tool_name(name: str, max_length: int = MAX_TOOL_NAME_LENGTH) -> str:
    """``cat/action-name`` -> ``cat__action-name``; other forbidden chars become ``_``."""
    wire = name.replace(SEPARATOR, SEPARATOR_SUBSTITUTE)
    wire = _FORBIDDEN.sub("_", wire)
    return wire[:max_length]


def decode_tool_name(wire_name: str) -> str:
    return wire_name.replace(SEPARATOR_SUBSTITUTE, SEPARATOR)


def validate_tool_names(
    tools: Iterable[ToolDefinition | str],
    max_length: int = MAX_TOOL_NAME_LENGTH,
) -> Dict[str, str]:
    """Check every registered name survives the codec; return {wire_name: name}.

    Raises NameCollisionError when two names share a wire name or a name
    does not decode back to itself.
    """
    seen: Dict[str, str] = {}
    for tool in tools:
        name = tool if isinstance(tool, str) else tool.name
        wire = encode_tool_name(name, max_length)
        if wire in seen and seen[wire] != name:
            raise NameCollisionError([seen[wire], name], wire)
        if decode_tool_name(wire) != name:
            raise NameCollisionError([name], wire)
        seen[wire] = name
    return seen


# ------------------------------------------------------------------------------
# Schema helpers
# ------------------------------------------------------------------------------

def _empty_object_schema() -> Dict[str, Any]:
    return {"type": "object", "properties": {}}


def _sanitize_for_gemini(schema: dict) -> dict:
    """Recursively clean a JSON Schema for Gemini compatibility.

    Handles:
    - anyOf-with-null -> collapses to the non-null type
    - additionalProperties -> removed (Gemini rejects unknown fields)
    """
    schema = copy.deepcopy(schema)

    schema.pop("additionalProperties", None)

    if "anyOf" in schema:
        non_null = [s for s in schema["anyOf"] if s.get("type") != "null"]
        if len(non_null) == 1:
            # Merge the non-null type back, preserving description/default
            merged = {k: v for k, v in schema.items() if k != "anyOf"}
            merged.update(non_null[0])
            return _sanitize_for_gemini(merged)
        # Gemini doesn't support anyOf at all; keep the first non-null branch
        schema.pop("anyOf")
        if non_null:
            schema.update(non_null[0])

    if "properties" in schema:
        for key, prop in schema["properties"].items():
            schema["properties"][key] = _sanitize_for_gemini(prop)

    if "items" in schema and isinstance(schema["items"], dict):
        schema["items"] = _sanitize_for_gemini(schema["items"])

    return schema


# ------------------------------------------------------------------------------
# Converters
# ------------------------------------------------------------------------------

def to_anthropic(tools: List[ToolDefinition], max_length: int = MAX_TOOL_NAME_LENGTH) -> List[dict]:
    """Anthropic: {"name", "description", "input_schema": {JSON Schema}}"""
    return [
        {
            "name": encode_tool_name(tool.name, max_length),
            "description": tool.description,
            "input_schema": tool.input_schema or _empty_object_schema(),
        }
        for tool in tools
    ]


def to_openai(tools: List[ToolDefinition], max_length: int = MAX_TOOL_NAME_LENGTH) -> List[dict]:
    """OpenAI: {"type": "function", "function": {"name", "description", "parameters"}}"""
    return [
        {
            "type": "function",
            "function": {
                "name": encode_tool_name(tool.name, max_length),
                "description": tool.description,
                "parameters": tool.input_schema or _empty_object_schema(),
            },
        }
        for tool in tools
    ]


def to_gemini(tools: List[ToolDefinition], max_length: int = MAX_TOOL_NAME_LENGTH) -> List[dict]:
    """Convert tool definitions to Gemini function declarations.

    Returns the bare declaration list; the adapter wraps it in
    ``{"functionDeclarations": [...]}``.
    """
    return [
        {
            "name": encode_tool_name(tool.name, max_length),
            "description": tool.description,
            "parameters": _sanitize_for_gemini(tool.input_schema or _empty_object_schema()),
        }
        for tool in tools
    ]
