"""
Tool catalogue helpers: schema validation and in-memory search/filtering.
"""
from typing import Any, List, Optional, Sequence, Tuple
import json


def validate_schema(text: str) -> Tuple[bool, str]:
    """
    Check that ``text`` is JSON describing an object. Returns (valid, error).

    JSON arrays are refused: a tool input schema is always an object.
    """
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        return False, "Invalid JSON"
    if not isinstance(parsed, dict):
        return False, "Schema must be a JSON object"
    return True, ""


def search_tools(tools: Sequence[Any], query: Optional[str]) -> List[Any]:
    """Case-insensitive substring match on name, display name, description and capability."""
    if not query:
        return list(tools)
    lower = query.lower()
    return [
        t for t in tools
        if lower in t.name.lower()
        or lower in t.display_name.lower()
        or lower in t.description.lower()
        or lower in t.capability_name.lower()
    ]


def filter_by_capability(tools: Sequence[Any], capability: Optional[str]) -> List[Any]:
    if not capability:
        return list(tools)
    return [t for t in tools if t.capability_name == capability]


def filter_by_active(tools: Sequence[Any], active: Optional[str]) -> List[Any]:
    """``"true"`` keeps active tools, ``"false"`` inactive ones, anything else keeps all."""
    if active == "true":
        return [t for t in tools if t.is_active]
    if active == "false":
        return [t for t in tools if not t.is_active]
    return list(tools)
