# src/durascope/core/formatters.py
"""Serialization helpers for MCP tool results.

Converts the frozen contract dataclasses (with datetime, timedelta and
enum fields) into JSON-serializable structures.
"""

import json
import math
from dataclasses import fields, is_dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any


def serialize_value(obj: Any) -> Any:
    """Convert datetimes and durations to strings, recursively.

    Datetimes become ISO 8601 strings. Durations become total seconds.

    Raises:
        ValueError: If NaN or Infinity values are encountered
    """
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Non-finite float {obj!r} cannot be serialized to JSON")

    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, dict):
        return {k: serialize_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [serialize_value(item) for item in obj]
    return obj


def dataclass_to_dict(obj: Any) -> Any:
    """Convert a dataclass (or list of dataclasses) to a JSON-serializable dict.

    Handles nested dataclasses, lists of dataclasses, enums, datetimes and
    timedeltas. ``None`` stays ``None`` (a missing point lookup is not an
    empty object).

    Slotted dataclasses have no ``__dict__``, so fields are read through
    ``dataclasses.fields()``.
    """
    if obj is None:
        return None
    if isinstance(obj, list):
        return [dataclass_to_dict(item) for item in obj]
    if is_dataclass(obj) and not isinstance(obj, type):
        result: dict[str, Any] = {}
        for f in fields(obj):
            value = getattr(obj, f.name)
            if is_dataclass(value) and not isinstance(value, type):
                result[f.name] = dataclass_to_dict(value)
            elif isinstance(value, list):
                result[f.name] = [dataclass_to_dict(item) for item in value]
            else:
                result[f.name] = serialize_value(value)
        return result
    return serialize_value(obj)


def to_json(obj: Any) -> str:
    """Render a tool result as indented JSON."""
    return json.dumps(dataclass_to_dict(obj), indent=2, allow_nan=False)


def _reject_nonfinite_constant(value: str) -> None:
    raise ValueError(f"Non-standard JSON constant {value!r}")


def detect_content(text: str) -> tuple[str, Any]:
    """Best-effort content sniffing for large-message payloads.

    NaN/Infinity literals are not JSON; such payloads are returned as text.
    So are documents nested too deeply for the decoder.

    Returns:
        ("application/json", parsed) when the text is a JSON document,
        otherwise ("text/plain", text)
    """
    try:
        return "application/json", json.loads(text, parse_constant=_reject_nonfinite_constant)
    except (ValueError, RecursionError):
        return "text/plain", text
