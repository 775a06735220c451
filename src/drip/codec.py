"""
JSON helpers shared by the client and the response models.

The API is not schema-validated locally, so every reader tolerates a missing
or wrong-typed field and returns a default instead of failing.
"""

from __future__ import annotations

import json
import math
from typing import Annotated, Any

from pydantic import BeforeValidator

Metadata = dict[str, str]


def _lookup(data: Any, key: str) -> Any:
    if isinstance(data, dict):
        return data.get(key)
    return None


def as_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def as_int(value: Any, default: int = 0) -> int:
    # bool is an int subclass but never a JSON number
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return default


def as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return float(value)
        except OverflowError:
            return default
    if isinstance(value, float) and math.isfinite(value):
        return value
    return default


def as_bool(value: Any, default: bool = False) -> bool:
    return value if isinstance(value, bool) else default


def as_object_list(value: Any) -> list[dict[str, Any]]:
    """Keep the JSON objects of a list; anything that is not a list is empty."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def read_str(data: Any, key: str, default: str = "") -> str:
    """Read a string field, or ``default`` if missing or not a string."""
    return as_str(_lookup(data, key), default)


def read_int(data: Any, key: str, default: int = 0) -> int:
    """Read an integer field, or ``default`` if missing or not a number."""
    return as_int(_lookup(data, key), default)


def read_float(data: Any, key: str, default: float = 0.0) -> float:
    """Read a float field, or ``default`` if missing or not a number."""
    return as_float(_lookup(data, key), default)


def read_bool(data: Any, key: str, default: bool = False) -> bool:
    """Read a boolean field, or ``default`` if missing or not a boolean."""
    return as_bool(_lookup(data, key), default)


def metadata_to_json(metadata: Metadata | None) -> dict[str, str]:
    """Convert a metadata map to a JSON object with string values."""
    if not metadata:
        return {}
    return {str(key): str(value) for key, value in metadata.items()}


def metadata_from_json(obj: Any) -> Metadata:
    """
    Convert a JSON object to a metadata map.

    String values are copied verbatim. Any other value is stored as its
    compact JSON serialization, so ``{"n": 5}`` becomes ``{"n": "5"}``.
    A non-object input yields an empty map.
    """
    if not isinstance(obj, dict):
        return {}
    result: Metadata = {}
    for key, value in obj.items():
        if isinstance(value, str):
            result[key] = value
        else:
            result[key] = json.dumps(value, separators=(",", ":"))
    return result


# Annotated types for response models. Missing fields use the model default;
# present but wrong-typed fields collapse to the same default.
LenientStr = Annotated[str, BeforeValidator(as_str)]
LenientInt = Annotated[int, BeforeValidator(as_int)]
LenientFloat = Annotated[float, BeforeValidator(as_float)]
LenientBool = Annotated[bool, BeforeValidator(as_bool)]
LenientMetadata = Annotated[Metadata, BeforeValidator(metadata_from_json)]


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


OptionalStr = Annotated[str | None, BeforeValidator(_optional_str)]


def _decimal_str(value: Any) -> str:
    # amounts may arrive as strings or numbers
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(value)
    return ""


AmountStr = Annotated[str, BeforeValidator(_decimal_str)]
