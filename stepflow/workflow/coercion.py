"""
Schema-driven coercion of tool outputs.

Every function here is total: whatever comes in, a value of the shape the
schema declares comes out. Conversions are lossy and best-effort; nothing
raises on malformed input.
"""

import json
import logging
import math
from typing import Any, Dict

from .models import Schema, ValueType

logger = logging.getLogger(__name__)

ARRAY_JOIN_DELIMITER = "\n"


def coerce(value: Any, schema: Schema) -> Any:
    """Convert ``value`` into the shape demanded by ``schema``."""
    if schema.is_array:
        items = value if isinstance(value, list) else [value]
        return [coerce_element(item, schema.type) for item in items]
    return coerce_element(value, schema.type)


def coerce_array_element(value: Any, schema: Schema) -> Any:
    """Convert a single value to the element type of an array schema."""
    if not schema.is_array:
        return value
    return coerce_element(value, schema.type)


def coerce_element(value: Any, value_type: str) -> Any:
    if value_type == ValueType.STRING.value:
        return to_string(value)
    if value_type == ValueType.NUMBER.value:
        return to_number(value)
    if value_type == ValueType.BOOLEAN.value:
        return to_boolean(value)
    if value_type == ValueType.OBJECT.value:
        return to_object(value)
    # files and unknown types pass through untouched
    return value


def to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ARRAY_JOIN_DELIMITER.join(to_string(item) for item in value)
    if isinstance(value, dict):
        return to_json(value)
    return stringify_scalar(value)


def to_json(value: Any) -> str:
    """Compact JSON text, the form objects take when stored as strings."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def stringify_scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_number(text: str) -> float:
    """Parse a numeric string; returns NaN when it is not a number.

    Blank strings parse as 0.
    """
    text = text.strip()
    if not text:
        return 0
    if "_" in text:
        return math.nan
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return math.nan


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any):
    if is_number(value):
        return 0 if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, str):
        number = parse_number(value)
        return 0 if math.isnan(number) else number
    if isinstance(value, list) and value:
        return to_number(value[0])
    return 0


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() == "true"
    if isinstance(value, list):
        return len(value) > 0
    if is_number(value):
        return value != 0
    return bool(value)


def to_object(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            logger.debug("Failed to parse string as object: %.80r", value)
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def default_value_for_schema(schema: Schema) -> Any:
    """Empty value of the declared shape, used to seed variables and forms."""
    if schema.is_array:
        return []
    if schema.type == ValueType.STRING.value:
        return ""
    if schema.type == ValueType.NUMBER.value:
        return 0
    if schema.type == ValueType.BOOLEAN.value:
        return False
    if schema.type == ValueType.FILE.value:
        return {
            "file_id": "",
            "name": "",
            "content": b"",
            "mime_type": "",
            "size": 0,
            "created_at": "",
            "updated_at": "",
        }
    if schema.type == ValueType.OBJECT.value:
        return {key: default_value_for_schema(sub) for key, sub in (schema.fields or {}).items()}
    return ""
