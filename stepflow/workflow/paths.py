"""
Variable path resolution against the workflow pool.

A path is a root variable name optionally followed by property and index
accessors, e.g. ``answer``, ``doc.title``, ``results[0].score`` or
``matrix[1][2]``. Resolution never raises: a miss is reported through
``PathResolution.valid_path`` and the value is ``None``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

from .models import Schema, ValueType, Variable

logger = logging.getLogger(__name__)

PathSegment = Union[str, int]

_SEGMENT_RE = re.compile(r"\.([^.\[\]]+)|\[(\d+)\]|\[[\"']([^\"'\]]+)[\"']\]")


@dataclass(frozen=True)
class PathResolution:
    value: Any = None
    valid_path: bool = False
    error_message: Optional[str] = None


def parse_variable_path(path: str) -> Tuple[str, List[PathSegment]]:
    """Split ``path`` into its root variable name and the accessor segments.

    Raises ValueError when the accessor part is not well formed.
    """
    path = path.strip()
    match = re.match(r"[^.\[\]]+", path)
    if not match:
        raise ValueError(f"Invalid variable path: {path!r}")
    root = match.group(0).strip()
    segments: List[PathSegment] = []
    pos = match.end()
    while pos < len(path):
        seg = _SEGMENT_RE.match(path, pos)
        if not seg:
            raise ValueError(f"Invalid accessor in variable path {path!r} at position {pos}")
        prop, index, quoted = seg.groups()
        if index is not None:
            segments.append(int(index))
        else:
            segments.append(prop if prop is not None else quoted)
        pos = seg.end()
    return root, segments


def find_variable(pool: Sequence[Variable], name: str) -> Optional[Variable]:
    for variable in pool:
        if variable.name == name:
            return variable
    return None


def resolve_property_path(value: Any, segments: Sequence[PathSegment]) -> Tuple[Any, bool, int]:
    """Walk ``segments`` from ``value``.

    Returns (value, ok, depth) where depth is the number of segments walked
    successfully.
    """
    current = value
    for depth, segment in enumerate(segments):
        if isinstance(segment, int):
            if not isinstance(current, (list, tuple)) or not 0 <= segment < len(current):
                return None, False, depth
            current = current[segment]
        else:
            if isinstance(current, dict) and segment in current:
                current = current[segment]
            elif isinstance(current, (list, tuple)) and segment.isdigit() and int(segment) < len(current):
                current = current[int(segment)]
            else:
                return None, False, depth
    return current, True, len(segments)


def resolve_variable_path(pool: Sequence[Variable], path: str) -> PathResolution:
    """Resolve ``path`` against the variable pool."""
    try:
        root, segments = parse_variable_path(str(path))
    except ValueError as e:
        logger.warning("Could not parse variable path %r: %s", path, e)
        return PathResolution(error_message=str(e))

    variable = find_variable(pool, root)
    if variable is None:
        message = f"Variable '{root}' not found"
        logger.warning(message)
        return PathResolution(error_message=message)

    if not segments:
        return PathResolution(value=variable.value, valid_path=True)

    value, ok, depth = resolve_property_path(variable.value, segments)
    if not ok:
        message = (
            f"Property path {_format_segments(segments[:depth + 1])} "
            f"does not exist on variable '{variable.name}'"
        )
        logger.warning(message)
        return PathResolution(error_message=message)
    return PathResolution(value=value, valid_path=True)


def validate_property_path_against_schema(schema: Schema, segments: Sequence[PathSegment]) -> Tuple[bool, Optional[Schema]]:
    """Check that ``segments`` can be followed through ``schema``.

    Returns (valid, schema_at_path). Object schemas without declared fields
    accept any property and yield ``None`` for the nested schema.
    """
    current: Optional[Schema] = schema
    for segment in segments:
        if current is None:
            return True, None
        if isinstance(segment, int) or (isinstance(segment, str) and segment.isdigit()):
            if not current.is_array:
                return False, None
            current = current.element_schema()
            continue
        if current.is_array or current.type != ValueType.OBJECT.value:
            return False, None
        if current.fields is None:
            current = None
            continue
        if segment not in current.fields:
            return False, None
        current = current.fields[segment]
    return True, current


def schema_for_path(pool: Sequence[Variable], path: str) -> Optional[Schema]:
    """Schema of the value a path points to, or None if it cannot be determined."""
    try:
        root, segments = parse_variable_path(str(path))
    except ValueError:
        return None
    variable = find_variable(pool, root)
    if variable is None:
        return None
    valid, schema = validate_property_path_against_schema(variable.schema, segments)
    return schema if valid else None


def _format_segments(segments: Sequence[PathSegment]) -> str:
    out = ""
    for segment in segments:
        out += f"[{segment}]" if isinstance(segment, int) else f".{segment}"
    return out
