""" Operator tests used by evaluation step conditions. """

import logging
import math
from typing import Any, Callable, Dict

from .coercion import is_number, parse_number
from .models import Operator

logger = logging.getLogger(__name__)


def evaluate_condition(operator, value: Any, compare_value: Any) -> bool:
    """
    Test ``value <operator> compare_value``.

    Never raises: missing operands, type mismatches and unknown operators all
    evaluate to False.
    """
    if value is None or compare_value is None:
        return False

    try:
        op = Operator(getattr(operator, "value", operator))
    except ValueError:
        logger.warning("Unknown operator: %s", operator)
        return False

    try:
        return _OPERATORS[op](value, compare_value)
    except Exception:
        logger.exception("Error in condition evaluation (%s)", op.value)
        return False


def _bool_like(value: Any) -> Any:
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _to_comparable_number(value: Any) -> float:
    if isinstance(value, str):
        return parse_number(value)
    if is_number(value):
        return value
    return math.nan


def _equals(value: Any, compare_value: Any) -> bool:
    if isinstance(value, bool) or isinstance(compare_value, bool):
        left, right = _bool_like(value), _bool_like(compare_value)
        return isinstance(left, bool) and isinstance(right, bool) and left == right

    if is_number(value) and isinstance(compare_value, str):
        return value == parse_number(compare_value)
    if isinstance(value, str) and is_number(compare_value):
        return parse_number(value) == compare_value

    if type(value) is not type(compare_value) and not (is_number(value) and is_number(compare_value)):
        return False
    return value == compare_value


def _greater_than(value: Any, compare_value: Any) -> bool:
    left, right = _to_comparable_number(value), _to_comparable_number(compare_value)
    if math.isnan(left) or math.isnan(right):
        return False
    return left > right


def _contains(value: Any, compare_value: Any) -> bool:
    # string containment only, list membership is not supported
    if not isinstance(value, str) or not isinstance(compare_value, str):
        return False
    return compare_value in value


_OPERATORS: Dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQUALS: _equals,
    Operator.NOT_EQUALS: lambda a, b: not _equals(a, b),
    Operator.GREATER_THAN: _greater_than,
    Operator.LESS_THAN: lambda a, b: _greater_than(b, a),
    Operator.CONTAINS: _contains,
    Operator.NOT_CONTAINS: lambda a, b: not _contains(a, b),
}
