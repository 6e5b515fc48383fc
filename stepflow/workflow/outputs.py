"""
Applying tool outputs to workflow variables.

Output mappings come in two forms: a bare variable name (assign) or a
``{variable, operation}`` record. ``normalize_mapping`` turns either into a
``SimpleMapping`` / ``EnhancedMapping`` once, and everything downstream works
on those.
"""

import logging
import math
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .coercion import coerce, coerce_array_element, to_json, to_string
from .models import (
    EnhancedMapping,
    OutputMapping,
    SimpleMapping,
    ValueType,
    Variable,
    VariableName,
    VariableOperation,
)

logger = logging.getLogger(__name__)

APPEND_DELIMITER = "\n\n"


def normalize_mapping(mapping: Any) -> OutputMapping:
    """Normalise a raw output mapping into a tagged mapping.

    Accepts a variable name, a dict with ``variable`` and optional
    ``operation`` keys, or an already normalised mapping.
    """
    if isinstance(mapping, (SimpleMapping, EnhancedMapping)):
        return mapping
    if isinstance(mapping, str):
        return SimpleMapping(VariableName(mapping))
    if isinstance(mapping, dict) and "variable" in mapping:
        if "operation" not in mapping:
            return SimpleMapping(VariableName(mapping["variable"]))
        operation = mapping["operation"]
        try:
            operation = VariableOperation(str(getattr(operation, "value", operation)).lower())
        except ValueError:
            pass  # kept raw; apply_output_to_variable reports it
        return EnhancedMapping(VariableName(mapping["variable"]), operation)
    raise ValueError(f"Unsupported output mapping: {mapping!r}")


def normalize_output_mappings(mappings: Optional[Mapping[str, Any]]) -> Dict[str, OutputMapping]:
    return {name: normalize_mapping(m) for name, m in (mappings or {}).items()}


def apply_output_to_variable(variable: Variable, mapping: Any, output_value: Any) -> Any:
    """Return the new value of ``variable`` after applying ``output_value``.

    Returns None for an unknown operation; callers leave the variable as it
    was in that case.
    """
    mapping = normalize_mapping(mapping)
    operation = mapping.operation

    if operation == VariableOperation.ASSIGN:
        return coerce(output_value, variable.schema)

    if operation == VariableOperation.APPEND:
        return _append(variable, output_value)

    logger.warning("Unknown output operation %r for variable %s", operation, variable.name)
    return None


def _append(variable: Variable, output_value: Any) -> Any:
    schema = variable.schema
    current = variable.value

    if schema.is_array:
        new_items = output_value if isinstance(output_value, list) else [output_value]
        converted = [coerce_array_element(item, schema) for item in new_items]
        if _is_empty(current):
            return converted
        if isinstance(current, list):
            return list(current) + converted
        # inconsistent prior state: fold both sides into a two element array
        return [coerce_array_element(current, schema), coerce_array_element(output_value, schema)]

    if schema.type == ValueType.STRING.value and isinstance(current, str):
        if isinstance(output_value, (dict, list)):
            text = to_json(output_value)
        else:
            text = to_string(output_value)
        return current + APPEND_DELIMITER + text

    return coerce(output_value, schema)


def _is_empty(value: Any) -> bool:
    # None, False, 0, NaN and empty strings or lists all start a fresh array
    if isinstance(value, float) and math.isnan(value):
        return True
    return not value if isinstance(value, (bool, int, float, str, list)) else value is None


def is_known_operation(mapping: OutputMapping) -> bool:
    return isinstance(mapping.operation, VariableOperation)


def assign_target_names(output_mappings: Optional[Mapping[str, Any]]) -> List[VariableName]:
    """Variables a step overwrites; append targets are accumulators and excluded."""
    names = []
    for mapping in normalize_output_mappings(output_mappings).values():
        if mapping.operation == VariableOperation.ASSIGN:
            names.append(mapping.variable)
    return names


def update_state_from_outputs(
    state: Sequence[Variable],
    output_mappings: Optional[Mapping[str, Any]],
    outputs: Optional[Mapping[str, Any]],
) -> List[Variable]:
    """Build a new pool with every mapped tool output applied."""
    updated = list(state)
    if not output_mappings or not outputs:
        return updated

    for output_name, mapping in normalize_output_mappings(output_mappings).items():
        if output_name not in outputs:
            logger.debug("Tool did not produce mapped output %s", output_name)
            continue
        if not is_known_operation(mapping):
            logger.warning("Skipping output %s: unknown operation %r", output_name, mapping.operation)
            continue

        index = next((i for i, v in enumerate(updated) if v.name == mapping.variable), -1)
        if index == -1:
            logger.warning("Output %s maps to unknown variable %s", output_name, mapping.variable)
            continue

        variable = updated[index]
        updated[index] = replace(variable, value=apply_output_to_variable(variable, mapping, outputs[output_name]))
    return updated


def variables_to_record(state: Sequence[Variable]) -> Dict[str, Any]:
    return {str(v.name): v.value for v in state}


def update_state_with_inputs(
    state: Sequence[Variable],
    inputs: Mapping[str, Any],
    input_mappings: Optional[Mapping[str, str]] = None,
) -> List[Variable]:
    """Set variable values from ``inputs``.

    ``input_mappings`` maps a variable name to the key to read from
    ``inputs``; without it, variables are matched by name.
    """
    updated = []
    for variable in state:
        key = input_mappings.get(variable.name) if input_mappings is not None else variable.name
        if key is not None and key in inputs:
            updated.append(replace(variable, value=inputs[key]))
        else:
            updated.append(variable)
    return updated
