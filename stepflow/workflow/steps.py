""" Helpers for inspecting and preparing individual workflow steps. """

import logging
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from .evaluation import evaluation_variable_name
from .models import Schema, Step, StepType, Variable, Workflow
from .outputs import assign_target_names, normalize_output_mappings
from .paths import resolve_variable_path, schema_for_path

logger = logging.getLogger(__name__)


def create_new_step(workflow: Workflow) -> Step:
    """A blank action step positioned after the workflow's last step."""
    position = len(workflow.steps)
    return Step(
        step_id=f"step-{uuid.uuid4()}",
        label=f"Step {position + 1}",
        description="Configure this step by selecting a tool and setting up its parameters",
        step_type=StepType.ACTION,
        sequence_number=position,
    )


def get_required_inputs_for_step(step: Step) -> List[str]:
    """Variable paths a step reads before it can run."""
    if step.step_type == StepType.ACTION:
        return [path for path in step.parameter_mappings.values() if isinstance(path, str)]
    if step.evaluation_config is not None:
        seen: List[str] = []
        for condition in step.evaluation_config.conditions:
            if condition.variable not in seen:
                seen.append(condition.variable)
        return seen
    return []


def resolve_parameters(step: Step, state: Sequence[Variable]) -> Dict[str, Any]:
    """Resolve every parameter mapping; unresolvable paths become None."""
    parameters: Dict[str, Any] = {}
    for param_name, path in step.parameter_mappings.items():
        resolution = resolve_variable_path(state, path)
        if not resolution.valid_path:
            logger.warning("Parameter %s of step %s: %s", param_name, step.step_id, resolution.error_message)
            parameters[param_name] = None
            continue
        parameters[param_name] = resolution.value
    return parameters


def clear_step_outputs(step: Step, state: Sequence[Variable]) -> List[Variable]:
    """Copy of ``state`` with the values this step is about to produce cleared.

    Assign targets and the evaluation result variable are reset; append
    targets keep their accumulated value.
    """
    targets = set(assign_target_names(step.output_mappings))
    if step.step_type == StepType.EVALUATION:
        targets.add(evaluation_variable_name(step))

    return [replace(v, value=None) if v.name in targets else v for v in state]


def _describe(state: Sequence[Variable], path: str, fallback: Optional[Schema] = None) -> Dict[str, Any]:
    resolution = resolve_variable_path(state, path)
    if not resolution.valid_path:
        return {"value": None, "schema": fallback}
    return {"value": resolution.value, "schema": schema_for_path(state, path) or fallback}


def describe_step_inputs(step: Step, state: Sequence[Variable]) -> Dict[str, Dict[str, Any]]:
    """Current value and schema behind each parameter mapping of ``step``."""
    return {name: _describe(state, path) for name, path in step.parameter_mappings.items()}


def describe_step_outputs(step: Step, state: Sequence[Variable]) -> Dict[str, Dict[str, Any]]:
    """Current value and schema of each variable an output mapping targets."""
    described = {}
    for output_name, mapping in normalize_output_mappings(step.output_mappings).items():
        info = _describe(state, mapping.variable)
        schema = info["schema"]
        if schema is not None and isinstance(info["value"], list) and not schema.is_array:
            info["schema"] = replace(schema, is_array=True)
        described[output_name] = info
    return described
