"""
Structural edits to a workflow document.

``update_workflow_by_action`` is a pure function: it returns a new
``Workflow`` and never touches the one it is given. Actions that cannot be
applied (missing payload, unknown step) return the workflow unchanged.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .errors import DuplicateVariableNameError
from .models import EvaluationConfig, IOType, NextAction, Step, StepType, Tool, Variable, Workflow
from .outputs import normalize_output_mappings
from .steps import create_new_step

logger = logging.getLogger(__name__)

EVALUATION_VARIABLE_PREFIX = "eval_"


class ActionType(str, Enum):
    UPDATE_PARAMETER_MAPPINGS = "UPDATE_PARAMETER_MAPPINGS"
    UPDATE_OUTPUT_MAPPINGS = "UPDATE_OUTPUT_MAPPINGS"
    UPDATE_STEP_TOOL = "UPDATE_STEP_TOOL"
    UPDATE_STEP_TYPE = "UPDATE_STEP_TYPE"
    ADD_STEP = "ADD_STEP"
    REORDER_STEPS = "REORDER_STEPS"
    DELETE_STEP = "DELETE_STEP"
    UPDATE_STATE = "UPDATE_STATE"
    RESET_EXECUTION = "RESET_EXECUTION"
    UPDATE_WORKFLOW = "UPDATE_WORKFLOW"
    UPDATE_STEP = "UPDATE_STEP"
    RESET_WORKFLOW_STATE = "RESET_WORKFLOW_STATE"


@dataclass
class WorkflowAction:
    type: ActionType
    step_id: Optional[str] = None
    mappings: Optional[Dict[str, Any]] = None
    tool: Optional[Tool] = None
    new_step: Optional[Step] = None
    reordered_steps: Optional[List[Step]] = None
    state: Optional[List[Variable]] = None
    workflow_updates: Dict[str, Any] = field(default_factory=dict)
    step: Optional[Step] = None
    step_type: Optional[StepType] = None
    keep_jump_counters: bool = False


def validate_unique_names(state: Sequence[Variable]) -> None:
    """Raise DuplicateVariableNameError on the first repeated variable name."""
    names = set()
    for variable in state:
        if variable.name in names:
            raise DuplicateVariableNameError(variable.name)
        names.add(variable.name)


def _renumber(steps: Sequence[Step]) -> List[Step]:
    return [s if s.sequence_number == i else replace(s, sequence_number=i) for i, s in enumerate(steps)]


def _map_step(workflow: Workflow, step_id: Optional[str], fn) -> Workflow:
    if not step_id or not any(s.step_id == step_id for s in workflow.steps):
        logger.warning("No step with id %s", step_id)
        return workflow
    return replace(workflow, steps=[fn(s) if s.step_id == step_id else s for s in workflow.steps])


def _toggle_step_type(step: Step, target: Optional[StepType]) -> Step:
    current = StepType(step.step_type)
    new_type = target or (StepType.EVALUATION if current == StepType.ACTION else StepType.ACTION)
    if new_type == current:
        return step
    if new_type == StepType.EVALUATION:
        return replace(
            step,
            step_type=new_type,
            tool=None,
            parameter_mappings={},
            output_mappings={},
            prompt_template_id=None,
            evaluation_config=EvaluationConfig(conditions=[], default_action=NextAction.CONTINUE, maximum_jumps=3),
        )
    return replace(step, step_type=new_type, evaluation_config=None, parameter_mappings={}, output_mappings={})


def _reset_values(state: Sequence[Variable]) -> List[Variable]:
    return [replace(v, value=None) for v in state]


def _is_evaluation_variable(variable: Variable) -> bool:
    return variable.io_type == IOType.EVALUATION or variable.name.startswith(EVALUATION_VARIABLE_PREFIX)


def update_workflow_by_action(workflow: Workflow, action: WorkflowAction) -> Workflow:
    """Apply ``action`` to ``workflow`` and return the result."""
    kind = ActionType(action.type)

    if kind == ActionType.UPDATE_WORKFLOW:
        if not action.workflow_updates:
            return workflow
        known = {f.name for f in fields(Workflow)}
        updates = {k: v for k, v in action.workflow_updates.items() if k in known}
        if len(updates) != len(action.workflow_updates):
            logger.warning("Ignoring unknown workflow fields: %s",
                           sorted(set(action.workflow_updates) - known))
        if "state" in updates:
            try:
                validate_unique_names(updates["state"])
            except DuplicateVariableNameError as e:
                logger.error("Rejected workflow update: %s", e)
                return workflow
            updates["state"] = list(updates["state"])
        if "steps" in updates:
            updates["steps"] = list(updates["steps"])
        return replace(workflow, **updates)

    if kind == ActionType.UPDATE_STEP:
        if action.step is None:
            return workflow
        return _map_step(workflow, action.step_id or action.step.step_id, lambda s: action.step)

    if kind == ActionType.ADD_STEP:
        new_step = action.new_step or create_new_step(workflow)
        return replace(workflow, steps=_renumber(list(workflow.steps) + [new_step]))

    if kind == ActionType.DELETE_STEP:
        if not action.step_id:
            return workflow
        remaining = [s for s in workflow.steps if s.step_id != action.step_id]
        counters = {k: v for k, v in workflow.jump_counters.items() if k != action.step_id}
        return replace(workflow, steps=_renumber(remaining), jump_counters=counters)

    if kind == ActionType.REORDER_STEPS:
        if action.reordered_steps is None:
            return workflow
        return replace(workflow, steps=_renumber(action.reordered_steps))

    if kind == ActionType.UPDATE_STATE:
        if action.state is None:
            return workflow
        try:
            validate_unique_names(action.state)
        except DuplicateVariableNameError as e:
            logger.error("Rejected state update: %s", e)
            return workflow
        return replace(workflow, state=list(action.state))

    if kind == ActionType.RESET_EXECUTION:
        return replace(workflow, state=_reset_values(workflow.state))

    if kind == ActionType.RESET_WORKFLOW_STATE:
        state = _reset_values(workflow.state)
        if action.keep_jump_counters:
            return replace(workflow, state=state)
        return replace(workflow, state=[v for v in state if not _is_evaluation_variable(v)], jump_counters={})

    if kind == ActionType.UPDATE_PARAMETER_MAPPINGS:
        mappings = dict(action.mappings or {})
        return _map_step(workflow, action.step_id, lambda s: replace(s, parameter_mappings=mappings))

    if kind == ActionType.UPDATE_OUTPUT_MAPPINGS:
        mappings = normalize_output_mappings(action.mappings)
        return _map_step(workflow, action.step_id, lambda s: replace(s, output_mappings=mappings))

    if kind == ActionType.UPDATE_STEP_TOOL:
        # a new tool invalidates the old mappings and prompt template
        return _map_step(workflow, action.step_id, lambda s: replace(
            s, tool=action.tool, parameter_mappings={}, output_mappings={}, prompt_template_id=None))

    if kind == ActionType.UPDATE_STEP_TYPE:
        return _map_step(workflow, action.step_id, lambda s: _toggle_step_type(s, action.step_type))

    return workflow
