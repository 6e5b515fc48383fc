"""
Condition evaluation and jump governance for evaluation steps.

Conditions are tested in declared order and the first one that matches wins.
A winning condition with a ``target_step_index`` is only a jump *candidate*:
``manage_jump_count`` decides whether the step still has jumps left.
Jump counters live in a side table keyed by step id, outside the variable
pool.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence

from .coercion import to_json
from .guards import evaluate_condition
from .models import Condition, NextAction, Step, Variable
from .paths import resolve_variable_path

logger = logging.getLogger(__name__)

DEFAULT_MAXIMUM_JUMPS = 3
NO_CONDITION = "none"


@dataclass
class EvaluationResult:
    condition_met: bool
    next_action: NextAction
    reason: str
    target_step_index: Optional[int] = None
    condition: Optional[Condition] = None
    outputs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class JumpDecision:
    jump_count: int
    can_jump: bool
    max_jumps: int
    jump_counters: Dict[str, int]
    jump_info: Dict[str, Any]


def short_step_id(step: Step) -> str:
    return str(step.step_id)[:8]


def evaluation_variable_name(step: Step) -> str:
    """Name of the pool variable holding an evaluation step's last outputs."""
    return f"eval_{short_step_id(step)}"


def _no_match(action: NextAction, reason: str) -> EvaluationResult:
    return EvaluationResult(
        condition_met=False,
        next_action=action,
        reason=reason,
        outputs={
            "condition_met": NO_CONDITION,
            "next_action": action.value,
            "reason": reason,
        },
    )


def evaluate_conditions(step: Step, pool: Sequence[Variable]) -> EvaluationResult:
    """Pick the next action for ``step`` from its conditions.

    The result is a proposal; jump limits are applied separately by
    ``manage_jump_count``.
    """
    config = step.evaluation_config
    if config is None:
        return _no_match(NextAction.CONTINUE, "No evaluation configuration")

    default_action = NextAction(config.default_action)
    if not config.conditions:
        return _no_match(default_action, "No conditions defined")

    for condition in config.conditions:
        resolution = resolve_variable_path(pool, condition.variable)
        if not resolution.valid_path or resolution.value is None:
            logger.warning("Variable %s not found or has no value", condition.variable)
            continue

        if not evaluate_condition(condition.operator, resolution.value, condition.value):
            continue

        target = condition.target_step_index
        action = NextAction.JUMP if target is not None else NextAction.CONTINUE
        reason = f"Condition met: {condition}"
        logger.debug("Step %s: %s", step.step_id, reason)
        operator = getattr(condition.operator, "value", condition.operator)
        return EvaluationResult(
            condition_met=True,
            next_action=action,
            reason=reason,
            target_step_index=target,
            condition=condition,
            outputs={
                "condition_met": condition.condition_id or str(condition),
                "variable_name": condition.variable,
                "variable_value": to_json(resolution.value),
                "operator": operator,
                "comparison_value": to_json(condition.value),
                "next_action": action.value,
                "target_step_index": target,
                "reason": reason,
            },
        )

    return _no_match(default_action, "No conditions met")


def maximum_jumps_for(step: Step, default: int = DEFAULT_MAXIMUM_JUMPS) -> int:
    config = step.evaluation_config
    if config is None or config.maximum_jumps is None:
        return default
    return config.maximum_jumps


def manage_jump_count(
    step: Step,
    jump_counters: Mapping[str, int],
    from_step_index: int,
    to_step_index: int,
    reason: Optional[str] = None,
    default_maximum_jumps: int = DEFAULT_MAXIMUM_JUMPS,
) -> JumpDecision:
    """Decide whether ``step`` may jump and return the updated counter table.

    The counter only moves when the jump is allowed. ``jump_counters`` is not
    modified.
    """
    jump_count = int(jump_counters.get(step.step_id, 0))
    max_jumps = maximum_jumps_for(step, default_maximum_jumps)
    can_jump = jump_count < max_jumps

    counters = dict(jump_counters)
    if can_jump:
        counters[step.step_id] = jump_count + 1

    jump_info = {
        "is_jump": can_jump,
        "from_step": from_step_index,
        "to_step": to_step_index if can_jump else from_step_index + 1,
        "reason": (reason or "Jump condition met") if can_jump
        else f"Maximum jumps ({max_jumps}) reached. Continuing to next step.",
    }
    logger.info(
        "Jump %s for step %s: count=%d max=%d next=%d",
        "allowed" if can_jump else "blocked",
        step.step_id,
        jump_count,
        max_jumps,
        jump_info["to_step"],
    )
    return JumpDecision(
        jump_count=jump_count,
        can_jump=can_jump,
        max_jumps=max_jumps,
        jump_counters=counters,
        jump_info=jump_info,
    )


def fold_jump_decision(outputs: Mapping[str, Any], decision: JumpDecision) -> Dict[str, Any]:
    """Merge a jump decision into evaluation outputs."""
    folded = dict(outputs)
    folded.update(
        {
            "next_action": (NextAction.JUMP if decision.can_jump else NextAction.CONTINUE).value,
            "jump_count": decision.jump_count,
            "max_jumps": decision.max_jumps,
            "max_jumps_reached": not decision.can_jump,
            "_jump_info": to_json(decision.jump_info),
        }
    )
    folded.update(decision.jump_info)
    if not decision.can_jump:
        folded["reason"] = f"Condition met but maximum jumps ({decision.max_jumps}) reached"
    return folded
