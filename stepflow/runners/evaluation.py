import logging
from dataclasses import replace
from typing import Any, Dict, List, Mapping

from ..workflow.context import ExecutionContext
from ..workflow.evaluation import (
    evaluate_conditions,
    evaluation_variable_name,
    fold_jump_decision,
    manage_jump_count,
)
from ..workflow.models import (
    IOType,
    NextAction,
    Schema,
    StepExecutionResult,
    StepOutcome,
    ValueType,
    Variable,
)
from .base import BaseStepRunner

logger = logging.getLogger(__name__)


class EvaluationStepRunner(BaseStepRunner):
    """ Runs an EVALUATION step: picks the next step from its conditions. """

    def run(self, state: List[Variable], jump_counters: Mapping[str, int],
            context: ExecutionContext) -> StepOutcome:
        step = self.step
        self.notify(context, "Evaluating conditions", 30)

        evaluation = evaluate_conditions(step, state)
        outputs = dict(evaluation.outputs)
        counters = dict(jump_counters)
        next_step_index = self.step_index + 1

        if evaluation.next_action == NextAction.JUMP and evaluation.target_step_index is not None:
            target = evaluation.target_step_index
            self.notify(context, f"Jump condition met, target step: {target}, reason: {evaluation.reason}", 80)
            decision = manage_jump_count(
                step,
                counters,
                self.step_index,
                target,
                evaluation.reason,
                default_maximum_jumps=context.settings.default_maximum_jumps,
            )
            counters = decision.jump_counters
            next_step_index = target if decision.can_jump else self.step_index + 1
            outputs = fold_jump_decision(outputs, decision)
            self.notify(context, f"Jump {'allowed' if decision.can_jump else 'blocked'}, next step: {next_step_index}", 90)
        elif evaluation.next_action == NextAction.END:
            next_step_index = self.total_steps
            logger.info("Step %s: end workflow condition met", step.step_id)
            self.notify(context, "End workflow condition met", 90)
        else:
            self.notify(context, f"Continuing to next step: {next_step_index}", 90)

        return StepOutcome(
            updated_state=store_evaluation_outputs(step, state, outputs),
            result=StepExecutionResult(success=True, outputs=outputs),
            next_step_index=next_step_index,
            jump_counters=counters,
        )


def store_evaluation_outputs(step, state: List[Variable], outputs: Dict[str, Any]) -> List[Variable]:
    """Write ``outputs`` into the step's evaluation variable, creating it if needed."""
    name = evaluation_variable_name(step)
    updated = list(state)
    for i, variable in enumerate(updated):
        if variable.name == name:
            updated[i] = replace(variable, value=outputs)
            return updated
    updated.append(Variable(
        name=name,
        schema=Schema(type=ValueType.OBJECT, is_array=False),
        io_type=IOType.EVALUATION,
        description="Evaluation step result",
        value=outputs,
    ))
    return updated
