"""
Step executor.

``execute_step`` runs exactly one step of a workflow and hands back the new
pool, the step result and the index of the step to run next. It never
mutates the workflow it is given and never raises: every failure is reported
through ``StepExecutionResult`` and leaves the pool untouched.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..config.settings import Settings, get_settings
from ..tools.registry import RegistryToolCaller
from .context import ExecutionContext, StatusSink, StepStatus, ToolCaller
from .evaluation import evaluate_conditions, manage_jump_count
from .factory import make_runner
from .models import NextAction, StepExecutionResult, StepOutcome, StepType, Workflow
from .outputs import update_state_with_inputs
from .steps import clear_step_outputs

logger = logging.getLogger(__name__)


def _make_context(tool_caller: Optional[ToolCaller], status_sink: Optional[StatusSink],
                  settings: Optional[Settings]) -> ExecutionContext:
    settings = settings or get_settings()
    if tool_caller is None:
        tool_caller = RegistryToolCaller(timeout=settings.tool_timeout_seconds)
    return ExecutionContext(tool_caller=tool_caller, status_sink=status_sink, settings=settings)


def execute_step(
    workflow: Workflow,
    step_index: int,
    tool_caller: Optional[ToolCaller] = None,
    status_sink: Optional[StatusSink] = None,
    *,
    settings: Optional[Settings] = None,
    context: Optional[ExecutionContext] = None,
) -> StepOutcome:
    """Execute the step at ``step_index``.

    Either pass ``tool_caller`` / ``status_sink`` / ``settings`` or a ready
    made ``context``. Without a tool caller the module tool registry is used.
    """
    context = context or _make_context(tool_caller, status_sink, settings)

    if not 0 <= step_index < len(workflow.steps):
        logger.error("Invalid step index: %s", step_index)
        result = StepExecutionResult(success=False, error="Invalid step index")
        context.notify("unknown", step_index, StepStatus.FAILED, "Invalid step index", result=result)
        return StepOutcome(
            updated_state=list(workflow.state),
            result=result,
            next_step_index=step_index + 1,
            jump_counters=dict(workflow.jump_counters),
        )

    step = workflow.steps[step_index]
    started = time.time()
    try:
        logger.info("Executing step %s: %s (%s)", step.step_id, step.label, step.step_type)
        context.notify(step.step_id, step_index, StepStatus.RUNNING, f"Executing step: {step.label}", 0)

        cleared_state = clear_step_outputs(step, workflow.state)
        context.notify(step.step_id, step_index, StepStatus.RUNNING, "Preparing step execution", 10)

        runner = make_runner(step, step_index, len(workflow.steps))
        outcome = runner.run(cleared_state, workflow.jump_counters, context)
    except Exception as e:
        logger.exception("Unexpected error during step %s", step.step_id)
        result = StepExecutionResult(success=False, error=str(e) or type(e).__name__)
        context.notify(step.step_id, step_index, StepStatus.FAILED, f"Unexpected error: {result.error}", result=result)
        return StepOutcome(
            updated_state=list(workflow.state),
            result=result,
            next_step_index=step_index + 1,
            jump_counters=dict(workflow.jump_counters),
        )

    succeeded = outcome.result.success
    logger.info("Step %s %s in %.3fs, next step: %d", step.step_id,
                "succeeded" if succeeded else "failed", time.time() - started, outcome.next_step_index)
    if succeeded:
        context.notify(step.step_id, step_index, StepStatus.COMPLETED,
                       "Step execution successful", 100, outcome.result)
    else:
        # a failed step leaves the pool as it was before the step ran
        outcome.updated_state = list(workflow.state)
    return outcome


def get_next_step_index(
    workflow: Workflow,
    current_step_index: int,
    settings: Optional[Settings] = None,
) -> Tuple[int, Dict[str, int]]:
    """Index of the step after ``current_step_index`` without running any tool.

    Evaluation steps are evaluated (and may consume a jump); all other steps
    simply advance, as does an index outside the workflow. Returns the index
    and the updated jump counters.
    """
    settings = settings or get_settings()
    counters = dict(workflow.jump_counters)
    next_step_index = current_step_index + 1
    if not 0 <= current_step_index < len(workflow.steps):
        logger.error("Invalid step index: %s", current_step_index)
        return next_step_index, counters
    step = workflow.steps[current_step_index]
    if step.step_type != StepType.EVALUATION:
        return next_step_index, counters

    evaluation = evaluate_conditions(step, clear_step_outputs(step, workflow.state))
    if evaluation.next_action == NextAction.JUMP and evaluation.target_step_index is not None:
        decision = manage_jump_count(step, counters, current_step_index, evaluation.target_step_index,
                                     evaluation.reason, default_maximum_jumps=settings.default_maximum_jumps)
        if decision.can_jump:
            next_step_index = evaluation.target_step_index
        counters = decision.jump_counters
    elif evaluation.next_action == NextAction.END:
        next_step_index = len(workflow.steps)
    return next_step_index, counters


@dataclass
class WorkflowRun:
    workflow: Workflow
    results: List[StepExecutionResult] = field(default_factory=list)
    executed_steps: List[int] = field(default_factory=list)
    completed: bool = False
    error: Optional[str] = None


def run_workflow(
    workflow: Workflow,
    inputs: Optional[Mapping[str, Any]] = None,
    tool_caller: Optional[ToolCaller] = None,
    status_sink: Optional[StatusSink] = None,
    *,
    settings: Optional[Settings] = None,
    start_index: int = 0,
) -> WorkflowRun:
    """Drive ``workflow`` step by step until it finishes or a step fails.

    ``inputs`` are written into the pool by variable name first. The run stops
    after ``settings.max_workflow_steps`` executions.
    """
    context = _make_context(tool_caller, status_sink, settings)
    if inputs:
        workflow = replace(workflow, state=update_state_with_inputs(workflow.state, inputs))

    run = WorkflowRun(workflow=workflow)
    index = start_index
    while index < len(run.workflow.steps):
        if len(run.executed_steps) >= context.settings.max_workflow_steps:
            run.error = f"Step limit ({context.settings.max_workflow_steps}) reached"
            logger.warning("Workflow %s: %s", workflow.workflow_id, run.error)
            return run

        outcome = execute_step(run.workflow, index, context=context)
        run.workflow = outcome.apply_to(run.workflow)
        run.results.append(outcome.result)
        run.executed_steps.append(index)
        if not outcome.result.success:
            run.error = outcome.result.error
            return run
        index = outcome.next_step_index

    run.completed = True
    return run
