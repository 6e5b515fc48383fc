import logging
import time
from collections.abc import Mapping as MappingABC
from typing import List, Mapping

from ..workflow.context import ExecutionContext
from ..workflow.models import StepExecutionResult, StepOutcome, Variable
from ..workflow.outputs import update_state_from_outputs
from ..workflow.steps import resolve_parameters
from .base import BaseStepRunner

logger = logging.getLogger(__name__)


class ToolStepRunner(BaseStepRunner):
    """ Runs an ACTION step by calling its tool through the context's tool caller. """

    def run(self, state: List[Variable], jump_counters: Mapping[str, int],
            context: ExecutionContext) -> StepOutcome:
        step = self.step
        if step.tool is None:
            logger.error("Step %s has no tool configured", step.step_id)
            return self.fail(state, jump_counters, context, "No tool configured for this step")
        if context.tool_caller is None:
            return self.fail(state, jump_counters, context, "No tool caller available")

        parameters = resolve_parameters(step, state)
        if step.tool.is_llm and step.prompt_template_id:
            parameters["prompt_template_id"] = step.prompt_template_id
            logger.debug("Step %s using prompt template %s", step.step_id, step.prompt_template_id)

        logger.info("Step %s executing tool %s (%s) with %d parameters",
                    step.step_id, step.tool.tool_id, step.tool.tool_type, len(parameters))
        self.notify(context, f"Executing tool: {step.tool.name or step.tool.tool_id}", 30)

        started = time.time()
        try:
            self.notify(context, "Tool execution in progress", 50)
            outputs = context.tool_caller.execute(step.tool.tool_id, parameters)
        except Exception as e:
            logger.error("Step %s tool %s failed: %s", step.step_id, step.tool.tool_id, e)
            outcome = self.fail(state, jump_counters, context, f"{e}" or type(e).__name__)
            outcome.result.inputs = parameters
            return outcome
        finally:
            logger.debug("Tool %s took %.3fs", step.tool.tool_id, time.time() - started)

        if outputs is not None and not isinstance(outputs, MappingABC):
            outputs = {"result": outputs}

        updated_state = list(state)
        if outputs:
            updated_state = update_state_from_outputs(state, step.output_mappings, outputs)
            self.notify(context, "Tool execution successful, updating state", 80,
                        StepExecutionResult(success=True, outputs=dict(outputs)))
        else:
            logger.warning("Step %s: tool %s returned no results", step.step_id, step.tool.tool_id)
            self.notify(context, "Tool execution returned no results", 80)

        return StepOutcome(
            updated_state=updated_state,
            result=StepExecutionResult(success=True, outputs=dict(outputs or {}), inputs=parameters),
            next_step_index=self.step_index + 1,
            jump_counters=dict(jump_counters),
        )
