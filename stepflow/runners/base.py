from abc import ABC, abstractmethod
from typing import List, Mapping, Optional

from ..workflow.context import ExecutionContext, StepStatus
from ..workflow.models import Step, StepExecutionResult, StepOutcome, Variable


class BaseStepRunner(ABC):
    """ Abstract base class for step runners. """

    def __init__(self, step: Step, step_index: int, total_steps: int):
        self.step = step
        self.step_index = step_index
        self.total_steps = total_steps

    @abstractmethod
    def run(self, state: List[Variable], jump_counters: Mapping[str, int],
            context: ExecutionContext) -> StepOutcome:
        """
        Run the step against an already cleared pool.  Must be implemented by subclasses.
        """
        pass

    def notify(self, context: ExecutionContext, message: str, progress: int,
               result: Optional[StepExecutionResult] = None) -> None:
        context.notify(self.step.step_id, self.step_index, StepStatus.RUNNING, message, progress, result)

    def fail(self, state: List[Variable], jump_counters: Mapping[str, int],
             context: ExecutionContext, error: str) -> StepOutcome:
        """Failed outcome that keeps ``state`` and moves on to the next step."""
        result = StepExecutionResult(success=False, error=error)
        context.notify(self.step.step_id, self.step_index, StepStatus.FAILED, error, result=result)
        return StepOutcome(
            updated_state=list(state),
            result=result,
            next_step_index=self.step_index + 1,
            jump_counters=dict(jump_counters),
        )
