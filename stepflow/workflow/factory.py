""" Factory for creating step runners based on step type. """
from typing import Dict, Type

from ..runners.base import BaseStepRunner
from ..runners.evaluation import EvaluationStepRunner
from ..runners.tool import ToolStepRunner
from .models import Step, StepType

_RUNNER_MAP: Dict[StepType, Type[BaseStepRunner]] = {
    StepType.ACTION: ToolStepRunner,
    StepType.EVALUATION: EvaluationStepRunner,
}


def make_runner(step: Step, step_index: int, total_steps: int) -> BaseStepRunner:
    try:
        cls = _RUNNER_MAP.get(StepType(step.step_type))
    except ValueError:
        cls = None

    if not cls:
        raise ValueError(f"Unsupported step type: {step.step_type}")

    return cls(step, step_index, total_steps)
