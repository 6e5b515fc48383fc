""" Execution context for step runs. """
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from ..config.settings import Settings, get_settings
from .models import StepExecutionResult

logger = logging.getLogger(__name__)


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ToolCaller(Protocol):
    def execute(self, tool_id: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass
class StatusUpdate:
    step_id: str
    step_index: int
    status: StepStatus
    message: Optional[str] = None
    progress: Optional[int] = None
    result: Optional[StepExecutionResult] = None


StatusSink = Callable[[StatusUpdate], None]


@dataclass
class ExecutionContext:
    tool_caller: Optional[ToolCaller] = None
    status_sink: Optional[StatusSink] = None
    settings: Settings = field(default_factory=get_settings)
    logs: List[StatusUpdate] = field(default_factory=list)

    def notify(self, step_id: str, step_index: int, status: StepStatus,
               message: Optional[str] = None, progress: Optional[int] = None,
               result: Optional[StepExecutionResult] = None) -> None:
        """Record a status transition and forward it to the sink, if any."""
        update = StatusUpdate(step_id, step_index, status, message, progress, result)
        self.logs.append(update)
        if self.status_sink is None:
            return
        try:
            self.status_sink(update)
        except Exception:
            # observers never change the outcome of a step
            logger.exception("Status sink raised for step %s", step_id)
