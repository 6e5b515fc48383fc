""" Data models for workflow representation """

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import InvalidVariableNameError


class ValueType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    FILE = "file"


class IOType(str, Enum):
    INPUT = "input"
    OUTPUT = "output"
    EVALUATION = "evaluation"


class StepType(str, Enum):
    ACTION = "ACTION"
    EVALUATION = "EVALUATION"


class WorkflowStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class VariableOperation(str, Enum):
    ASSIGN = "assign"
    APPEND = "append"


class Operator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"


class NextAction(str, Enum):
    CONTINUE = "continue"
    JUMP = "jump"
    END = "end"


class VariableName(str):
    """Name of a variable in the workflow pool.

    Compares and hashes like the plain string it wraps, so it can be used
    directly as a dict key or compared against raw names.
    """

    def __new__(cls, value):
        if isinstance(value, VariableName):
            return value
        if not isinstance(value, str):
            raise InvalidVariableNameError(f"Variable name must be a string, got {type(value).__name__}")
        if not value or value != value.strip():
            raise InvalidVariableNameError(f"Invalid variable name: {value!r}")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"VariableName({str.__repr__(self)})"


@dataclass(frozen=True)
class Schema:
    type: str = ValueType.STRING.value
    is_array: bool = False
    description: str = ""
    fields: Optional[Dict[str, "Schema"]] = None

    def __post_init__(self):
        # normalise enum members to their plain value
        if isinstance(self.type, ValueType):
            object.__setattr__(self, "type", self.type.value)

    def element_schema(self) -> "Schema":
        """Schema of a single element of an array schema."""
        return replace(self, is_array=False)


@dataclass(frozen=True)
class Variable:
    name: VariableName
    schema: Schema = field(default_factory=Schema)
    io_type: IOType = IOType.OUTPUT
    variable_id: str = ""
    description: str = ""
    required: Optional[bool] = None
    value: Any = None

    def __post_init__(self):
        object.__setattr__(self, "name", VariableName(self.name))
        object.__setattr__(self, "io_type", IOType(self.io_type))
        if not self.variable_id:
            object.__setattr__(self, "variable_id", str(self.name))
        # required only applies to inputs and defaults to true there
        if self.io_type == IOType.INPUT and self.required is None:
            object.__setattr__(self, "required", True)


@dataclass(frozen=True)
class Tool:
    tool_id: str
    name: str = ""
    tool_type: str = "function"
    description: str = ""

    @property
    def is_llm(self) -> bool:
        return self.tool_type == "llm"


@dataclass(frozen=True)
class Condition:
    variable: str
    operator: Union[Operator, str]
    value: Any = None
    target_step_index: Optional[int] = None
    condition_id: str = ""

    def __str__(self) -> str:
        op = self.operator.value if isinstance(self.operator, Operator) else self.operator
        return f"{self.variable} {op} {self.value}"


@dataclass(frozen=True)
class EvaluationConfig:
    conditions: List[Condition] = field(default_factory=list)
    default_action: NextAction = NextAction.CONTINUE
    maximum_jumps: Optional[int] = None


@dataclass(frozen=True)
class SimpleMapping:
    """Bare variable name; applied with ASSIGN semantics."""
    variable: VariableName

    @property
    def operation(self) -> VariableOperation:
        return VariableOperation.ASSIGN


@dataclass(frozen=True)
class EnhancedMapping:
    variable: VariableName
    # unknown operations are kept as raw strings so they can be reported and skipped
    operation: Union[VariableOperation, str] = VariableOperation.ASSIGN


OutputMapping = Union[SimpleMapping, EnhancedMapping]


@dataclass(frozen=True)
class Step:
    step_id: str
    label: str = ""
    description: str = ""
    step_type: StepType = StepType.ACTION
    sequence_number: int = 0
    tool: Optional[Tool] = None
    parameter_mappings: Dict[str, str] = field(default_factory=dict)
    output_mappings: Dict[str, Any] = field(default_factory=dict)
    evaluation_config: Optional[EvaluationConfig] = None
    prompt_template_id: Optional[str] = None

    @property
    def tool_id(self) -> Optional[str]:
        return self.tool.tool_id if self.tool else None


@dataclass(frozen=True)
class Workflow:
    workflow_id: str = ""
    name: str = "Untitled Workflow"
    description: str = ""
    status: WorkflowStatus = WorkflowStatus.DRAFT
    state: List[Variable] = field(default_factory=list)
    steps: List[Step] = field(default_factory=list)
    # step_id -> number of jumps taken from that evaluation step
    jump_counters: Dict[str, int] = field(default_factory=dict)


@dataclass
class StepExecutionResult:
    success: bool
    error: Optional[str] = None
    outputs: Dict[str, Any] = field(default_factory=dict)
    inputs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StepOutcome:
    """ What one call to the step executor hands back to the host. """
    updated_state: List[Variable]
    result: StepExecutionResult
    next_step_index: int
    jump_counters: Dict[str, int] = field(default_factory=dict)

    def apply_to(self, workflow: Workflow) -> Workflow:
        return replace(workflow, state=list(self.updated_state), jump_counters=dict(self.jump_counters))


def get_workflow_inputs(workflow: Workflow) -> List[Variable]:
    return [v for v in workflow.state if v.io_type == IOType.INPUT]


def get_workflow_outputs(workflow: Workflow) -> List[Variable]:
    return [v for v in workflow.state if v.io_type == IOType.OUTPUT]


def create_basic_schema(value_type: Union[ValueType, str], description: str = "") -> Schema:
    return Schema(type=value_type, is_array=False, description=description)


def create_array_schema(item_type: Union[ValueType, str], description: str = "") -> Schema:
    return Schema(type=item_type, is_array=True, description=description)


def create_object_schema(fields: Dict[str, Schema], description: str = "") -> Schema:
    return Schema(type=ValueType.OBJECT, is_array=False, description=description, fields=fields)
