from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import WorkflowValidationError
from .models import IOType, NextAction, Operator, StepType, ValueType, VariableOperation, WorkflowStatus


class SchemaSpec(BaseModel):
    type: ValueType = ValueType.STRING
    is_array: bool = False
    description: str = ""
    fields: Optional[Dict[str, "SchemaSpec"]] = None

    @model_validator(mode="after")
    def _fields_only_on_objects(self):
        if self.fields is not None and self.type != ValueType.OBJECT:
            raise ValueError("'fields' is only allowed on object schemas")
        return self


class VariableSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: str = Field(min_length=1)
    schema_: SchemaSpec = Field(default_factory=SchemaSpec, alias="schema")
    io_type: IOType = IOType.OUTPUT
    variable_id: str = ""
    description: str = ""
    required: Optional[bool] = None
    value: Any = None


class ToolSpec(BaseModel):
    tool_id: str = Field(min_length=1)
    name: str = ""
    tool_type: str = "function"
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _from_id(cls, data):
        # `tool: some.tool` is shorthand for `tool: {tool_id: some.tool}`
        if isinstance(data, str):
            return {"tool_id": data}
        return data


class ConditionSpec(BaseModel):
    condition_id: str = ""
    variable: str = Field(min_length=1)
    operator: Operator
    value: Any = None
    target_step_index: Optional[int] = Field(default=None, ge=0)


class EvaluationConfigSpec(BaseModel):
    conditions: List[ConditionSpec] = Field(default_factory=list)
    default_action: NextAction = NextAction.CONTINUE
    maximum_jumps: Optional[int] = Field(default=None, ge=0)

    @field_validator("default_action")
    @classmethod
    def _no_default_jump(cls, value: NextAction) -> NextAction:
        if value == NextAction.JUMP:
            raise ValueError("default_action must be 'continue' or 'end'")
        return value


class OutputMappingSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    variable: str = Field(min_length=1)
    operation: VariableOperation = VariableOperation.ASSIGN

    @field_validator("operation", mode="before")
    @classmethod
    def _lower(cls, value):
        return value.lower() if isinstance(value, str) else value


class StepSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    step_id: str = Field(min_length=1)
    label: str = ""
    description: str = ""
    step_type: StepType = StepType.ACTION
    sequence_number: Optional[int] = None
    tool: Optional[ToolSpec] = None
    parameter_mappings: Dict[str, str] = Field(default_factory=dict)
    output_mappings: Dict[str, Union[str, OutputMappingSpec]] = Field(default_factory=dict)
    evaluation_config: Optional[EvaluationConfigSpec] = None
    prompt_template_id: Optional[str] = None

    @field_validator("step_type", mode="before")
    @classmethod
    def _upper(cls, value):
        return value.upper() if isinstance(value, str) else value


class WorkflowSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")  # Unexpected keys in the YAML

    workflow_id: str = ""
    name: str = "Untitled Workflow"
    description: str = ""
    status: WorkflowStatus = WorkflowStatus.DRAFT

    state: List[VariableSpec] = Field(default_factory=list)
    steps: List[StepSpec] = Field(default_factory=list)
    jump_counters: Dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_steps(self):
        step_ids = set()
        for step in self.steps:
            if step.step_id in step_ids:
                raise ValueError(f"Duplicate step id: {step.step_id}")
            step_ids.add(step.step_id)
            if step.evaluation_config is None:
                continue
            for condition in step.evaluation_config.conditions:
                target = condition.target_step_index
                if target is not None and target >= len(self.steps):
                    raise ValueError(
                        f"Step {step.step_id}: target_step_index {target} is out of range "
                        f"(workflow has {len(self.steps)} steps)"
                    )
        return self


def validate_workflow(raw: Dict[str, Any]) -> Tuple[WorkflowSpec, Dict[str, Any]]:
    """Validate a raw workflow document against WorkflowSpec."""
    try:
        spec = WorkflowSpec.model_validate(raw)
    except ValidationError as e:
        raise WorkflowValidationError(f"Workflow validation error: {e}") from e
    return spec, spec.model_dump(mode="json", by_alias=True)
