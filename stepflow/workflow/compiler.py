""" Load and validate Workflow documents from YAML or plain dicts. """

import logging
from typing import Any, Dict

import yaml

from .errors import WorkflowValidationError
from .models import (
    Condition,
    EnhancedMapping,
    EvaluationConfig,
    Schema,
    SimpleMapping,
    Step,
    Tool,
    Variable,
    Workflow,
)
from .outputs import normalize_mapping, normalize_output_mappings
from .paths import find_variable, parse_variable_path
from .reducer import validate_unique_names
from .schema import SchemaSpec, StepSpec, VariableSpec, validate_workflow

logger = logging.getLogger(__name__)


def load_workflow(yaml_text: str) -> Workflow:
    """
    Load a Workflow from a YAML string.
    """
    data = yaml.safe_load(yaml_text)
    if not isinstance(data, dict):
        raise WorkflowValidationError("Workflow document must be a mapping")
    return workflow_from_dict(data)


def workflow_from_dict(data: Dict[str, Any]) -> Workflow:
    spec, _ = validate_workflow(data)

    state = [_build_variable(v) for v in spec.state]
    validate_unique_names(state)

    steps = [_build_step(s, position) for position, s in enumerate(spec.steps)]
    workflow = Workflow(
        workflow_id=spec.workflow_id,
        name=spec.name,
        description=spec.description,
        status=spec.status,
        state=state,
        steps=steps,
        jump_counters=dict(spec.jump_counters),
    )
    _check_references(workflow)
    return workflow


def _build_schema(spec: SchemaSpec) -> Schema:
    fields = None
    if spec.fields is not None:
        fields = {name: _build_schema(sub) for name, sub in spec.fields.items()}
    return Schema(type=spec.type.value, is_array=spec.is_array, description=spec.description, fields=fields)


def _build_variable(spec: VariableSpec) -> Variable:
    return Variable(
        name=spec.name,
        schema=_build_schema(spec.schema_),
        io_type=spec.io_type,
        variable_id=spec.variable_id,
        description=spec.description,
        required=spec.required,
        value=spec.value,
    )


def _build_step(spec: StepSpec, position: int) -> Step:
    config = None
    if spec.evaluation_config is not None:
        config = EvaluationConfig(
            conditions=[
                Condition(
                    variable=c.variable,
                    operator=c.operator,
                    value=c.value,
                    target_step_index=c.target_step_index,
                    condition_id=c.condition_id or f"{spec.step_id}-c{i}",
                )
                for i, c in enumerate(spec.evaluation_config.conditions)
            ],
            default_action=spec.evaluation_config.default_action,
            maximum_jumps=spec.evaluation_config.maximum_jumps,
        )

    output_mappings = {
        name: normalize_mapping(m if isinstance(m, str) else m.model_dump(mode="json"))
        for name, m in spec.output_mappings.items()
    }
    tool = None
    if spec.tool is not None:
        tool = Tool(tool_id=spec.tool.tool_id, name=spec.tool.name or spec.tool.tool_id,
                    tool_type=spec.tool.tool_type, description=spec.tool.description)

    return Step(
        step_id=spec.step_id,
        label=spec.label or f"Step {position + 1}",
        description=spec.description,
        step_type=spec.step_type,
        sequence_number=position,
        tool=tool,
        parameter_mappings=dict(spec.parameter_mappings),
        output_mappings=output_mappings,
        evaluation_config=config,
        prompt_template_id=spec.prompt_template_id,
    )


def _check_references(workflow: Workflow) -> None:
    """Warn about mappings that point at variables the pool does not declare."""
    for step in workflow.steps:
        for param, path in step.parameter_mappings.items():
            root, _ = _root(path)
            if root is None or find_variable(workflow.state, root) is None:
                logger.warning("Step %s parameter %s reads unknown variable path %s", step.step_id, param, path)
        for output, mapping in normalize_output_mappings(step.output_mappings).items():
            if find_variable(workflow.state, mapping.variable) is None:
                logger.warning("Step %s output %s writes unknown variable %s", step.step_id, output, mapping.variable)


def _root(path: str):
    try:
        return parse_variable_path(path)
    except ValueError:
        return None, []


def _schema_to_dict(schema: Schema) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": schema.type, "is_array": schema.is_array}
    if schema.description:
        out["description"] = schema.description
    if schema.fields is not None:
        out["fields"] = {name: _schema_to_dict(sub) for name, sub in schema.fields.items()}
    return out


def _mapping_to_doc(mapping) -> Any:
    if isinstance(mapping, SimpleMapping):
        return str(mapping.variable)
    if isinstance(mapping, EnhancedMapping):
        return {"variable": str(mapping.variable), "operation": getattr(mapping.operation, "value", mapping.operation)}
    return mapping


def workflow_to_dict(workflow: Workflow) -> Dict[str, Any]:
    """Plain-data document for ``workflow``, loadable again with workflow_from_dict."""
    steps = []
    for step in workflow.steps:
        doc: Dict[str, Any] = {
            "step_id": step.step_id,
            "label": step.label,
            "description": step.description,
            "step_type": getattr(step.step_type, "value", step.step_type),
            "sequence_number": step.sequence_number,
            "parameter_mappings": dict(step.parameter_mappings),
            "output_mappings": {k: _mapping_to_doc(normalize_mapping(m)) for k, m in step.output_mappings.items()},
        }
        if step.tool is not None:
            doc["tool"] = {
                "tool_id": step.tool.tool_id,
                "name": step.tool.name,
                "tool_type": step.tool.tool_type,
                "description": step.tool.description,
            }
        if step.prompt_template_id:
            doc["prompt_template_id"] = step.prompt_template_id
        if step.evaluation_config is not None:
            config = step.evaluation_config
            doc["evaluation_config"] = {
                "conditions": [
                    {
                        "condition_id": c.condition_id,
                        "variable": c.variable,
                        "operator": getattr(c.operator, "value", c.operator),
                        "value": c.value,
                        "target_step_index": c.target_step_index,
                    }
                    for c in config.conditions
                ],
                "default_action": getattr(config.default_action, "value", config.default_action),
                "maximum_jumps": config.maximum_jumps,
            }
        steps.append(doc)

    return {
        "workflow_id": workflow.workflow_id,
        "name": workflow.name,
        "description": workflow.description,
        "status": getattr(workflow.status, "value", workflow.status),
        "state": [
            {
                "name": str(v.name),
                "schema": _schema_to_dict(v.schema),
                "io_type": v.io_type.value,
                "variable_id": v.variable_id,
                "description": v.description,
                "required": v.required,
                "value": v.value,
            }
            for v in workflow.state
        ],
        "steps": steps,
        "jump_counters": dict(workflow.jump_counters),
    }


def dump_workflow(workflow: Workflow) -> str:
    """YAML text for ``workflow``."""
    return yaml.safe_dump(workflow_to_dict(workflow), sort_keys=False)
