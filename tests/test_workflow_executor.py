"""Tests for step execution."""

import pytest
from stepflow.config.settings import Settings
from stepflow.tools.registry import register_tool
from stepflow.workflow.context import StepStatus
from stepflow.workflow.executor import execute_step, get_next_step_index, run_workflow
from stepflow.workflow.models import (
    Condition,
    EnhancedMapping,
    EvaluationConfig,
    IOType,
    NextAction,
    Schema,
    Step,
    StepType,
    Tool,
    Variable,
    VariableOperation,
    Workflow,
    create_array_schema,
)
from stepflow.workflow.outputs import variables_to_record


# Register test tools
@register_tool("test.upper")
def tool_upper(text=None) -> dict:
    """Upper-case the input text."""
    return {"upper": (text or "").upper(), "length": len(text or "")}


@register_tool("test.tick")
def tool_tick(history=None) -> dict:
    """Record one tick and report how many have happened."""
    return {"tick": "t", "count": len(history or []) + 1}


@register_tool("test.explode")
def tool_explode(**kwargs) -> dict:
    """Always fails."""
    raise RuntimeError("boom")


class RecordingToolCaller:
    """Tool caller that records calls and returns a fixed result."""

    def __init__(self, result=None):
        self.result = result if result is not None else {}
        self.calls = []

    def execute(self, tool_id, parameters):
        self.calls.append((tool_id, dict(parameters)))
        return self.result


def action_step(step_id, tool_id, parameter_mappings=None, output_mappings=None, **kwargs):
    return Step(
        step_id=step_id,
        label=step_id,
        step_type=StepType.ACTION,
        tool=Tool(tool_id=tool_id, name=tool_id, tool_type=kwargs.pop("tool_type", "function")),
        parameter_mappings=parameter_mappings or {},
        output_mappings=output_mappings or {},
        **kwargs,
    )


def eval_step(step_id, conditions, maximum_jumps=3, default_action=NextAction.CONTINUE):
    return Step(
        step_id=step_id,
        label=step_id,
        step_type=StepType.EVALUATION,
        evaluation_config=EvaluationConfig(conditions=conditions, default_action=default_action,
                                           maximum_jumps=maximum_jumps),
    )


@pytest.fixture
def upper_workflow():
    return Workflow(
        workflow_id="wf-upper",
        state=[
            Variable("text", Schema("string"), io_type=IOType.INPUT, value="hello"),
            Variable("shout", Schema("string"), value="stale"),
            Variable("size", Schema("number")),
        ],
        steps=[action_step("upper", "test.upper", {"text": "text"}, {"upper": "shout", "length": "size"})],
    )


def loop_workflow(maximum_jumps=5, threshold=3):
    return Workflow(
        workflow_id="wf-loop",
        state=[
            Variable("ticks", create_array_schema("string"), value=[]),
            Variable("attempts", Schema("number")),
        ],
        steps=[
            action_step(
                "tick",
                "test.tick",
                {"history": "ticks"},
                {"tick": EnhancedMapping("ticks", VariableOperation.APPEND), "count": "attempts"},
            ),
            eval_step("check-attempts", [Condition("attempts", "less_than", threshold, target_step_index=0)],
                      maximum_jumps=maximum_jumps),
        ],
    )


def test_execute_action_step(upper_workflow):
    """Test a successful action step applies its outputs."""
    outcome = execute_step(upper_workflow, 0)
    assert outcome.result.success is True
    assert outcome.result.inputs == {"text": "hello"}
    assert outcome.next_step_index == 1
    assert variables_to_record(outcome.updated_state) == {"text": "hello", "shout": "HELLO", "size": 5}
    # the input workflow is not modified
    assert upper_workflow.state[1].value == "stale"


def test_execute_step_clears_outputs_not_produced(upper_workflow):
    """Test assign targets are cleared before the step runs."""
    caller = RecordingToolCaller({"upper": "HI"})
    outcome = execute_step(upper_workflow, 0, caller)
    values = variables_to_record(outcome.updated_state)
    assert values["shout"] == "HI"
    assert values["size"] is None


def test_tool_failure_keeps_pool(upper_workflow):
    """Test a failing tool reports the error and leaves the pool as it was."""
    step = action_step("boom", "test.explode", {"text": "text"}, {"result": "shout"})
    workflow = Workflow(state=upper_workflow.state, steps=[step])
    outcome = execute_step(workflow, 0)
    assert outcome.result.success is False
    assert outcome.result.error == "boom"
    assert outcome.result.inputs == {"text": "hello"}
    assert outcome.updated_state == list(workflow.state)
    assert outcome.next_step_index == 1


def test_unregistered_tool_fails():
    """Test a tool missing from the registry fails the step."""
    workflow = Workflow(steps=[action_step("ghost", "test.not_registered")])
    outcome = execute_step(workflow, 0)
    assert outcome.result.success is False
    assert "Tool not found" in outcome.result.error


def test_step_without_tool_fails():
    """Test an action step needs a tool."""
    workflow = Workflow(steps=[Step(step_id="empty", step_type=StepType.ACTION)])
    outcome = execute_step(workflow, 0, RecordingToolCaller())
    assert outcome.result.success is False
    assert outcome.result.error == "No tool configured for this step"


def test_invalid_step_index(upper_workflow):
    """Test an out of range index fails without touching the pool."""
    outcome = execute_step(upper_workflow, 7)
    assert outcome.result.success is False
    assert outcome.result.error == "Invalid step index"
    assert outcome.next_step_index == 8
    assert outcome.updated_state == list(upper_workflow.state)


def test_non_dict_tool_result_is_wrapped():
    """Test scalar tool results are exposed as the ``result`` output."""
    workflow = Workflow(
        state=[Variable("answer", Schema("number"))],
        steps=[action_step("calc", "calc", output_mappings={"result": "answer"})],
    )
    outcome = execute_step(workflow, 0, RecordingToolCaller("41.5"))
    assert variables_to_record(outcome.updated_state) == {"answer": 41.5}


def test_llm_tool_receives_prompt_template():
    """Test LLM tools get the prompt template id as a parameter."""
    caller = RecordingToolCaller({"text": "ok"})
    step = action_step("ask", "llm.ask", tool_type="llm", prompt_template_id="tpl-1")
    execute_step(Workflow(steps=[step]), 0, caller)
    assert caller.calls == [("llm.ask", {"prompt_template_id": "tpl-1"})]


def test_missing_parameter_resolves_to_none():
    """Test unresolvable parameter paths are passed as None."""
    caller = RecordingToolCaller({})
    step = action_step("ask", "tool", {"a": "nowhere.deep"})
    outcome = execute_step(Workflow(steps=[step]), 0, caller)
    assert outcome.result.success is True
    assert caller.calls == [("tool", {"a": None})]


def test_evaluation_step_jumps_below_limit():
    """Test a jump at 2/3 is taken and the counter reaches 3."""
    step = eval_step("evaluate-count", [Condition("count", "greater_than", 5, target_step_index=0)])
    workflow = Workflow(
        state=[Variable("count", Schema("number"), value=10)],
        steps=[action_step("a", "test.upper"), action_step("b", "test.upper"), step],
        jump_counters={"evaluate-count": 2},
    )
    outcome = execute_step(workflow, 2)
    assert outcome.result.success is True
    assert outcome.next_step_index == 0
    assert outcome.jump_counters == {"evaluate-count": 3}
    assert outcome.result.outputs["next_action"] == "jump"
    assert outcome.result.outputs["max_jumps_reached"] is False

    stored = {v.name: v for v in outcome.updated_state}["eval_evaluate"]
    assert stored.io_type == IOType.EVALUATION
    assert stored.value == outcome.result.outputs


def test_evaluation_step_blocked_at_limit():
    """Test a jump at 3/3 falls through to the next step."""
    step = eval_step("evaluate-count", [Condition("count", "greater_than", 5, target_step_index=0)])
    workflow = Workflow(
        state=[Variable("count", Schema("number"), value=10)],
        steps=[action_step("a", "test.upper"), action_step("b", "test.upper"), step],
        jump_counters={"evaluate-count": 3},
    )
    outcome = execute_step(workflow, 2)
    assert outcome.next_step_index == 3
    assert outcome.jump_counters == {"evaluate-count": 3}
    assert outcome.result.outputs["next_action"] == "continue"
    assert outcome.result.outputs["max_jumps_reached"] is True


def test_evaluation_step_end():
    """Test ``end`` moves past the last step."""
    step = eval_step("stop", [], default_action=NextAction.END)
    workflow = Workflow(steps=[step, action_step("later", "test.upper")])
    outcome = execute_step(workflow, 0)
    assert outcome.result.success is True
    assert outcome.next_step_index == 2


def test_default_maximum_jumps_from_settings():
    """Test the settings default applies when a step sets no limit."""
    step = eval_step("loop", [Condition("flag", "equals", True, target_step_index=0)], maximum_jumps=None)
    workflow = Workflow(state=[Variable("flag", Schema("boolean"), value=True)], steps=[step],
                        jump_counters={"loop": 1})
    outcome = execute_step(workflow, 0, settings=Settings(default_maximum_jumps=1))
    assert outcome.next_step_index == 1
    assert outcome.jump_counters == {"loop": 1}


def test_status_sink_receives_lifecycle(upper_workflow):
    """Test status updates run from running to completed."""
    updates = []
    execute_step(upper_workflow, 0, status_sink=updates.append)
    assert updates[0].status == StepStatus.RUNNING
    assert updates[0].progress == 0
    assert updates[-1].status == StepStatus.COMPLETED
    assert updates[-1].progress == 100
    assert updates[-1].result.success is True
    assert all(u.step_id == "upper" for u in updates)


def test_status_sink_reports_failure():
    """Test a failing step ends with a failed update."""
    updates = []
    execute_step(Workflow(steps=[action_step("boom", "test.explode")]), 0, status_sink=updates.append)
    assert updates[-1].status == StepStatus.FAILED
    assert updates[-1].result.error == "boom"


def test_status_sink_errors_are_ignored(upper_workflow):
    """Test a raising sink does not change the step result."""
    def sink(update):
        raise ValueError("sink down")

    outcome = execute_step(upper_workflow, 0, status_sink=sink)
    assert outcome.result.success is True


def test_get_next_step_index():
    """Test next index computation without running tools."""
    workflow = loop_workflow(maximum_jumps=1)
    assert get_next_step_index(workflow, 0) == (1, {})

    # attempts is unset so the condition cannot match
    assert get_next_step_index(workflow, 1) == (2, {})

    primed = Workflow(state=[Variable("attempts", Schema("number"), value=1)], steps=workflow.steps)
    assert get_next_step_index(primed, 1) == (0, {"check-attempts": 1})


def test_get_next_step_index_out_of_range():
    """Test indexes outside the workflow advance without touching any step."""
    assert get_next_step_index(Workflow(), 0) == (1, {})

    workflow = loop_workflow()
    primed = Workflow(state=[Variable("attempts", Schema("number"), value=1)], steps=workflow.steps,
                      jump_counters={"check-attempts": 1})
    assert get_next_step_index(primed, -1) == (0, {"check-attempts": 1})
    assert get_next_step_index(primed, 5) == (6, {"check-attempts": 1})


def test_run_workflow_loops_until_condition_clears():
    """Test a loop runs until its condition stops matching."""
    run = run_workflow(loop_workflow())
    assert run.completed is True
    assert run.error is None
    assert run.executed_steps == [0, 1, 0, 1, 0, 1]
    assert variables_to_record(run.workflow.state)["ticks"] == ["t", "t", "t"]
    assert variables_to_record(run.workflow.state)["attempts"] == 3
    assert run.workflow.jump_counters == {"check-attempts": 2}


def test_run_workflow_respects_jump_limit():
    """Test a loop stops jumping once its limit is spent."""
    run = run_workflow(loop_workflow(maximum_jumps=1, threshold=100))
    assert run.completed is True
    assert run.executed_steps == [0, 1, 0, 1]
    assert run.workflow.jump_counters == {"check-attempts": 1}


def test_run_workflow_step_limit():
    """Test the run stops after max_workflow_steps executions."""
    run = run_workflow(loop_workflow(maximum_jumps=50, threshold=100), settings=Settings(max_workflow_steps=5))
    assert run.completed is False
    assert len(run.executed_steps) == 5
    assert "Step limit" in run.error


def test_run_workflow_with_inputs_and_failure():
    """Test inputs are applied and the run stops at the first failure."""
    workflow = Workflow(
        state=[Variable("text", Schema("string"), io_type=IOType.INPUT), Variable("shout", Schema("string"))],
        steps=[
            action_step("upper", "test.upper", {"text": "text"}, {"upper": "shout"}),
            action_step("boom", "test.explode"),
            action_step("never", "test.upper"),
        ],
    )
    run = run_workflow(workflow, {"text": "quiet"})
    assert run.completed is False
    assert run.error == "boom"
    assert run.executed_steps == [0, 1]
    assert variables_to_record(run.workflow.state)["shout"] == "QUIET"
