"""Example: a draft / critique loop that jumps back until the score is good enough."""
from stepflow.tools.registry import register_tool
from stepflow.utils.logging import configure_logging
from stepflow.workflow import compiler, executor
from stepflow.workflow.outputs import variables_to_record

WORKFLOW_YAML = """
workflow_id: wf-review-demo
name: review_loop
state:
  - name: question
    io_type: input
    schema: { type: string }
  - name: draft
    schema: { type: string }
  - name: history
    schema: { type: string, is_array: true }
  - name: score
    schema: { type: number }
steps:
  - step_id: draft-answer
    tool: demo.draft
    parameter_mappings: { question: question, history: history }
    output_mappings:
      text: draft
      text_copy: { variable: history, operation: append }
  - step_id: critique
    tool: demo.critic
    parameter_mappings: { draft: draft }
    output_mappings: { score: score }
  - step_id: check-score
    step_type: EVALUATION
    evaluation_config:
      maximum_jumps: 3
      conditions:
        - variable: score
          operator: less_than
          value: 8
          target_step_index: 0
"""


@register_tool("demo.draft")
def draft(question=None, history=None):
    revision = len(history or []) + 1
    text = f"Answer to {question!r}, revision {revision}"
    return {"text": text, "text_copy": text}


@register_tool("demo.critic")
def critic(draft=None):
    # later revisions score higher
    revision = int((draft or "0").rsplit(" ", 1)[-1])
    return {"score": 4 + 2 * revision}


def main():
    configure_logging(level="INFO")
    wf = compiler.load_workflow(WORKFLOW_YAML)
    run = executor.run_workflow(wf, {"question": "Why is the sky blue?"})
    print("Completed:", run.completed, "steps:", run.executed_steps)
    print("Jump counters:", run.workflow.jump_counters)
    print("Final state:", variables_to_record(run.workflow.state))


if __name__ == "__main__":
    main()
