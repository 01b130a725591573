"""Builders for workflow fixtures used across the test suite."""

from typing import Any

from flowrunner.contracts import WorkflowInput


def step(step_id: str, step_type: str, position: int, **config: Any) -> dict[str, Any]:
    return {
        "id": step_id,
        "type": step_type,
        "name": step_id.replace("_", " ").title(),
        "config": config,
        "position": position,
    }


def trigger(position: int = 0) -> dict[str, Any]:
    return step("trigger", "webhook", position)


def make_workflow(
    steps: list[dict[str, Any]], trigger_step_id: str = "trigger", **extra: Any
) -> WorkflowInput:
    data = {
        "id": extra.pop("id", "wf-1"),
        "name": extra.pop("name", "Test workflow"),
        "userId": "user-1",
        "triggerType": "manual",
        "definition": {"steps": steps, "triggerStepId": trigger_step_id},
    }
    data.update(extra)
    return WorkflowInput.model_validate(data)
