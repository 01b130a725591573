import pytest
from pydantic import ValidationError

from flowrunner.contracts import StepResult, can_transition, utcnow
from helpers import make_workflow, step, trigger


def test_workflow_parses_camel_case_payload():
    workflow = make_workflow(
        [step("b", "delay", 2, duration=1), trigger(), step("a", "delay", 1, duration=1)],
        webhookId="hook-1",
    )
    assert workflow.user_id == "user-1"
    assert workflow.webhook_id == "hook-1"
    assert workflow.definition.trigger_step_id == "trigger"
    assert [s.id for s in workflow.definition.ordered_steps()] == ["trigger", "a", "b"]
    assert workflow.definition.trigger_step.type == "webhook"


def test_duplicate_step_ids_are_rejected():
    with pytest.raises(ValidationError, match="Duplicate step id"):
        make_workflow([trigger(), step("a", "delay", 1), step("a", "delay", 2)])


def test_unknown_trigger_step_is_rejected():
    with pytest.raises(ValidationError, match="not found in workflow steps"):
        make_workflow([step("a", "delay", 1)], trigger_step_id="missing")


def test_step_result_wire_format_uses_camel_case():
    result = StepResult.finished("a", "completed", utcnow(), data={"x": 1})
    wire = result.to_wire()
    assert wire["stepId"] == "a"
    assert wire["status"] == "completed"
    assert "startedAt" in wire and "completedAt" in wire
    assert wire["duration"] >= 0


def test_execution_transitions():
    assert can_transition("pending", "running")
    assert can_transition("waiting", "running")
    assert can_transition("running", "waiting")
    assert not can_transition("completed", "running")
    assert not can_transition("waiting", "completed")
