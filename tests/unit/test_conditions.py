"""Tests for the condition expression language."""

import pytest

from flowrunner.conditions import evaluate_condition, parse_condition
from flowrunner.errors import EvaluationError

NAMESPACE = {
    "user": {"id": "user-1", "email": "owner@example.com", "name": "Owner"},
    "workflow": {"id": "wf-1", "name": "nightly"},
    "trigger": {"data": {"amount": 150, "premium": True, "tags": ["a", "b"]}},
    "steps": {"check": {"status": "completed", "data": {"status": "active"}}},
}


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("trigger.data.amount > 100", True),
        ("trigger.data.amount <= 100", False),
        ('steps.check.data.status === "active"', True),
        ("steps.check.data.status == 'inactive'", False),
        ("trigger.data.premium == true && trigger.data.amount >= 150", True),
        ("trigger.data.premium and not (trigger.data.amount < 10)", True),
        ("!trigger.data.premium || workflow.name != 'nightly'", False),
        ("trigger.data.missing == null", True),
        ("trigger.data.tags.1 == 'b'", True),
        ("steps.check.status == 'completed'", True),
        ("trigger.data.amount", True),
        ("false", False),
    ],
)
def test_evaluates_expressions(expression, expected):
    assert evaluate_condition(expression, NAMESPACE) is expected


def test_boolean_never_equals_number():
    assert evaluate_condition("trigger.data.premium == 1", NAMESPACE) is False


def test_ordering_requires_compatible_types():
    with pytest.raises(EvaluationError):
        evaluate_condition("trigger.data.missing > 1", NAMESPACE)
    with pytest.raises(EvaluationError):
        evaluate_condition("trigger.data.amount > 'a'", NAMESPACE)


@pytest.mark.parametrize(
    "expression",
    ["", "trigger.data.amount >", "os.system('x')", "(trigger.data.amount > 1", "1 + 2"],
)
def test_rejects_invalid_expressions(expression):
    with pytest.raises(EvaluationError):
        parse_condition(expression)


def test_step_paths_must_go_through_data_or_status():
    with pytest.raises(EvaluationError, match="Unknown step field 'ok'"):
        parse_condition("steps.check.ok == true")
    assert evaluate_condition("steps.check.status == 'completed'", NAMESPACE) is True
