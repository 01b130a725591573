from flowrunner.registry import create_registry
from flowrunner.validation import validate_workflow
from helpers import make_workflow, step, trigger


def test_valid_workflow_has_no_errors():
    workflow = make_workflow(
        [
            trigger(),
            step("check", "conditional", 1, condition="trigger.data.vip == true", true_steps=["mail"]),
            step("mail", "send_email", 2, to="{{trigger.data.email}}", subject="Hi", body="Hello"),
            step("wait", "delay", 3, duration=2, unit="days"),
            step("ping", "http_request", 4, url="https://example.com/hook", method="GET"),
        ]
    )
    report = validate_workflow(workflow, create_registry())
    assert report.valid, report.errors
    assert report.warnings == []
    assert report.to_dict() == {"valid": True, "errors": [], "warnings": []}


def test_collects_all_problems():
    workflow = make_workflow(
        [
            step("early", "delay", 0, duration=1),
            trigger(1),
            step("check", "conditional", 2, condition="x ==", true_steps=["early", "ghost"]),
            step("mail", "send_email", 3, to="a@b.co"),
            step("slack", "send_slack", 4),
            step("wait", "delay", 5, duration=45, unit="days"),
            step("mystery", "teleport", 6),
        ],
        name=" ",
    )
    report = validate_workflow(workflow, create_registry())
    assert not report.valid
    errors = "\n".join(report.errors)
    assert "Workflow name is required" in errors
    assert "Step 'check': Invalid condition" in errors
    assert "target 'early' must be positioned after the conditional" in errors
    assert "unknown step 'ghost'" in errors
    assert "Step 'mail': 'subject' field is required" in errors
    assert "Step 'mail': 'body' field is required" in errors
    assert "Step 'slack': 'webhook_url' field is required" in errors
    assert "Step 'wait': Maximum delay is 30 days" in errors
    assert "Step 'mystery'" in errors
    assert any("positioned before the trigger" in w for w in report.warnings)


def test_non_finite_delay_is_reported():
    workflow = make_workflow([trigger(), step("wait", "delay", 1, duration=float("inf"))])
    report = validate_workflow(workflow, create_registry())
    assert report.errors == ["Step 'wait': Delay duration must be a positive number"]


def test_workflow_with_only_a_trigger_is_invalid():
    report = validate_workflow(make_workflow([trigger()]), create_registry())
    assert report.errors == ["Workflow has no steps after the trigger"]


def test_empty_workflow_is_invalid():
    report = validate_workflow(make_workflow([]), create_registry())
    assert "Workflow has no steps" in report.errors
