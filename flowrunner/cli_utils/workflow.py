"""Utility functions to read workflow files and render executions."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml

from flowrunner.contracts import ExecutionResult, StepResult
from flowrunner.persistence import ExecutionRecord, StepRecord


def _load_document(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_workflow_file(path: Path) -> dict:
    """Return the raw workflow mapping stored in a JSON or YAML file."""
    data = _load_document(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a workflow object")
    return data


def parse_json_option(value: Optional[str], name: str) -> Optional[dict]:
    if not value:
        return None
    data = json.loads(value)
    if not isinstance(data, dict):
        raise ValueError(f"--{name} must be a JSON object")
    return data


def _timing(started_at: Any, completed_at: Any) -> str:
    if started_at or completed_at:
        return f" ({started_at} -> {completed_at})"
    return ""


def format_step(step: StepResult | StepRecord) -> str:
    line = f"- {step.step_id}: {step.status}{_timing(step.started_at, step.completed_at)}"
    if step.error:
        line += f"\n    error: {step.error}"
    return line


def format_result(result: ExecutionResult) -> list[str]:
    lines = [f"Execution {result.execution_id}: {result.status}"]
    if result.error:
        lines.append(f"Error: {result.error}")
    if result.resume_at:
        lines.append(f"Resumes at: {result.resume_at.isoformat()}")
    lines.extend(format_step(step) for step in result.steps)
    return lines


def format_record(record: ExecutionRecord) -> list[str]:
    lines = [
        f"Execution {record.id}: {record.status}",
        f"Workflow: {record.workflow.name} ({record.workflow_id})",
    ]
    if record.trigger_data:
        lines.append(f"Trigger data: {json.dumps(record.trigger_data)}")
    if record.error:
        lines.append(f"Error: {record.error}")
    if record.resume_at:
        lines.append(f"Resumes at: {record.resume_at.isoformat()}")
    lines.extend(format_step(step) for step in record.steps)
    return lines
