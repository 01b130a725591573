"""Command line interface for running flowrunner workflows."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from flowrunner.cli_utils.workflow import (
    format_record,
    format_result,
    load_workflow_file,
    parse_json_option,
)
from flowrunner.config import load_config
from flowrunner.contracts import UserInfo, WorkflowInput
from flowrunner.errors import FlowRunnerError
from flowrunner.executor import WorkflowExecutor
from flowrunner.persistence import get_repository
from flowrunner.registry import create_registry
from flowrunner.service import ExecutionService
from flowrunner.validation import validate_workflow

app = typer.Typer(help="CLI for flowrunner workflows")

execution_app = typer.Typer(help="Commands for inspecting executions")
app.add_typer(execution_app, name="execution")


@app.callback()
def main() -> None:
    """flowrunner CLI entry point."""
    config = load_config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _service() -> ExecutionService:
    config = load_config()
    executor = WorkflowExecutor(create_registry(config))
    return ExecutionService(executor, get_repository(), config)


def _read_workflow(path: Path) -> WorkflowInput:
    if not path.exists():
        typer.secho(f"Workflow file not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        return WorkflowInput.model_validate(load_workflow_file(path))
    except (ValueError, ValidationError) as exc:
        typer.secho(f"Invalid workflow file {path}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _echo_lines(lines: list[str]) -> None:
    for line in lines:
        typer.echo(line)


@app.command("run")
def run(
    workflow_path: Path,
    user_id: str = typer.Option("cli", help="Id of the user the workflow runs for"),
    email: str = typer.Option("cli@localhost", help="Email of that user"),
    name: Optional[str] = typer.Option(None, help="Display name of that user"),
    trigger_data: Optional[str] = typer.Option(
        None, help="JSON object passed to the workflow as trigger data"
    ),
) -> None:
    """
    Execute a workflow file once.

    The file holds a workflow in JSON or YAML using the API field names
    (``definition.triggerStepId``, ``userId``...). Execution stops at the
    first failed step or at a delay; a delayed execution is continued with
    ``flowrunner resume``.

    Example:
        flowrunner run ./workflows/welcome.yaml --trigger-data '{"email": "a@b.co"}'
    """
    workflow = _read_workflow(workflow_path)
    try:
        data = parse_json_option(trigger_data, "trigger-data")
    except ValueError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    user = UserInfo(id=user_id, email=email, name=name)
    try:
        result = asyncio.run(_service().start(workflow, user, data))
    except FlowRunnerError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    _echo_lines(format_result(result))
    if result.status == "failed":
        raise typer.Exit(code=1)


@app.command("resume")
def resume(
    execution_id: Optional[str] = typer.Option(
        None, help="Resume this execution instead of every due one"
    ),
) -> None:
    """Resume waiting executions whose delay has elapsed."""
    service = _service()
    try:
        if execution_id:
            results = [asyncio.run(service.resume(execution_id))]
        else:
            results = asyncio.run(service.resume_due())
    except FlowRunnerError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if not results:
        typer.echo("No executions due")
        return
    for result in results:
        _echo_lines(format_result(result))


@app.command("cancel")
def cancel(execution_id: str) -> None:
    """Cancel a waiting execution, or stop a running one before its next step."""
    try:
        record = asyncio.run(_service().cancel(execution_id))
    except FlowRunnerError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if record.status == "cancelled":
        typer.echo(f"Execution {execution_id} cancelled")
    else:
        typer.echo(f"Cancellation requested for execution {execution_id}")


@app.command("validate")
def validate(workflow_path: Path) -> None:
    """Check a workflow file without running it."""
    workflow = _read_workflow(workflow_path)
    report = validate_workflow(workflow, create_registry(load_config()))
    for warning in report.warnings:
        typer.secho(f"warning: {warning}", fg=typer.colors.YELLOW)
    for error in report.errors:
        typer.secho(f"error: {error}", fg=typer.colors.RED)
    if not report.valid:
        raise typer.Exit(code=1)
    typer.echo(f"Workflow '{workflow.name}' is valid")


@app.command("handlers")
def handlers() -> None:
    """List the registered step types."""
    for step_type in create_registry(load_config()).types():
        typer.echo(step_type)


@execution_app.command("list")
def execution_list(
    workflow_id: Optional[str] = typer.Option(None, help="Only this workflow"),
    status: Optional[str] = typer.Option(None, help="Only executions in this status"),
) -> None:
    """
    List executions with their current status.

    Example:
        flowrunner execution list --status waiting
        # Output: 5f0c...    wf-1    waiting
    """
    repo = get_repository()
    executions = asyncio.run(repo.list_executions(workflow_id=workflow_id, status=status))
    if not executions:
        typer.echo("No executions found")
        return
    for record in executions:
        typer.echo(f"{record.id}\t{record.workflow_id}\t{record.status}")


@execution_app.command("show")
def execution_show(execution_id: str) -> None:
    """Show an execution and its step history."""
    repo = get_repository()
    record = asyncio.run(repo.get_execution(execution_id))
    if record is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    _echo_lines(format_record(record))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
