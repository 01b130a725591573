"""Repository abstraction for execution state persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from ..contracts import ExecutionResult, StepResult, UserInfo, WorkflowInput
from .models import ExecutionRecord


class ExecutionRepository(Protocol):
    """Protocol for execution persistence backends."""

    async def create_execution(
        self,
        execution_id: str,
        workflow: WorkflowInput,
        user: UserInfo,
        trigger_data: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        """Persist a new execution in ``pending`` status."""

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        """Retrieve an execution and its step records."""

    async def list_executions(
        self, workflow_id: str | None = None, status: str | None = None
    ) -> list[ExecutionRecord]:
        """Return executions, newest first, optionally filtered."""

    async def list_due_executions(
        self, now: datetime, limit: int = 10
    ) -> list[ExecutionRecord]:
        """Return waiting executions whose ``resume_at`` is not after ``now``."""

    async def has_active_execution(self, workflow_id: str) -> bool:
        """Return ``True`` if the workflow has a running or waiting execution."""

    async def mark_step_started(
        self, execution_id: str, step_id: str, position: int | None = None
    ) -> None:
        """Record that a step has begun."""

    async def record_step_result(
        self, execution_id: str, result: StepResult, position: int | None = None
    ) -> None:
        """Insert or update the record for ``result.step_id``."""

    async def mark_running(self, execution_id: str) -> None:
        """Set status ``running`` and clear any resume time."""

    async def finish_execution(self, result: ExecutionResult) -> None:
        """Store the outcome of an executor run."""

    async def request_cancel(self, execution_id: str) -> None:
        """Flag a running execution for cancellation."""

    async def is_cancel_requested(self, execution_id: str) -> bool:
        """Return the cancellation flag."""

    async def mark_cancelled(self, execution_id: str) -> None:
        """Move an execution straight to ``cancelled``."""
