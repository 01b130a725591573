"""In-memory implementation of the execution repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from ..contracts import ExecutionResult, StepResult, UserInfo, WorkflowInput, utcnow
from .models import ExecutionRecord, StepRecord
from .repository import ExecutionRepository


class InMemoryExecutionRepository(ExecutionRepository):
    """Store execution state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._executions: Dict[str, ExecutionRecord] = {}

    # ------------------------------------------------------------------
    async def create_execution(
        self,
        execution_id: str,
        workflow: WorkflowInput,
        user: UserInfo,
        trigger_data: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        record = ExecutionRecord(
            id=execution_id,
            workflow_id=workflow.id,
            user_id=user.id,
            workflow=workflow,
            user=user,
            trigger_data=trigger_data,
            started_at=utcnow(),
        )
        self._executions[execution_id] = record
        return record

    async def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        record = self._executions.get(execution_id)
        return record.model_copy(deep=True) if record else None

    async def list_executions(
        self, workflow_id: str | None = None, status: str | None = None
    ) -> list[ExecutionRecord]:
        records = [
            r
            for r in self._executions.values()
            if (workflow_id is None or r.workflow_id == workflow_id)
            and (status is None or r.status == status)
        ]
        records.sort(key=lambda r: r.started_at, reverse=True)
        return [r.model_copy(deep=True) for r in records]

    async def list_due_executions(
        self, now: datetime, limit: int = 10
    ) -> list[ExecutionRecord]:
        due = [
            r
            for r in self._executions.values()
            if r.status == "waiting" and r.resume_at is not None and r.resume_at <= now
        ]
        due.sort(key=lambda r: r.resume_at)
        return [r.model_copy(deep=True) for r in due[:limit]]

    async def has_active_execution(self, workflow_id: str) -> bool:
        return any(
            r.workflow_id == workflow_id and r.status in ("running", "waiting")
            for r in self._executions.values()
        )

    async def mark_step_started(
        self, execution_id: str, step_id: str, position: int | None = None
    ) -> None:
        record = self._executions.get(execution_id)
        if not record:
            return
        for step in record.steps:
            if step.step_id == step_id:
                step.status = "running"
                step.started_at = utcnow()
                step.completed_at = None
                return
        record.steps.append(
            StepRecord(step_id=step_id, position=position, started_at=utcnow())
        )

    async def record_step_result(
        self, execution_id: str, result: StepResult, position: int | None = None
    ) -> None:
        record = self._executions.get(execution_id)
        if not record:
            return
        for step in record.steps:
            if step.step_id == result.step_id:
                break
        else:
            step = StepRecord(step_id=result.step_id, position=position)
            record.steps.append(step)
        step.status = result.status
        step.data = result.data
        step.error = result.error
        step.started_at = result.started_at
        step.completed_at = result.completed_at
        if position is not None:
            step.position = position

    async def mark_running(self, execution_id: str) -> None:
        record = self._executions.get(execution_id)
        if record:
            record.status = "running"
            record.resume_at = None

    async def finish_execution(self, result: ExecutionResult) -> None:
        record = self._executions.get(result.execution_id)
        if not record:
            return
        record.status = result.status
        record.error = result.error
        record.resume_at = result.resume_at
        record.resume_after = result.resume_after
        record.completed_at = result.completed_at if result.status != "waiting" else None

    async def request_cancel(self, execution_id: str) -> None:
        record = self._executions.get(execution_id)
        if record:
            record.cancel_requested = True

    async def is_cancel_requested(self, execution_id: str) -> bool:
        record = self._executions.get(execution_id)
        return bool(record and record.cancel_requested)

    async def mark_cancelled(self, execution_id: str) -> None:
        record = self._executions.get(execution_id)
        if record:
            record.status = "cancelled"
            record.error = "Execution cancelled"
            record.resume_at = None
            record.completed_at = utcnow()
