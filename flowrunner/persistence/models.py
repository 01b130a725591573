"""Data models for persisted execution state."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..contracts import StepResult, UserInfo, WorkflowInput


class StepRecord(BaseModel):
    """Stored outcome of one step within an execution."""

    step_id: str
    position: Optional[int] = None
    status: str = "running"
    data: Optional[Any] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_result(self) -> StepResult | None:
        """Convert back into a :class:`StepResult`; ``None`` while still running."""
        if self.status not in ("completed", "failed", "waiting", "skipped"):
            return None
        started_at = self.started_at or self.completed_at
        duration = None
        if started_at and self.completed_at:
            duration = int((self.completed_at - started_at).total_seconds() * 1000)
        return StepResult(
            step_id=self.step_id,
            status=self.status,
            data=self.data,
            error=self.error,
            started_at=started_at,
            completed_at=self.completed_at,
            duration=duration,
        )


class ExecutionRecord(BaseModel):
    """Persisted execution of a workflow."""

    id: str
    workflow_id: str
    user_id: str
    workflow: WorkflowInput
    user: UserInfo
    status: str = "pending"
    trigger_data: Optional[dict[str, Any]] = None
    cancel_requested: bool = False
    resume_at: Optional[datetime] = None
    resume_after: Optional[int] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    steps: list[StepRecord] = Field(default_factory=list)

    def step_results(self) -> list[StepResult]:
        """Finished step results in the order they were recorded."""
        results = []
        for step in self.steps:
            result = step.to_result()
            if result is not None:
                results.append(result)
        return results
