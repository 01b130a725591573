"""Core data contracts for flowrunner workflows and executions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

StepStatus = Literal["completed", "failed", "waiting", "skipped"]
ExecutionStatus = Literal[
    "pending", "running", "completed", "failed", "waiting", "cancelled"
]

TERMINAL_STATUSES = frozenset({"completed", "failed", "cancelled"})

# Allowed execution-level status changes.
EXECUTION_TRANSITIONS: Dict[str, frozenset] = {
    "pending": frozenset({"running"}),
    "running": frozenset({"completed", "failed", "waiting", "cancelled"}),
    "waiting": frozenset({"running", "cancelled"}),
    "completed": frozenset(),
    "failed": frozenset(),
    "cancelled": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    """Return ``True`` if an execution may move from ``current`` to ``target``."""
    return target in EXECUTION_TRANSITIONS.get(current, frozenset())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def elapsed_ms(started_at: datetime, completed_at: datetime) -> int:
    return int((completed_at - started_at).total_seconds() * 1000)


class WireModel(BaseModel):
    """Base model serializing with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Dump to a JSON-compatible dict using the API field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Step(WireModel):
    """A single typed unit of a workflow."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    name: str
    description: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    position: int


class WorkflowDefinition(WireModel):
    """Ordered steps plus the id of the step that triggers the workflow."""

    steps: List[Step] = Field(default_factory=list)
    trigger_step_id: str

    @model_validator(mode="after")
    def _check_references(self) -> "WorkflowDefinition":
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Duplicate step id: {step.id}")
            seen.add(step.id)
        if self.steps and self.trigger_step_id not in seen:
            raise ValueError(
                f"Trigger step ID '{self.trigger_step_id}' not found in workflow steps"
            )
        return self

    def ordered_steps(self) -> List[Step]:
        """Return steps sorted by ascending position."""
        return sorted(self.steps, key=lambda s: s.position)

    def get_step(self, step_id: str) -> Optional[Step]:
        return next((s for s in self.steps if s.id == step_id), None)

    @property
    def trigger_step(self) -> Optional[Step]:
        return self.get_step(self.trigger_step_id)


class WorkflowInput(WireModel):
    """Everything the executor needs to know about a workflow."""

    id: str
    name: str
    user_id: str
    definition: WorkflowDefinition
    trigger_type: str
    trigger_config: Optional[Dict[str, Any]] = None
    webhook_id: Optional[str] = None
    schedule_expression: Optional[str] = None


class UserInfo(WireModel):
    id: str
    email: str
    name: Optional[str] = None


class WorkflowRef(WireModel):
    id: str
    name: str


class StepResult(WireModel):
    """Outcome of running (or skipping) one step."""

    step_id: str
    status: StepStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration: Optional[int] = None

    @classmethod
    def finished(
        cls,
        step_id: str,
        status: StepStatus,
        started_at: datetime,
        data: Any = None,
        error: Optional[str] = None,
    ) -> "StepResult":
        """Build a result stamped with completion time and duration."""
        completed_at = utcnow()
        return cls(
            step_id=step_id,
            status=status,
            data=data,
            error=error,
            started_at=started_at,
            completed_at=completed_at,
            duration=elapsed_ms(started_at, completed_at),
        )

    @classmethod
    def skipped(cls, step_id: str, reason: Dict[str, Any]) -> "StepResult":
        now = utcnow()
        return cls(
            step_id=step_id,
            status="skipped",
            data=reason,
            started_at=now,
            completed_at=now,
            duration=0,
        )


class ExecutionResult(WireModel):
    """Terminal snapshot of one executor run."""

    execution_id: str
    status: ExecutionStatus
    steps: List[StepResult] = Field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration: Optional[int] = None
    resume_at: Optional[datetime] = None
    resume_after: Optional[int] = None
