"""Exception taxonomy for flowrunner."""

from __future__ import annotations

from typing import Any, Dict, Optional


class FlowRunnerError(Exception):
    """Base class for all flowrunner errors."""


class ConfigValidationError(FlowRunnerError):
    """A step's configuration is missing or malformed."""


class HandlerNotFoundError(FlowRunnerError):
    """No handler is registered for a step type."""

    def __init__(self, step_type: str) -> None:
        super().__init__(f"No handler registered for step type: {step_type}")
        self.step_type = step_type


class DuplicateHandlerError(FlowRunnerError):
    """A handler for the same step type is already registered."""

    def __init__(self, step_type: str) -> None:
        super().__init__(f"Handler for step type '{step_type}' is already registered")
        self.step_type = step_type


class EvaluationError(FlowRunnerError):
    """A condition expression could not be parsed or evaluated."""


class TransientNetworkError(FlowRunnerError):
    """Network or timeout failure that may succeed on another attempt."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class StepFailure(FlowRunnerError):
    """A step failed and carries diagnostic data for the result."""

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.data = data


class ExecutionStateError(FlowRunnerError):
    """An execution was asked to make an illegal lifecycle transition."""


class WorkflowAlreadyRunningError(FlowRunnerError):
    """The workflow already has an active execution."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow {workflow_id} is already running")
        self.workflow_id = workflow_id
