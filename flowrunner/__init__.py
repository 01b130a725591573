"""flowrunner: sequential workflow execution with suspend and resume."""

from .contracts import ExecutionResult, Step, StepResult, UserInfo, WorkflowDefinition, WorkflowInput
from .executor import ExecutionHooks, WorkflowExecutor, create_executor
from .persistence import get_repository
from .registry import HandlerRegistry, create_registry
from .service import ExecutionService

__version__ = "0.1.0"
__all__ = [
    "ExecutionHooks",
    "ExecutionResult",
    "ExecutionService",
    "HandlerRegistry",
    "Step",
    "StepResult",
    "UserInfo",
    "WorkflowDefinition",
    "WorkflowExecutor",
    "WorkflowInput",
    "create_executor",
    "create_registry",
    "get_repository",
]
