"""Base step handler interface."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from ..context import ExecutionContext
from ..contracts import Step, StepResult, utcnow
from ..errors import ConfigValidationError, EvaluationError, StepFailure


@dataclass
class StepOutcome:
    """Successful result of :meth:`StepHandler.run`."""

    status: Literal["completed", "waiting"] = "completed"
    data: Optional[Any] = None


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


class StepHandler(metaclass=abc.ABCMeta):
    """Abstract handler for one step type.

    Subclasses implement :meth:`run` and signal failure by raising
    :class:`ConfigValidationError`, :class:`EvaluationError` or
    :class:`StepFailure`; :meth:`execute` turns those into a ``failed``
    result so callers always receive a :class:`StepResult`.
    """

    type: str = ""
    required_fields: Tuple[str, ...] = ()

    async def execute(self, step: Step, context: ExecutionContext) -> StepResult:
        started_at = utcnow()
        try:
            outcome = await self.run(step, context, started_at)
        except (ConfigValidationError, EvaluationError) as exc:
            return StepResult.finished(step.id, "failed", started_at, error=str(exc))
        except StepFailure as exc:
            return StepResult.finished(
                step.id, "failed", started_at, data=exc.data, error=str(exc)
            )
        return StepResult.finished(step.id, outcome.status, started_at, data=outcome.data)

    @abc.abstractmethod
    async def run(
        self, step: Step, context: ExecutionContext, started_at: datetime
    ) -> StepOutcome:
        """Perform the step's work."""
        raise NotImplementedError

    def validate_config(self, config: Mapping[str, Any]) -> List[str]:
        """Return static configuration problems without running the step."""
        return [
            f"'{name}' field is required"
            for name in self.required_fields
            if is_empty(config.get(name))
        ]

    def require(self, config: Mapping[str, Any], name: str, message: str) -> Any:
        value = config.get(name)
        if is_empty(value):
            raise ConfigValidationError(message)
        return value


def retry_counters(attempts: int, total_delay: int) -> Dict[str, int]:
    return {"attempts": attempts, "totalDelay": total_delay}
