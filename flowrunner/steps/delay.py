"""Delay step handler.

The handler never sleeps. It returns a ``waiting`` result carrying the
timestamp at which a scheduler should resume the execution.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Tuple

from ..constants import DEFAULT_DELAY_UNIT, MAX_DELAY_MS, MS_PER_UNIT
from ..context import ExecutionContext
from ..contracts import Step
from ..errors import ConfigValidationError
from .base import StepHandler, StepOutcome

logger = logging.getLogger(__name__)


def parse_delay(config: Mapping[str, Any]) -> Tuple[float, str, int]:
    """Return ``(duration, unit, milliseconds)`` for a delay config."""
    raw = config.get("duration")
    if isinstance(raw, bool):
        raw = None
    try:
        duration = float(raw) if raw is not None else 0.0
    except (TypeError, ValueError):
        raise ConfigValidationError("Delay duration must be a positive number") from None
    if not math.isfinite(duration) or duration <= 0:
        raise ConfigValidationError("Delay duration must be a positive number")
    if duration.is_integer():
        duration = int(duration)

    unit = config.get("unit") or DEFAULT_DELAY_UNIT
    if unit not in MS_PER_UNIT:
        raise ConfigValidationError(
            f"Unknown delay unit '{unit}'. Must be one of: {', '.join(MS_PER_UNIT)}"
        )

    ms = int(duration * MS_PER_UNIT[unit])
    if ms > MAX_DELAY_MS:
        raise ConfigValidationError("Maximum delay is 30 days")
    return duration, unit, ms


class DelayStepHandler(StepHandler):
    type = "delay"

    async def run(
        self, step: Step, context: ExecutionContext, started_at: datetime
    ) -> StepOutcome:
        duration, unit, ms = parse_delay(step.config)
        resume_at = started_at + timedelta(milliseconds=ms)
        logger.info(
            f"Step {step.id} delays execution {context.execution_id} until {resume_at.isoformat()}"
        )
        return StepOutcome(
            status="waiting",
            data={"duration": duration, "unit": unit, "resumeAt": resume_at.isoformat()},
        )

    def validate_config(self, config: Mapping[str, Any]) -> List[str]:
        try:
            parse_delay(config)
        except ConfigValidationError as exc:
            return [str(exc)]
        return []
