"""Conditional step handler.

Evaluates a condition and reports which branch to take. The handler does
not run the branch steps; the executor follows the chosen branch.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping

from ..conditions import evaluate_condition, parse_condition
from ..constants import CONDITIONAL_STEP_TYPE
from ..context import ExecutionContext, template_resolver
from ..contracts import Step
from ..errors import ConfigValidationError, EvaluationError
from .base import StepHandler, StepOutcome


def build_namespace(context: ExecutionContext) -> Dict[str, Any]:
    """Variables visible to condition expressions."""
    return {
        "user": context.user.model_dump(),
        "workflow": context.workflow.model_dump(),
        "trigger": {"data": context.trigger_data or {}},
        "steps": {
            step_id: {"data": result.data, "status": result.status}
            for step_id, result in context.step_results.items()
        },
    }


def _branch(config: Mapping[str, Any], name: str) -> List[str]:
    value = config.get(name) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigValidationError(f"'{name}' must be a list of step ids")
    return list(value)


class ConditionalStepHandler(StepHandler):
    type = CONDITIONAL_STEP_TYPE
    required_fields = ("condition",)

    async def run(
        self, step: Step, context: ExecutionContext, started_at: datetime
    ) -> StepOutcome:
        config = step.config
        self.require(config, "condition", "Conditional step requires a condition")
        if not isinstance(config["condition"], str):
            raise ConfigValidationError("Condition must be a string expression")
        true_steps = _branch(config, "true_steps")
        false_steps = _branch(config, "false_steps")

        condition = template_resolver.resolve(config["condition"], context)
        try:
            result = evaluate_condition(condition, build_namespace(context))
        except EvaluationError as exc:
            raise EvaluationError(f"Condition evaluation failed: {exc}") from exc

        return StepOutcome(
            data={
                "conditionResult": result,
                "trueSteps": true_steps,
                "falseSteps": false_steps,
            }
        )

    def validate_config(self, config: Mapping[str, Any]) -> List[str]:
        errors = super().validate_config(config)
        if errors:
            return errors
        try:
            _branch(config, "true_steps")
            _branch(config, "false_steps")
        except ConfigValidationError as exc:
            errors.append(str(exc))
        condition = config["condition"]
        if not isinstance(condition, str):
            errors.append("Condition must be a string expression")
        elif "{{" not in condition:
            try:
                parse_condition(condition)
            except EvaluationError as exc:
                errors.append(f"Invalid condition: {exc}")
        return errors
