"""Static checks for workflow definitions before they are run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .constants import CONDITIONAL_STEP_TYPE
from .contracts import WorkflowInput
from .errors import HandlerNotFoundError
from .registry import HandlerRegistry


@dataclass
class ValidationReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


def validate_workflow(workflow: WorkflowInput, registry: HandlerRegistry) -> ValidationReport:
    """Collect every problem that would make ``workflow`` fail before a step runs.

    Structural errors (duplicate ids, unknown trigger) are already rejected
    when :class:`WorkflowInput` is constructed; this covers what depends on
    the registered handlers and on cross-step references.
    """
    report = ValidationReport()
    definition = workflow.definition

    if not workflow.name.strip():
        report.errors.append("Workflow name is required")

    trigger = definition.trigger_step
    executable = [s for s in definition.ordered_steps() if s.id != definition.trigger_step_id]
    if not definition.steps:
        report.errors.append("Workflow has no steps")
    elif not executable:
        report.errors.append("Workflow has no steps after the trigger")

    positions = {step.id: step.position for step in definition.steps}
    for step in executable:
        label = f"Step '{step.id}'"
        if not step.name.strip():
            report.warnings.append(f"{label} has no name")
        if trigger is not None and step.position < trigger.position:
            report.warnings.append(f"{label} is positioned before the trigger and will not run")

        try:
            handler = registry.get(step.type)
        except HandlerNotFoundError as exc:
            report.errors.append(f"{label}: {exc}")
            continue
        report.errors.extend(f"{label}: {problem}" for problem in handler.validate_config(step.config))

        if step.type == CONDITIONAL_STEP_TYPE:
            for branch in ("true_steps", "false_steps"):
                targets = step.config.get(branch) or []
                if not isinstance(targets, list):
                    continue
                for target in targets:
                    if target not in positions:
                        report.errors.append(f"{label}: {branch} references unknown step '{target}'")
                    elif positions[target] <= step.position:
                        report.errors.append(
                            f"{label}: {branch} target '{target}' must be positioned after the conditional"
                        )
    return report
