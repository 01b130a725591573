"""Execution context and template variable resolution.

Templates use ``{{path}}`` placeholders resolved against the run's context:

- ``{{user.id}}``, ``{{user.email}}``, ``{{user.name}}``
- ``{{workflow.id}}``, ``{{workflow.name}}``
- ``{{trigger.data.*}}`` for the trigger payload
- ``{{steps.<stepId>.data.*}}`` for outputs of earlier steps

Placeholders that cannot be resolved are left untouched.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .contracts import StepResult, UserInfo, WorkflowRef

_PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
MISSING = object()


@dataclass
class ExecutionContext:
    """Mutable state owned by a single executor run."""

    user: UserInfo
    workflow: WorkflowRef
    execution_id: str
    trigger_data: Optional[Dict[str, Any]] = None
    step_results: Dict[str, StepResult] = field(default_factory=dict)


def create_context(
    user: UserInfo | Mapping[str, Any],
    workflow: WorkflowRef | Mapping[str, Any],
    execution_id: str,
    trigger_data: Optional[Dict[str, Any]] = None,
) -> ExecutionContext:
    """Create a fresh context for one run."""
    if not isinstance(user, UserInfo):
        user = UserInfo.model_validate(user)
    if not isinstance(workflow, WorkflowRef):
        workflow = WorkflowRef(id=workflow["id"], name=workflow["name"])
    return ExecutionContext(
        user=user,
        workflow=workflow,
        execution_id=execution_id,
        trigger_data=trigger_data,
    )


def get_path(obj: Any, parts: list[str]) -> Any:
    """Walk ``parts`` through nested mappings and sequences.

    Returns the ``MISSING`` sentinel when any segment does not exist.
    """
    current = obj
    for part in parts:
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


class TemplateResolver:
    """Stateless ``{{variable}}`` substitution."""

    def lookup(self, path: str, context: ExecutionContext) -> Any:
        """Return the value for a dotted ``path`` or ``MISSING``."""
        root, _, rest = path.partition(".")
        parts = rest.split(".") if rest else []

        if root == "user":
            return get_path(context.user.model_dump(), parts)
        if root == "workflow":
            return get_path(context.workflow.model_dump(), parts)
        if root == "trigger":
            if not parts or parts[0] != "data" or context.trigger_data is None:
                return MISSING
            return get_path(context.trigger_data, parts[1:])
        if root == "steps":
            if len(parts) < 2 or parts[1] != "data":
                return MISSING
            result = context.step_results.get(parts[0])
            if result is None or result.data is None:
                return MISSING
            return get_path(result.data, parts[2:])
        return MISSING

    def resolve(self, template: Any, context: ExecutionContext) -> Any:
        """Substitute placeholders in ``template``.

        Non-string input is returned unchanged.
        """
        if not isinstance(template, str) or "{{" not in template:
            return template

        def _replace(match: re.Match) -> str:
            value = self.lookup(match.group(1), context)
            if value is MISSING or value is None:
                return match.group(0)
            return _format_value(value)

        return _PLACEHOLDER.sub(_replace, template)

    def resolve_object(self, value: Any, context: ExecutionContext) -> Any:
        """Recursively resolve every string leaf of ``value``."""
        if isinstance(value, str):
            return self.resolve(value, context)
        if isinstance(value, Mapping):
            return {k: self.resolve_object(v, context) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.resolve_object(item, context) for item in value]
        return value


def has_unresolved(text: str) -> bool:
    """Return ``True`` if ``text`` still contains template braces."""
    return "{{" in text or "}}" in text


template_resolver = TemplateResolver()
