"""Workflow executor for flowrunner.

The executor only knows how to run steps in order: it validates nothing
about business intent, stops at the first failure and reports exactly what
happened. It keeps no state between calls; a suspended run is continued by
calling :meth:`WorkflowExecutor.execute` again with ``resume_after``.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from .constants import CONDITIONAL_STEP_TYPE
from .context import ExecutionContext, create_context
from .contracts import (
    ExecutionResult,
    Step,
    StepResult,
    UserInfo,
    WorkflowDefinition,
    WorkflowInput,
    WorkflowRef,
    elapsed_ms,
    utcnow,
)
from .errors import HandlerNotFoundError
from .registry import HandlerRegistry
from .steps import StepHandler

logger = logging.getLogger(__name__)

_HANDLER_STATUSES = ("completed", "failed", "waiting")


@dataclass
class ExecutionHooks:
    """Lifecycle callbacks supplied per invocation.

    Each callback may be a plain function or a coroutine function.
    """

    on_step_start: Optional[Callable[[str], Any]] = None
    on_step_complete: Optional[Callable[[StepResult], Any]] = None
    should_continue: Optional[Callable[[], Any]] = None


async def _call(callback: Optional[Callable[..., Any]], *args: Any) -> Any:
    if callback is None:
        return None
    value = callback(*args)
    if inspect.isawaitable(value):
        value = await value
    return value


class WorkflowExecutor:
    """Runs a workflow's steps sequentially and reports the outcome."""

    def __init__(self, registry: Optional[HandlerRegistry] = None) -> None:
        self._registry = registry if registry is not None else HandlerRegistry()

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    def register_handler(self, handler: StepHandler) -> None:
        self._registry.register(handler)

    def get_registered_step_types(self) -> List[str]:
        return self._registry.types()

    async def execute(
        self,
        workflow: WorkflowInput,
        user: UserInfo | Mapping[str, Any],
        execution_id: str,
        hooks: Optional[ExecutionHooks] = None,
        *,
        trigger_data: Optional[Dict[str, Any]] = None,
        resume_after: Optional[int] = None,
        previous_results: Optional[Iterable[StepResult]] = None,
    ) -> ExecutionResult:
        """Execute ``workflow`` until completion, failure, cancellation or suspension.

        Args:
            workflow: Workflow to execute.
            user: User on whose behalf the workflow runs.
            execution_id: Identifier of this execution.
            hooks: Lifecycle callbacks; the only place side effects happen.
            trigger_data: Payload from the trigger (webhook body, etc.).
            resume_after: Position of the step that suspended the previous
                run. Only steps positioned after it are executed.
            previous_results: Results recorded by earlier runs of this
                execution, made available to templates and conditions.

        Returns:
            The terminal :class:`ExecutionResult` of this run.
        """
        hooks = hooks or ExecutionHooks()
        started_at = utcnow()
        context = create_context(
            user, WorkflowRef(id=workflow.id, name=workflow.name), execution_id, trigger_data
        )
        definition = workflow.definition
        steps_by_id = {step.id: step for step in definition.steps}

        skipped: Set[str] = set()
        for prior in previous_results or []:
            context.step_results[prior.step_id] = prior
            if prior.status == "skipped":
                skipped.add(prior.step_id)
        for prior in list(context.step_results.values()):
            prior_step = steps_by_id.get(prior.step_id)
            if prior_step is not None and prior_step.type == CONDITIONAL_STEP_TYPE:
                skipped.update(self._branch_skips(prior, steps_by_id, context))

        results: List[StepResult] = []
        status = "running"
        error: Optional[str] = None
        resume_at: Optional[datetime] = None
        resume_position: Optional[int] = None

        async def record(result: StepResult) -> None:
            results.append(result)
            context.step_results[result.step_id] = result
            await _call(hooks.on_step_complete, result)

        try:
            pending: List[Step] = []
            if definition.steps:
                pending = self._pending_steps(definition, resume_after)
            else:
                status = "failed"
                error = "Workflow has no steps"

            for step in pending:
                if step.id in skipped or step.id in context.step_results:
                    continue

                if hooks.should_continue is not None and not await _call(hooks.should_continue):
                    status = "cancelled"
                    error = "Execution cancelled"
                    logger.info(f"Execution {execution_id} cancelled before step {step.id}")
                    break

                await _call(hooks.on_step_start, step.id)
                result = await self._execute_step(step, context)
                await record(result)

                if result.status == "failed":
                    status = "failed"
                    error = f'Step "{step.name}" failed: {result.error}'
                    logger.warning(f"Execution {execution_id}: {error}")
                    break

                if result.status == "waiting":
                    status = "waiting"
                    resume_position = step.position
                    resume_at = self._resume_at(result)
                    logger.info(
                        f"Execution {execution_id} waiting after step {step.id} until {resume_at}"
                    )
                    break

                if step.type == CONDITIONAL_STEP_TYPE:
                    for step_id in self._branch_skips(result, steps_by_id, context):
                        skipped.add(step_id)
                        await record(
                            StepResult.skipped(
                                step_id,
                                {"reason": "branch not taken", "conditionStepId": step.id},
                            )
                        )

            if status == "running":
                status = "completed"
        except Exception as exc:
            logger.exception(f"Execution {execution_id} aborted")
            status = "failed"
            error = str(exc) or exc.__class__.__name__

        completed_at = utcnow()
        return ExecutionResult(
            execution_id=execution_id,
            status=status,
            steps=results,
            error=error,
            started_at=started_at,
            completed_at=completed_at,
            duration=elapsed_ms(started_at, completed_at),
            resume_at=resume_at,
            resume_after=resume_position,
        )

    def _pending_steps(
        self, definition: WorkflowDefinition, resume_after: Optional[int]
    ) -> List[Step]:
        """Steps left to run, in position order, excluding the trigger step."""
        if resume_after is None:
            trigger = definition.trigger_step
            start = trigger.position if trigger is not None else None
        else:
            start = resume_after
        return [
            step
            for step in definition.ordered_steps()
            if step.id != definition.trigger_step_id
            and (start is None or step.position > start)
        ]

    async def _execute_step(self, step: Step, context: ExecutionContext) -> StepResult:
        started_at = utcnow()
        try:
            handler = self._registry.get(step.type)
        except HandlerNotFoundError as exc:
            logger.error(str(exc))
            return StepResult.finished(step.id, "failed", started_at, error=str(exc))

        logger.info(f"Running step {step.id} ({step.type})")
        try:
            result = await handler.execute(step, context)
        except Exception as exc:
            logger.exception(f"Handler for step {step.id} raised")
            return StepResult.finished(
                step.id, "failed", started_at, error=str(exc) or exc.__class__.__name__
            )

        if result.status not in _HANDLER_STATUSES:
            return StepResult.finished(
                step.id,
                "failed",
                started_at,
                error=f"Handler '{step.type}' returned invalid status '{result.status}'",
            )
        return result

    @staticmethod
    def _resume_at(result: StepResult) -> Optional[datetime]:
        data = result.data if isinstance(result.data, dict) else {}
        value = data.get("resumeAt")
        return datetime.fromisoformat(value) if isinstance(value, str) else None

    @staticmethod
    def _branch_skips(
        result: StepResult, steps_by_id: Dict[str, Step], context: ExecutionContext
    ) -> List[str]:
        """Step ids of the branch not taken, ordered by position.

        A skipped conditional takes both of its own branches with it; ids
        that also appear in the chosen branch stay runnable.
        """
        data = result.data if isinstance(result.data, dict) else {}
        if result.status != "completed" or "conditionResult" not in data:
            return []
        if data["conditionResult"]:
            chosen, unchosen = data.get("trueSteps") or [], data.get("falseSteps") or []
        else:
            chosen, unchosen = data.get("falseSteps") or [], data.get("trueSteps") or []

        chosen_ids = set(chosen)
        found: Set[str] = set()
        queue = list(unchosen)
        while queue:
            step_id = queue.pop(0)
            if (
                step_id in chosen_ids
                or step_id in found
                or step_id not in steps_by_id
                or step_id in context.step_results
            ):
                continue
            found.add(step_id)
            step = steps_by_id[step_id]
            if step.type == CONDITIONAL_STEP_TYPE:
                queue.extend(step.config.get("true_steps") or [])
                queue.extend(step.config.get("false_steps") or [])
        return sorted(found, key=lambda sid: steps_by_id[sid].position)


def create_executor(registry: Optional[HandlerRegistry] = None) -> WorkflowExecutor:
    """Create a workflow executor, with the built-in handlers by default."""
    if registry is None:
        from .registry import create_registry

        registry = create_registry()
    return WorkflowExecutor(registry)
