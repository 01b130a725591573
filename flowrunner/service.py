"""Execution lifecycle service.

Ties the executor to a repository: creates execution records, persists step
results through executor hooks, resumes waiting executions and handles
cancellation requests.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .config import FlowRunnerConfig, load_config
from .contracts import ExecutionResult, StepResult, UserInfo, WorkflowInput, can_transition, utcnow
from .errors import ExecutionStateError, WorkflowAlreadyRunningError
from .executor import ExecutionHooks, WorkflowExecutor, create_executor
from .persistence import ExecutionRecord, ExecutionRepository, get_repository

logger = logging.getLogger(__name__)


class ExecutionService:
    """Start, resume and cancel persisted workflow executions."""

    def __init__(
        self,
        executor: Optional[WorkflowExecutor] = None,
        repository: Optional[ExecutionRepository] = None,
        config: Optional[FlowRunnerConfig] = None,
    ) -> None:
        self.config = config or load_config()
        self.executor = executor or create_executor()
        self.repository = repository or get_repository()

    def _hooks(self, workflow: WorkflowInput, execution_id: str) -> ExecutionHooks:
        positions = {step.id: step.position for step in workflow.definition.steps}

        async def on_step_start(step_id: str) -> None:
            await self.repository.mark_step_started(
                execution_id, step_id, positions.get(step_id)
            )

        async def on_step_complete(result: StepResult) -> None:
            await self.repository.record_step_result(
                execution_id, result, positions.get(result.step_id)
            )

        async def should_continue() -> bool:
            return not await self.repository.is_cancel_requested(execution_id)

        return ExecutionHooks(
            on_step_start=on_step_start,
            on_step_complete=on_step_complete,
            should_continue=should_continue,
        )

    async def _run(
        self,
        record: ExecutionRecord,
        *,
        resume_after: Optional[int] = None,
        previous_results: Optional[List[StepResult]] = None,
    ) -> ExecutionResult:
        if not can_transition(record.status, "running"):
            raise ExecutionStateError(
                f"Execution {record.id} cannot run from status '{record.status}'"
            )
        await self.repository.mark_running(record.id)
        result = await self.executor.execute(
            record.workflow,
            record.user,
            record.id,
            self._hooks(record.workflow, record.id),
            trigger_data=record.trigger_data,
            resume_after=resume_after,
            previous_results=previous_results,
        )
        await self.repository.finish_execution(result)
        logger.info(f"Execution {record.id} finished with status {result.status}")
        return result

    async def start(
        self,
        workflow: WorkflowInput,
        user: UserInfo | Mapping[str, Any],
        trigger_data: Optional[Dict[str, Any]] = None,
        execution_id: Optional[str] = None,
    ) -> ExecutionResult:
        """Create and run a new execution of ``workflow``."""
        if isinstance(user, Mapping):
            user = UserInfo.model_validate(user)
        if await self.repository.has_active_execution(workflow.id):
            raise WorkflowAlreadyRunningError(workflow.id)

        execution_id = execution_id or str(uuid.uuid4())
        record = await self.repository.create_execution(
            execution_id, workflow, user, trigger_data
        )
        logger.info(f"Starting execution {execution_id} of workflow {workflow.id}")
        return await self._run(record)

    async def resume(self, execution_id: str) -> ExecutionResult:
        """Continue a waiting execution after the step that suspended it."""
        record = await self.repository.get_execution(execution_id)
        if record is None:
            raise ExecutionStateError(f"Execution {execution_id} not found")
        if record.status != "waiting":
            raise ExecutionStateError(
                f"Execution {execution_id} is not waiting (status '{record.status}')"
            )
        if await self.repository.is_cancel_requested(execution_id):
            await self.repository.mark_cancelled(execution_id)
            raise ExecutionStateError(f"Execution {execution_id} was cancelled")

        logger.info(f"Resuming execution {execution_id} after position {record.resume_after}")
        return await self._run(
            record,
            resume_after=record.resume_after,
            previous_results=record.step_results(),
        )

    async def resume_due(
        self, now: Optional[datetime] = None, limit: Optional[int] = None
    ) -> List[ExecutionResult]:
        """Resume every waiting execution whose resume time has passed."""
        now = now or utcnow()
        limit = limit if limit is not None else self.config.scheduler.batch_size
        due = await self.repository.list_due_executions(now, limit)
        results: List[ExecutionResult] = []
        for record in due:
            try:
                results.append(await self.resume(record.id))
            except ExecutionStateError as exc:
                logger.warning(f"Skipping execution {record.id}: {exc}")
        return results

    async def cancel(self, execution_id: str) -> ExecutionRecord:
        """Cancel an execution.

        Waiting executions are cancelled at once; running ones are flagged and
        stop before their next step.
        """
        record = await self.repository.get_execution(execution_id)
        if record is None:
            raise ExecutionStateError(f"Execution {execution_id} not found")
        if record.status == "waiting":
            await self.repository.mark_cancelled(execution_id)
        elif record.status == "running":
            await self.repository.request_cancel(execution_id)
        else:
            raise ExecutionStateError(
                f"Execution {execution_id} already finished with status '{record.status}'"
            )
        logger.info(f"Cancellation requested for execution {execution_id}")
        return await self.repository.get_execution(execution_id)
