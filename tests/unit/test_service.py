"""Tests for the persisted execution lifecycle."""

from datetime import timedelta

import pytest

from flowrunner.config import FlowRunnerConfig
from flowrunner.contracts import utcnow
from flowrunner.errors import ExecutionStateError, WorkflowAlreadyRunningError
from flowrunner.executor import WorkflowExecutor
from flowrunner.persistence import InMemoryExecutionRepository
from flowrunner.registry import HandlerRegistry
from flowrunner.service import ExecutionService
from flowrunner.steps import ConditionalStepHandler, DelayStepHandler, StepHandler, StepOutcome
from helpers import make_workflow, step, trigger


class CountingHandler(StepHandler):
    type = "count"

    def __init__(self):
        self.calls = 0
        self.on_run = None

    async def run(self, step, context, started_at):
        self.calls += 1
        if self.on_run is not None:
            await self.on_run(context)
        return StepOutcome(data={"call": self.calls})


@pytest.fixture
def counter():
    return CountingHandler()


@pytest.fixture
def repo():
    return InMemoryExecutionRepository()


@pytest.fixture
def service(counter, repo):
    registry = HandlerRegistry([counter, DelayStepHandler(), ConditionalStepHandler()])
    return ExecutionService(WorkflowExecutor(registry), repo, FlowRunnerConfig())


def _delayed_workflow(workflow_id="wf-1"):
    return make_workflow(
        [
            trigger(),
            step("first", "count", 1),
            step("wait", "delay", 2, duration=1, unit="hours"),
            step("last", "count", 3),
        ],
        id=workflow_id,
    )


@pytest.mark.asyncio
async def test_start_persists_results(service, repo, user):
    workflow = make_workflow([trigger(), step("a", "count", 1), step("b", "count", 2)])
    result = await service.start(workflow, user, {"source": "test"}, execution_id="exec-1")

    assert result.status == "completed"
    record = await repo.get_execution("exec-1")
    assert record.status == "completed"
    assert record.trigger_data == {"source": "test"}
    assert [(s.step_id, s.status, s.position) for s in record.steps] == [
        ("a", "completed", 1),
        ("b", "completed", 2),
    ]
    assert record.completed_at is not None


@pytest.mark.asyncio
async def test_waiting_execution_blocks_second_start(service, user):
    await service.start(_delayed_workflow(), user)
    with pytest.raises(WorkflowAlreadyRunningError):
        await service.start(_delayed_workflow(), user)


@pytest.mark.asyncio
async def test_resume_runs_remaining_steps_once(service, repo, counter, user):
    first = await service.start(_delayed_workflow(), user, execution_id="exec-1")
    assert first.status == "waiting"
    assert counter.calls == 1

    resumed = await service.resume("exec-1")
    assert resumed.status == "completed"
    assert counter.calls == 2

    record = await repo.get_execution("exec-1")
    assert record.status == "completed"
    assert record.resume_at is None
    assert [s.step_id for s in record.steps] == ["first", "wait", "last"]

    with pytest.raises(ExecutionStateError):
        await service.resume("exec-1")


@pytest.mark.asyncio
async def test_resume_due_only_picks_elapsed_delays(service, user):
    await service.start(_delayed_workflow("wf-a"), user, execution_id="a")
    assert await service.resume_due(utcnow()) == []

    results = await service.resume_due(utcnow() + timedelta(hours=2))
    assert [(r.execution_id, r.status) for r in results] == [("a", "completed")]


@pytest.mark.asyncio
async def test_cancel_waiting_execution(service, repo, counter, user):
    await service.start(_delayed_workflow(), user, execution_id="exec-1")
    record = await service.cancel("exec-1")
    assert record.status == "cancelled"

    assert await repo.list_due_executions(utcnow() + timedelta(days=1)) == []
    with pytest.raises(ExecutionStateError):
        await service.resume("exec-1")
    assert counter.calls == 1


@pytest.mark.asyncio
async def test_cancel_running_execution_stops_before_next_step(service, repo, counter, user):
    async def cancel_self(context):
        await service.cancel(context.execution_id)

    counter.on_run = cancel_self
    workflow = make_workflow([trigger(), step("a", "count", 1), step("b", "count", 2)])
    result = await service.start(workflow, user, execution_id="exec-1")

    assert result.status == "cancelled"
    assert counter.calls == 1
    record = await repo.get_execution("exec-1")
    assert record.status == "cancelled"


@pytest.mark.asyncio
async def test_cancel_finished_execution_is_rejected(service, user):
    await service.start(make_workflow([trigger(), step("a", "count", 1)]), user, execution_id="e")
    with pytest.raises(ExecutionStateError):
        await service.cancel("e")
    with pytest.raises(ExecutionStateError):
        await service.cancel("missing")
