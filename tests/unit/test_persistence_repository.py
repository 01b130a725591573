import uuid
from datetime import timedelta

import pytest

import flowrunner.persistence as persistence
from flowrunner.contracts import ExecutionResult, StepResult, utcnow
from flowrunner.persistence import (
    InMemoryExecutionRepository,
    SQLiteExecutionRepository,
    get_repository,
)
from helpers import make_workflow, step, trigger


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryExecutionRepository()
    return SQLiteExecutionRepository(tmp_path / "executions.db")


def _workflow(workflow_id="wf-1"):
    return make_workflow(
        [trigger(), step("wait", "delay", 1, duration=1, unit="hours")], id=workflow_id
    )


def _result(execution_id, status, **kwargs):
    now = utcnow()
    return ExecutionResult(
        execution_id=execution_id, status=status, started_at=now, completed_at=now, **kwargs
    )


@pytest.mark.asyncio
async def test_repository_crud(repo, user):
    exec_id = str(uuid.uuid4())
    created = await repo.create_execution(exec_id, _workflow(), user, {"email": "a@b.co"})
    assert created.status == "pending"

    await repo.mark_running(exec_id)
    await repo.mark_step_started(exec_id, "wait", 1)
    running = await repo.get_execution(exec_id)
    assert running.status == "running"
    assert running.steps[0].status == "running"
    assert running.step_results() == []

    result = StepResult.finished("wait", "waiting", utcnow(), data={"resumeAt": "x"})
    await repo.record_step_result(exec_id, result, 1)
    resume_at = utcnow() + timedelta(hours=1)
    await repo.finish_execution(_result(exec_id, "waiting", resume_at=resume_at, resume_after=1))

    record = await repo.get_execution(exec_id)
    assert record.status == "waiting"
    assert record.trigger_data == {"email": "a@b.co"}
    assert record.workflow.definition.trigger_step_id == "trigger"
    assert record.user.email == user.email
    assert record.resume_after == 1
    assert record.resume_at == resume_at
    assert record.completed_at is None
    assert len(record.steps) == 1
    assert record.steps[0].position == 1
    assert record.step_results()[0].data == {"resumeAt": "x"}

    executions = await repo.list_executions()
    assert [e.id for e in executions] == [exec_id]
    assert await repo.list_executions(status="completed") == []


@pytest.mark.asyncio
async def test_record_step_result_is_an_upsert(repo, user):
    exec_id = str(uuid.uuid4())
    await repo.create_execution(exec_id, _workflow(), user)
    await repo.mark_step_started(exec_id, "wait", 1)
    await repo.mark_step_started(exec_id, "wait", 1)
    await repo.record_step_result(exec_id, StepResult.finished("wait", "failed", utcnow(), error="x"))
    await repo.record_step_result(exec_id, StepResult.finished("wait", "completed", utcnow()))

    record = await repo.get_execution(exec_id)
    assert len(record.steps) == 1
    assert record.steps[0].status == "completed"
    assert record.steps[0].error is None


@pytest.mark.asyncio
async def test_due_and_active_executions(repo, user):
    now = utcnow()
    due_id, later_id, done_id = "due", "later", "done"
    for exec_id, workflow_id in ((due_id, "wf-a"), (later_id, "wf-b"), (done_id, "wf-c")):
        await repo.create_execution(exec_id, _workflow(workflow_id), user)
        await repo.mark_running(exec_id)

    await repo.finish_execution(
        _result(due_id, "waiting", resume_at=now - timedelta(minutes=1), resume_after=1)
    )
    await repo.finish_execution(
        _result(later_id, "waiting", resume_at=now + timedelta(hours=1), resume_after=1)
    )
    await repo.finish_execution(_result(done_id, "completed"))

    due = await repo.list_due_executions(now)
    assert [r.id for r in due] == [due_id]
    assert await repo.list_due_executions(now, limit=0) == []

    assert await repo.has_active_execution("wf-a")
    assert await repo.has_active_execution("wf-b")
    assert not await repo.has_active_execution("wf-c")
    assert not await repo.has_active_execution("wf-unknown")


@pytest.mark.asyncio
async def test_cancellation_flags(repo, user):
    await repo.create_execution("e1", _workflow(), user)
    await repo.mark_running("e1")
    assert not await repo.is_cancel_requested("e1")
    await repo.request_cancel("e1")
    assert await repo.is_cancel_requested("e1")

    await repo.mark_cancelled("e1")
    record = await repo.get_execution("e1")
    assert record.status == "cancelled"
    assert record.error == "Execution cancelled"
    assert record.completed_at is not None


@pytest.mark.asyncio
async def test_missing_execution(repo):
    assert await repo.get_execution("nope") is None
    assert not await repo.is_cancel_requested("nope")


def test_get_repository_selects_backend(tmp_path, monkeypatch):
    assert isinstance(get_repository(), InMemoryExecutionRepository)
    assert get_repository() is get_repository()

    sqlite_repo = get_repository(f"sqlite://{tmp_path / 'x.db'}")
    assert isinstance(sqlite_repo, SQLiteExecutionRepository)
    assert persistence._repository_instance is sqlite_repo

    with pytest.raises(ValueError):
        get_repository("mysql://localhost/db")

    persistence.reset_repository()
    monkeypatch.setenv("FLOWRUNNER_DATABASE_URL", f"sqlite://{tmp_path / 'env.db'}")
    assert isinstance(get_repository(), SQLiteExecutionRepository)
