import pytest

import flowrunner.persistence as persistence
from flowrunner.contracts import UserInfo
from flowrunner.context import create_context


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from a developer's config file and credentials."""
    monkeypatch.setenv("FLOWRUNNER_CONFIG", str(tmp_path / "missing-config.yaml"))
    for name in (
        "FLOWRUNNER_DATABASE_URL",
        "DATABASE_URL",
        "RESEND_API_KEY",
        "RESEND_FROM_EMAIL",
        "FLOWRUNNER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    persistence.reset_repository()
    yield
    persistence.reset_repository()


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    """Record backoff delays instead of sleeping."""
    delays: list[int] = []

    async def fake_schedule_retry(delay_ms: int) -> None:
        delays.append(delay_ms)

    monkeypatch.setattr("flowrunner.utils.retry.schedule_retry", fake_schedule_retry)
    return delays


@pytest.fixture
def user() -> UserInfo:
    return UserInfo(id="user-1", email="owner@example.com", name="Owner")


@pytest.fixture
def context_factory(user):
    def factory(trigger_data=None, step_results=None, execution_id="exec-1"):
        context = create_context(
            user, {"id": "wf-1", "name": "Test workflow"}, execution_id, trigger_data
        )
        for result in step_results or []:
            context.step_results[result.step_id] = result
        return context

    return factory
