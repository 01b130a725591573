import json

import httpx
import pytest

from flowrunner.contracts import Step
from flowrunner.steps import SendEmailStepHandler
from flowrunner.steps.send_email import split_addresses


def _step(**config):
    return Step(id="mail", type="send_email", name="Send Email", config=config, position=2)


def _handler(responder, **kwargs):
    kwargs.setdefault("api_key", "re_test")
    kwargs.setdefault("from_email", "bot@example.com")
    return SendEmailStepHandler(transport=httpx.MockTransport(responder), **kwargs)


@pytest.mark.asyncio
async def test_sends_email_through_resend(context_factory):
    seen = {}

    def responder(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "msg_123"})

    step = _step(
        to="{{trigger.data.email}}, team@example.com",
        subject="Welcome {{trigger.data.name}}",
        body="<p>Hello {{trigger.data.name}}</p>",
        cc=["boss@example.com"],
    )
    context = context_factory({"email": "new@example.com", "name": "Ada"})
    result = await _handler(responder).execute(step, context)

    assert result.status == "completed"
    assert result.data == {
        "messageId": "msg_123",
        "to": ["new@example.com", "team@example.com"],
        "subject": "Welcome Ada",
        "sentCount": 2,
    }
    assert seen["auth"] == "Bearer re_test"
    assert seen["payload"]["from"] == "bot@example.com"
    assert seen["payload"]["html"] == "<p>Hello Ada</p>"
    assert "text" not in seen["payload"]
    assert seen["payload"]["cc"] == ["boss@example.com"]


@pytest.mark.asyncio
async def test_plain_text_body_and_default_sender(context_factory):
    seen = {}

    def responder(request: httpx.Request) -> httpx.Response:
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "msg_1"})

    handler = _handler(responder, from_email=None, site_domain="flows.example.com")
    result = await handler.execute(
        _step(to="a@example.com", subject="Hi", body="Plain"), context_factory()
    )
    assert result.status == "completed"
    assert seen["payload"]["text"] == "Plain"
    assert seen["payload"]["from"] == "noreply@flows.example.com"


@pytest.mark.asyncio
async def test_missing_api_key_fails(context_factory):
    handler = SendEmailStepHandler(api_key=None)
    result = await handler.execute(_step(to="a@example.com", subject="s", body="b"), context_factory())
    assert result.status == "failed"
    assert result.error == "RESEND_API_KEY is not configured"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "config, message",
    [
        ({"subject": "s", "body": "b"}, "recipient (to) is required"),
        ({"to": "a@example.com", "body": "b"}, "subject is required"),
        ({"to": "a@example.com", "subject": "s"}, "body is required"),
        ({"to": "{{trigger.data.email}}", "subject": "s", "body": "b"}, "could not be resolved"),
        ({"to": "not-an-email", "subject": "s", "body": "b"}, "Invalid email address"),
    ],
)
async def test_invalid_configuration_fails(context_factory, config, message):
    def responder(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    result = await _handler(responder).execute(_step(**config), context_factory())
    assert result.status == "failed"
    assert message in result.error


@pytest.mark.asyncio
async def test_api_error_message_is_reported(context_factory):
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "Invalid `from` field"})

    result = await _handler(responder).execute(
        _step(to="a@example.com", subject="s", body="b"), context_factory()
    )
    assert result.status == "failed"
    assert result.error == "Resend API error: Invalid `from` field"
    assert result.data["status"] == 422


def test_split_addresses():
    assert split_addresses("a@x.io; b@x.io ,c@x.io") == ["a@x.io", "b@x.io", "c@x.io"]
    assert split_addresses(["a@x.io", " b@x.io "]) == ["a@x.io", "b@x.io"]
