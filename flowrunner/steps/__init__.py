"""Built-in step handlers."""

from __future__ import annotations

from typing import List, Optional

import httpx

from ..config import FlowRunnerConfig, load_config
from .base import StepHandler, StepOutcome
from .conditional import ConditionalStepHandler
from .delay import DelayStepHandler
from .http_request import HttpRequestStepHandler
from .send_email import SendEmailStepHandler
from .send_slack import SendSlackStepHandler


def get_all_handlers(
    config: Optional[FlowRunnerConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[StepHandler]:
    """Instantiate every built-in handler from ``config``.

    ``transport`` is handed to the HTTP-based handlers; tests pass an
    ``httpx.MockTransport`` here.
    """

    config = config or load_config()
    return [
        SendEmailStepHandler(
            api_key=config.email.api_key,
            from_email=config.email.from_email,
            api_url=config.email.api_url,
            site_domain=config.email.site_domain,
            timeout=config.http.timeout,
            retry_defaults=config.retry,
            transport=transport,
        ),
        SendSlackStepHandler(
            timeout=config.http.timeout, retry_defaults=config.retry, transport=transport
        ),
        HttpRequestStepHandler(
            timeout=config.http.timeout, retry_defaults=config.retry, transport=transport
        ),
        DelayStepHandler(),
        ConditionalStepHandler(),
    ]


__all__ = [
    "StepHandler",
    "StepOutcome",
    "ConditionalStepHandler",
    "DelayStepHandler",
    "HttpRequestStepHandler",
    "SendEmailStepHandler",
    "SendSlackStepHandler",
    "get_all_handlers",
]
