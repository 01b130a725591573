"""Send Slack message step handler using incoming webhooks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from ..constants import DEFAULT_HTTP_TIMEOUT
from ..context import ExecutionContext, template_resolver
from ..contracts import Step
from ..errors import ConfigValidationError, StepFailure
from ..utils.http import request_with_retry
from ..utils.retry import RetryPolicy, parse_retry_config
from .base import StepHandler, StepOutcome, retry_counters

logger = logging.getLogger(__name__)


class SendSlackStepHandler(StepHandler):
    type = "send_slack"
    required_fields = ("webhook_url",)

    def __init__(
        self,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        retry_defaults: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._retry_defaults = retry_defaults
        self._transport = transport

    async def run(
        self, step: Step, context: ExecutionContext, started_at: datetime
    ) -> StepOutcome:
        config = step.config
        self.require(config, "webhook_url", "Slack webhook URL is required (provide webhook_url)")
        retry = parse_retry_config(config.get("retry"), self._retry_defaults)

        url = template_resolver.resolve(config["webhook_url"], context)
        payload: Dict[str, Any] = {
            "text": template_resolver.resolve(config.get("message") or "", context)
        }
        if config.get("username"):
            payload["username"] = template_resolver.resolve(config["username"], context)
        if config.get("icon_emoji"):
            payload["icon_emoji"] = config["icon_emoji"]
        elif config.get("icon_url"):
            payload["icon_url"] = template_resolver.resolve(config["icon_url"], context)
        for field in ("attachments", "blocks"):
            value = config.get(field)
            if value is None:
                continue
            if not isinstance(value, list):
                raise ConfigValidationError(f"Slack '{field}' must be a list")
            payload[field] = template_resolver.resolve_object(value, context)

        logger.info(f"Step {step.id}: posting Slack message")
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            outcome = await request_with_retry(client, "POST", url, retry, json=payload)

        counters = retry_counters(outcome.attempts, outcome.total_delay)
        if not outcome.success:
            raise StepFailure(outcome.error or "Failed to send Slack message", data=counters)

        response = outcome.value
        if not response.is_success:
            raise StepFailure(
                f"Slack API error: {response.status_code} {response.reason_phrase} - {response.text}",
                data={"status": response.status_code, **counters},
            )

        data: Dict[str, Any] = {"sent": True, "response": response.text}
        if outcome.attempts > 1:
            data.update(counters)
        return StepOutcome(data=data)
