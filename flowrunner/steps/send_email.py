"""Send email step handler backed by the Resend API."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..constants import DEFAULT_HTTP_TIMEOUT, RESEND_API_URL
from ..context import ExecutionContext, has_unresolved, template_resolver
from ..contracts import Step
from ..errors import ConfigValidationError, StepFailure
from ..utils.http import read_body, request_with_retry
from ..utils.retry import RetryPolicy, parse_retry_config
from .base import StepHandler, StepOutcome, retry_counters

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HTML_RE = re.compile(r"<[a-zA-Z/][^>]*>")


def split_addresses(value: Any) -> List[str]:
    """Normalise a string or list of addresses into a list."""
    if isinstance(value, str):
        items = re.split(r"[,;]", value)
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        raise ConfigValidationError(f"Invalid recipient value: {value!r}")
    return [item.strip() for item in items if item.strip()]


class SendEmailStepHandler(StepHandler):
    type = "send_email"
    required_fields = ("to", "subject", "body")

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        api_url: str = RESEND_API_URL,
        site_domain: str = "localhost",
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        retry_defaults: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._api_url = api_url
        self._site_domain = site_domain
        self._timeout = timeout
        self._retry_defaults = retry_defaults
        self._transport = transport

    def _resolve_addresses(
        self, field: str, value: Any, context: ExecutionContext
    ) -> List[str]:
        resolved = template_resolver.resolve_object(value, context)
        addresses = split_addresses(resolved)
        for address in addresses:
            if has_unresolved(address):
                raise ConfigValidationError(
                    f"Template variable in '{field}' field could not be resolved. "
                    f"Original: {value!r}, Resolved: {address!r}"
                )
            if not _EMAIL_RE.match(address):
                raise ConfigValidationError(f"Invalid email address in '{field}' field: {address}")
        return addresses

    def _build_payload(
        self,
        sender: str,
        to: List[str],
        subject: str,
        body: str,
        config: Mapping[str, Any],
        context: ExecutionContext,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"from": sender, "to": to, "subject": subject}
        if _HTML_RE.search(body):
            payload["html"] = body
        else:
            payload["text"] = body
        if config.get("replyTo"):
            payload["reply_to"] = self._resolve_addresses("replyTo", config["replyTo"], context)
        for field in ("cc", "bcc"):
            if config.get(field):
                payload[field] = self._resolve_addresses(field, config[field], context)
        return payload

    async def run(
        self, step: Step, context: ExecutionContext, started_at: datetime
    ) -> StepOutcome:
        if not self._api_key:
            raise ConfigValidationError("RESEND_API_KEY is not configured")

        config = step.config
        self.require(config, "to", "Email recipient (to) is required")
        self.require(config, "subject", "Email subject is required")
        self.require(config, "body", "Email body is required")
        retry = parse_retry_config(config.get("retry"), self._retry_defaults)

        to = self._resolve_addresses("to", config["to"], context)
        subject = template_resolver.resolve(config["subject"], context)
        body = template_resolver.resolve(config["body"], context)
        sender = template_resolver.resolve(
            config.get("from") or self._from_email or f"noreply@{self._site_domain}", context
        )
        payload = self._build_payload(sender, to, subject, body, config, context)

        logger.info(f"Step {step.id}: sending email to {len(to)} recipient(s)")
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            outcome = await request_with_retry(
                client,
                "POST",
                self._api_url,
                retry,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )

        counters = retry_counters(outcome.attempts, outcome.total_delay)
        if not outcome.success:
            raise StepFailure(f"Resend API error: {outcome.error}", data=counters)

        response = outcome.value
        response_body = read_body(response)
        if not response.is_success:
            message = (
                response_body.get("message")
                if isinstance(response_body, dict)
                else None
            ) or response.reason_phrase
            raise StepFailure(
                f"Resend API error: {message}",
                data={"status": response.status_code, "body": response_body, **counters},
            )

        data: Dict[str, Any] = {
            "messageId": response_body.get("id") if isinstance(response_body, dict) else None,
            "to": to,
            "subject": subject,
            "sentCount": len(to),
        }
        if outcome.attempts > 1:
            data.update(counters)
        return StepOutcome(data=data)
