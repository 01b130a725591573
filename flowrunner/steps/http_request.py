"""HTTP request step handler.

Calls any external API. Supports templated URL, headers and body, a
per-step timeout and optional retry with backoff.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

import httpx

from ..constants import BODY_METHODS, DEFAULT_HTTP_METHOD, DEFAULT_HTTP_TIMEOUT, HTTP_METHODS
from ..context import ExecutionContext, template_resolver
from ..contracts import Step
from ..errors import ConfigValidationError, StepFailure
from ..utils.http import read_body, request_with_retry
from ..utils.retry import RetryPolicy, parse_retry_config
from .base import StepHandler, StepOutcome, retry_counters

logger = logging.getLogger(__name__)


def _method(config: Mapping[str, Any]) -> str:
    method = str(config.get("method") or DEFAULT_HTTP_METHOD).upper()
    if method not in HTTP_METHODS:
        raise ConfigValidationError(
            f"Invalid HTTP method: {config.get('method')}. Must be one of: {', '.join(HTTP_METHODS)}"
        )
    return method


class HttpRequestStepHandler(StepHandler):
    type = "http_request"
    required_fields = ("url",)

    def __init__(
        self,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        retry_defaults: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._retry_defaults = retry_defaults
        self._transport = transport

    def _step_timeout(self, config: Mapping[str, Any]) -> float:
        raw = config.get("timeout")
        if raw is None:
            return self._timeout
        try:
            timeout = float(raw)
        except (TypeError, ValueError):
            raise ConfigValidationError(f"Invalid timeout: {raw!r}") from None
        if timeout <= 0:
            raise ConfigValidationError("Timeout must be a positive number of seconds")
        return timeout

    async def run(
        self, step: Step, context: ExecutionContext, started_at: datetime
    ) -> StepOutcome:
        config = step.config
        if not isinstance(config.get("url"), str) or not config["url"].strip():
            raise ConfigValidationError("HTTP request requires a valid URL")
        method = _method(config)
        timeout = self._step_timeout(config)
        retry = parse_retry_config(config.get("retry"), self._retry_defaults)

        raw_headers = config.get("headers") or {}
        if not isinstance(raw_headers, Mapping):
            raise ConfigValidationError("HTTP headers must be a mapping")

        url = template_resolver.resolve(config["url"], context)
        headers = {
            "Content-Type": "application/json",
            **{k: str(v) for k, v in template_resolver.resolve_object(raw_headers, context).items()},
        }

        content: Optional[str] = None
        raw_body = config.get("body")
        if raw_body is not None and method in BODY_METHODS:
            if isinstance(raw_body, str):
                content = template_resolver.resolve(raw_body, context)
            else:
                content = json.dumps(template_resolver.resolve_object(raw_body, context))

        logger.info(f"Step {step.id}: {method} {url}")
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            outcome = await request_with_retry(
                client, method, url, retry, headers=headers, content=content
            )

        counters = retry_counters(outcome.attempts, outcome.total_delay) if retry else {}
        if not outcome.success:
            raise StepFailure(outcome.error or "HTTP request failed", data=counters or None)

        response = outcome.value
        data = {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "body": read_body(response),
            **counters,
        }
        if not response.is_success:
            raise StepFailure(f"HTTP {response.status_code}: {response.reason_phrase}", data=data)
        return StepOutcome(data=data)

    def validate_config(self, config: Mapping[str, Any]) -> List[str]:
        errors = super().validate_config(config)
        try:
            _method(config)
        except ConfigValidationError as exc:
            errors.append(str(exc))
        try:
            parse_retry_config(config.get("retry"), self._retry_defaults)
        except ConfigValidationError as exc:
            errors.append(str(exc))
        return errors
