"""HTTP helpers shared by network-facing step handlers."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from ..errors import ConfigValidationError, TransientNetworkError
from .retry import RetryPolicy, RetryResult, with_retry


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    policy: Optional[RetryPolicy] = None,
    **kwargs: Any,
) -> RetryResult[httpx.Response]:
    """Send one request, retrying network errors and retryable statuses."""

    async def attempt() -> httpx.Response:
        try:
            return await client.request(method, url, **kwargs)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise ConfigValidationError(f"Invalid URL '{url}': {exc}") from exc
        except httpx.TimeoutException as exc:
            raise TransientNetworkError(f"Request to {url} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(
                f"Request to {url} failed: {str(exc) or exc.__class__.__name__}"
            ) from exc

    should_retry = None
    if policy is not None:
        should_retry = lambda response: response.status_code in policy.retryable_statuses  # noqa: E731

    return await with_retry(attempt, policy, should_retry=should_retry)


def read_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON when declared, else as text."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text
