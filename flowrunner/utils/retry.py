"""Bounded retry with backoff for network calls."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Literal, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..errors import ConfigValidationError, TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Retry settings; all delays are in milliseconds."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1, description="Total attempts")
    base_delay: int = Field(default=1000, ge=0)
    max_delay: int = Field(default=30_000, ge=0)
    backoff: Literal["exponential", "linear", "fixed"] = "exponential"
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: int = Field(default=0, ge=0, description="Upper bound of random extra delay")
    retryable_statuses: Tuple[int, ...] = (408, 429, 500, 502, 503, 504)


@dataclass
class RetryResult(Generic[T]):
    """Outcome of :func:`with_retry`."""

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    attempts: int = 0
    total_delay: int = 0
    delays: List[int] = field(default_factory=list)


def compute_backoff(attempt: int, policy: Optional[RetryPolicy] = None) -> int:
    """Compute the delay in ms before retrying after failed ``attempt`` (1-based)."""
    policy = policy or RetryPolicy()
    if policy.backoff == "exponential":
        delay = policy.base_delay * policy.multiplier ** (attempt - 1)
    elif policy.backoff == "linear":
        delay = policy.base_delay * attempt
    else:
        delay = policy.base_delay
    delay = min(delay, policy.max_delay)
    if policy.jitter:
        delay += random.uniform(0, policy.jitter)
    return int(delay)


async def schedule_retry(delay_ms: int) -> None:
    """Sleep for the computed backoff delay before retrying."""
    await asyncio.sleep(delay_ms / 1000)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    should_retry: Optional[Callable[[T], bool]] = None,
) -> RetryResult[T]:
    """Run ``operation`` until it succeeds or the attempt budget is spent.

    Args:
        operation: Coroutine factory performing one attempt.
        policy: Retry settings. ``None`` means a single attempt.
        should_retry: Predicate marking a returned value as retryable, e.g.
            an HTTP 503 response.

    Only :class:`TransientNetworkError` is retried; any other exception
    propagates. When the budget runs out on a retryable value, that value is
    returned with ``success=True`` so the caller can report it.
    """
    max_attempts = policy.max_attempts if policy else 1
    result: RetryResult[T] = RetryResult(success=False)

    for attempt in range(1, max_attempts + 1):
        result.attempts = attempt
        try:
            value = await operation()
        except TransientNetworkError as exc:
            result.error = str(exc)
            if not exc.retryable or attempt == max_attempts:
                break
            logger.warning(f"Attempt {attempt}/{max_attempts} failed: {exc}")
        else:
            if should_retry is None or not should_retry(value) or attempt == max_attempts:
                result.success = True
                result.value = value
                result.error = None
                return result
            logger.warning(f"Attempt {attempt}/{max_attempts} returned a retryable result")

        delay = compute_backoff(attempt, policy)
        result.delays.append(delay)
        result.total_delay += delay
        await schedule_retry(delay)

    if result.error is None:
        result.error = "Operation failed after retries"
    return result


def parse_retry_config(
    value: Any, defaults: Optional[RetryPolicy] = None
) -> Optional[RetryPolicy]:
    """Build a :class:`RetryPolicy` from a step's ``retry`` setting.

    ``False``, ``0`` or missing disables retry, ``True`` uses ``defaults``, an integer
    sets the attempt count and a mapping overrides individual fields.
    """
    defaults = defaults or RetryPolicy()
    if value is None or value is False:
        return None
    if value is True:
        return defaults
    if isinstance(value, int):
        if value < 0:
            raise ConfigValidationError(f"Invalid retry configuration: {value!r}")
        if value == 0:
            return None
        return defaults.model_copy(update={"max_attempts": value})
    if isinstance(value, dict):
        try:
            overrides = RetryPolicy.model_validate(value)
        except ValidationError as exc:
            raise ConfigValidationError(f"Invalid retry configuration: {exc}") from exc
        return defaults.model_copy(update=overrides.model_dump(exclude_unset=True))
    raise ConfigValidationError(f"Invalid retry configuration: {value!r}")
