"""Bounded exponential-backoff retry for model provider calls."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Generic, List, Literal, Optional, Sequence, TypeVar

from planner.core.errors import AuthenticationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorClass = Literal["network", "rate-limit", "ai-service", "unknown"]

NON_RETRYABLE_MARKERS = (
    "invalid api key",
    "insufficient credits",
    "insufficient quota",
    "invalid request format",
    "authentication failed",
    "unauthorized",
)

_NETWORK_MARKERS = ("network", "timeout", "timed out", "connection")
_RATE_LIMIT_MARKERS = ("rate limit", "too many requests")
_AI_SERVICE_PATTERN = re.compile(r"openai|openrouter|anthropic|model|\bai\b")


@dataclass(frozen=True)
class RetryOptions:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed ``attempt`` (1-indexed)."""
        return min(self.base_delay * self.backoff_factor ** (attempt - 1), self.max_delay)


DEFAULT_OPTIONS = RetryOptions()


@dataclass
class RetryOutcome(Generic[T]):
    success: bool
    attempts: int
    total_delay: float
    value: Optional[T] = None
    error: Optional[BaseException] = None


@dataclass
class RetryStats:
    total_attempts: int
    success_rate: float
    average_delay: float
    total_delay: float


def is_non_retryable(error: BaseException) -> bool:
    if isinstance(error, AuthenticationError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in NON_RETRYABLE_MARKERS)


def classify_error(error: BaseException) -> ErrorClass:
    message = str(error).lower()
    if any(marker in message for marker in _NETWORK_MARKERS):
        return "network"
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return "rate-limit"
    if _AI_SERVICE_PATTERN.search(message):
        return "ai-service"
    return "unknown"


def strategy_options(error_class: ErrorClass, base: RetryOptions = DEFAULT_OPTIONS) -> RetryOptions:
    if error_class == "network":
        return replace(base, max_attempts=5, base_delay=0.5, backoff_factor=1.5)
    if error_class == "rate-limit":
        return replace(base, max_attempts=2, base_delay=5.0, backoff_factor=2.0)
    if error_class == "ai-service":
        return replace(base, max_attempts=3, base_delay=2.0, backoff_factor=2.0)
    return base


class RetryEngine:
    """Runs coroutine functions with bounded retries.

    ``sleep`` is injectable so tests can record delays instead of waiting.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self._sleep = sleep

    async def execute(
        self,
        op: Callable[[], Awaitable[T]],
        options: RetryOptions = DEFAULT_OPTIONS,
    ) -> RetryOutcome[T]:
        last_error: Optional[BaseException] = None
        total_delay = 0.0
        attempt = 0

        for attempt in range(1, options.max_attempts + 1):
            try:
                value = await op()
                return RetryOutcome(success=True, value=value, attempts=attempt, total_delay=total_delay)
            except Exception as exc:
                last_error = exc

            if is_non_retryable(last_error):
                logger.warning("Attempt %s failed with non-retryable error: %s", attempt, last_error)
                break
            if attempt == options.max_attempts:
                break

            delay = options.delay_for(attempt)
            total_delay += delay
            logger.warning("Attempt %s failed, retrying in %.2fs: %s", attempt, delay, last_error)
            await self._sleep(delay)

        return RetryOutcome(success=False, error=last_error, attempts=attempt, total_delay=total_delay)

    async def execute_with_strategy(
        self,
        op: Callable[[], Awaitable[T]],
        error_class: ErrorClass,
        options: RetryOptions = DEFAULT_OPTIONS,
    ) -> RetryOutcome[T]:
        return await self.execute(op, strategy_options(error_class, options))

    async def execute_parallel(
        self,
        ops: Sequence[Callable[[], Awaitable[T]]],
        options: RetryOptions = DEFAULT_OPTIONS,
    ) -> List[RetryOutcome[T]]:
        """Run every op to completion; one failure never cancels the others."""
        return list(await asyncio.gather(*(self.execute(op, options) for op in ops)))

    def wrap(
        self,
        op: Callable[[], Awaitable[T]],
        options: RetryOptions = DEFAULT_OPTIONS,
    ) -> Callable[[], Awaitable[RetryOutcome[T]]]:
        async def _wrapped() -> RetryOutcome[T]:
            return await self.execute(op, options)

        return _wrapped


def retry_stats(outcomes: Sequence[RetryOutcome[Any]]) -> RetryStats:
    if not outcomes:
        return RetryStats(total_attempts=0, success_rate=0.0, average_delay=0.0, total_delay=0.0)
    total_delay = sum(outcome.total_delay for outcome in outcomes)
    return RetryStats(
        total_attempts=sum(outcome.attempts for outcome in outcomes),
        success_rate=len([o for o in outcomes if o.success]) / len(outcomes),
        average_delay=total_delay / len(outcomes),
        total_delay=total_delay,
    )
