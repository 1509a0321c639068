"""One reusable retry policy for every outbound call."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any, ParamSpec, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")


def _log_retry(state: RetryCallState) -> None:
    """before_sleep hook: one structured line per scheduled retry."""
    error = state.outcome.exception() if state.outcome else None
    logger.warning(
        "outbound_call_retry",
        call=getattr(state.fn, "__qualname__", repr(state.fn)),
        attempt=state.attempt_number,
        sleep_seconds=round(state.next_action.sleep, 3) if state.next_action else 0.0,
        error_type=type(error).__name__ if error else None,
        error=str(error) if error else None,
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Attempts, exponential backoff with jitter, and which errors are retryable.

    ``max_attempts`` counts the first try. The last error is re-raised
    unchanged once attempts are exhausted.
    """

    max_attempts: int = 2
    base_delay: float = 1.0
    max_delay: float = 8.0
    jitter: float = 1.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], Awaitable[None]] | None = field(
        default=None, compare=False, repr=False
    )

    def _retrying(self) -> AsyncRetrying:
        kwargs: dict[str, Any] = {
            "stop": stop_after_attempt(self.max_attempts),
            "wait": wait_exponential_jitter(
                initial=self.base_delay, max=self.max_delay, jitter=self.jitter
            ),
            "retry": retry_if_exception_type(self.retry_on),
            "before_sleep": _log_retry,
            "reraise": True,
        }
        if self.sleep is not None:
            kwargs["sleep"] = self.sleep
        return AsyncRetrying(**kwargs)

    async def call(
        self, fn: Callable[P, Awaitable[R]], *args: P.args, **kwargs: P.kwargs
    ) -> R:
        """Await ``fn(*args, **kwargs)`` under this policy."""
        async for attempt in self._retrying():
            with attempt:
                return await fn(*args, **kwargs)
        raise AssertionError("unreachable: tenacity re-raises on exhaustion")

    def with_overrides(self, **changes: Any) -> RetryPolicy:
        """Copy of this policy with some fields replaced."""
        return replace(self, **changes)


NO_RETRY = RetryPolicy(max_attempts=1, base_delay=0.0, max_delay=0.0, jitter=0.0)
