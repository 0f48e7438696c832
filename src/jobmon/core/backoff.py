"""Exponential backoff policy and the stateful cursor it produces.

A `BackoffPolicy` is an immutable description (initial interval, growth
exponent, retry cap, optional cumulative cap). Each call to `backoff()`
returns a fresh `BackoffCursor` that hands out successive wait durations.

The cumulative cap is enforced against wall-clock time elapsed since the
cursor was created (or last reset), so time spent in I/O between attempts
counts against the budget just like the sleeps themselves.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

Clock = Callable[[], float]


class BackoffPolicy(BaseModel):
    """Immutable backoff configuration.

    Attributes:
        initial_interval: First wait in seconds
        exponent: Multiplicative growth per retry
        max_retries: Number of waits handed out before the cursor is exhausted
        max_interval: Upper bound for a single wait in seconds
        max_cumulative_backoff: Wall-clock budget in seconds (None = unbounded)
    """

    initial_interval: float = Field(
        default=2.0,
        gt=0,
        description="Wait in seconds before the first retry"
    )

    exponent: float = Field(
        default=1.5,
        ge=1.0,
        description="Growth factor applied to the interval after every retry"
    )

    max_retries: int = Field(
        default=11,
        ge=0,
        le=1000,
        description="Maximum number of retries (0 = fail fast)"
    )

    max_interval: float = Field(
        default=24 * 60 * 60.0,
        gt=0,
        description="Upper bound in seconds for a single wait"
    )

    max_cumulative_backoff: Optional[float] = Field(
        default=None,
        gt=0,
        description="Wall-clock budget in seconds across all waits (None for no limit)"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    def _replace(self, **changes: Any) -> "BackoffPolicy":
        return type(self).model_validate({**self.model_dump(), **changes})

    def with_initial_interval(self, seconds: float) -> "BackoffPolicy":
        return self._replace(initial_interval=seconds)

    def with_exponent(self, exponent: float) -> "BackoffPolicy":
        return self._replace(exponent=exponent)

    def with_max_retries(self, max_retries: int) -> "BackoffPolicy":
        return self._replace(max_retries=max_retries)

    def with_max_cumulative_backoff(self, seconds: Optional[float]) -> "BackoffPolicy":
        return self._replace(max_cumulative_backoff=seconds)

    def backoff(self, clock: Optional[Clock] = None) -> "BackoffCursor":
        """Return a new cursor whose elapsed-time tracking starts now."""
        return BackoffCursor(self, clock=clock)


class BackoffCursor:
    """Hands out wait durations according to a `BackoffPolicy`.

    `next_backoff()` returns the next wait in seconds, or None once the retry
    cap is reached or the cumulative budget is used up. A returned wait is
    truncated so that elapsed time plus the wait never exceeds the budget.
    """

    def __init__(self, policy: BackoffPolicy, clock: Optional[Clock] = None) -> None:
        self._policy = policy
        self._clock = clock or time.monotonic
        self._retries = 0
        self._interval = policy.initial_interval
        self._started = self._clock()

    @property
    def policy(self) -> BackoffPolicy:
        return self._policy

    @property
    def retries(self) -> int:
        """Number of waits handed out since creation or the last reset."""
        return self._retries

    def reset(self) -> None:
        self._retries = 0
        self._interval = self._policy.initial_interval
        self._started = self._clock()

    def elapsed(self) -> float:
        return self._clock() - self._started

    def remaining(self) -> Optional[float]:
        """Seconds left in the cumulative budget, or None if unbounded."""
        if self._policy.max_cumulative_backoff is None:
            return None
        return self._policy.max_cumulative_backoff - self.elapsed()

    def next_backoff(self) -> Optional[float]:
        policy = self._policy
        if self._retries >= policy.max_retries:
            return None

        scheduled = min(self._interval, policy.max_interval)
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            return None

        self._retries += 1
        # grow from the capped value so large exponents never overflow
        self._interval = min(scheduled * policy.exponent, policy.max_interval)
        if remaining is not None:
            return min(scheduled, remaining)
        return scheduled

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return (
            f"BackoffCursor(retries={self._retries}/{self._policy.max_retries}, "
            f"remaining={self.remaining()})"
        )
