import asyncio
from typing import Any, Awaitable, Callable, Optional, Sequence, Type

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from jobmon.core.backoff import BackoffCursor
from jobmon.core.exceptions import TransientIOError


class _CursorSchedule:
    """Exposes a BackoffCursor as tenacity stop/wait callables.

    tenacity may consult stop and wait in either order after a failed
    attempt, so the cursor is advanced at most once per attempt number.
    """

    def __init__(self, cursor: BackoffCursor) -> None:
        self._cursor = cursor
        self._attempt = 0
        self._pending: Optional[float] = None

    def _advance(self, retry_state: RetryCallState) -> Optional[float]:
        if retry_state.attempt_number != self._attempt:
            self._attempt = retry_state.attempt_number
            self._pending = self._cursor.next_backoff()
        return self._pending

    def stop(self, retry_state: RetryCallState) -> bool:
        return self._advance(retry_state) is None

    def wait(self, retry_state: RetryCallState) -> float:
        pending = self._advance(retry_state)
        return pending if pending is not None else 0.0


class TenacityRetryAdapter:
    """Tenacity-based retry adapter implementing RetryPort.

    Waits and the stop decision come from the `backoff` cursor passed per
    call, so the cursor's retry cap and wall-clock budget govern tenacity.
    Call-time kwargs can override the retried exception types.
    """

    def __init__(
        self,
        exception_types: Sequence[Type[Exception]] = (TransientIOError,),
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self.exception_types = tuple(exception_types)
        self._sleep = sleep or asyncio.sleep

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        backoff: Optional[BackoffCursor] = kwargs.pop("backoff", None)
        exception_types = tuple(kwargs.pop("exception_types", self.exception_types))

        if backoff is None:
            stop: Any = stop_after_attempt(1)
            wait: Any = None
        else:
            schedule = _CursorSchedule(backoff)
            stop, wait = schedule.stop, schedule.wait

        retrying_kwargs = {
            "stop": stop,
            "retry": retry_if_exception_type(exception_types),
            "reraise": True,
            "sleep": self._sleep,
        }
        if wait is not None:
            retrying_kwargs["wait"] = wait

        retrying = AsyncRetrying(**retrying_kwargs)
        async for attempt in retrying:  # pragma: no cover - control flow instrumentation
            with attempt:
                return await func(*args, **kwargs)
