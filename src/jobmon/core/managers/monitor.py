"""Monitor: waits for a remote job to reach a terminal state.

Each iteration probes the job state first and only then drains progress
messages, so when the job is seen finished every message it emitted before
finishing has already been requested and no trailing messages are lost.

Budget handling
---------------
A positive budget caps total wall-clock time from the first iteration.
After every healthy, non-terminal iteration the polling cursor is rebuilt
with the budget still left (budget minus elapsed time), because real elapsed
time including request latency is what counts, not the sum of backoff
intervals. An iteration with errors keeps the existing cursor, so a streak
of failures consumes its retries and eventually gives up. A budget of zero
or less waits indefinitely.

Cancellation
------------
Cancelling the task awaiting `wait` aborts the current sleep or request
immediately; `asyncio.CancelledError` propagates to the caller and is never
reported as a timeout.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Awaitable, Callable, Optional

from jobmon.core.backoff import BackoffCursor, Clock
from jobmon.core.config import JobMonitorConfig
from jobmon.core.exceptions import MalformedResponseError, RemoteServiceError
from jobmon.core.logging_config import job_log_context
from jobmon.core.managers.message_feed import MessageFeed, MessageHandler, dispatch
from jobmon.core.managers.status_probe import StatusProbe
from jobmon.core.models.job_state import JobState
from jobmon.core.settings import logger


class Monitor:
    """Polling loop combining a StatusProbe and a MessageFeed under a time budget."""

    def __init__(
        self,
        job_id: str,
        probe: StatusProbe,
        feed: MessageFeed,
        config: JobMonitorConfig,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._job_id = job_id
        self._probe = probe
        self._feed = feed
        self.config = config
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

    async def wait(
        self,
        budget: float = 0.0,
        handler: Optional[MessageHandler] = None,
    ) -> Optional[JobState]:
        """Wait for the job to finish.

        Args:
            budget: Total seconds to wait; zero or negative waits indefinitely.
            handler: Called once per non-empty batch of progress messages,
                in order. May be a plain or an async callable.

        Returns:
            The terminal JobState, or None if no terminal state was observed
            within the budget.
        """
        with job_log_context(self._job_id):
            return await self._poll(budget, handler)

    def _cursor(self, remaining: Optional[float]) -> BackoffCursor:
        policy = self.config.message_policy
        if remaining is not None:
            policy = policy.with_max_cumulative_backoff(remaining)
        return policy.backoff(clock=self._clock)

    async def _poll(self, budget: float, handler: Optional[MessageHandler]) -> Optional[JobState]:
        indefinite = budget <= 0
        probe_policy = self.config.status_policy.with_max_retries(0)
        backoff = self._cursor(None if indefinite else budget)
        started = self._clock()
        watermark: Optional[datetime] = None

        logger.debug(f"[monitor:start] job_id={self._job_id} budget={budget if not indefinite else 'unbounded'}")
        while True:
            state = await self._probe.fetch_state(probe_policy)
            had_error = state is JobState.UNKNOWN

            if handler is not None and not had_error:
                try:
                    batch, watermark = await self._feed.fetch(watermark)
                except (RemoteServiceError, MalformedResponseError) as exc:
                    had_error = True
                    logger.warning(
                        f"[monitor:messages] problems getting current job messages job_id={self._job_id} error={exc}"
                    )
                    logger.debug("Exception information:", exc_info=exc)
                else:
                    if batch:
                        await dispatch(handler, batch)

            if not had_error:
                if state.is_terminal():
                    logger.info(f"[monitor:done] job_id={self._job_id} state={state}")
                    return state

                if indefinite:
                    backoff.reset()
                else:
                    remaining = budget - (self._clock() - started)
                    if remaining <= 0:
                        break
                    backoff = self._cursor(remaining)

            delay = backoff.next_backoff()
            if delay is None:
                break
            logger.debug(f"[monitor:sleep] job_id={self._job_id} state={state} delay={delay:.3f}s error={had_error}")
            await self._sleep(delay)

        logger.warning(f"[monitor:timeout] no terminal state was returned job_id={self._job_id} state={state}")
        return None
