"""JobHandle: client-side handle of one remote job.

The handle owns the job's identity and the few facts that become permanent
once observed: the terminal state (with the replacement job, if the job was
updated in place) and the final metric updates. Each is a `WriteOnce` cell:
the first writer wins, later writes are ignored, and publication is guarded
by a lock so readers on other threads never see a half-written value.
"""

from __future__ import annotations

import threading
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from jobmon.adapters.retry_tenacity import TenacityRetryAdapter
from jobmon.core.backoff import Clock
from jobmon.core.config import JobMonitorConfig
from jobmon.core.exceptions import JobStateError
from jobmon.core.interfaces.remote_job_service import RemoteJobServicePort
from jobmon.core.interfaces.retry import RetryPort
from jobmon.core.managers.cancellation import CancellationController, CancelResult
from jobmon.core.managers.message_feed import MessageFeed, MessageHandler
from jobmon.core.managers.metrics_extractor import MetricsExtractor
from jobmon.core.managers.monitor import Monitor
from jobmon.core.managers.status_probe import StatusProbe
from jobmon.core.models.job_state import JobState
from jobmon.core.models.metrics import AggregatorBindings, MetricUpdate
from jobmon.core.settings import app_settings, logger

T = TypeVar("T")


class WriteOnce(Generic[T]):
    """Single-assignment cell: first writer wins, later writes are no-ops."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._is_set = False

    @property
    def is_set(self) -> bool:
        return self._is_set

    def get(self) -> Optional[T]:
        return self._value

    def set(self, value: T) -> bool:
        """Store `value` if the cell is empty; return True if this call stored it."""
        with self._lock:
            if self._is_set:
                return False
            self._value = value
            self._is_set = True
            return True


class JobHandle:
    """Handle of a submitted job: state, waiting, cancellation and metrics.

    Attributes:
        config: Immutable polling/cancellation configuration, built from
            the JOBMON_* settings when not given
    """

    def __init__(
        self,
        project_id: str,
        job_id: str,
        service: RemoteJobServicePort,
        aggregators: Optional[AggregatorBindings] = None,
        config: Optional[JobMonitorConfig] = None,
        retry: Optional[RetryPort] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._project_id = project_id
        self._job_id = job_id
        self._service = service
        self._aggregators = aggregators or AggregatorBindings()
        self.config = config or JobMonitorConfig.from_app_settings(app_settings)
        self._retry = retry or TenacityRetryAdapter(sleep=sleep)
        self._sleep = sleep
        self._clock = clock

        # (terminal state, replacement handle) published together
        self._terminal: WriteOnce[Tuple[JobState, Optional[JobHandle]]] = WriteOnce()
        self._metrics: WriteOnce[List[MetricUpdate]] = WriteOnce()

        self._probe = StatusProbe(self, service, self._retry, clock=clock)
        self._monitor = Monitor(
            job_id,
            self._probe,
            MessageFeed(service, project_id, job_id),
            self.config,
            sleep=sleep,
            clock=clock,
        )
        self._canceller = CancellationController(project_id, job_id, service, self._probe, self.config)
        self._extractor = MetricsExtractor(self, service, self._probe, self._aggregators, self.config)

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def service(self) -> RemoteJobServicePort:
        return self._service

    @property
    def terminal_state(self) -> Optional[JobState]:
        terminal = self._terminal.get()
        return terminal[0] if terminal else None

    @property
    def replaced_by(self) -> Optional["JobHandle"]:
        terminal = self._terminal.get()
        return terminal[1] if terminal else None

    @property
    def replaced_by_job(self) -> "JobHandle":
        """Handle of the job that replaced this one.

        Raises:
            JobStateError: the job has not terminated, or terminated without
                being replaced.
        """
        if self.terminal_state is None:
            raise JobStateError("replaced_by_job accessed before job terminated", job_id=self._job_id)
        replacement = self.replaced_by
        if replacement is None:
            raise JobStateError("replaced_by_job accessed for job that was not replaced", job_id=self._job_id)
        return replacement

    @property
    def cached_metrics(self) -> Optional[List[MetricUpdate]]:
        return self._metrics.get()

    def monitoring_page_url(self) -> str:
        return self.config.monitoring_page_url(self._project_id, self._job_id)

    # ---------------- Write-once transitions -----------------
    def record_terminal(self, state: JobState, replaced_by_job_id: Optional[str] = None) -> bool:
        """Record the terminal state (and replacement) unless already recorded."""
        if not state.is_terminal():
            raise ValueError(f"{state} is not a terminal state")
        if self._terminal.is_set:
            self._warn_if_different(state)
            return False
        replacement = self._spawn(replaced_by_job_id) if replaced_by_job_id else None
        stored = self._terminal.set((state, replacement))
        if stored:
            logger.debug(
                f"[job:terminal] job_id={self._job_id} state={state} replaced_by={replaced_by_job_id}"
            )
        else:
            self._warn_if_different(state)
        return stored

    def record_metrics(self, updates: List[MetricUpdate]) -> bool:
        """Keep the final metric updates; only allowed once the job is terminal."""
        if self.terminal_state is None:
            raise JobStateError("metrics can only be cached for a terminated job", job_id=self._job_id)
        if not updates:
            return False
        return self._metrics.set(list(updates))

    def _warn_if_different(self, state: JobState) -> None:
        if state != self.terminal_state:
            logger.warning(
                f"[job:terminal] ignoring state={state} for job_id={self._job_id}; "
                f"already terminated in {self.terminal_state}"
            )

    def _spawn(self, job_id: str) -> "JobHandle":
        return JobHandle(
            self._project_id,
            job_id,
            self._service,
            aggregators=self._aggregators,
            config=self.config,
            retry=self._retry,
            sleep=self._sleep,
            clock=self._clock,
        )

    # ---------------- Operations -----------------
    async def get_state(self) -> JobState:
        """Current state, retried per the status policy; UNKNOWN on failure."""
        return await self._probe.fetch_state(self.config.status_policy)

    async def wait_until_finish(
        self,
        budget: float = 0.0,
        handler: Optional[MessageHandler] = None,
    ) -> Optional[JobState]:
        """Wait up to `budget` seconds (<= 0: forever); None on timeout."""
        return await self._monitor.wait(budget, handler)

    async def cancel(self) -> CancelResult:
        """Cancel the job.

        Returns the CancelResult for success and benign races.

        Raises:
            JobCancellationError: the request failed and the job is not done.
        """
        result = await self._canceller.cancel()
        result.raise_for_error()
        return result

    async def get_aggregator_values(self, aggregator_name: str) -> Dict[str, Any]:
        return await self._extractor.get(aggregator_name)

    def __repr__(self) -> str:
        return (
            f"JobHandle(project_id={self._project_id!r}, job_id={self._job_id!r}, "
            f"terminal_state={self.terminal_state})"
        )
