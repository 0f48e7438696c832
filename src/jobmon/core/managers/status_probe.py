"""StatusProbe: fetches the remote job and classifies its lifecycle state.

Every call takes the backoff policy to apply, so the same probe serves the
fail-fast check inside the wait loop (zero retries) and the patient
on-demand state query.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

from jobmon.core.backoff import BackoffPolicy, Clock
from jobmon.core.exceptions import (
    BackoffExhausted,
    PermanentError,
    RemoteServiceError,
    TransientIOError,
)
from jobmon.core.interfaces.remote_job_service import RemoteJobServicePort
from jobmon.core.interfaces.retry import RetryPort
from jobmon.core.models.job import RemoteJob
from jobmon.core.models.job_state import JobState, to_job_state
from jobmon.core.settings import logger

if TYPE_CHECKING:
    from jobmon.core.job_handle import JobHandle


class StatusProbe:
    """Single- or multi-attempt fetch of a job's current state.

    Observing a terminal state is recorded on the owning `JobHandle`
    (terminal state plus replacement job, if any); once recorded, state
    queries are answered from the handle without remote calls.
    """

    def __init__(
        self,
        handle: "JobHandle",
        service: RemoteJobServicePort,
        retry: RetryPort,
        clock: Optional[Clock] = None,
    ) -> None:
        self._handle = handle
        self._service = service
        self._retry = retry
        self._clock = clock

    async def fetch_job(self, policy: BackoffPolicy) -> RemoteJob:
        """Fetch the remote job, retrying transient failures per `policy`.

        Raises:
            BackoffExhausted: the policy ran out before a request succeeded;
                the last transient failure is chained.
            RemoteRequestError / MalformedResponseError: non-retryable failures.
        """
        job, _ = await self._fetch(policy)
        return job

    async def fetch_state(self, policy: BackoffPolicy) -> JobState:
        """Return the job state; UNKNOWN if it cannot be determined. Never raises."""
        cached = self._handle.terminal_state
        if cached is not None:
            return cached
        try:
            _, state = await self._fetch(policy)
        except BackoffExhausted as exc:
            logger.debug(
                f"[probe:exhausted] job_id={self._handle.job_id} attempts exhausted error={exc.last_error}"
            )
            return JobState.UNKNOWN
        except (RemoteServiceError, PermanentError) as exc:
            logger.warning(
                f"[probe:error] job_id={self._handle.job_id} unable to determine state error={exc}"
            )
            return JobState.UNKNOWN
        return state

    async def _fetch(self, policy: BackoffPolicy) -> Tuple[RemoteJob, JobState]:
        project_id, job_id = self._handle.project_id, self._handle.job_id

        async def attempt() -> RemoteJob:
            try:
                return await self._service.get_job(project_id, job_id)
            except TransientIOError as exc:
                logger.warning(
                    f"[probe:error] problems getting current job status job_id={job_id} error={exc}"
                )
                logger.debug("Exception information:", exc_info=exc)
                raise

        try:
            job = await self._retry.execute(
                attempt,
                backoff=policy.backoff(clock=self._clock),
                exception_types=(TransientIOError,),
            )
        except TransientIOError as exc:
            raise BackoffExhausted(
                f"Giving up on status of job {job_id} after retries",
                last_error=exc,
                job_id=job_id,
            ) from exc

        state = to_job_state(job.current_state)
        if state.is_terminal():
            self._handle.record_terminal(state, job.replaced_by_job_id)
        logger.debug(f"[probe:state] job_id={job_id} remote_state={job.current_state} state={state}")
        return job, state
