"""CancellationController: requests cancellation and absorbs benign races.

A cancel request can fail simply because the job finished between our last
read and the cancel write; the service offers no single linearizable
operation for "cancel unless done". Failures are therefore classified:

* a fresh state query shows the job terminal -> BENIGN_NOOP
* the service says the job already terminated -> BENIGN_NOOP
* anything else -> HARD_ERROR, with the console URL for manual cancellation

The service's "already terminated" wording is not a stable contract; the
configured message markers and structured error reasons are the extension
points for it.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from jobmon.core.config import JobMonitorConfig
from jobmon.core.exceptions import (
    JobCancellationError,
    JobMonitorError,
    MalformedResponseError,
    RemoteServiceError,
)
from jobmon.core.interfaces.remote_job_service import RemoteJobServicePort
from jobmon.core.managers.status_probe import StatusProbe
from jobmon.core.models.job_state import CANCEL_REQUEST, JobState
from jobmon.core.settings import logger


class CancelOutcome(StrEnum):
    success = "success"
    benign_noop = "benign_noop"
    hard_error = "hard_error"


class CancelResult:
    """Outcome of a cancel request.

    Attributes:
        outcome: success, benign_noop or hard_error
        job_id: The job the request was for
        state: State observed while classifying a failure (None on success)
        detail: Human-readable explanation for non-success outcomes
        monitoring_url: Console page of the job (hard errors only)
        error: The rejected request's exception (non-success outcomes)
    """

    def __init__(
        self,
        outcome: CancelOutcome,
        job_id: str,
        state: Optional[JobState] = None,
        detail: Optional[str] = None,
        monitoring_url: Optional[str] = None,
        error: Optional[JobMonitorError] = None,
    ):
        self.outcome = outcome
        self.job_id = job_id
        self.state = state
        self.detail = detail
        self.monitoring_url = monitoring_url
        self.error = error

    @property
    def ok(self) -> bool:
        return self.outcome is not CancelOutcome.hard_error

    def raise_for_error(self) -> None:
        """Raise JobCancellationError for a hard error, do nothing otherwise."""
        if self.ok:
            return
        raise JobCancellationError(
            self.detail or f"Failed to cancel job {self.job_id}",
            job_id=self.job_id,
            state=str(self.state) if self.state is not None else None,
            monitoring_url=self.monitoring_url,
            diagnostic=str(self.error) if self.error else None,
        ) from self.error

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"CancelResult(outcome={self.outcome}, job_id={self.job_id}, state={self.state})"


class CancellationController:
    def __init__(
        self,
        project_id: str,
        job_id: str,
        service: RemoteJobServicePort,
        probe: StatusProbe,
        config: JobMonitorConfig,
    ) -> None:
        self._project_id = project_id
        self._job_id = job_id
        self._service = service
        self._probe = probe
        self.config = config

    async def cancel(self) -> CancelResult:
        try:
            await self._service.request_state_change(self._project_id, self._job_id, CANCEL_REQUEST)
        except (RemoteServiceError, MalformedResponseError) as exc:
            return await self._classify_failure(exc)
        logger.info(f"[cancel:requested] job_id={self._job_id}")
        return CancelResult(CancelOutcome.success, self._job_id)

    async def _classify_failure(self, exc: JobMonitorError) -> CancelResult:
        state = await self._probe.fetch_state(self.config.status_policy)
        if state.is_terminal():
            logger.warning(
                f"[cancel:noop] cancel failed because job {self._job_id} is already terminated in state {state}"
            )
            return CancelResult(
                CancelOutcome.benign_noop,
                self._job_id,
                state=state,
                detail=f"Job already terminated in state {state}",
                error=exc,
            )

        if self._reports_terminated(exc):
            logger.warning(
                f"[cancel:noop] cancel failed because job {self._job_id} is already terminated error={exc}"
            )
            return CancelResult(
                CancelOutcome.benign_noop,
                self._job_id,
                state=state,
                detail="Service reports the job already terminated",
                error=exc,
            )

        url = self.config.monitoring_page_url(self._project_id, self._job_id)
        detail = (
            f"Failed to cancel job {self._job_id} in state {state}, "
            f"please go to the monitoring console to cancel it manually: {url}"
        )
        logger.warning(f"[cancel:failed] {detail}")
        return CancelResult(
            CancelOutcome.hard_error,
            self._job_id,
            state=state,
            detail=detail,
            monitoring_url=url,
            error=exc,
        )

    def _reports_terminated(self, exc: JobMonitorError) -> bool:
        reason = getattr(exc, "reason", None)
        if reason and reason in self.config.cancel_terminated_reasons:
            return True
        text = exc.message or ""
        return any(marker in text for marker in self.config.cancel_terminated_markers)
