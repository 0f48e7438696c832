"""Unit tests for cancellation and classification of failed cancel requests."""

import pytest
from unittest.mock import AsyncMock

from jobmon.core.backoff import BackoffPolicy
from jobmon.core.config import JobMonitorConfig
from jobmon.core.exceptions import (
    JobCancellationError,
    MalformedResponseError,
    RemoteRequestError,
    TransientIOError,
)
from jobmon.core.interfaces.remote_job_service import RemoteJobServicePort
from jobmon.core.job_handle import JobHandle
from jobmon.core.managers.cancellation import CancelOutcome
from jobmon.core.models.job import RemoteJob
from jobmon.core.models.job_state import JobState


def remote(state):
    return RemoteJob(id="job-1", current_state=state)


@pytest.fixture
def config():
    return JobMonitorConfig(
        status_policy=BackoffPolicy(initial_interval=1.0, exponent=2.0, max_retries=2),
        cancel_terminated_reasons=("FAILED_PRECONDITION",),
    )


@pytest.fixture
def service():
    return AsyncMock(spec=RemoteJobServicePort)


@pytest.fixture
def handle(service, config, clock):
    return JobHandle("proj", "job-1", service, config=config, sleep=clock.sleep, clock=clock)


@pytest.mark.asyncio
async def test_successful_cancel(handle, service):
    result = await handle.cancel()

    assert result.outcome is CancelOutcome.success
    assert result.ok
    service.request_state_change.assert_awaited_once_with("proj", "job-1", "JOB_STATE_CANCELLED")
    service.get_job.assert_not_awaited()


@pytest.mark.asyncio
async def test_rejected_cancel_on_finished_job_is_benign(handle, service):
    service.request_state_change.side_effect = RemoteRequestError("conflict", status=409)
    service.get_job.return_value = remote("JOB_STATE_DONE")

    result = await handle.cancel()

    assert result.outcome is CancelOutcome.benign_noop
    assert result.state is JobState.SUCCEEDED
    assert handle.terminal_state is JobState.SUCCEEDED


@pytest.mark.asyncio
async def test_already_terminated_message_is_benign(handle, service):
    # The service already finished the job but our state read still says RUNNING.
    service.request_state_change.side_effect = RemoteRequestError(
        "Workflow modification failed. Causes: Job has terminated in state SUCCESS", status=400
    )
    service.get_job.return_value = remote("JOB_STATE_RUNNING")

    result = await handle.cancel()

    assert result.outcome is CancelOutcome.benign_noop
    assert result.state is JobState.RUNNING


@pytest.mark.asyncio
async def test_configured_error_reason_is_benign(handle, service):
    service.request_state_change.side_effect = RemoteRequestError(
        "precondition", status=400, reason="FAILED_PRECONDITION"
    )
    service.get_job.return_value = remote("JOB_STATE_RUNNING")

    result = await handle.cancel()

    assert result.outcome is CancelOutcome.benign_noop


@pytest.mark.asyncio
async def test_unrelated_failure_raises_with_console_url(handle, service):
    rejection = RemoteRequestError("permission denied", status=403, reason="PERMISSION_DENIED")
    service.request_state_change.side_effect = rejection
    service.get_job.return_value = remote("JOB_STATE_RUNNING")

    with pytest.raises(JobCancellationError) as excinfo:
        await handle.cancel()

    error = excinfo.value
    assert error.job_id == "job-1"
    assert error.state == "RUNNING"
    assert error.monitoring_url == (
        "https://console.developers.google.com/project/proj/dataflow/job/job-1"
    )
    assert error.monitoring_url in error.message
    assert error.__cause__ is rejection


@pytest.mark.asyncio
async def test_controller_reports_hard_error_without_raising(handle, service):
    service.request_state_change.side_effect = TransientIOError("503", status=503)
    service.get_job.return_value = remote("JOB_STATE_RUNNING")

    result = await handle._canceller.cancel()

    assert result.outcome is CancelOutcome.hard_error
    assert not result.ok
    assert result.monitoring_url is not None


@pytest.mark.asyncio
async def test_unreachable_state_after_failure_is_hard_error(handle, service, clock):
    service.request_state_change.side_effect = TransientIOError("503", status=503)
    service.get_job.side_effect = TransientIOError("503", status=503)

    with pytest.raises(JobCancellationError) as excinfo:
        await handle.cancel()

    assert excinfo.value.state == "UNKNOWN"
    # state query retried per status policy before giving up
    assert service.get_job.await_count == 3
    assert clock.sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_malformed_rejection_is_classified(handle, service):
    service.request_state_change.side_effect = MalformedResponseError("not json")
    service.get_job.return_value = remote("JOB_STATE_CANCELLED")

    result = await handle.cancel()

    assert result.outcome is CancelOutcome.benign_noop
    assert isinstance(result.error, MalformedResponseError)
