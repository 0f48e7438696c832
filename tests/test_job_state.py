import logging

import pytest

from jobmon.core.models.job_state import (
    CANCEL_REQUEST,
    REMOTE_STATES,
    TERMINAL_STATES,
    JobState,
    to_job_state,
    to_remote_state,
)


@pytest.mark.parametrize(
    "remote, expected",
    [
        ("JOB_STATE_UNKNOWN", JobState.UNKNOWN),
        ("JOB_STATE_STOPPED", JobState.STOPPED),
        ("JOB_STATE_PENDING", JobState.PENDING),
        ("JOB_STATE_RUNNING", JobState.RUNNING),
        ("JOB_STATE_DRAINING", JobState.DRAINING),
        ("JOB_STATE_CANCELLING", JobState.CANCELLING),
        ("JOB_STATE_DONE", JobState.SUCCEEDED),
        ("JOB_STATE_FAILED", JobState.FAILED),
        ("JOB_STATE_CANCELLED", JobState.CANCELLED),
        ("JOB_STATE_UPDATED", JobState.UPDATED),
        ("JOB_STATE_DRAINED", JobState.DRAINED),
    ],
)
def test_remote_state_mapping(remote, expected):
    assert to_job_state(remote) is expected


def test_terminal_partition():
    # Exactly these five states end a wait; everything else keeps polling.
    assert TERMINAL_STATES == {
        JobState.SUCCEEDED,
        JobState.FAILED,
        JobState.CANCELLED,
        JobState.UPDATED,
        JobState.DRAINED,
    }
    for state in JobState:
        assert state.is_terminal() == (state in TERMINAL_STATES)


def test_unknown_is_never_terminal():
    assert not JobState.UNKNOWN.is_terminal()


@pytest.mark.parametrize("remote", ["JOB_STATE_EXPLODED", "job_state_done", "", "DONE"])
def test_unrecognized_remote_state_maps_to_unknown(remote, caplog):
    with caplog.at_level(logging.WARNING, logger="jobmon.core.models.job_state"):
        assert to_job_state(remote) is JobState.UNKNOWN

    assert any("unrecognized remote job state" in r.getMessage() for r in caplog.records)


def test_missing_remote_state_maps_to_unknown():
    assert to_job_state(None) is JobState.UNKNOWN


def test_every_state_has_a_remote_name():
    for state in JobState:
        assert REMOTE_STATES[to_remote_state(state)] is state


def test_cancel_request_uses_remote_vocabulary():
    assert CANCEL_REQUEST == "JOB_STATE_CANCELLED"
    assert to_job_state(CANCEL_REQUEST) is JobState.CANCELLED
