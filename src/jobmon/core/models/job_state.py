from enum import StrEnum
from types import MappingProxyType
from typing import Mapping, Optional
import logging

logger = logging.getLogger(__name__)


class JobState(StrEnum):
    """Local view of a remote job's lifecycle state.

    UNKNOWN means the state could not be determined (request failure or an
    unrecognized remote status); it is never terminal.
    """

    UNKNOWN = "UNKNOWN"
    STOPPED = "STOPPED"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DRAINING = "DRAINING"
    CANCELLING = "CANCELLING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    UPDATED = "UPDATED"
    DRAINED = "DRAINED"

    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {
        JobState.SUCCEEDED,
        JobState.FAILED,
        JobState.CANCELLED,
        JobState.UPDATED,
        JobState.DRAINED,
    }
)

# Remote status vocabulary; must match the service byte for byte.
REMOTE_STATES: Mapping[str, JobState] = MappingProxyType(
    {
        "JOB_STATE_UNKNOWN": JobState.UNKNOWN,
        "JOB_STATE_STOPPED": JobState.STOPPED,
        "JOB_STATE_PENDING": JobState.PENDING,
        "JOB_STATE_RUNNING": JobState.RUNNING,
        "JOB_STATE_DRAINING": JobState.DRAINING,
        "JOB_STATE_CANCELLING": JobState.CANCELLING,
        "JOB_STATE_DONE": JobState.SUCCEEDED,
        "JOB_STATE_FAILED": JobState.FAILED,
        "JOB_STATE_CANCELLED": JobState.CANCELLED,
        "JOB_STATE_UPDATED": JobState.UPDATED,
        "JOB_STATE_DRAINED": JobState.DRAINED,
    }
)

_REMOTE_NAMES: Mapping[JobState, str] = MappingProxyType(
    {state: name for name, state in REMOTE_STATES.items()}
)

CANCEL_REQUEST = "JOB_STATE_CANCELLED"


def to_job_state(remote_state: Optional[str]) -> JobState:
    """Map a remote status string onto `JobState`.

    Unrecognized strings are logged and reported as UNKNOWN so that an
    unexpected value can never end a wait as if the job had finished.
    """
    if remote_state is None:
        return JobState.UNKNOWN
    state = REMOTE_STATES.get(remote_state)
    if state is None:
        logger.warning("[state:unmapped] unrecognized remote job state %r; treating as UNKNOWN", remote_state)
        return JobState.UNKNOWN
    return state


def to_remote_state(state: JobState) -> str:
    return _REMOTE_NAMES[state]
