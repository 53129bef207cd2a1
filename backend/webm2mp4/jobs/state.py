"""
State transition validation for the conversion job.

Lifecycle:
    BOOTSTRAPPING → IDLE | FAILED
    IDLE → SELECTED → CONVERTING → SUCCEEDED | FAILED
    SELECTED | SUCCEEDED | FAILED → IDLE (reset, auto-recovery, rejected file)
    SUCCEEDED | FAILED → SELECTED (new file replaces the job)

INVARIANT: CONVERTING only leaves through engine completion or failure.
There is no reset or cancel while the engine runs.

INVARIANT: FAILED reached from BOOTSTRAPPING is terminal. That case is
carried by Job.engine_failed, not by the table below.
"""

from typing import FrozenSet, Set, Tuple

from .errors import InvalidStateTransitionError
from .models import JobStatus


# States in which a new file may be offered
ACCEPTING_STATES: FrozenSet[JobStatus] = frozenset({
    JobStatus.IDLE,
    JobStatus.SELECTED,
    JobStatus.SUCCEEDED,
    JobStatus.FAILED,
})


_JOB_TRANSITIONS: Set[Tuple[JobStatus, JobStatus]] = {
    # Engine bootstrap
    (JobStatus.BOOTSTRAPPING, JobStatus.IDLE),
    (JobStatus.BOOTSTRAPPING, JobStatus.FAILED),

    # File selection (a new file always starts a new job)
    (JobStatus.IDLE, JobStatus.SELECTED),
    (JobStatus.SUCCEEDED, JobStatus.SELECTED),
    (JobStatus.FAILED, JobStatus.SELECTED),

    # Conversion
    (JobStatus.SELECTED, JobStatus.CONVERTING),
    (JobStatus.CONVERTING, JobStatus.SUCCEEDED),
    (JobStatus.CONVERTING, JobStatus.FAILED),

    # Reset, cancel, auto-recovery, rejected selection
    (JobStatus.SELECTED, JobStatus.IDLE),
    (JobStatus.SUCCEEDED, JobStatus.IDLE),
    (JobStatus.FAILED, JobStatus.IDLE),
}


def can_transition(from_status: JobStatus, to_status: JobStatus) -> bool:
    """
    Check if a job state transition is legal.

    Args:
        from_status: Current job status
        to_status: Target job status

    Returns:
        True if the transition is allowed, False otherwise
    """
    # Staying in the same state is allowed (progress updates, re-selection)
    if from_status == to_status:
        return True

    return (from_status, to_status) in _JOB_TRANSITIONS


def validate_transition(from_status: JobStatus, to_status: JobStatus) -> None:
    """
    Validate a job state transition, raising an exception if illegal.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition(from_status, to_status):
        raise InvalidStateTransitionError(from_status.value, to_status.value)


def is_accepting(status: JobStatus) -> bool:
    """True if the controller will look at a newly offered file."""
    return status in ACCEPTING_STATES
