"""
Job state machine.

    pending ─► running ─► completed | failed | stopped
       └──────────────► failed | stopped

Terminal states never transition again.
"""

from busverifier.errors import InvalidTransition
from busverifier.schemas import JobStatus

TERMINAL = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.STOPPED})

TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED, JobStatus.STOPPED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.STOPPED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.STOPPED: frozenset(),
}


def is_terminal(status: str | JobStatus) -> bool:
    return JobStatus(status) in TERMINAL


def can_transition(current: str | JobStatus, target: str | JobStatus) -> bool:
    return JobStatus(target) in TRANSITIONS[JobStatus(current)]


def check_transition(current: str | JobStatus, target: str | JobStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(JobStatus(current).value, JobStatus(target).value)


def sources_of(target: str | JobStatus) -> list[str]:
    """Statuses from which ``target`` may be entered (for compare-and-set writes)."""
    target = JobStatus(target)
    return [s.value for s, allowed in TRANSITIONS.items() if target in allowed]
