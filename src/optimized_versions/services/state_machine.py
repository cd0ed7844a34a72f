"""
State transition validation for transcode jobs.

Job lifecycle: PENDING -> PROCESSING -> COMPLETED | FAILED | CANCELED.
A queued job may also go straight from PENDING to CANCELED. Terminal
states are immutable.
"""

from ..core.errors import InvalidStateTransitionError
from ..models.job import TranscodeStatus

ALLOWED_TRANSITIONS: dict[TranscodeStatus, frozenset[TranscodeStatus]] = {
    TranscodeStatus.PENDING: frozenset(
        {TranscodeStatus.PROCESSING, TranscodeStatus.CANCELED}
    ),
    TranscodeStatus.PROCESSING: frozenset(
        {TranscodeStatus.COMPLETED, TranscodeStatus.FAILED, TranscodeStatus.CANCELED}
    ),
    TranscodeStatus.COMPLETED: frozenset(),
    TranscodeStatus.FAILED: frozenset(),
    TranscodeStatus.CANCELED: frozenset(),
}


def can_transition(current: TranscodeStatus, target: TranscodeStatus) -> bool:
    """Check whether current -> target is a legal forward move."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: TranscodeStatus, target: TranscodeStatus) -> None:
    """Raise InvalidStateTransitionError unless current -> target is legal."""
    if not can_transition(current, target):
        raise InvalidStateTransitionError(current.value, target.value)

