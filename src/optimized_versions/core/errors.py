"""
Error types for job orchestration.

All errors inherit from OptimizedVersionsError for easy catching.
"""

from typing import Optional


class OptimizedVersionsError(Exception):
    """Base exception for all service failures."""


class NotFoundError(OptimizedVersionsError):
    """Raised when a referenced entity does not exist."""


class JobNotFoundError(NotFoundError):
    """Raised when a job is unknown, or is no longer in a state the operation accepts."""

    def __init__(self, job_id: str, reason: str = "not found"):
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Job {job_id} {reason}")


class SourceNotFoundError(NotFoundError):
    """Raised when a source item or file cannot be resolved."""

    def __init__(self, source: str, reason: str = "not found"):
        self.source = source
        self.reason = reason
        super().__init__(f"Source {source} {reason}")


class ConflictError(OptimizedVersionsError):
    """Raised when an operation collides with existing state."""


class JobConflictError(ConflictError):
    """Raised when a job id already exists."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job already exists: {job_id}")


class AlreadyRunningError(ConflictError):
    """Raised when a process is already tracked for a job."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} is already running")


class PathRejectedError(OptimizedVersionsError):
    """Raised when a path escapes its allowed root or is malformed."""

    def __init__(self, candidate: str, root: Optional[str], reason: str):
        self.candidate = candidate
        self.root = root
        self.reason = reason
        super().__init__(f"Path rejected ({reason}): {candidate}")


class ProcessFailureError(OptimizedVersionsError):
    """Raised when the encoder exits non-zero or cannot be launched."""

    def __init__(
        self,
        job_id: str,
        exit_code: Optional[int],
        detail: str = "",
        encoder: str = "encoder",
    ):
        self.job_id = job_id
        self.exit_code = exit_code
        self.detail = detail
        self.encoder = encoder
        message = f"{encoder} exited with code {exit_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PersistenceError(OptimizedVersionsError):
    """Raised when the job store is unavailable or a write fails."""


class InvalidStateTransitionError(OptimizedVersionsError):
    """Raised when attempting an illegal job state transition."""

    def __init__(self, current_state: str, target_state: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(f"Invalid job state transition: {current_state} -> {target_state}")
