"""Pydantic models for API requests/responses and domain objects."""

from .job import ACTIVE_STATUSES, Job, JobCreated, JobStatusResponse, TranscodeStatus
from .output_file import OutputFile

__all__ = [
    "ACTIVE_STATUSES",
    "Job",
    "JobCreated",
    "JobStatusResponse",
    "OutputFile",
    "TranscodeStatus",
]
