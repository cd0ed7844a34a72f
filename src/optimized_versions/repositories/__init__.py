"""Repository layer for database operations."""

from .job_repository import JobRepository
from .output_file_repository import OutputFileRepository

__all__ = [
    "JobRepository",
    "OutputFileRepository",
]
