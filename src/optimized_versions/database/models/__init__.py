"""Database ORM models."""

from .job import JobORM
from .output_file import OutputFileORM

__all__ = [
    "JobORM",
    "OutputFileORM",
]
