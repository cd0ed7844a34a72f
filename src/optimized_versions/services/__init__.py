"""Transcoding services."""

from .catalog import MediaCatalog
from .encoder import EncoderProfile, EncoderProgress, ProgressParser
from .job_store import JobStore
from .orchestrator import JobOrchestrator
from .process_supervisor import EncoderProcess, ProcessOutcome, ProcessSupervisor

__all__ = [
    "EncoderProcess",
    "EncoderProfile",
    "EncoderProgress",
    "JobOrchestrator",
    "JobStore",
    "MediaCatalog",
    "ProcessOutcome",
    "ProcessSupervisor",
    "ProgressParser",
]
