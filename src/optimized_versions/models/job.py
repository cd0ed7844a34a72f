"""Job-related models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-naive UTC timestamp, as stored by the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TranscodeStatus(str, Enum):
    """Status of a transcode job."""

    NOT_FOUND = "not_found"  # Query result only, never stored
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        """Completed, failed and canceled jobs never change again."""
        return self in (
            TranscodeStatus.COMPLETED,
            TranscodeStatus.FAILED,
            TranscodeStatus.CANCELED,
        )


ACTIVE_STATUSES = (TranscodeStatus.PENDING, TranscodeStatus.PROCESSING)


class Job(BaseModel):
    """A request to produce an optimized version of a media item."""

    job_id: str
    source_item_id: str
    status: TranscodeStatus = TranscodeStatus.PENDING

    # Paths
    source_path: str
    output_path: str

    # Live telemetry (advisory)
    progress: Optional[float] = None  # 0-100
    current_fps: Optional[float] = None
    current_bitrate: Optional[float] = None  # kbit/s
    time_remaining: Optional[float] = None  # seconds

    # Terminal results
    file_size: Optional[int] = None
    error_message: Optional[str] = None

    device_id: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class JobCreated(BaseModel):
    """Response for a newly accepted job."""

    job_id: str


class JobStatusResponse(BaseModel):
    """Lightweight status response for polling."""

    job_id: str
    status: TranscodeStatus
