"""Output file models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .job import utcnow


class OutputFile(BaseModel):
    """Metadata for a successfully produced optimized version."""

    id: str
    source_item_id: str
    job_id: Optional[str] = None  # Lookup only; the job row may be gone
    file_path: str
    profile_name: str = ""
    file_size: int
    created_at: datetime = Field(default_factory=utcnow)
