"""Job ORM model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..base import Base


class JobORM(Base):
    """ORM model for jobs table."""

    __tablename__ = "jobs"

    # Primary key
    job_id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Job info
    source_item_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    device_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)

    # Paths
    source_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    output_path: Mapped[str] = mapped_column(String(1024), nullable=False)

    # Progress tracking
    progress: Mapped[Optional[float]] = mapped_column(Float)
    current_fps: Mapped[Optional[float]] = mapped_column(Float)
    current_bitrate: Mapped[Optional[float]] = mapped_column(Float)
    time_remaining: Mapped[Optional[float]] = mapped_column(Float)

    # Results
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column()
