"""Output file ORM model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from ..base import Base


class OutputFileORM(Base):
    """ORM model for output_files table.

    job_id is a plain indexed column rather than a foreign key: the file
    record stays discoverable after its job row is cleared.
    """

    __tablename__ = "output_files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    source_item_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    job_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    profile_name: Mapped[str] = mapped_column(String(100), default="")
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
