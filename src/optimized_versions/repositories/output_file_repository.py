"""Output file repository for database operations."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models.output_file import OutputFileORM
from ..models.output_file import OutputFile
from .base import BaseRepository


class OutputFileRepository(BaseRepository[OutputFileORM]):
    """Repository for output file records."""

    def __init__(self, session: AsyncSession):
        """Initialize output file repository."""
        super().__init__(OutputFileORM, session)

    async def create_from_pydantic(self, file: OutputFile) -> OutputFileORM:
        """Create a file record from a Pydantic model."""
        file_orm = OutputFileORM(
            id=file.id,
            source_item_id=file.source_item_id,
            job_id=file.job_id,
            file_path=file.file_path,
            profile_name=file.profile_name,
            file_size=file.file_size,
            created_at=file.created_at,
        )
        return await self.create(file_orm)

    def to_pydantic(self, file_orm: OutputFileORM) -> OutputFile:
        """Convert ORM model to Pydantic model."""
        return OutputFile(
            id=file_orm.id,
            source_item_id=file_orm.source_item_id,
            job_id=file_orm.job_id,
            file_path=file_orm.file_path,
            profile_name=file_orm.profile_name,
            file_size=file_orm.file_size,
            created_at=file_orm.created_at,
        )

    async def list_files(self, source_item_id: Optional[str] = None) -> list[OutputFile]:
        """Get file records, optionally for a single source item."""
        query = select(OutputFileORM)
        if source_item_id:
            query = query.where(OutputFileORM.source_item_id == source_item_id)

        query = query.order_by(OutputFileORM.created_at.asc(), OutputFileORM.id.asc())

        result = await self.session.execute(query)
        return [self.to_pydantic(f) for f in result.scalars().all()]
