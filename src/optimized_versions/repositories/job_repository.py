"""Job repository for database operations."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models.job import JobORM
from ..models.job import ACTIVE_STATUSES, Job, TranscodeStatus
from .base import BaseRepository


class JobRepository(BaseRepository[JobORM]):
    """Repository for job database operations."""

    def __init__(self, session: AsyncSession):
        """Initialize job repository."""
        super().__init__(JobORM, session)

    async def create_from_pydantic(self, job: Job) -> JobORM:
        """
        Create job from Pydantic model.

        Args:
            job: Pydantic Job model

        Returns:
            ORM job instance
        """
        job_orm = JobORM(job_id=job.job_id)
        self._apply(job_orm, job)
        return await self.create(job_orm)

    def to_pydantic(self, job_orm: JobORM) -> Job:
        """
        Convert ORM model to Pydantic model.

        Args:
            job_orm: ORM job instance

        Returns:
            Pydantic Job model
        """
        return Job(
            job_id=job_orm.job_id,
            source_item_id=job_orm.source_item_id,
            status=TranscodeStatus(job_orm.status),
            source_path=job_orm.source_path,
            output_path=job_orm.output_path,
            progress=job_orm.progress,
            current_fps=job_orm.current_fps,
            current_bitrate=job_orm.current_bitrate,
            time_remaining=job_orm.time_remaining,
            file_size=job_orm.file_size,
            error_message=job_orm.error_message,
            device_id=job_orm.device_id,
            created_at=job_orm.created_at,
            completed_at=job_orm.completed_at,
        )

    async def replace(self, job: Job) -> Optional[Job]:
        """
        Overwrite every mutable column of an existing job.

        Args:
            job: Pydantic Job model carrying the new state

        Returns:
            Updated job or None if the row no longer exists
        """
        job_orm = await self.get(job.job_id)
        if not job_orm:
            return None

        self._apply(job_orm, job)
        await self.session.flush()
        await self.session.refresh(job_orm)
        return self.to_pydantic(job_orm)

    async def list_jobs(self, device_id: Optional[str] = None) -> list[Job]:
        """
        Get all jobs, optionally filtered by device.

        Args:
            device_id: Optional device ID filter

        Returns:
            List of jobs ordered by creation time
        """
        query = select(JobORM)
        if device_id:
            query = query.where(JobORM.device_id == device_id)

        query = query.order_by(JobORM.created_at.asc(), JobORM.job_id.asc())

        result = await self.session.execute(query)
        return [self.to_pydantic(job) for job in result.scalars().all()]

    async def get_active_jobs(self) -> list[Job]:
        """
        Get pending and processing jobs.

        Returns:
            List of active jobs, oldest first
        """
        result = await self.session.execute(
            select(JobORM)
            .where(JobORM.status.in_([status.value for status in ACTIVE_STATUSES]))
            .order_by(JobORM.created_at.asc(), JobORM.job_id.asc())
        )
        return [self.to_pydantic(job) for job in result.scalars().all()]

    @staticmethod
    def _apply(job_orm: JobORM, job: Job) -> None:
        """Copy Pydantic fields onto the ORM row (the key is left alone)."""
        job_orm.source_item_id = job.source_item_id
        job_orm.status = job.status.value
        job_orm.device_id = job.device_id
        job_orm.source_path = job.source_path
        job_orm.output_path = job.output_path
        job_orm.progress = job.progress
        job_orm.current_fps = job.current_fps
        job_orm.current_bitrate = job.current_bitrate
        job_orm.time_remaining = job.time_remaining
        job_orm.file_size = job.file_size
        job_orm.error_message = job.error_message
        job_orm.created_at = job.created_at
        job_orm.completed_at = job.completed_at
