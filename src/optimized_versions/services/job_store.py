"""Durable job and output-file storage."""

import logging
from collections import OrderedDict
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.errors import JobConflictError, JobNotFoundError, PersistenceError
from ..models.job import Job
from ..models.output_file import OutputFile
from ..repositories.job_repository import JobRepository
from ..repositories.output_file_repository import OutputFileRepository

logger = logging.getLogger(__name__)


class JobStore:
    """Source of truth for job state, with an in-process read cache.

    Every operation runs in its own session and commits before returning.
    The cache only ever holds state that has been committed and keeps at most
    cache_size jobs, evicting the least recently used. A clear bumps the
    generation so that reads and writes racing it cannot repopulate stale rows.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache_enabled: bool = True,
        cache_size: int = 1024,
    ):
        """
        Initialize the store.

        Args:
            session_factory: Factory for database sessions
            cache_enabled: Serve get() from memory when possible
            cache_size: Maximum number of jobs kept in memory
        """
        self._session_factory = session_factory
        self._cache_enabled = cache_enabled
        self._cache_size = max(1, cache_size)
        self._cache: OrderedDict[str, Job] = OrderedDict()
        self._generation = 0

    async def _get_session(self) -> AsyncSession:
        """Get a new database session."""
        return self._session_factory()

    def _remember(self, job: Job, generation: int) -> None:
        if not self._cache_enabled or generation != self._generation:
            return
        self._cache[job.job_id] = job.model_copy()
        self._cache.move_to_end(job.job_id)
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

    def _forget(self, job_id: str) -> None:
        self._cache.pop(job_id, None)

    async def create(self, job: Job) -> Job:
        """Insert a new job; raises JobConflictError if the id exists."""
        generation = self._generation
        try:
            async with await self._get_session() as session:
                repo = JobRepository(session)
                if await repo.get(job.job_id):
                    raise JobConflictError(job.job_id)
                job_orm = await repo.create_from_pydantic(job)
                await session.commit()
                created = repo.to_pydantic(job_orm)
        except IntegrityError as e:
            raise JobConflictError(job.job_id) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create job {job.job_id}: {e}") from e

        self._remember(created, generation)
        return created.model_copy()

    async def get(self, job_id: str) -> Optional[Job]:
        """Get a job by ID, or None if unknown."""
        cached = self._cache.get(job_id)
        if cached is not None:
            self._cache.move_to_end(job_id)
            return cached.model_copy()

        generation = self._generation
        try:
            async with await self._get_session() as session:
                repo = JobRepository(session)
                job_orm = await repo.get(job_id)
                job = repo.to_pydantic(job_orm) if job_orm else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read job {job_id}: {e}") from e

        if job:
            self._remember(job, generation)
        return job

    async def list_jobs(self, device_id: Optional[str] = None) -> list[Job]:
        """List jobs, optionally filtered by device ID."""
        try:
            async with await self._get_session() as session:
                repo = JobRepository(session)
                return await repo.list_jobs(device_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list jobs: {e}") from e

    async def list_active(self) -> list[Job]:
        """List pending and processing jobs straight from the database."""
        try:
            async with await self._get_session() as session:
                repo = JobRepository(session)
                return await repo.get_active_jobs()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list active jobs: {e}") from e

    async def update(self, job: Job) -> Job:
        """Replace a job row; raises JobNotFoundError if it no longer exists."""
        generation = self._generation
        try:
            async with await self._get_session() as session:
                repo = JobRepository(session)
                updated = await repo.replace(job)
                if updated is None:
                    self._forget(job.job_id)
                    raise JobNotFoundError(job.job_id)
                await session.commit()
        except SQLAlchemyError as e:
            self._forget(job.job_id)
            raise PersistenceError(f"Failed to update job {job.job_id}: {e}") from e

        self._remember(updated, generation)
        return updated.model_copy()

    async def create_output_file(self, file: OutputFile) -> OutputFile:
        """Record a produced output file."""
        try:
            async with await self._get_session() as session:
                repo = OutputFileRepository(session)
                file_orm = await repo.create_from_pydantic(file)
                await session.commit()
                return repo.to_pydantic(file_orm)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to record output file {file.file_path}: {e}") from e

    async def list_output_files(self, source_item_id: Optional[str] = None) -> list[OutputFile]:
        """List output file records, optionally for one source item."""
        try:
            async with await self._get_session() as session:
                repo = OutputFileRepository(session)
                return await repo.list_files(source_item_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list output files: {e}") from e

    async def clear_all(self) -> None:
        """Delete every job and output file row in one transaction."""
        try:
            async with await self._get_session() as session:
                jobs = await JobRepository(session).delete_all()
                files = await OutputFileRepository(session).delete_all()
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to clear job cache: {e}") from e
        finally:
            self._generation += 1
            self._cache.clear()

        logger.info(f"Cleared {jobs} jobs and {files} output files")
