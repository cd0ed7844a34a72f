"""Job orchestration: admission, execution, cancellation and recovery."""

import asyncio
import re
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

import structlog

from ..core.config import Settings
from ..core.errors import (
    AlreadyRunningError,
    JobNotFoundError,
    PathRejectedError,
    ProcessFailureError,
    SourceNotFoundError,
)
from ..core.paths import MultiRootGuard, PathGuard
from ..models.job import Job, TranscodeStatus, utcnow
from ..models.output_file import OutputFile
from .encoder import CommandBuilder, EncoderProfile, EncoderProgress
from .job_store import JobStore
from .process_supervisor import EncoderProcess, ProcessOutcome, ProcessSupervisor
from .state_machine import can_transition, ensure_transition

logger = structlog.get_logger()

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_stem(source: Path) -> str:
    """File-name-safe version of a source file's stem."""
    stem = _UNSAFE_NAME_CHARS.sub("_", source.stem).strip("._")
    return stem or "output"


class _JobLock:
    """Per-job lock with a count of the tasks holding or waiting for it."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class JobOrchestrator:
    """Turns transcode requests into supervised encoder runs.

    Jobs are persisted as Pending and executed by a fixed pool of worker
    tasks. Every state change for a job happens under that job's lock and is
    checked against the freshly stored status, so a cancel racing a
    completion ends in whichever terminal state was recorded first.
    """

    def __init__(
        self,
        store: JobStore,
        supervisor: ProcessSupervisor,
        encoder: EncoderProfile,
        output_root: Path,
        media_roots: list[str],
        max_concurrent_jobs: int = 2,
        progress_update_interval: float = 2.0,
        command_builder: Optional[CommandBuilder] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Durable job storage
            supervisor: Encoder process tracker
            encoder: Profile used to build commands and probe durations
            output_root: Managed directory all outputs are written under
            media_roots: Directories source media may be read from
            max_concurrent_jobs: Number of worker tasks
            progress_update_interval: Minimum seconds between telemetry writes
            command_builder: Override for building the encoder argv
        """
        self.store = store
        self.supervisor = supervisor
        self.encoder = encoder
        self.output_guard = PathGuard(output_root)
        self.media_guard = MultiRootGuard(media_roots)
        self.max_concurrent_jobs = max(1, max_concurrent_jobs)
        self.progress_update_interval = progress_update_interval
        self.command_builder = command_builder or encoder.build_command

        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self._locks: dict[str, _JobLock] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: JobStore,
        supervisor: ProcessSupervisor,
        command_builder: Optional[CommandBuilder] = None,
    ) -> "JobOrchestrator":
        return cls(
            store=store,
            supervisor=supervisor,
            encoder=EncoderProfile(settings.encoder),
            output_root=settings.storage.output_root,
            media_roots=settings.storage.media_roots,
            max_concurrent_jobs=settings.jobs.max_concurrent_jobs,
            progress_update_interval=settings.jobs.progress_update_interval,
            command_builder=command_builder,
        )

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    # Lifecycle

    async def start(self) -> None:
        """Start the worker pool."""
        if self._workers:
            return

        for i in range(self.max_concurrent_jobs):
            self._workers.append(asyncio.create_task(self._worker_loop(i)))

        logger.info("orchestrator_started", workers=self.max_concurrent_jobs)

    async def stop(self) -> None:
        """Stop the workers and kill every tracked encoder."""
        for task in self._workers:
            task.cancel()

        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

        await self.supervisor.shutdown()
        logger.info("orchestrator_stopped")

    async def recover(self) -> int:
        """Re-queue every job left Pending or Processing by a previous run.

        Encoders from the previous instance that are still writing a job's
        output are terminated first so the re-run starts from scratch.
        """
        jobs = await self.store.list_active()

        for job in jobs:
            terminated = await asyncio.to_thread(
                self.supervisor.terminate_orphans, job.output_path
            )
            if terminated:
                logger.warning("orphan_encoders_terminated", job_id=job.job_id, count=terminated)

            await self._queue.put(job.job_id)
            logger.info("job_recovered", job_id=job.job_id, status=job.status.value)

        if jobs:
            logger.info("jobs_recovered", count=len(jobs))
        return len(jobs)

    # Public operations

    async def start_job(
        self,
        source_path: str,
        source_item_id: str,
        device_id: Optional[str] = None,
    ) -> str:
        """Persist a Pending job for a source file and queue it.

        Returns:
            The new job id

        Raises:
            SourceNotFoundError: If the source is outside the media roots or missing
            PathRejectedError: If the output location escapes the output root
        """
        try:
            source = self.media_guard.resolve(source_path)
        except PathRejectedError as e:
            raise SourceNotFoundError(source_path, e.reason) from e

        if not source.is_file():
            raise SourceNotFoundError(source_path, "is not an existing file")

        output_dir = self.output_guard.resolve(source_item_id)

        job_id = uuid4().hex
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        file_name = f"{_safe_stem(source)}_{timestamp}_{job_id[:8]}.{self.encoder.container}"
        output_path = self.output_guard.resolve(output_dir / file_name)

        job = Job(
            job_id=job_id,
            source_item_id=source_item_id,
            source_path=str(source),
            output_path=str(output_path),
            device_id=device_id,
        )
        await self.store.create(job)
        await self._queue.put(job_id)

        logger.info(
            "job_created",
            job_id=job_id,
            source_item_id=source_item_id,
            source=str(source),
            output=str(output_path),
        )
        return job_id

    async def cancel_job(self, job_id: str) -> Job:
        """Cancel a pending or processing job.

        Raises:
            JobNotFoundError: If the job is unknown or already finished
        """
        async with self._lock_for(job_id):
            job = await self.store.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.status.is_terminal:
                raise JobNotFoundError(job_id, f"is already {job.status.value}")

            ensure_transition(job.status, TranscodeStatus.CANCELED)
            killed = self.supervisor.cancel(job_id)
            canceled = await self.store.update(
                job.model_copy(
                    update={"status": TranscodeStatus.CANCELED, "completed_at": utcnow()}
                )
            )

        logger.info("job_canceled", job_id=job_id, process_signaled=killed)
        return canceled

    async def get_status(self, job_id: str) -> TranscodeStatus:
        job = await self.store.get(job_id)
        return job.status if job else TranscodeStatus.NOT_FOUND

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await self.store.get(job_id)

    async def list_jobs(self, device_id: Optional[str] = None) -> list[Job]:
        return await self.store.list_jobs(device_id)

    async def list_output_files(self, source_item_id: Optional[str] = None) -> list[OutputFile]:
        return await self.store.list_output_files(source_item_id)

    async def get_output_path(self, job_id: str) -> Path:
        """Validated path of a completed job's output file.

        Raises:
            JobNotFoundError: If the job is unknown, not completed or its file is gone
            PathRejectedError: If the stored path is outside the output root
        """
        job = await self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status != TranscodeStatus.COMPLETED:
            raise JobNotFoundError(job_id, f"is {job.status.value}, not completed")

        path = self.output_guard.resolve(job.output_path)
        if not path.is_file():
            raise JobNotFoundError(job_id, "output file is missing")
        return path

    async def clear_cache(self) -> None:
        """Delete all job and output file records."""
        await self.store.clear_all()

    # Execution

    @asynccontextmanager
    async def _lock_for(self, job_id: str):
        """Hold a job's lock; the lock is dropped once nobody holds or awaits it."""
        entry = self._locks.get(job_id)
        if entry is None:
            entry = self._locks[job_id] = _JobLock()

        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(job_id) is entry:
                del self._locks[job_id]

    async def _transition(self, job_id: str, target: TranscodeStatus, **changes) -> Optional[Job]:
        """Move a job to target if the stored status allows it.

        Returns None when the transition is no longer legal (for example a
        cancel was recorded first).
        """
        async with self._lock_for(job_id):
            job = await self.store.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if not can_transition(job.status, target):
                logger.info(
                    "transition_skipped",
                    job_id=job_id,
                    current=job.status.value,
                    target=target.value,
                )
                return None

            changes["status"] = target
            return await self.store.update(job.model_copy(update=changes))

    async def _reset_telemetry(self, job_id: str) -> Optional[Job]:
        async with self._lock_for(job_id):
            job = await self.store.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.status != TranscodeStatus.PROCESSING:
                return None
            return await self.store.update(
                job.model_copy(
                    update={
                        "progress": 0.0,
                        "current_fps": None,
                        "current_bitrate": None,
                        "time_remaining": None,
                    }
                )
            )

    async def _worker_loop(self, worker_id: int) -> None:
        logger.info("worker_task_started", worker_id=worker_id)

        while True:
            job_id = await self._queue.get()
            try:
                await self._execute(job_id)
            except Exception as e:
                logger.error("worker_error", worker_id=worker_id, job_id=job_id, error=str(e))
            finally:
                self._queue.task_done()

    async def _execute(self, job_id: str) -> None:
        job = await self.store.get(job_id)
        if job is None or job.status.is_terminal:
            logger.info("job_skipped", job_id=job_id, status=job.status.value if job else None)
            return

        try:
            if job.status == TranscodeStatus.PENDING:
                job = await self._transition(job_id, TranscodeStatus.PROCESSING, progress=0.0)
            else:
                job = await self._reset_telemetry(job_id)
        except JobNotFoundError:
            logger.info("job_removed_before_start", job_id=job_id)
            return

        if job is None:
            return

        logger.info("job_started", job_id=job_id, source=job.source_path)
        output_path = Path(job.output_path)
        handle: Optional[EncoderProcess] = None

        try:
            duration = await self.encoder.probe_duration(job.source_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            command = self.command_builder(job.source_path, job.output_path)

            try:
                handle = await self.supervisor.spawn(
                    job_id, command, self._progress_reporter(job_id, duration)
                )
            except AlreadyRunningError:
                logger.warning("job_already_running", job_id=job_id)
                return

            # A cancel recorded before the process was tracked
            current = await self.store.get(job_id)
            if current is None or current.status.is_terminal:
                self.supervisor.cancel(job_id)

            outcome = await self.supervisor.wait(handle)
            await self._finish(job, handle, outcome)

        except JobNotFoundError:
            logger.info("job_removed_during_execution", job_id=job_id)
        except asyncio.CancelledError:
            logger.info("job_interrupted", job_id=job_id)
            raise
        except Exception as e:
            logger.error("job_execution_error", job_id=job_id, error=str(e))
            await self._fail(job_id, str(e) or type(e).__name__, output_path)
        finally:
            if handle is not None:
                self.supervisor.release(handle)

    async def _finish(self, job: Job, handle: EncoderProcess, outcome: ProcessOutcome) -> None:
        output_path = Path(job.output_path)

        if outcome.canceled:
            self._remove_partial(output_path)
            await self._transition(job.job_id, TranscodeStatus.CANCELED, completed_at=utcnow())
            return

        if not outcome.succeeded:
            error = ProcessFailureError(
                job.job_id,
                outcome.exit_code,
                outcome.stderr_text,
                encoder=Path(handle.command[0]).name,
            )
            await self._fail(job.job_id, str(error), output_path)
            return

        try:
            file_size = output_path.stat().st_size
        except FileNotFoundError:
            await self._fail(job.job_id, "Encoder finished without producing an output file", output_path)
            return

        completed = await self._transition(
            job.job_id,
            TranscodeStatus.COMPLETED,
            progress=100.0,
            time_remaining=0.0,
            file_size=file_size,
            completed_at=utcnow(),
        )
        if completed is None:
            # Lost the race against a cancel
            self._remove_partial(output_path)
            return

        await self.store.create_output_file(
            OutputFile(
                id=uuid4().hex,
                source_item_id=job.source_item_id,
                job_id=job.job_id,
                file_path=str(output_path),
                profile_name=self.encoder.name,
                file_size=file_size,
            )
        )
        logger.info("job_completed", job_id=job.job_id, file_size=file_size)

    async def _fail(self, job_id: str, message: str, output_path: Path) -> None:
        try:
            failed = await self._transition(
                job_id,
                TranscodeStatus.FAILED,
                error_message=message,
                completed_at=utcnow(),
            )
        except JobNotFoundError:
            logger.info("job_removed_before_failure", job_id=job_id)
            return

        if failed is not None:
            self._remove_partial(output_path)
            logger.error("job_failed", job_id=job_id, error=message)

    def _remove_partial(self, output_path: Path) -> None:
        try:
            output_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("partial_output_not_removed", path=str(output_path), error=str(e))

    def _progress_reporter(self, job_id: str, duration: Optional[float]):
        last_write = 0.0

        async def report(progress: EncoderProgress) -> None:
            nonlocal last_write
            now = time.monotonic()
            if not progress.done and now - last_write < self.progress_update_interval:
                return
            last_write = now
            await self._record_progress(job_id, progress, duration)

        return report

    async def _record_progress(
        self, job_id: str, progress: EncoderProgress, duration: Optional[float]
    ) -> None:
        async with self._lock_for(job_id):
            job = await self.store.get(job_id)
            if job is None or job.status != TranscodeStatus.PROCESSING:
                return

            changes = {
                "current_fps": progress.fps,
                "current_bitrate": progress.bitrate_kbps,
                "time_remaining": progress.time_remaining(duration),
            }
            percent = progress.percent(duration)
            if percent is not None:
                changes["progress"] = round(percent, 1)

            await self.store.update(job.model_copy(update=changes))
