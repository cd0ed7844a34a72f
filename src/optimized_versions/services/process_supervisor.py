"""Tracking and control of running encoder processes."""

import asyncio
import os
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import psutil
import structlog

from ..core.errors import AlreadyRunningError
from .encoder import EncoderProgress, ProgressParser

logger = structlog.get_logger()

ProgressCallback = Callable[[EncoderProgress], Awaitable[None]]

STREAM_LIMIT = 1024 * 1024  # max bytes per line read from the encoder


@dataclass(eq=False)
class EncoderProcess:
    """Handle for one spawned encoder process."""

    job_id: str
    command: list[str]
    on_progress: Optional[ProgressCallback] = None
    process: Optional[asyncio.subprocess.Process] = None
    canceled: bool = False
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def is_alive(self) -> bool:
        return self.process is not None and self.process.returncode is None


@dataclass
class ProcessOutcome:
    """How an encoder process ended."""

    exit_code: Optional[int]
    canceled: bool = False
    stderr_tail: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.canceled and self.exit_code == 0

    @property
    def stderr_text(self) -> str:
        return "\n".join(self.stderr_tail)


class ProcessSupervisor:
    """Owns the job id -> encoder process map.

    The map is only changed by spawn, cancel and release. A handle is
    registered before its process exists so a cancel during startup kills
    the process as soon as it is created.
    """

    def __init__(
        self,
        kill_timeout: float = 5.0,
        stderr_tail_lines: int = 20,
        stream_limit: int = STREAM_LIMIT,
    ):
        self.kill_timeout = kill_timeout
        self.stderr_tail_lines = stderr_tail_lines
        self.stream_limit = stream_limit
        self._processes: dict[str, EncoderProcess] = {}

    @property
    def active_count(self) -> int:
        return len(self._processes)

    def is_tracked(self, job_id: str) -> bool:
        return job_id in self._processes

    async def spawn(
        self,
        job_id: str,
        command: list[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> EncoderProcess:
        """Start an encoder for a job; raises AlreadyRunningError if one is tracked."""
        if job_id in self._processes:
            raise AlreadyRunningError(job_id)

        handle = EncoderProcess(job_id=job_id, command=command, on_progress=on_progress)
        self._processes[job_id] = handle

        logger.debug("encoder_command", job_id=job_id, cmd=" ".join(command))

        try:
            handle.process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.stream_limit,
            )
        except BaseException:
            self._untrack(handle)
            raise

        if handle.canceled:
            logger.info("encoder_canceled_during_start", job_id=job_id, pid=handle.pid)
            self._kill(handle)
        else:
            logger.info("encoder_started", job_id=job_id, pid=handle.pid)

        return handle

    async def wait(self, handle: EncoderProcess) -> ProcessOutcome:
        """Wait for the process to exit or for the handle to be canceled."""
        process = handle.process
        if process is None:
            return ProcessOutcome(exit_code=None, canceled=True)

        stderr_tail: deque[str] = deque(maxlen=self.stderr_tail_lines)
        readers = [
            asyncio.create_task(self._read_progress(handle)),
            asyncio.create_task(self._read_stderr(handle, stderr_tail)),
        ]
        exit_task = asyncio.create_task(process.wait())
        cancel_task = asyncio.create_task(handle.cancel_event.wait())

        try:
            await asyncio.wait({exit_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)

            if handle.canceled:
                self._kill(handle)

            await self._reap(handle)
            # Pipes close once the process is gone
            await asyncio.wait(readers, timeout=self.kill_timeout)
        finally:
            tasks = [exit_task, cancel_task, *readers]
            for task in tasks:
                if not task.done():
                    task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results[2:]:
                if isinstance(result, Exception):
                    logger.error("encoder_reader_failed", job_id=handle.job_id, error=str(result))

        outcome = ProcessOutcome(
            exit_code=process.returncode,
            canceled=handle.canceled,
            stderr_tail=list(stderr_tail),
        )

        logger.info(
            "encoder_exited",
            job_id=handle.job_id,
            pid=process.pid,
            exit_code=outcome.exit_code,
            canceled=outcome.canceled,
        )
        return outcome

    def cancel(self, job_id: str) -> bool:
        """Cancel a tracked job's process.

        Returns False when nothing is tracked for the id or the kill was
        refused by the OS.
        """
        handle = self._processes.pop(job_id, None)
        if handle is None:
            return False

        handle.canceled = True
        handle.cancel_event.set()

        if handle.process is None:
            # spawn() kills it once the process exists
            return True

        return self._kill(handle)

    def release(self, handle: EncoderProcess) -> None:
        """Drop bookkeeping for exactly this handle, killing it if still alive."""
        self._untrack(handle)
        if handle.is_alive:
            logger.warning("encoder_alive_on_release", job_id=handle.job_id, pid=handle.pid)
            self._kill(handle)

    async def shutdown(self) -> None:
        """Kill every tracked process."""
        handles = list(self._processes.values())
        self._processes.clear()

        for handle in handles:
            handle.canceled = True
            handle.cancel_event.set()
            self._kill(handle)

        for handle in handles:
            await self._reap(handle)

        if handles:
            logger.info("encoders_shutdown", count=len(handles))

    def find_orphans(self, marker: str) -> list[psutil.Process]:
        """Find untracked processes whose command line contains marker as an argument."""
        own_pids = {os.getpid()}
        own_pids.update(h.pid for h in self._processes.values() if h.pid)

        orphans = []
        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            try:
                if proc.info["pid"] in own_pids:
                    continue
                cmdline = proc.info.get("cmdline") or []
                if marker in cmdline:
                    orphans.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return orphans

    def terminate_orphans(self, marker: str) -> int:
        """Terminate orphaned encoders for marker, killing any that ignore SIGTERM."""
        orphans = self.find_orphans(marker)
        if not orphans:
            return 0

        for proc in orphans:
            logger.warning("terminating_orphan_encoder", pid=proc.pid, marker=marker)
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.error("orphan_terminate_denied", pid=proc.pid)

        _, alive = psutil.wait_procs(orphans, timeout=self.kill_timeout)
        for proc in alive:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.error("orphan_kill_denied", pid=proc.pid)

        return len(orphans)

    def _untrack(self, handle: EncoderProcess) -> None:
        if self._processes.get(handle.job_id) is handle:
            del self._processes[handle.job_id]

    def _kill(self, handle: EncoderProcess) -> bool:
        if not handle.is_alive:
            return True

        try:
            handle.process.kill()
        except ProcessLookupError:
            logger.debug("encoder_already_exited", job_id=handle.job_id, pid=handle.pid)
            return True
        except OSError as e:
            logger.error("encoder_kill_failed", job_id=handle.job_id, pid=handle.pid, error=str(e))
            return False

        logger.info("encoder_killed", job_id=handle.job_id, pid=handle.pid)
        return True

    async def _reap(self, handle: EncoderProcess) -> None:
        if handle.process is None:
            return
        try:
            await asyncio.wait_for(handle.process.wait(), timeout=self.kill_timeout)
        except asyncio.TimeoutError:
            logger.error("encoder_did_not_exit", job_id=handle.job_id, pid=handle.pid)

    async def _read_lines(self, job_id: str, stream: asyncio.StreamReader):
        """Yield lines until EOF, skipping lines longer than the stream limit."""
        while True:
            try:
                line = await stream.readline()
            except ValueError as e:
                # readline drops what it buffered of the oversized line
                logger.warning("encoder_line_too_long", job_id=job_id, error=str(e))
                continue
            if not line:
                return
            yield line

    async def _read_progress(self, handle: EncoderProcess) -> None:
        parser = ProgressParser()
        async for line in self._read_lines(handle.job_id, handle.process.stdout):
            block = parser.feed(line.decode("utf-8", errors="replace"))
            if block is None or handle.on_progress is None or handle.canceled:
                continue

            try:
                await handle.on_progress(block)
            except Exception as e:
                logger.warning("progress_callback_failed", job_id=handle.job_id, error=str(e))

    async def _read_stderr(self, handle: EncoderProcess, tail: deque) -> None:
        async for line in self._read_lines(handle.job_id, handle.process.stderr):
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                tail.append(text)
