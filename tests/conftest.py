"""Shared fixtures: temporary settings, database and fake encoders."""

import asyncio
import sys
import time
from pathlib import Path

import pytest

from optimized_versions.core.config import Settings
from optimized_versions.database import create_engine, create_session_factory, init_db
from optimized_versions.models.job import TranscodeStatus
from optimized_versions.services.encoder import EncoderProfile
from optimized_versions.services.job_store import JobStore
from optimized_versions.services.orchestrator import JobOrchestrator
from optimized_versions.services.process_supervisor import ProcessSupervisor

# Stands in for ffmpeg: <mode> <output path>
FAKE_ENCODER = '''
import sys
import time

mode, output = sys.argv[1], sys.argv[2]


def progress(out_time_us, end=False):
    print("frame=240")
    print("fps=24.0")
    print("bitrate=1500.5kbits/s")
    print(f"out_time_us={out_time_us}")
    print("speed=2.0x")
    print("progress=end" if end else "progress=continue", flush=True)


if mode == "success":
    progress(500000)
    with open(output, "wb") as f:
        f.write(b"x" * 2048)
    progress(1000000, end=True)
    sys.exit(0)

if mode == "fail":
    with open(output, "wb") as f:
        f.write(b"partial")
    print("Invalid data found when processing input", file=sys.stderr, flush=True)
    sys.exit(3)

if mode == "no_output":
    sys.exit(0)

if mode == "hang":
    with open(output, "wb") as f:
        f.write(b"partial")
    progress(100000)
    time.sleep(60)
    sys.exit(0)

sys.exit(64)
'''


def encoder_command(script: Path, mode: str):
    """Command builder that runs the fake encoder in the given mode."""

    def build(input_path: str, output_path: str) -> list[str]:
        return [sys.executable, str(script), mode, output_path]

    return build


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary directory."""
    media = tmp_path / "media"
    media.mkdir()
    return Settings(
        storage={
            "data_dir": str(tmp_path / "data"),
            "media_roots": [str(media)],
        },
        encoder={"probe_executable": str(tmp_path / "missing-ffprobe")},
        jobs={"progress_update_interval": 0.0, "kill_timeout_seconds": 5.0},
    )


@pytest.fixture
def media_file(settings):
    """A source file inside the media root."""
    path = Path(settings.storage.media_roots[0]) / "Some Movie (2010).mkv"
    path.write_bytes(b"source" * 100)
    return path


@pytest.fixture
def fake_encoder(tmp_path):
    script = tmp_path / "fake_encoder.py"
    script.write_text(FAKE_ENCODER)
    return script


@pytest.fixture
async def session_factory(settings):
    engine = create_engine(settings.database_url)
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
async def supervisor():
    supervisor = ProcessSupervisor(kill_timeout=5.0, stderr_tail_lines=5)
    yield supervisor
    await supervisor.shutdown()


@pytest.fixture
async def make_orchestrator(settings, store, supervisor, fake_encoder):
    """Factory for orchestrators wired to the fake encoder."""
    created = []

    def factory(mode: str = "success", max_concurrent_jobs: int = 2) -> JobOrchestrator:
        orchestrator = JobOrchestrator(
            store=store,
            supervisor=supervisor,
            encoder=EncoderProfile(settings.encoder),
            output_root=settings.storage.output_root,
            media_roots=settings.storage.media_roots,
            max_concurrent_jobs=max_concurrent_jobs,
            progress_update_interval=0.0,
            command_builder=encoder_command(fake_encoder, mode),
        )
        created.append(orchestrator)
        return orchestrator

    yield factory

    for orchestrator in created:
        await orchestrator.stop()


@pytest.fixture
def wait_for_status():
    """Poll an orchestrator until a job reaches one of the given statuses."""

    async def wait(orchestrator, job_id, *statuses: TranscodeStatus, timeout: float = 15.0):
        deadline = time.monotonic() + timeout
        while True:
            status = await orchestrator.get_status(job_id)
            if status in statuses:
                return status
            if time.monotonic() > deadline:
                raise AssertionError(f"Job {job_id} stuck in {status.value}")
            await asyncio.sleep(0.05)

    return wait


@pytest.fixture
def wait_until():
    """Poll a condition until it holds."""

    async def wait(condition, timeout: float = 15.0):
        deadline = time.monotonic() + timeout
        while not condition():
            if time.monotonic() > deadline:
                raise AssertionError("Condition not met in time")
            await asyncio.sleep(0.05)

    return wait


@pytest.fixture
def command_for(fake_encoder):
    """Build fake encoder command builders by mode."""

    def build(mode: str):
        return encoder_command(fake_encoder, mode)

    return build
