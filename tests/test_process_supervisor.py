"""Tests for encoder process supervision."""

import asyncio
import subprocess
import sys

import pytest

from optimized_versions.core.errors import AlreadyRunningError
from optimized_versions.services.process_supervisor import ProcessSupervisor


def python_command(code: str) -> list[str]:
    return [sys.executable, "-c", code]


SLEEPER = python_command("import time; time.sleep(60)")


async def test_spawn_and_wait_success(supervisor):
    blocks = []

    async def on_progress(block):
        blocks.append(block)

    handle = await supervisor.spawn(
        "job-1",
        python_command("print('fps=30'); print('out_time_us=2000000'); print('progress=end')"),
        on_progress,
    )
    assert supervisor.is_tracked("job-1")

    outcome = await supervisor.wait(handle)
    supervisor.release(handle)

    assert outcome.exit_code == 0
    assert outcome.succeeded
    assert not outcome.canceled
    assert len(blocks) == 1
    assert blocks[0].fps == 30.0
    assert blocks[0].out_time_seconds == 2.0
    assert blocks[0].done
    assert not supervisor.is_tracked("job-1")


async def test_nonzero_exit_keeps_stderr_tail(supervisor):
    code = "import sys\nfor i in range(50): print(f'line {i}', file=sys.stderr)\nsys.exit(2)"
    handle = await supervisor.spawn("job-1", python_command(code))

    outcome = await supervisor.wait(handle)
    supervisor.release(handle)

    assert outcome.exit_code == 2
    assert not outcome.succeeded
    # Fixture keeps the last 5 lines
    assert outcome.stderr_tail == [f"line {i}" for i in range(45, 50)]
    assert outcome.stderr_text.endswith("line 49")


async def test_spawn_duplicate_job_rejected(supervisor):
    handle = await supervisor.spawn("job-1", SLEEPER)

    with pytest.raises(AlreadyRunningError):
        await supervisor.spawn("job-1", SLEEPER)

    supervisor.cancel("job-1")
    await supervisor.wait(handle)
    supervisor.release(handle)


async def test_spawn_failure_is_not_tracked(supervisor):
    with pytest.raises(OSError):
        await supervisor.spawn("job-1", ["/nonexistent/encoder-binary"])

    assert not supervisor.is_tracked("job-1")
    assert supervisor.active_count == 0


async def test_spawn_invalid_argument_is_not_tracked(supervisor):
    # A NUL byte cannot be passed to exec
    with pytest.raises(ValueError):
        await supervisor.spawn("job-1", [sys.executable, "-c", "pass", "bad\x00arg"])

    assert not supervisor.is_tracked("job-1")
    assert supervisor.active_count == 0


async def test_oversized_line_does_not_stop_reading():
    supervisor = ProcessSupervisor(kill_timeout=5.0, stderr_tail_lines=5, stream_limit=1024)
    code = (
        "import sys\n"
        "print('x' * 10000, file=sys.stderr)\n"
        "print('fps=' + '1' * 5000)\n"
        "print('after long line', file=sys.stderr)\n"
        "sys.exit(1)"
    )
    handle = await supervisor.spawn("job-1", python_command(code))

    outcome = await asyncio.wait_for(supervisor.wait(handle), timeout=10)
    supervisor.release(handle)

    assert outcome.exit_code == 1
    assert outcome.stderr_tail[-1] == "after long line"


async def test_cancel_kills_process(supervisor):
    handle = await supervisor.spawn("job-1", SLEEPER)

    assert supervisor.cancel("job-1") is True
    assert not supervisor.is_tracked("job-1")

    outcome = await asyncio.wait_for(supervisor.wait(handle), timeout=10)
    supervisor.release(handle)

    assert outcome.canceled
    assert not outcome.succeeded
    assert not handle.is_alive


async def test_cancel_untracked_job(supervisor):
    assert supervisor.cancel("nothing-here") is False


async def test_release_kills_live_process(supervisor):
    handle = await supervisor.spawn("job-1", SLEEPER)

    supervisor.release(handle)

    assert not supervisor.is_tracked("job-1")
    await asyncio.wait_for(handle.process.wait(), timeout=10)
    assert handle.process.returncode != 0


async def test_release_stale_handle_keeps_newer_one(supervisor):
    old = await supervisor.spawn("job-1", SLEEPER)
    supervisor.cancel("job-1")
    await supervisor.wait(old)

    new = await supervisor.spawn("job-1", SLEEPER)
    supervisor.release(old)
    supervisor.release(old)

    assert supervisor.is_tracked("job-1")

    supervisor.cancel("job-1")
    await supervisor.wait(new)
    supervisor.release(new)


async def test_shutdown_kills_everything(supervisor):
    first = await supervisor.spawn("job-1", SLEEPER)
    second = await supervisor.spawn("job-2", SLEEPER)

    await supervisor.shutdown()

    assert supervisor.active_count == 0
    assert not first.is_alive
    assert not second.is_alive


def test_find_and_terminate_orphans(tmp_path):
    supervisor = ProcessSupervisor(kill_timeout=5.0)
    marker = str(tmp_path / "orphan-output.mp4")
    orphan = subprocess.Popen(
        [sys.executable, "-c", "import time; time.sleep(60)", marker],
    )

    try:
        pids = [p.pid for p in supervisor.find_orphans(marker)]
        assert orphan.pid in pids
        assert supervisor.find_orphans(marker + ".other") == []

        assert supervisor.terminate_orphans(marker) == 1
        assert orphan.wait(timeout=10) is not None
    finally:
        if orphan.poll() is None:
            orphan.kill()
            orphan.wait()
