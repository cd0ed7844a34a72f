"""ffmpeg invocation and progress parsing."""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from ..core.config import EncoderConfig

logger = structlog.get_logger()

PROBE_TIMEOUT = 30  # seconds

# (input_path, output_path) -> argv
CommandBuilder = Callable[[str, str], list[str]]


@dataclass
class EncoderProgress:
    """One block of ffmpeg ``-progress`` output."""

    fps: Optional[float] = None
    bitrate_kbps: Optional[float] = None
    out_time_seconds: Optional[float] = None
    speed: Optional[float] = None
    done: bool = False

    def percent(self, duration: Optional[float]) -> Optional[float]:
        """Completion percentage given the source duration."""
        if not duration or self.out_time_seconds is None:
            return None
        return max(0.0, min(100.0, self.out_time_seconds / duration * 100))

    def time_remaining(self, duration: Optional[float]) -> Optional[float]:
        """Estimated seconds left, from encode speed."""
        if not duration or self.out_time_seconds is None or not self.speed:
            return None
        return max(0.0, (duration - self.out_time_seconds) / self.speed)


def _parse_float(value: str, suffix: str = "") -> Optional[float]:
    value = value.strip()
    if suffix and value.endswith(suffix):
        value = value[: -len(suffix)]
    try:
        return float(value)
    except ValueError:
        return None


class ProgressParser:
    """Accumulates ``key=value`` lines and emits a block on ``progress=``."""

    def __init__(self):
        self._current = EncoderProgress()

    def feed(self, line: str) -> Optional[EncoderProgress]:
        """Consume one line; return a finished block or None."""
        key, sep, value = line.strip().partition("=")
        if not sep:
            return None

        if key == "fps":
            self._current.fps = _parse_float(value)
        elif key == "bitrate":
            self._current.bitrate_kbps = _parse_float(value, "kbits/s")
        elif key in ("out_time_us", "out_time_ms"):
            # ffmpeg reports microseconds under both keys
            micros = _parse_float(value)
            if micros is not None and micros >= 0:
                self._current.out_time_seconds = micros / 1_000_000
        elif key == "speed":
            self._current.speed = _parse_float(value, "x")
        elif key == "progress":
            block = self._current
            block.done = value.strip() == "end"
            self._current = EncoderProgress()
            return block

        return None


class EncoderProfile:
    """Builds ffmpeg command lines from an EncoderConfig."""

    def __init__(self, config: EncoderConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.profile_name

    @property
    def container(self) -> str:
        return self.config.container.lstrip(".")

    def build_command(self, input_path: str, output_path: str) -> list[str]:
        """Build the ffmpeg argv for one job."""
        cfg = self.config
        cmd = [cfg.executable, "-hide_banner", "-nostdin"]

        if cfg.hardware_acceleration and cfg.hardware_acceleration != "none":
            cmd.extend(["-hwaccel", cfg.hardware_acceleration])

        cmd.extend([
            "-i", input_path,
            "-c:v", cfg.video_codec,
            "-preset", cfg.preset,
            "-s", cfg.video_size,
            "-b:v", cfg.video_bitrate,
            "-c:a", cfg.audio_codec,
            "-b:a", cfg.audio_bitrate,
        ])
        cmd.extend(cfg.extra_args)
        cmd.extend(["-progress", "pipe:1", "-nostats", "-y", output_path])
        return cmd

    async def probe_duration(self, path: str) -> Optional[float]:
        """Return the media duration in seconds, or None if unknown."""
        cmd = [
            self.config.probe_executable,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            path,
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug("probe_unavailable", path=path, error=str(e))
            return None

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=PROBE_TIMEOUT)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("probe_timeout", path=path, timeout=PROBE_TIMEOUT)
            return None

        if process.returncode != 0:
            return None

        duration = _parse_float(stdout.decode("utf-8", errors="replace"))
        return duration if duration and duration > 0 else None
