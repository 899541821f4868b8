"""FFmpeg merge invocation.

Multiplexes one video input and one audio input into an mp4:
- video stream copied unmodified (first input)
- audio stream re-encoded to a fixed codec/bitrate (second input)
- output truncated to the shorter input
- moov atom moved to the front for progressive playback
- existing output overwritten

The subprocess runs under asyncio so the calling request is suspended, not
blocked, until ffmpeg exits. Progress is read from ``-progress pipe:1``.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from avmux.models.domain import MergeOutcome

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_CODEC = "aac"
DEFAULT_AUDIO_BITRATE = "192k"

# Keep at most this much stderr for diagnostics
MAX_STDERR_CHARS = 16_000


class FfmpegError(RuntimeError):
    """Raised when ffmpeg cannot start, times out, or exits non-zero."""

    def __init__(self, reason: str, stderr: str = "", returncode: int | None = None):
        self.reason = reason
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(reason)


@dataclass
class Progress:
    """One ``-progress`` block reported by ffmpeg."""

    out_time_ms: int
    percent: float | None
    done: bool


def build_merge_command(
    video_path: Path,
    audio_path: Path,
    output_path: Path,
    *,
    ffmpeg_path: str = "ffmpeg",
    audio_codec: str = DEFAULT_AUDIO_CODEC,
    audio_bitrate: str = DEFAULT_AUDIO_BITRATE,
    report_progress: bool = True,
) -> list[str]:
    """Build the ffmpeg argv for a merge.

    Args:
        video_path: Input providing the video stream.
        audio_path: Input providing the audio stream.
        output_path: Merged output file.
        ffmpeg_path: ffmpeg executable.
        audio_codec: Output audio codec.
        audio_bitrate: Output audio bitrate (ffmpeg syntax, e.g. ``192k``).
        report_progress: Emit machine-readable progress on stdout.

    Returns:
        Argument list suitable for ``create_subprocess_exec``.
    """
    cmd = [
        ffmpeg_path,
        "-hide_banner",
        "-i", str(video_path),
        "-i", str(audio_path),
        "-c:v", "copy",
        "-c:a", audio_codec,
        "-b:a", audio_bitrate,
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-shortest",
        "-movflags", "+faststart",
    ]
    if report_progress:
        cmd += ["-progress", "pipe:1", "-nostats"]
    cmd += ["-y", str(output_path)]
    return cmd


class ProgressParser:
    """Accumulates ``key=value`` lines from ``-progress`` into Progress events."""

    def __init__(self, expected_duration_ms: int | None = None):
        self.expected_duration_ms = expected_duration_ms or None
        self._out_time_ms = 0

    def feed(self, line: str) -> Progress | None:
        """Consume one line; return a Progress at the end of each block."""
        key, sep, value = line.strip().partition("=")
        if not sep:
            return None

        if key in ("out_time_us", "out_time_ms"):
            # ffmpeg reports microseconds under both keys
            try:
                self._out_time_ms = max(int(value) // 1000, 0)
            except ValueError:
                pass
            return None

        if key == "progress":
            done = value == "end"
            return Progress(
                out_time_ms=self._out_time_ms,
                percent=self._percent(done),
                done=done,
            )

        return None

    def _percent(self, done: bool) -> float | None:
        if done:
            return 100.0
        if not self.expected_duration_ms:
            return None
        return min(100.0, self._out_time_ms * 100.0 / self.expected_duration_ms)


def log_progress(progress: Progress) -> None:
    if progress.percent is not None:
        logger.info("Progress: %.1f%%", progress.percent)
    else:
        logger.info("Progress: %.1fs written", progress.out_time_ms / 1000)


async def run_merge(
    command: list[str],
    *,
    timeout_s: float = 300.0,
    expected_duration_ms: int | None = None,
    on_progress: Callable[[Progress], None] | None = log_progress,
) -> MergeOutcome:
    """Run an ffmpeg merge command to completion.

    Args:
        command: argv from ``build_merge_command``.
        timeout_s: Kill ffmpeg if it runs longer than this.
        expected_duration_ms: Output duration used for percentage progress.
        on_progress: Callback for each progress block (None to ignore).

    Returns:
        MergeOutcome with the command, exit code, and stderr.

    Raises:
        FfmpegError: If ffmpeg cannot start, times out, or exits non-zero.
    """
    logger.info("FFmpeg command: %s", shlex.join(command))

    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise FfmpegError(f"Cannot find or start ffmpeg: {e}") from e

    if proc.stdout is None or proc.stderr is None:
        raise RuntimeError("ffmpeg started without output pipes")
    stdout_pipe, stderr_pipe = proc.stdout, proc.stderr

    parser = ProgressParser(expected_duration_ms)

    async def watch_progress() -> None:
        async for raw in stdout_pipe:
            event = parser.feed(raw.decode(errors="replace"))
            if event is not None and on_progress is not None:
                on_progress(event)

    async def communicate() -> bytes:
        stderr_bytes, _ = await asyncio.gather(stderr_pipe.read(), watch_progress())
        await proc.wait()
        return stderr_bytes

    try:
        stderr_bytes = await asyncio.wait_for(communicate(), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise FfmpegError(f"ffmpeg timed out after {timeout_s:g}s") from e

    stderr = stderr_bytes.decode(errors="replace")[-MAX_STDERR_CHARS:]

    if proc.returncode != 0:
        raise FfmpegError(
            f"ffmpeg exited with code {proc.returncode}",
            stderr=stderr,
            returncode=proc.returncode,
        )

    return MergeOutcome(command=list(command), returncode=proc.returncode, stderr=stderr)
