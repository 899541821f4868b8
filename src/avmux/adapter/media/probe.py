"""Media metadata probing via ffprobe.

Adapter for reading container durations with an ffprobe subprocess.
Handles timeouts, error handling, and output parsing.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path


def check_available(ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe") -> bool:
    """Check if media tools are available.

    Args:
        ffmpeg_path: ffmpeg executable.
        ffprobe_path: ffprobe executable.

    Returns:
        True if ffmpeg and ffprobe are available.
    """
    try:
        subprocess.run([ffmpeg_path, "-version"], capture_output=True, timeout=5)
        subprocess.run([ffprobe_path, "-version"], capture_output=True, timeout=5)
        return True
    except (FileNotFoundError, PermissionError, subprocess.TimeoutExpired):
        return False


def parse_duration_ms(probe_json: str) -> int:
    """Parse container duration from ffprobe JSON output.

    Args:
        probe_json: stdout of ``ffprobe -show_entries format=duration -of json``.

    Returns:
        Duration in milliseconds (0 when ffprobe reports none).
    """
    data = json.loads(probe_json)
    duration_str = data.get("format", {}).get("duration") or "0"
    try:
        return int(float(duration_str) * 1000)
    except ValueError:
        return 0


def probe_duration_ms(
    media_path: Path,
    ffprobe_path: str = "ffprobe",
    timeout_s: float = 30.0,
) -> int:
    """Get container duration of a media file.

    Args:
        media_path: Path to media file.
        ffprobe_path: ffprobe executable.
        timeout_s: Timeout for the probe subprocess.

    Returns:
        Duration in milliseconds.

    Raises:
        FileNotFoundError: If media file doesn't exist.
        RuntimeError: If probe fails or times out.
    """
    if not media_path.exists():
        raise FileNotFoundError(f"Media file not found: {media_path}")

    try:
        result = subprocess.run(
            [
                ffprobe_path,
                "-v", "error",
                "-show_entries", "format=duration",
                "-of", "json",
                str(media_path),
            ],
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired as e:
        raise RuntimeError(f"Probe timed out for {media_path}") from e
    except OSError as e:
        raise RuntimeError(f"Probe could not start: {e}") from e

    if result.returncode != 0:
        raise RuntimeError(f"Probe failed: {result.stderr}")

    try:
        return parse_duration_ms(result.stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Probe returned invalid JSON for {media_path}") from e
