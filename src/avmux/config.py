"""Service configuration.

Module-level defaults with environment overrides. No external config
libraries: every setting is read from ``os.environ`` once and frozen into a
``Settings`` instance.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

MIB = 1024 * 1024

# Listening socket
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

# Download ceilings: video streams are expected to be much larger than audio
DEFAULT_VIDEO_MAX_BYTES = 50 * MIB
DEFAULT_VIDEO_TIMEOUT_S = 60.0
DEFAULT_AUDIO_MAX_BYTES = 10 * MIB
DEFAULT_AUDIO_TIMEOUT_S = 30.0

# Output encoding
DEFAULT_AUDIO_CODEC = "aac"
DEFAULT_AUDIO_BITRATE = "192k"
DEFAULT_FFMPEG_TIMEOUT_S = 300.0

# Request body limit (JSON payload)
DEFAULT_MAX_BODY_BYTES = 50 * MIB

# Concurrent ffmpeg invocations (0 = unlimited)
DEFAULT_MAX_CONCURRENT_MERGES = 4


def _env_int(name: str, default: int) -> int:
    """Read a non-negative integer from the environment.

    Args:
        name: Environment variable name.
        default: Value used when unset or invalid.

    Returns:
        Parsed value or default.
    """
    env_val = os.environ.get(name)
    if env_val:
        try:
            value = int(env_val)
            if value >= 0:
                return value
        except ValueError:
            pass
    return default


def _env_float(name: str, default: float) -> float:
    """Read a positive float from the environment."""
    env_val = os.environ.get(name)
    if env_val:
        try:
            value = float(env_val)
            if value > 0:
                return value
        except ValueError:
            pass
    return default


def _env_bool(name: str, default: bool) -> bool:
    env_val = os.environ.get(name)
    if env_val is None or not env_val.strip():
        return default
    return env_val.strip().lower() not in ("0", "false", "no", "off")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the merge service."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    environment: str = "development"
    log_level: str = "INFO"

    temp_dir: Path = Path(tempfile.gettempdir())
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    video_max_bytes: int = DEFAULT_VIDEO_MAX_BYTES
    video_timeout_s: float = DEFAULT_VIDEO_TIMEOUT_S
    audio_max_bytes: int = DEFAULT_AUDIO_MAX_BYTES
    audio_timeout_s: float = DEFAULT_AUDIO_TIMEOUT_S

    audio_codec: str = DEFAULT_AUDIO_CODEC
    audio_bitrate: str = DEFAULT_AUDIO_BITRATE
    ffmpeg_timeout_s: float = DEFAULT_FFMPEG_TIMEOUT_S

    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    # None means the merged output is only bounded by available memory
    max_output_bytes: int | None = None
    max_concurrent_merges: int = DEFAULT_MAX_CONCURRENT_MERGES
    expose_error_details: bool = True

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``AVMUX_*`` environment variables.

        Returns:
            Settings with environment overrides applied.
        """
        max_output = _env_int("AVMUX_MAX_OUTPUT_BYTES", 0)
        temp_dir = os.environ.get("AVMUX_TEMP_DIR") or tempfile.gettempdir()

        return cls(
            host=os.environ.get("AVMUX_HOST", DEFAULT_HOST),
            port=_env_int("AVMUX_PORT", DEFAULT_PORT),
            environment=os.environ.get("AVMUX_ENV", "development"),
            log_level=os.environ.get("AVMUX_LOG_LEVEL", "INFO").upper(),
            temp_dir=Path(temp_dir),
            ffmpeg_path=os.environ.get("AVMUX_FFMPEG_PATH", "ffmpeg"),
            ffprobe_path=os.environ.get("AVMUX_FFPROBE_PATH", "ffprobe"),
            video_max_bytes=_env_int("AVMUX_VIDEO_MAX_BYTES", DEFAULT_VIDEO_MAX_BYTES),
            video_timeout_s=_env_float("AVMUX_VIDEO_TIMEOUT_S", DEFAULT_VIDEO_TIMEOUT_S),
            audio_max_bytes=_env_int("AVMUX_AUDIO_MAX_BYTES", DEFAULT_AUDIO_MAX_BYTES),
            audio_timeout_s=_env_float("AVMUX_AUDIO_TIMEOUT_S", DEFAULT_AUDIO_TIMEOUT_S),
            audio_codec=os.environ.get("AVMUX_AUDIO_CODEC", DEFAULT_AUDIO_CODEC),
            audio_bitrate=os.environ.get("AVMUX_AUDIO_BITRATE", DEFAULT_AUDIO_BITRATE),
            ffmpeg_timeout_s=_env_float("AVMUX_FFMPEG_TIMEOUT_S", DEFAULT_FFMPEG_TIMEOUT_S),
            max_body_bytes=_env_int("AVMUX_MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES),
            max_output_bytes=max_output or None,
            max_concurrent_merges=_env_int(
                "AVMUX_MAX_CONCURRENT_MERGES", DEFAULT_MAX_CONCURRENT_MERGES
            ),
            expose_error_details=_env_bool("AVMUX_EXPOSE_ERROR_DETAILS", True),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get process-wide settings (read once from the environment)."""
    return Settings.from_env()
