"""Media adapters for the external ffmpeg/ffprobe tools.

Adapters for IO/system boundary operations:
- probe: ffprobe-based duration extraction
- ffmpeg: merge command construction and invocation
"""

from avmux.adapter.media.ffmpeg import (
    FfmpegError,
    Progress,
    ProgressParser,
    build_merge_command,
    run_merge,
)
from avmux.adapter.media.probe import check_available, probe_duration_ms

__all__ = [
    "FfmpegError",
    "Progress",
    "ProgressParser",
    "build_merge_command",
    "check_available",
    "probe_duration_ms",
    "run_merge",
]
