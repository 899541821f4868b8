"""Adapter module for external tools and IO boundaries.

Adapters wrap external dependencies behind domain-focused interfaces.
The merge worker uses adapters rather than calling tools or HTTP directly.

Structure:
- adapter/fetch.py  - remote downloads (httpx)
- adapter/media/    - ffmpeg merge, ffprobe durations (subprocess)
"""

from avmux.adapter.fetch import FetchError, FetcherBase, HttpFetcher
from avmux.adapter.media import (
    FfmpegError,
    build_merge_command,
    check_available,
    probe_duration_ms,
    run_merge,
)

__all__ = [
    # Fetch
    "FetchError",
    "FetcherBase",
    "HttpFetcher",
    # Media
    "FfmpegError",
    "build_merge_command",
    "check_available",
    "probe_duration_ms",
    "run_merge",
]
