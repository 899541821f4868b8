"""Run the merge service.

Usage:
    python -m avmux

Settings come from ``AVMUX_*`` environment variables (see avmux.config).
"""

from __future__ import annotations

import logging

import uvicorn

from avmux.adapter.media.probe import check_available
from avmux.api.app import create_app
from avmux.config import get_settings

logger = logging.getLogger("avmux")


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("FFmpeg Video Merger API running on port %d", settings.port)
    logger.info("Environment: %s", settings.environment)
    logger.info("FFmpeg path: %s", settings.ffmpeg_path)
    if not check_available(settings.ffmpeg_path, settings.ffprobe_path):
        logger.warning("ffmpeg/ffprobe not found; merges will fail until installed")

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
