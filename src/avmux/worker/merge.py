"""Merge worker.

Performs the expensive side effects of a merge request: downloads, the
ffmpeg run, reading the result. Owns temp storage for the request.
Forbidden: HTTP status codes and response shaping (api layer's job).

Architecture:
- MergeProcessor: long-lived, holds settings, fetcher and the admission gate
- MergeContext: per-request inputs plus its Workspace
- execute(): strictly sequential phases; any failure short-circuits to
  workspace release, then propagates
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import logging
import time
from dataclasses import dataclass

from avmux.adapter.fetch import FetchError, FetcherBase, HttpFetcher
from avmux.adapter.media.ffmpeg import FfmpegError, build_merge_command, run_merge
from avmux.adapter.media.probe import probe_duration_ms
from avmux.config import Settings
from avmux.core.errors import (
    DownloadFailedError,
    MergeError,
    MissingFieldError,
    OutputReadFailedError,
    TranscodeFailedError,
)
from avmux.core.workspace import Workspace
from avmux.models.domain import MIB, MergeResult, MergeStats, TemporaryArtifact
from avmux.models.types import REQUIRED_FIELDS, MergeRequest

logger = logging.getLogger(__name__)


@dataclass
class MergeContext:
    """Everything one merge needs, validated."""

    video_url: str
    audio_url: str
    workspace: Workspace
    started_at: float


class MergeProcessor:
    """Processes merge requests: validate -> download -> ffmpeg -> encode.

    One instance is shared by all requests of an app. Concurrent ffmpeg runs
    are bounded by ``settings.max_concurrent_merges`` (0 = unbounded).
    """

    def __init__(
        self,
        settings: Settings,
        fetcher: FetcherBase | None = None,
        runner=run_merge,
        prober=probe_duration_ms,
    ):
        """Initialize processor.

        Args:
            settings: Service settings (limits, tool paths, temp root).
            fetcher: Remote fetch client; httpx-based by default.
            runner: Coroutine function running an ffmpeg command.
            prober: Function returning a media file's duration in ms.
        """
        self.settings = settings
        self.fetcher = fetcher or HttpFetcher()
        self.runner = runner
        self.prober = prober
        self._gate = (
            asyncio.Semaphore(settings.max_concurrent_merges)
            if settings.max_concurrent_merges > 0
            else None
        )

    @staticmethod
    def validate(request: MergeRequest) -> tuple[str, str]:
        """Check both locators are present.

        Returns:
            Tuple of (video_url, audio_url), stripped.

        Raises:
            MissingFieldError: If either locator is absent or blank.
        """
        missing = request.missing_fields()
        if missing:
            raise MissingFieldError(REQUIRED_FIELDS, missing)
        return (request.video_url or "").strip(), (request.audio_url or "").strip()

    async def execute(self, request: MergeRequest) -> MergeResult:
        """Execute the full merge pipeline for one request.

        Args:
            request: Merge request.

        Returns:
            MergeResult with base64 output and stats.

        Raises:
            MissingFieldError: Before any temp storage is created.
            DownloadFailedError: If either download fails.
            TranscodeFailedError: If ffmpeg fails or produces no output.
            OutputReadFailedError: If the output cannot be read.
        """
        video_url, audio_url = self.validate(request)
        started_at = time.monotonic()

        logger.info("=== Merge Request Received ===")
        logger.info("Video URL: %s", video_url)
        logger.info("Audio URL: %s", audio_url)

        try:
            with Workspace(self.settings.temp_dir) as workspace:
                ctx = MergeContext(
                    video_url=video_url,
                    audio_url=audio_url,
                    workspace=workspace,
                    started_at=started_at,
                )
                logger.info(
                    "Temp files: video=%s audio=%s output=%s",
                    workspace.video.path,
                    workspace.audio.path,
                    workspace.output.path,
                )
                result = await self._run_phases(ctx)
        except MergeError as e:
            logger.error("=== Merge Error ===")
            logger.error("Error: %s", e.message)
            raise

        logger.info("=== Merge Success ===")
        return result

    async def _run_phases(self, ctx: MergeContext) -> MergeResult:
        ws = ctx.workspace
        settings = self.settings

        logger.info("Downloading video...")
        video_size = await self._download(
            "video",
            ctx.video_url,
            ws.video,
            max_bytes=settings.video_max_bytes,
            timeout_s=settings.video_timeout_s,
        )
        logger.info("Video downloaded: %.2f MB", video_size / MIB)

        logger.info("Downloading audio...")
        audio_size = await self._download(
            "audio",
            ctx.audio_url,
            ws.audio,
            max_bytes=settings.audio_max_bytes,
            timeout_s=settings.audio_timeout_s,
        )
        logger.info("Audio downloaded: %.2f MB", audio_size / MIB)

        await self._combine(ctx)

        output_size = ws.output.size()
        logger.info("Merged video size: %.2f MB", output_size / MIB)

        encoded = self._encode_output(ws.output, output_size)

        processing_time = round(time.monotonic() - ctx.started_at, 2)
        logger.info("Total processing time: %.2fs", processing_time)

        return MergeResult(
            encoded_output=encoded,
            stats=MergeStats(
                input_video_size=video_size,
                input_audio_size=audio_size,
                output_size=output_size,
                processing_time=processing_time,
            ),
        )

    async def _download(
        self,
        stream: str,
        url: str,
        artifact: TemporaryArtifact,
        *,
        max_bytes: int,
        timeout_s: float,
    ) -> int:
        try:
            await self.fetcher.fetch(
                url, artifact.path, max_bytes=max_bytes, timeout_s=timeout_s
            )
        except FetchError as e:
            raise DownloadFailedError(stream, e.reason, details=str(e)) from e
        return artifact.size()

    async def _combine(self, ctx: MergeContext) -> None:
        ws = ctx.workspace
        settings = self.settings
        command = build_merge_command(
            ws.video.path,
            ws.audio.path,
            ws.output.path,
            ffmpeg_path=settings.ffmpeg_path,
            audio_codec=settings.audio_codec,
            audio_bitrate=settings.audio_bitrate,
        )
        expected_ms = await self._expected_duration_ms(ctx)

        if self._gate is not None and self._gate.locked():
            logger.info("Waiting for a free merge slot")

        logger.info("Starting FFmpeg merge...")
        gate = self._gate if self._gate is not None else contextlib.nullcontext()
        try:
            async with gate:
                await self.runner(
                    command,
                    timeout_s=settings.ffmpeg_timeout_s,
                    expected_duration_ms=expected_ms,
                )
        except FfmpegError as e:
            logger.error("FFmpeg error: %s", e.reason)
            if e.stderr:
                logger.error("FFmpeg stderr: %s", e.stderr)
            raise TranscodeFailedError(e.reason, e.stderr) from e
        logger.info("FFmpeg merge complete!")

        if not ws.output.exists():
            raise TranscodeFailedError("Output file was not created")

    async def _expected_duration_ms(self, ctx: MergeContext) -> int | None:
        """Shorter of the two input durations, or None if either probe fails."""
        ws = ctx.workspace
        try:
            durations = [
                await asyncio.to_thread(self.prober, artifact.path, self.settings.ffprobe_path)
                for artifact in (ws.video, ws.audio)
            ]
        except (FileNotFoundError, RuntimeError) as e:
            logger.debug("Duration probe unavailable: %s", e)
            return None
        positive = [d for d in durations if d > 0]
        return min(positive) if len(positive) == 2 else None

    def _encode_output(self, artifact: TemporaryArtifact, output_size: int) -> str:
        limit = self.settings.max_output_bytes
        if limit is not None and output_size > limit:
            raise OutputReadFailedError(
                str(artifact.path),
                f"output size {output_size} exceeds limit of {limit} bytes",
            )

        logger.info("Converting to base64...")
        try:
            data = artifact.path.read_bytes()
        except OSError as e:
            raise OutputReadFailedError(str(artifact.path), str(e)) from e
        return base64.b64encode(data).decode("ascii")
