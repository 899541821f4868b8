"""Merge API endpoint.

POST /merge - Download video + audio, multiplex with ffmpeg, return base64
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from avmux.api.deps import get_merge_processor
from avmux.core.errors import MergeError
from avmux.models.domain import MergeResult
from avmux.models.types import (
    MergeFailureResponse,
    MergeRequest,
    MergeStatsPayload,
    MergeSuccessResponse,
    MissingFieldsResponse,
)
from avmux.worker.merge import MergeProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_success(result: MergeResult) -> MergeSuccessResponse:
    """Build the 200 payload from a merge result."""
    stats = result.stats
    return MergeSuccessResponse(
        base64=result.encoded_output,
        stats=MergeStatsPayload(
            input_video_size=stats.input_video_size,
            input_audio_size=stats.input_audio_size,
            output_size=stats.output_size,
            processing_time=stats.processing_time,
            output_size_mb=stats.output_size_mb,
        ),
    )


@router.post(
    "/merge",
    response_model=MergeSuccessResponse,
    responses={
        400: {"model": MissingFieldsResponse, "description": "Missing required fields"},
        500: {"model": MergeFailureResponse, "description": "Merge failed"},
    },
    summary="Merge a remote video and a remote audio stream",
)
async def merge(
    body: MergeRequest,
    processor: MergeProcessor = Depends(get_merge_processor),
):
    """Merge video and audio.

    Video is copied, audio re-encoded, output truncated to the shorter
    input. Temporary files are removed before the response is sent.

    Raises:
        MergeError: Rendered by the app's error handler (400 or 500).
    """
    try:
        result = await processor.execute(body)
    except MergeError:
        raise
    except Exception:
        # Log full exception server-side, return generic message to client
        logger.exception("Unexpected error during merge")
        return JSONResponse(
            status_code=500,
            content=MergeFailureResponse(
                error="An unexpected error occurred during merge",
                details=None,
            ).model_dump(),
        )

    return _build_success(result)
