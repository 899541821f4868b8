"""FastAPI application factory.

API layer:
- Validates inputs, shapes JSON payloads
- Maps merge errors to HTTP statuses
- Forbidden: ffmpeg work, downloads, temp file handling
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from avmux import __version__
from avmux.config import Settings, get_settings
from avmux.core.errors import MergeError, MissingFieldError
from avmux.models.types import (
    HealthStatus,
    MergeFailureResponse,
    MissingFieldsResponse,
    ServiceInfo,
)
from avmux.worker.merge import MergeProcessor

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision (``...Z``)."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def merge_error_response(error: MergeError, settings: Settings) -> JSONResponse:
    """Create the JSON response for a merge error.

    Args:
        error: Raised merge error.
        settings: Settings controlling whether diagnostics are exposed.

    Returns:
        400 for missing fields, 500 for everything else.
    """
    if isinstance(error, MissingFieldError):
        return JSONResponse(
            status_code=400,
            content=MissingFieldsResponse(required=error.required).model_dump(),
        )
    return JSONResponse(
        status_code=500,
        content=MergeFailureResponse(
            error=error.message,
            details=error.details if settings.expose_error_details else None,
        ).model_dump(),
    )


def create_app(
    settings: Settings | None = None,
    processor: MergeProcessor | None = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        settings: Optional settings; read from the environment if omitted.
        processor: Optional merge processor (tests inject fakes here).

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="FFmpeg Video Merger API",
        description="Merge a remote video and a remote audio stream into one mp4",
        version=__version__,
    )
    app.state.settings = settings
    app.state.processor = processor or MergeProcessor(settings)

    # Open CORS: the service is called from browser tools on any origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        """Reject requests whose body exceeds the configured limit.

        A declared Content-Length is checked up front. Bodies sent without
        one (chunked) are read and counted here; Starlette replays the read
        body to the endpoint.
        """
        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit():
            size = int(declared)
        else:
            size = len(await request.body())
        if size > settings.max_body_bytes:
            return JSONResponse(
                status_code=413,
                content={"error": "Request body too large"},
            )
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        """Answer malformed merge bodies with the missing-fields payload."""
        logger.info("Rejected request body: %s", exc.errors())
        return JSONResponse(status_code=400, content=MissingFieldsResponse().model_dump())

    @app.exception_handler(MergeError)
    async def merge_failed(request: Request, exc: MergeError):
        return merge_error_response(exc, settings)

    from avmux.api.routes import merge

    app.include_router(merge.router)

    @app.get("/", response_model=ServiceInfo)
    def service_info() -> ServiceInfo:
        """Service descriptor."""
        return ServiceInfo(version=__version__)

    @app.get("/health", response_model=HealthStatus)
    def health_check() -> HealthStatus:
        """Health check endpoint."""
        return HealthStatus(timestamp=utc_timestamp())

    return app


# Default app instance (uvicorn avmux.api.app:app)
app = create_app()
