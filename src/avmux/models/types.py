"""Pydantic models for the avmux HTTP API.

Field names on the wire are camelCase to match existing clients; Python
attributes stay snake_case via aliases.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

REQUIRED_FIELDS = ["videoUrl", "audioUrl"]


class MergeRequest(BaseModel):
    """Request body for POST /merge.

    Both fields are optional at the schema level so an incomplete body can be
    answered with the documented 400 payload instead of a generic 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    video_url: str | None = Field(default=None, alias="videoUrl")
    audio_url: str | None = Field(default=None, alias="audioUrl")

    def missing_fields(self) -> list[str]:
        """Wire names of fields that are absent or blank."""
        missing = []
        if not (self.video_url and self.video_url.strip()):
            missing.append("videoUrl")
        if not (self.audio_url and self.audio_url.strip()):
            missing.append("audioUrl")
        return missing


class MergeStatsPayload(BaseModel):
    """Stats block of a successful merge response."""

    model_config = ConfigDict(populate_by_name=True)

    input_video_size: int = Field(alias="inputVideoSize")
    input_audio_size: int = Field(alias="inputAudioSize")
    output_size: int = Field(alias="outputSize")
    processing_time: float = Field(alias="processingTime")
    output_size_mb: str = Field(alias="outputSizeMB")


class MergeSuccessResponse(BaseModel):
    """200 response for POST /merge."""

    success: Literal[True] = True
    base64: str
    stats: MergeStatsPayload
    message: str = "Video and audio merged successfully"


class MissingFieldsResponse(BaseModel):
    """400 response for an incomplete merge request."""

    error: str = "Missing required fields"
    required: list[str] = Field(default_factory=lambda: list(REQUIRED_FIELDS))


class MergeFailureResponse(BaseModel):
    """500 response for a failed merge."""

    success: Literal[False] = False
    error: str
    details: str | None


class ServiceEndpoints(BaseModel):
    merge: str = "POST /merge"
    health: str = "GET /health"


class ServiceInfo(BaseModel):
    """Service descriptor returned by GET /."""

    status: str = "FFmpeg Video Merger API is running!"
    version: str
    endpoints: ServiceEndpoints = Field(default_factory=ServiceEndpoints)


class HealthStatus(BaseModel):
    """Liveness payload returned by GET /health."""

    status: Literal["healthy"] = "healthy"
    timestamp: str
