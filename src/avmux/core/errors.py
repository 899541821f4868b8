"""Error taxonomy for the merge pipeline.

Every failure the pipeline can report is a ``MergeError`` subclass carrying a
stable error code, a human-readable message and optional diagnostic detail.
The API layer maps codes to HTTP statuses.
"""

from __future__ import annotations

from enum import Enum


class MergeErrorCode(str, Enum):
    """Error codes for merge failures."""

    MISSING_FIELD = "MISSING_FIELD"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    TRANSCODE_FAILED = "TRANSCODE_FAILED"
    OUTPUT_READ_FAILED = "OUTPUT_READ_FAILED"
    CLEANUP_FAILED = "CLEANUP_FAILED"


class MergeError(Exception):
    """Base exception for merge errors."""

    error_code: MergeErrorCode = MergeErrorCode.TRANSCODE_FAILED

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class MissingFieldError(MergeError):
    """Client input is incomplete."""

    error_code = MergeErrorCode.MISSING_FIELD

    def __init__(self, required: list[str], missing: list[str] | None = None):
        self.required = list(required)
        self.missing = list(missing) if missing is not None else list(required)
        super().__init__(
            "Missing required fields",
            details=f"Missing: {', '.join(self.missing)}",
        )


class DownloadFailedError(MergeError):
    """Remote fetch errored, timed out, or exceeded its size ceiling."""

    error_code = MergeErrorCode.DOWNLOAD_FAILED

    def __init__(self, stream: str, reason: str, details: str | None = None):
        self.stream = stream
        self.reason = reason
        super().__init__(f"Failed to download {stream}: {reason}", details=details)


class TranscodeFailedError(MergeError):
    """External tool failed, or reported success without producing output."""

    error_code = MergeErrorCode.TRANSCODE_FAILED

    def __init__(self, reason: str, stderr: str | None = None):
        self.reason = reason
        self.stderr = stderr
        super().__init__(f"FFmpeg error: {reason}", details=stderr or None)


class OutputReadFailedError(MergeError):
    """Merged file could not be loaded into memory for the response."""

    error_code = MergeErrorCode.OUTPUT_READ_FAILED

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Failed to read merged output: {reason}", details=path)


class CleanupFailedError(MergeError):
    """Temporary artifact could not be deleted.

    Reported for logging only; never raised to a caller.
    """

    error_code = MergeErrorCode.CLEANUP_FAILED

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Cleanup failed for {path}: {reason}")
