"""Domain models for avmux.

Pure Python dataclasses used between the worker and its adapters.
The HTTP payload shapes live in ``avmux.models.types``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

MIB = 1024 * 1024


# ============================================================================
# Temporary storage
# ============================================================================

ArtifactKind = Literal["video", "audio", "output"]


@dataclass(frozen=True)
class TemporaryArtifact:
    """A file owned by exactly one request and deleted when it ends."""

    path: Path
    kind: ArtifactKind

    def exists(self) -> bool:
        return self.path.exists()

    def size(self) -> int:
        return self.path.stat().st_size


# ============================================================================
# Merge results
# ============================================================================


@dataclass
class MergeStats:
    """Per-stage sizes (bytes) and elapsed wall-clock seconds."""

    input_video_size: int
    input_audio_size: int
    output_size: int
    processing_time: float

    @property
    def output_size_mb(self) -> str:
        """Output size in MiB, formatted with two decimals."""
        return f"{self.output_size / MIB:.2f}"


@dataclass
class MergeResult:
    """Successful merge: base64 encoded output plus stats."""

    encoded_output: str
    stats: MergeStats


@dataclass
class MergeOutcome:
    """What the external tool reported after a successful run."""

    command: list[str]
    returncode: int
    stderr: str
