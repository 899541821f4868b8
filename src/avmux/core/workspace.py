"""Per-request scoped working area.

Each merge request acquires its own uniquely named directory under the shared
temp root and names its artifacts with a timestamp plus random suffix. The
workspace is a context manager: leaving the ``with`` block deletes every
artifact that exists and then the directory itself, on success and failure
alike. Deletion is best-effort; failures are logged and returned, never
raised.
"""

from __future__ import annotations

import logging
import secrets
import shutil
import tempfile
import time
from pathlib import Path

from avmux.core.errors import CleanupFailedError
from avmux.models.domain import ArtifactKind, TemporaryArtifact

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIXES: dict[str, str] = {
    "video": ".mp4",
    "audio": ".mp3",
    "output": ".mp4",
}


def make_request_id() -> str:
    """Build a request token from a millisecond timestamp and random suffix.

    Returns:
        String like ``1712345678901_k3j9x2``.
    """
    return f"{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class Workspace:
    """Temporary storage owned by a single merge request.

    Usage:
        with Workspace(temp_root) as ws:
            ws.video.path  # download target
            ...
        # everything is gone here
    """

    def __init__(self, temp_root: Path, request_id: str | None = None):
        """Initialize workspace (nothing is created until entered).

        Args:
            temp_root: Shared temp directory under which the request directory
                is created.
            request_id: Optional token used in names; generated if omitted.
        """
        self.temp_root = Path(temp_root)
        self.request_id = request_id or make_request_id()
        self.directory: Path | None = None
        self._artifacts: dict[str, TemporaryArtifact] = {}
        self.cleanup_failures: list[CleanupFailedError] = []

    def __enter__(self) -> Workspace:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def acquire(self) -> None:
        """Create the request directory and name the three artifacts."""
        self.temp_root.mkdir(parents=True, exist_ok=True)
        directory = Path(
            tempfile.mkdtemp(prefix=f"merge_{self.request_id}_", dir=self.temp_root)
        )
        self.directory = directory
        for kind in ("video", "audio", "output"):
            self._artifacts[kind] = self._make_artifact(directory, kind)

    def _make_artifact(self, directory: Path, kind: ArtifactKind) -> TemporaryArtifact:
        name = f"{kind}_{self.request_id}{ARTIFACT_SUFFIXES[kind]}"
        return TemporaryArtifact(path=directory / name, kind=kind)

    def artifact(self, kind: ArtifactKind) -> TemporaryArtifact:
        """Get the artifact of a given kind.

        Raises:
            RuntimeError: If the workspace has not been acquired.
        """
        if kind not in self._artifacts:
            raise RuntimeError("Workspace not acquired")
        return self._artifacts[kind]

    @property
    def video(self) -> TemporaryArtifact:
        return self.artifact("video")

    @property
    def audio(self) -> TemporaryArtifact:
        return self.artifact("audio")

    @property
    def output(self) -> TemporaryArtifact:
        return self.artifact("output")

    @property
    def artifacts(self) -> list[TemporaryArtifact]:
        return list(self._artifacts.values())

    def release(self) -> list[CleanupFailedError]:
        """Delete every existing artifact, then the request directory.

        Safe to call more than once.

        Returns:
            Failures encountered (also logged as warnings).
        """
        failures: list[CleanupFailedError] = []

        for artifact in self._artifacts.values():
            try:
                artifact.path.unlink(missing_ok=True)
            except OSError as e:
                failures.append(CleanupFailedError(str(artifact.path), str(e)))

        if self.directory is not None and self.directory.exists():
            try:
                shutil.rmtree(self.directory)
            except OSError as e:
                failures.append(CleanupFailedError(str(self.directory), str(e)))

        for failure in failures:
            logger.warning("Cleanup error: %s", failure.message)
        if not failures:
            logger.debug("Workspace %s released", self.request_id)

        self.cleanup_failures.extend(failures)
        return failures
