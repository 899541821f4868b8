"""Shared pytest fixtures for avmux tests."""

from pathlib import Path

import pytest

from avmux.adapter.fetch import FetchError, FetcherBase
from avmux.config import Settings
from avmux.worker.merge import MergeProcessor

VIDEO_URL = "https://host/a.mp4"
AUDIO_URL = "https://host/b.mp3"
MERGED_BYTES = b"\x00\x00\x00\x20ftypisom merged output"


class FakeFetcher(FetcherBase):
    """Fetcher serving in-memory payloads (or raising) per URL."""

    def __init__(self, payloads: dict):
        self.payloads = payloads
        self.calls: list[tuple[str, int, float]] = []

    async def fetch(self, url, dest, *, max_bytes, timeout_s):
        self.calls.append((url, max_bytes, timeout_s))
        payload = self.payloads[url]
        if isinstance(payload, Exception):
            raise payload
        if len(payload) > max_bytes:
            raise FetchError(url, f"maxContentLength size of {max_bytes} exceeded")
        dest.write_bytes(payload)
        return len(payload)


class FakeRunner:
    """Stands in for run_merge: records commands, writes the output file."""

    def __init__(self, output: bytes | None = MERGED_BYTES, error: Exception | None = None):
        self.output = output
        self.error = error
        self.commands: list[list[str]] = []
        self.expected_durations: list[int | None] = []

    async def __call__(self, command, *, timeout_s, expected_duration_ms=None):
        self.commands.append(command)
        self.expected_durations.append(expected_duration_ms)
        if self.error is not None:
            raise self.error
        if self.output is not None:
            Path(command[-1]).write_bytes(self.output)


def probe_fixed_durations(path: Path, ffprobe_path: str = "ffprobe") -> int:
    """Pretend the video lasts 10s and the audio 7s."""
    return 10_000 if path.name.startswith("video_") else 7_000


@pytest.fixture
def temp_root(tmp_path: Path) -> Path:
    """Temp root shared by all requests of a test."""
    return tmp_path / "merge-tmp"


@pytest.fixture
def settings(temp_root: Path) -> Settings:
    """Settings pointing temp storage at the test's tmp_path."""
    return Settings(temp_dir=temp_root)


@pytest.fixture
def fetcher() -> FakeFetcher:
    """Fetcher serving a small video and a smaller audio payload."""
    return FakeFetcher({VIDEO_URL: b"v" * 2048, AUDIO_URL: b"a" * 512})


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def processor(settings: Settings, fetcher: FakeFetcher, runner: FakeRunner) -> MergeProcessor:
    """Merge processor wired to fakes."""
    return MergeProcessor(settings, fetcher=fetcher, runner=runner, prober=probe_fixed_durations)


@pytest.fixture
def make_fetcher():
    """Factory for FakeFetcher with custom payloads."""
    return FakeFetcher


@pytest.fixture
def make_runner():
    """Factory for FakeRunner with custom output or error."""
    return FakeRunner


@pytest.fixture
def fake_prober():
    return probe_fixed_durations


@pytest.fixture
def leftovers(temp_root: Path):
    """Callable listing every file or directory left under the temp root."""

    def _list() -> list[Path]:
        if not temp_root.exists():
            return []
        return list(temp_root.rglob("*"))

    return _list
