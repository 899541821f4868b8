"""Tests for the HTTP surface: GET /, GET /health, POST /merge."""

import base64
from datetime import datetime

import httpx
from fastapi.testclient import TestClient

from avmux.adapter.fetch import HttpFetcher
from avmux.adapter.media.ffmpeg import FfmpegError
from avmux.api.app import create_app
from avmux.config import Settings
from avmux.worker.merge import MergeProcessor

VIDEO_URL = "https://host/a.mp4"
AUDIO_URL = "https://host/b.mp3"
MISSING_FIELDS_BODY = {"error": "Missing required fields", "required": ["videoUrl", "audioUrl"]}


def create_test_client(settings: Settings, fetcher, runner, prober) -> TestClient:
    """Create app with a processor wired to fakes and return a client."""
    processor = MergeProcessor(settings, fetcher=fetcher, runner=runner, prober=prober)
    return TestClient(create_app(settings=settings, processor=processor))


class TestServiceInfo:
    """Test GET / and GET /health."""

    def test_root_describes_service(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "FFmpeg Video Merger API is running!"
        assert data["version"] == "1.0.0"
        assert data["endpoints"] == {"merge": "POST /merge", "health": "GET /health"}

    def test_health_has_timestamp(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["timestamp"].endswith("Z")
        datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))

    def test_cors_enabled(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.get("/health", headers={"Origin": "https://example.org"})

        assert response.headers["access-control-allow-origin"] == "*"


class TestMergeSuccess:
    """Test POST /merge happy path."""

    def test_returns_200_with_payload(self, settings, fetcher, runner, fake_prober, leftovers):
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.post("/merge", json={"videoUrl": VIDEO_URL, "audioUrl": AUDIO_URL})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Video and audio merged successfully"
        assert base64.b64decode(data["base64"]) == runner.output
        assert leftovers() == []

    def test_stats_shape(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)

        data = client.post(
            "/merge", json={"videoUrl": VIDEO_URL, "audioUrl": AUDIO_URL}
        ).json()

        stats = data["stats"]
        assert set(stats) == {
            "inputVideoSize",
            "inputAudioSize",
            "outputSize",
            "processingTime",
            "outputSizeMB",
        }
        assert stats["inputVideoSize"] == 2048
        assert stats["inputAudioSize"] == 512
        assert stats["outputSize"] == len(runner.output)
        assert isinstance(stats["processingTime"], float)
        assert stats["outputSizeMB"] == "0.00"


class TestMergeValidation:
    """Test POST /merge input validation."""

    def test_missing_audio_url(self, settings, fetcher, runner, fake_prober, leftovers):
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.post("/merge", json={"videoUrl": VIDEO_URL})

        assert response.status_code == 400
        assert response.json() == MISSING_FIELDS_BODY
        assert fetcher.calls == []
        assert leftovers() == []

    def test_missing_both(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)
        response = client.post("/merge", json={})
        assert response.status_code == 400
        assert response.json() == MISSING_FIELDS_BODY

    def test_empty_string(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)
        response = client.post("/merge", json={"videoUrl": "", "audioUrl": AUDIO_URL})
        assert response.status_code == 400

    def test_no_body(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)
        response = client.post("/merge")
        assert response.status_code == 400
        assert response.json() == MISSING_FIELDS_BODY

    def test_non_object_body(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)
        response = client.post("/merge", json=["videoUrl", "audioUrl"])
        assert response.status_code == 400

    def test_non_string_field(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)
        response = client.post("/merge", json={"videoUrl": 5, "audioUrl": AUDIO_URL})
        assert response.status_code == 400
        assert fetcher.calls == []

    def test_body_too_large(self, temp_root, fetcher, runner, fake_prober):
        settings = Settings(temp_dir=temp_root, max_body_bytes=16)
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.post("/merge", json={"videoUrl": VIDEO_URL, "audioUrl": AUDIO_URL})

        assert response.status_code == 413
        assert response.json() == {"error": "Request body too large"}
        assert fetcher.calls == []

    def test_chunked_body_too_large(self, temp_root, fetcher, runner, fake_prober):
        """A body without Content-Length is counted as it arrives."""
        settings = Settings(temp_dir=temp_root, max_body_bytes=16)
        client = create_test_client(settings, fetcher, runner, fake_prober)
        chunks = [b'{"videoUrl": "', VIDEO_URL.encode(), b'", "audioUrl": "',
                  AUDIO_URL.encode(), b'"}']

        response = client.post(
            "/merge", content=iter(chunks), headers={"content-type": "application/json"}
        )

        assert response.status_code == 413
        assert response.json() == {"error": "Request body too large"}
        assert fetcher.calls == []

    def test_chunked_body_within_limit(self, settings, fetcher, runner, fake_prober):
        client = create_test_client(settings, fetcher, runner, fake_prober)
        chunks = [b'{"videoUrl": "', VIDEO_URL.encode(), b'", "audioUrl": "',
                  AUDIO_URL.encode(), b'"}']

        response = client.post(
            "/merge", content=iter(chunks), headers={"content-type": "application/json"}
        )

        assert response.status_code == 200
        assert base64.b64decode(response.json()["base64"]) == runner.output


class TestMergeFailures:
    """Test POST /merge processing failures."""

    def test_video_404(self, settings, runner, fake_prober, leftovers):
        """A 404 on the video URL is a 500 download failure with no temp files left."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/a.mp4":
                return httpx.Response(404, content=b"not found")
            return httpx.Response(200, content=b"audio")

        fetcher = HttpFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.post("/merge", json={"videoUrl": VIDEO_URL, "audioUrl": AUDIO_URL})

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"].startswith("Failed to download video")
        assert "404" in data["error"]
        assert data["details"]
        assert runner.commands == []
        assert leftovers() == []

    def test_malformed_video_url(self, settings, runner, fake_prober, leftovers):
        """A locator httpx cannot parse is a video download failure, not a generic error."""
        fetcher = HttpFetcher(client=httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"audio"))
        ))
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.post("/merge", json={"videoUrl": "http://[::1", "audioUrl": AUDIO_URL})

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"].startswith("Failed to download video")
        assert data["details"]
        assert runner.commands == []
        assert leftovers() == []

    def test_transcode_failure_includes_stderr(self, settings, fetcher, make_runner, fake_prober,
                                               leftovers):
        runner = make_runner(
            error=FfmpegError("ffmpeg exited with code 1", stderr="Invalid data found", returncode=1)
        )
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.post("/merge", json={"videoUrl": VIDEO_URL, "audioUrl": AUDIO_URL})

        assert response.status_code == 500
        data = response.json()
        assert data == {
            "success": False,
            "error": "FFmpeg error: ffmpeg exited with code 1",
            "details": "Invalid data found",
        }
        assert leftovers() == []

    def test_details_hidden_when_disabled(self, temp_root, fetcher, make_runner, fake_prober):
        settings = Settings(temp_dir=temp_root, expose_error_details=False)
        runner = make_runner(error=FfmpegError("ffmpeg exited with code 1", stderr="secret path"))
        client = create_test_client(settings, fetcher, runner, fake_prober)

        data = client.post(
            "/merge", json={"videoUrl": VIDEO_URL, "audioUrl": AUDIO_URL}
        ).json()

        assert data["details"] is None
        assert "secret path" not in data["error"]

    def test_missing_output_file(self, settings, fetcher, make_runner, fake_prober):
        client = create_test_client(settings, fetcher, make_runner(output=None), fake_prober)

        response = client.post("/merge", json={"videoUrl": VIDEO_URL, "audioUrl": AUDIO_URL})

        assert response.status_code == 500
        assert response.json()["error"] == "FFmpeg error: Output file was not created"

    def test_unexpected_error_is_generic(self, settings, fetcher, make_runner, fake_prober,
                                         leftovers):
        runner = make_runner(error=ValueError("internal bug"))
        client = create_test_client(settings, fetcher, runner, fake_prober)

        response = client.post("/merge", json={"videoUrl": VIDEO_URL, "audioUrl": AUDIO_URL})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "An unexpected error occurred during merge",
            "details": None,
        }
        assert leftovers() == []
