#!/usr/bin/env python3
"""End-to-end smoke test for the merge endpoint.

Generates a 10s test-pattern video and a 7s tone with ffmpeg, serves them
from a local HTTP server, posts them to an in-process app and checks that:
- the merge succeeds
- the output is truncated to the shorter (7s) input
- no temp files are left behind

Usage:
    python scripts/smoke_merge.py

Exit codes:
    0: All checks passed
    1: Some checks failed
"""

from __future__ import annotations

import base64
import functools
import subprocess
import sys
import tempfile
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

# Add src to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from fastapi.testclient import TestClient  # noqa: E402

from avmux.adapter.media.probe import check_available, probe_duration_ms  # noqa: E402
from avmux.api.app import create_app  # noqa: E402
from avmux.config import Settings  # noqa: E402

VIDEO_SECONDS = 10
AUDIO_SECONDS = 7


def create_assets(assets_dir: Path) -> tuple[Path, Path] | None:
    """Create the demo video and audio files."""
    video_path = assets_dir / "a.mp4"
    audio_path = assets_dir / "b.m4a"

    commands = [
        [
            "ffmpeg", "-y",
            "-f", "lavfi", "-i", f"testsrc=duration={VIDEO_SECONDS}:size=320x240:rate=30",
            "-c:v", "libx264", "-pix_fmt", "yuv420p",
            str(video_path),
        ],
        [
            "ffmpeg", "-y",
            "-f", "lavfi", "-i", f"sine=frequency=440:duration={AUDIO_SECONDS}",
            "-c:a", "aac",
            str(audio_path),
        ],
    ]
    for cmd in commands:
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=60)
        except subprocess.TimeoutExpired:
            print("FAIL: ffmpeg timed out creating assets")
            return None
        if result.returncode != 0:
            print(f"FAIL: Could not create {cmd[-1]}: {result.stderr}")
            return None
        print(f"OK: Created {cmd[-1]}")

    return video_path, audio_path


def serve_directory(directory: Path) -> ThreadingHTTPServer:
    """Serve a directory over HTTP on a free localhost port."""
    handler = functools.partial(SimpleHTTPRequestHandler, directory=str(directory))
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server


def main() -> int:
    """Main entry point."""
    print("=" * 60)
    print("avmux Merge Smoke Test")
    print("=" * 60)

    if not check_available():
        print("FAIL: ffmpeg/ffprobe not found. Please install ffmpeg.")
        return 1

    checks_passed = 0
    checks_failed = 0

    with tempfile.TemporaryDirectory() as work:
        work_dir = Path(work)
        assets_dir = work_dir / "assets"
        temp_root = work_dir / "merge-tmp"
        assets_dir.mkdir()

        print("\n[1/3] Creating assets...")
        assets = create_assets(assets_dir)
        if assets is None:
            return 1

        server = serve_directory(assets_dir)
        base_url = f"http://127.0.0.1:{server.server_address[1]}"
        try:
            client = TestClient(create_app(Settings(temp_dir=temp_root)))

            print("\n[2/3] Merging...")
            response = client.post(
                "/merge",
                json={"videoUrl": f"{base_url}/a.mp4", "audioUrl": f"{base_url}/b.m4a"},
            )
        finally:
            server.shutdown()

        data = response.json()
        if response.status_code == 200 and data.get("success"):
            print(f"OK: Merged in {data['stats']['processingTime']}s")
            print(f"    Output size: {data['stats']['outputSizeMB']} MB")
            merged = work_dir / "merged.mp4"
            merged.write_bytes(base64.b64decode(data["base64"]))
            duration_s = probe_duration_ms(merged) / 1000
            if abs(duration_s - AUDIO_SECONDS) < 1.0:
                print(f"OK: Output duration {duration_s:.2f}s (shorter input)")
                checks_passed += 1
            else:
                print(f"FAIL: Output duration {duration_s:.2f}s, expected ~{AUDIO_SECONDS}s")
                checks_failed += 1
        else:
            print(f"FAIL: HTTP {response.status_code}: {data}")
            checks_failed += 1

        print("\n[3/3] Checking temp cleanup...")
        leftovers = list(temp_root.rglob("*")) if temp_root.exists() else []
        if leftovers:
            print(f"FAIL: {len(leftovers)} temp entries left: {leftovers}")
            checks_failed += 1
        else:
            print("OK: No temp files left")
            checks_passed += 1

    print("\n" + "=" * 60)
    if checks_failed == 0:
        print(f"RESULT: ALL PASSED ({checks_passed} checks)")
        print("=" * 60)
        return 0
    print(f"RESULT: {checks_passed} passed, {checks_failed} failed")
    print("=" * 60)
    return 1


if __name__ == "__main__":
    sys.exit(main())
