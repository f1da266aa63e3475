"""
Pytest fixtures for export service tests.

Most tests replace FFmpeg with FakeFFmpeg and serve assets through
httpx.MockTransport, so they run without network access or media tools.

CI/CD Note:
Tests that need a real FFmpeg build (libx264 + drawtext) are marked with
@requires_ffmpeg and skipped when it is not installed.
"""

import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest

from export_service.config import Settings
from export_service.render.ffmpeg_runner import FFmpegError

ASSET_BASE_URL = "http://assets.test/"


def _ffmpeg_supports_export() -> bool:
    """Check for ffmpeg/ffprobe with the encoder and filter used by exports."""
    if not shutil.which("ffmpeg") or not shutil.which("ffprobe"):
        return False
    try:
        encoders = subprocess.run(
            ["ffmpeg", "-hide_banner", "-encoders"], capture_output=True, text=True, timeout=30
        ).stdout
        filters = subprocess.run(
            ["ffmpeg", "-hide_banner", "-filters"], capture_output=True, text=True, timeout=30
        ).stdout
    except (OSError, subprocess.SubprocessError):
        return False
    return "libx264" in encoders and " drawtext " in filters


# Skip decorator for tests requiring a real FFmpeg
requires_ffmpeg = pytest.mark.skipif(
    not _ffmpeg_supports_export(),
    reason="FFmpeg with libx264 and drawtext not available",
)


class FakeFFmpeg:
    """Stand-in for run_ffmpeg that records commands and writes the output file."""

    def __init__(self, fail_when: Optional[Callable[[list[str]], bool]] = None):
        self.commands: list[list[str]] = []
        self.fail_when = fail_when

    async def __call__(self, cmd: list[str], *, timeout_s: float) -> None:
        self.commands.append(cmd)
        if self.fail_when and self.fail_when(cmd):
            raise FFmpegError(
                f"{cmd[0]} exited with code 1",
                returncode=1,
                stderr="Error opening input file\nConversion failed!",
            )
        Path(cmd[-1]).write_bytes(b"fake-mp4:" + Path(cmd[-1]).name.encode())

    def outputs(self) -> list[str]:
        return [Path(cmd[-1]).name for cmd in self.commands]


def make_asset_transport(
    assets: dict[str, bytes],
    *,
    missing_status: int = 404,
    calls: Optional[list[str]] = None,
) -> httpx.MockTransport:
    """Serve assets by absolute URL; unknown URLs answer missing_status."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        if url in assets:
            return httpx.Response(200, content=assets[url])
        return httpx.Response(missing_status)

    return httpx.MockTransport(handler)


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="export_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """Directory under which pipeline workspaces are created."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def settings(workspace_root: Path) -> Settings:
    """Settings isolated to the test's temporary directory."""
    return Settings(
        workspace_root=str(workspace_root),
        base_image_url=ASSET_BASE_URL,
        export_segment_duration_s=1,
        export_width=320,
        export_height=240,
        download_concurrency=4,
        download_timeout_s=5.0,
        ffmpeg_timeout_s=60.0,
    )


@pytest.fixture
def fake_ffmpeg() -> FakeFFmpeg:
    return FakeFFmpeg()


@pytest.fixture
def sample_assets() -> dict[str, bytes]:
    """Two images and one narration file keyed by absolute URL."""
    return {
        f"{ASSET_BASE_URL}a.jpg": b"\xff\xd8image-a",
        f"{ASSET_BASE_URL}b.png": b"\x89PNGimage-b",
        f"{ASSET_BASE_URL}narration.mp3": b"ID3audio",
    }


@pytest.fixture
def media_files(temp_output_dir: Path) -> dict[str, Path]:
    """Real images and audio generated with FFmpeg (requires_ffmpeg tests only)."""
    red = temp_output_dir / "red.png"
    blue = temp_output_dir / "blue.png"
    narration = temp_output_dir / "narration.wav"
    short_narration = temp_output_dir / "short.wav"

    for color, path, size in (("red", red, "640x480"), ("blue", blue, "333x211")):
        subprocess.run(
            [
                "ffmpeg", "-y",
                "-f", "lavfi",
                "-i", f"color=c={color}:s={size}",
                "-frames:v", "1",
                str(path),
            ],
            capture_output=True,
            check=True,
        )
    for duration, path in ((5, narration), (1, short_narration)):
        subprocess.run(
            [
                "ffmpeg", "-y",
                "-f", "lavfi",
                "-i", f"sine=frequency=440:duration={duration}",
                "-ac", "2",
                "-ar", "44100",
                str(path),
            ],
            capture_output=True,
            check=True,
        )
    return {"red": red, "blue": blue, "narration": narration, "short_narration": short_narration}
