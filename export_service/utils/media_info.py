"""Media file information utilities using FFprobe."""

import json
import subprocess
from dataclasses import dataclass
from typing import Optional

from export_service.config import get_settings


def _ffprobe_path() -> str:
    """Get the ffprobe path lazily to avoid import issues in tests."""
    return get_settings().ffprobe_path


@dataclass
class VideoStreamInfo:
    """Video stream parameters relevant to concatenation."""

    codec: str | None
    width: int | None
    height: int | None
    pix_fmt: str | None
    fps: float | None


def _run_ffprobe(file_path: str, *args, ffprobe_path: Optional[str] = None) -> dict:
    """Run ffprobe and return parsed JSON."""
    cmd = [
        ffprobe_path or _ffprobe_path(),
        "-v", "quiet",
        "-print_format", "json",
        *args,
        file_path,
    ]

    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe failed: {result.stderr}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")


def get_media_duration(file_path: str, ffprobe_path: Optional[str] = None) -> int:
    """
    Get media file duration in milliseconds.

    Raises:
        RuntimeError: If ffprobe fails or duration not found
    """
    data = _run_ffprobe(file_path, "-show_format", ffprobe_path=ffprobe_path)
    format_info = data.get("format", {})

    if "duration" not in format_info:
        raise RuntimeError(f"Duration not found in: {file_path}")

    return int(float(format_info["duration"]) * 1000)


def get_video_stream_info(file_path: str, ffprobe_path: Optional[str] = None) -> VideoStreamInfo:
    """
    Get codec, size, pixel format and frame rate of the first video stream.

    Raises:
        RuntimeError: If ffprobe fails or no video stream exists
    """
    data = _run_ffprobe(
        file_path, "-show_streams", "-select_streams", "v", ffprobe_path=ffprobe_path
    )

    streams = data.get("streams", [])
    if not streams:
        raise RuntimeError(f"No video stream found in: {file_path}")

    stream = streams[0]
    fps = None
    r_frame_rate = stream.get("r_frame_rate", "0/1")
    if "/" in r_frame_rate:
        num, den = r_frame_rate.split("/")
        if int(den) > 0:
            fps = int(num) / int(den)

    return VideoStreamInfo(
        codec=stream.get("codec_name"),
        width=stream.get("width"),
        height=stream.get("height"),
        pix_fmt=stream.get("pix_fmt"),
        fps=fps,
    )


def has_audio_track(file_path: str, ffprobe_path: Optional[str] = None) -> bool:
    """Check if media file has an audio track."""
    try:
        data = _run_ffprobe(
            file_path, "-show_streams", "-select_streams", "a", ffprobe_path=ffprobe_path
        )
        return len(data.get("streams", [])) > 0
    except RuntimeError:
        return False
