"""Lossless concatenation of rendered segments.

Segments are joined with the FFmpeg concat demuxer using stream copy. All
segments must share codec parameters, which SegmentRenderer guarantees by
always encoding with the same size, frame rate and pixel format.
"""

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from export_service.config import Settings
from export_service.exceptions import ConcatFailedError
from export_service.render.ffmpeg_runner import FFmpegError, FFmpegRunner, run_ffmpeg

logger = logging.getLogger(__name__)


def format_manifest_line(path: str | Path) -> str:
    """Format one concat demuxer ``file`` directive for an absolute path.

    Raises:
        ConcatFailedError: If the path cannot be expressed in the manifest
    """
    path_str = str(Path(path).absolute())
    if "\n" in path_str or "\r" in path_str:
        raise ConcatFailedError(f"Segment path contains a line break: {path_str!r}")
    escaped = path_str.replace("'", "'\\''")
    return f"file '{escaped}'"


def write_concat_manifest(segment_paths: Sequence[str | Path], manifest_path: str | Path) -> Path:
    """Write the ordered concat manifest, one segment per line."""
    lines = [format_manifest_line(p) for p in segment_paths]
    manifest = Path(manifest_path)
    manifest.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return manifest


class Concatenator:
    """Joins ordered segments into one continuous silent video."""

    def __init__(self, settings: Settings, runner: FFmpegRunner = run_ffmpeg):
        self.settings = settings
        self.runner = runner

    def build_command(self, manifest_path: str | Path, output_path: str | Path) -> list[str]:
        """Build the concat demuxer command without executing it."""
        return [
            self.settings.ffmpeg_path,
            "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(manifest_path),
            "-c", "copy",
            "-movflags", "+faststart",
            str(output_path),
        ]

    async def concatenate(
        self,
        segment_paths: Sequence[str | Path],
        manifest_path: str | Path,
        output_path: str | Path,
    ) -> Path:
        """Concatenate segment_paths in the given order into output_path.

        Raises:
            ConcatFailedError: If there are no segments or FFmpeg fails
        """
        if not segment_paths:
            raise ConcatFailedError("No segments to concatenate")

        await asyncio.to_thread(write_concat_manifest, segment_paths, manifest_path)
        cmd = self.build_command(manifest_path, output_path)
        logger.info(f"[CONCAT] Joining {len(segment_paths)} segments")

        try:
            await self.runner(cmd, timeout_s=self.settings.ffmpeg_timeout_s)
        except FFmpegError as e:
            logger.error(f"[CONCAT] Concatenation failed: {e.diagnostic}")
            raise ConcatFailedError(e.diagnostic) from e

        output = Path(output_path)
        if not output.exists():
            raise ConcatFailedError(f"no output written to {output}")
        logger.info(f"[CONCAT] Concatenation successful: {output}")
        return output
