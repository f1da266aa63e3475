"""
Narration muxing for the final export.

The concatenated video stream is copied unmodified; the narration is encoded
to AAC. The output ends with the shorter of the two streams.
"""

import logging
from pathlib import Path

from export_service.config import Settings
from export_service.exceptions import MuxFailedError
from export_service.render.ffmpeg_runner import FFmpegError, FFmpegRunner, run_ffmpeg

logger = logging.getLogger(__name__)


class AudioMuxer:
    """FFmpeg-based muxer combining a silent video with narration audio."""

    def __init__(self, settings: Settings, runner: FFmpegRunner = run_ffmpeg):
        self.settings = settings
        self.runner = runner

    def build_command(
        self,
        video_path: str | Path,
        audio_path: str | Path,
        output_path: str | Path,
    ) -> list[str]:
        """Build the mux command without executing it.

        Args:
            video_path: Concatenated silent video
            audio_path: Narration audio
            output_path: Final MP4 path

        Returns:
            FFmpeg command as list[str]
        """
        settings = self.settings
        return [
            settings.ffmpeg_path,
            "-y",
            "-i", str(video_path),
            "-i", str(audio_path),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", "copy",
            "-c:a", settings.export_audio_codec,
            "-b:a", settings.export_audio_bitrate,
            # Output ends with the shorter stream
            "-shortest",
            "-movflags", "+faststart",
            str(output_path),
        ]

    async def mux(
        self,
        video_path: str | Path,
        audio_path: str | Path,
        output_path: str | Path,
    ) -> Path:
        """Mux video_path and audio_path into output_path.

        Raises:
            MuxFailedError: If FFmpeg fails, times out or writes nothing
        """
        cmd = self.build_command(video_path, audio_path, output_path)
        logger.info(f"[MUX] Merging {Path(video_path).name} with {Path(audio_path).name}")

        try:
            await self.runner(cmd, timeout_s=self.settings.ffmpeg_timeout_s)
        except FFmpegError as e:
            logger.error(f"[MUX] Muxing failed: {e.diagnostic}")
            raise MuxFailedError(e.diagnostic) from e

        output = Path(output_path)
        if not output.exists():
            raise MuxFailedError(f"no output written to {output}")
        return output
