"""Per-image segment rendering with burned-in captions.

Features:
- Still image looped into a fixed-duration clip
- Letterboxing to a fixed frame size so every segment shares codec parameters
- Caption overlay with a semi-transparent box, centered near the bottom
- Caption wrapping, truncation and filter-graph escaping
"""

import logging
import re
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from export_service.config import Settings
from export_service.exceptions import RenderFailedError
from export_service.render.ffmpeg_runner import FFmpegError, FFmpegRunner, run_ffmpeg

logger = logging.getLogger(__name__)

# Characters with meaning to the filtergraph parser (second parsing level)
_GRAPH_SPECIAL_RE = re.compile(r"([\\'\[\],;])")


@dataclass
class CaptionStyle:
    """Caption overlay styling."""

    font_size: int = 24
    font_color: str = "white"
    box_color: str = "0x00000099"
    box_border: int = 5
    margin_bottom: int = 36
    line_chars: int = 50
    max_chars: int = 500

    @classmethod
    def from_settings(cls, settings: Settings) -> "CaptionStyle":
        return cls(
            font_size=settings.caption_font_size,
            font_color=settings.caption_font_color,
            box_color=settings.caption_box_color,
            box_border=settings.caption_box_border,
            margin_bottom=settings.caption_margin_bottom,
            line_chars=settings.caption_line_chars,
            max_chars=settings.caption_max_chars,
        )


def prepare_caption(text: Optional[str], line_chars: int = 50, max_chars: int = 500) -> str:
    """Normalize, truncate and wrap caption text.

    Carriage returns are dropped, the text is cut at max_chars, and every line
    is soft-wrapped at line_chars. Explicit newlines are kept as line breaks.
    """
    text = (text or "").replace("\r", "").strip()
    if len(text) > max_chars:
        text = text[:max_chars].rstrip()

    lines: list[str] = []
    for paragraph in text.split("\n"):
        wrapped = textwrap.wrap(paragraph, width=line_chars, break_long_words=True)
        lines.extend(wrapped or [""])
    return "\n".join(lines).strip("\n")


def escape_filter_value(value: str) -> str:
    """Escape a value for use as a filter option inside a filtergraph.

    FFmpeg unescapes filter arguments twice: once as filter options (where
    ``\\``, ``'`` and ``:`` are special) and once as part of the filtergraph
    (where ``\\``, ``'``, ``[``, ``]``, ``,`` and ``;`` are special).
    """
    value = value.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")
    return _GRAPH_SPECIAL_RE.sub(r"\\\1", value)


class SegmentRenderer:
    """Renders one image plus caption into a fixed-length video segment."""

    def __init__(self, settings: Settings, runner: FFmpegRunner = run_ffmpeg):
        self.settings = settings
        self.runner = runner
        self.style = CaptionStyle.from_settings(settings)
        self.width = settings.export_width
        self.height = settings.export_height
        self.fps = settings.export_fps
        self.duration_s = settings.export_segment_duration_s

    def _resolve_font_path(self) -> Optional[str]:
        font_path = self.settings.font_path
        if font_path and Path(font_path).is_file():
            return font_path
        if font_path:
            logger.warning(f"[SEGMENT] Font not found, using engine default: {font_path}")
        return None

    def build_filter(self, caption: str, font_path: Optional[str] = None) -> str:
        """Build the video filter chain for one segment.

        Args:
            caption: Prepared (wrapped and truncated) caption text
            font_path: Optional font file for the overlay

        Returns:
            FFmpeg filter string
        """
        w, h = self.width, self.height
        filters = [
            f"scale={w}:{h}:force_original_aspect_ratio=decrease",
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2:color=black",
            "setsar=1",
        ]
        if caption:
            filters.append(self._build_drawtext(caption, font_path))
        return ",".join(filters)

    def _build_drawtext(self, caption: str, font_path: Optional[str]) -> str:
        style = self.style
        # expansion=none keeps '%' sequences literal
        params = ["drawtext=expansion=none"]
        if font_path:
            params.append(f"fontfile={escape_filter_value(font_path)}")
        params.extend([
            f"text={escape_filter_value(caption)}",
            f"fontsize={style.font_size}",
            f"fontcolor={style.font_color}",
            "box=1",
            f"boxcolor={style.box_color}",
            f"boxborderw={style.box_border}",
            "x=(w-text_w)/2",
            f"y=h-text_h-{style.margin_bottom}",
        ])
        return ":".join(params)

    def build_command(
        self,
        image_path: str | Path,
        caption: str,
        output_path: str | Path,
        font_path: Optional[str] = None,
    ) -> list[str]:
        """Build the FFmpeg command for one segment without executing it."""
        settings = self.settings
        return [
            settings.ffmpeg_path,
            "-y",
            "-loop", "1",
            "-framerate", str(self.fps),
            "-i", str(image_path),
            "-vf", self.build_filter(caption, font_path),
            "-t", str(self.duration_s),
            "-r", str(self.fps),
            "-c:v", settings.export_video_codec,
            "-preset", settings.export_preset,
            "-pix_fmt", settings.export_pixel_format,
            "-an",
            str(output_path),
        ]

    async def render(
        self,
        index: int,
        image_path: str | Path,
        caption: Optional[str],
        output_path: str | Path,
    ) -> Path:
        """Render segment index from image_path to output_path.

        Raises:
            RenderFailedError: If FFmpeg fails, times out or writes nothing
        """
        prepared = prepare_caption(caption, self.style.line_chars, self.style.max_chars)
        cmd = self.build_command(image_path, prepared, output_path, self._resolve_font_path())

        try:
            await self.runner(cmd, timeout_s=self.settings.ffmpeg_timeout_s)
        except FFmpegError as e:
            logger.error(f"[SEGMENT] Segment {index} failed: {e.diagnostic}")
            raise RenderFailedError(index, e.diagnostic) from e

        output = Path(output_path)
        if not output.exists():
            raise RenderFailedError(index, f"no output written to {output}")
        return output
