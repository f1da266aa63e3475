"""
Tests for per-image segment rendering.

Test cases:
1. Caption normalization, truncation and wrapping
2. Filter value escaping
3. Filter chain and command construction
4. Error mapping with a fake FFmpeg
5. Real FFmpeg render (requires_ffmpeg)
"""

from pathlib import Path

import pytest

from conftest import FakeFFmpeg, requires_ffmpeg
from export_service.exceptions import RenderFailedError
from export_service.render.segment_renderer import (
    SegmentRenderer,
    escape_filter_value,
    prepare_caption,
)
from export_service.utils.media_info import get_media_duration, get_video_stream_info


class TestPrepareCaption:
    """Tests for prepare_caption."""

    def test_none_becomes_empty(self):
        assert prepare_caption(None) == ""
        assert prepare_caption("   ") == ""

    def test_truncates_to_max_chars(self):
        text = "word " * 200

        assert prepare_caption(text, line_chars=1000, max_chars=20) == "word word word word"

    def test_long_text_is_bounded(self):
        caption = prepare_caption("x" * 600, line_chars=50, max_chars=500)

        assert len(caption.replace("\n", "")) == 500
        assert all(len(line) <= 50 for line in caption.split("\n"))

    def test_wraps_at_word_boundaries(self):
        assert prepare_caption("one two three four", line_chars=9) == "one two\nthree\nfour"

    def test_carriage_returns_dropped(self):
        assert prepare_caption("line1\r\nline2") == "line1\nline2"

    def test_explicit_newlines_kept(self):
        assert prepare_caption("a\n\nb") == "a\n\nb"


class TestEscapeFilterValue:
    """Tests for two-level filter escaping."""

    def test_plain_text_unchanged(self):
        assert escape_filter_value("Hello world 100%") == "Hello world 100%"

    def test_colon(self):
        assert escape_filter_value("a:b") == r"a\\:b"

    def test_quote(self):
        assert escape_filter_value("it's") == r"it\\\'s"

    def test_backslash(self):
        assert escape_filter_value("a\\b") == "a" + "\\" * 4 + "b"

    def test_graph_separators(self):
        assert escape_filter_value("a,b;c") == r"a\,b\;c"
        assert escape_filter_value("[x]") == r"\[x\]"

    def test_newline_passes_through(self):
        assert escape_filter_value("top\nbottom") == "top\nbottom"


class TestSegmentRendererCommand:
    """Tests for filter and command construction."""

    def test_filter_without_caption_has_no_drawtext(self, settings):
        renderer = SegmentRenderer(settings)

        vf = renderer.build_filter("")

        assert vf == (
            "scale=320:240:force_original_aspect_ratio=decrease,"
            "pad=320:240:(ow-iw)/2:(oh-ih)/2:color=black,"
            "setsar=1"
        )

    def test_filter_with_caption(self, settings):
        renderer = SegmentRenderer(settings)

        vf = renderer.build_filter("Hello: world")

        assert "drawtext=expansion=none" in vf
        assert r"text=Hello\\: world" in vf
        assert "box=1" in vf
        assert "boxcolor=0x00000099" in vf
        assert "boxborderw=5" in vf
        assert "x=(w-text_w)/2" in vf
        assert "y=h-text_h-36" in vf
        assert "fontfile" not in vf

    def test_filter_with_font(self, settings):
        renderer = SegmentRenderer(settings)

        vf = renderer.build_filter("Hi", font_path="/fonts/My Font.ttf")

        assert "fontfile=/fonts/My Font.ttf:text=Hi" in vf

    def test_command(self, settings):
        renderer = SegmentRenderer(settings)

        cmd = renderer.build_command("/ws/image_0.jpg", "", "/ws/video_0.mp4")

        assert cmd[0] == settings.ffmpeg_path
        assert cmd[cmd.index("-loop") + 1] == "1"
        assert cmd[cmd.index("-i") + 1] == "/ws/image_0.jpg"
        assert cmd[cmd.index("-t") + 1] == "1"
        assert cmd[cmd.index("-r") + 1] == "30"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-pix_fmt") + 1] == "yuv420p"
        assert "-an" in cmd
        assert cmd[-1] == "/ws/video_0.mp4"


class TestSegmentRendererRender:
    """Tests for SegmentRenderer.render with a fake FFmpeg."""

    @pytest.mark.asyncio
    async def test_render_prepares_caption(self, settings, tmp_path: Path):
        settings.font_path = ""
        fake = FakeFFmpeg()
        renderer = SegmentRenderer(settings, runner=fake)

        output = await renderer.render(0, tmp_path / "image_0.jpg", "  Hi\r\n", tmp_path / "video_0.mp4")

        assert output.exists()
        vf = fake.commands[0][fake.commands[0].index("-vf") + 1]
        assert "text=Hi:" in vf

    @pytest.mark.asyncio
    async def test_missing_font_falls_back(self, settings, tmp_path: Path):
        settings.font_path = str(tmp_path / "missing.ttf")
        fake = FakeFFmpeg()
        renderer = SegmentRenderer(settings, runner=fake)

        await renderer.render(0, tmp_path / "image_0.jpg", "Hi", tmp_path / "video_0.mp4")

        assert "fontfile" not in " ".join(fake.commands[0])

    @pytest.mark.asyncio
    async def test_failure_raises_render_failed_with_index(self, settings, tmp_path: Path):
        renderer = SegmentRenderer(settings, runner=FakeFFmpeg(fail_when=lambda cmd: True))

        with pytest.raises(RenderFailedError) as exc_info:
            await renderer.render(3, tmp_path / "image_3.jpg", "caption", tmp_path / "video_3.mp4")

        assert exc_info.value.index == 3
        assert "Conversion failed!" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_output_raises(self, settings, tmp_path: Path):
        async def silent_runner(cmd, *, timeout_s):
            return None

        renderer = SegmentRenderer(settings, runner=silent_runner)

        with pytest.raises(RenderFailedError, match="no output"):
            await renderer.render(0, tmp_path / "image_0.jpg", "", tmp_path / "video_0.mp4")


@requires_ffmpeg
class TestSegmentRendererFFmpeg:
    """Render real segments with FFmpeg."""

    @pytest.mark.asyncio
    async def test_segment_duration_and_format(self, settings, media_files, tmp_path: Path):
        renderer = SegmentRenderer(settings)
        output = tmp_path / "video_0.mp4"

        await renderer.render(
            0,
            media_files["red"],
            "Price: 100% [today], it's ok; C:\\path",
            output,
        )

        duration_ms = get_media_duration(str(output))
        assert 900 <= duration_ms <= 1100, f"Expected ~1000ms, got {duration_ms}"

        info = get_video_stream_info(str(output))
        assert (info.width, info.height) == (320, 240)
        assert info.pix_fmt == "yuv420p"
        assert info.codec == "h264"

    @pytest.mark.asyncio
    async def test_odd_sized_image_is_padded(self, settings, media_files, tmp_path: Path):
        renderer = SegmentRenderer(settings)
        output = tmp_path / "video_1.mp4"

        await renderer.render(1, media_files["blue"], "", output)

        info = get_video_stream_info(str(output))
        assert (info.width, info.height) == (320, 240)
