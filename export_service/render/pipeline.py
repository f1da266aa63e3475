"""
Export pipeline for image slideshow videos.

This module orchestrates the entire export:
1. Resolve asset references (before any side effect)
2. Download images and narration into a fresh workspace
3. Render one captioned segment per image, in order
4. Concatenate the segments (stream copy)
5. Mux the narration, ending with the shorter stream
6. Read the final video out as a data URI

The workspace is destroyed on every exit path, after the result bytes have
been read and before the caller sees either the result or the error.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import httpx

from export_service.config import Settings
from export_service.exceptions import ExportError
from export_service.render.audio_muxer import AudioMuxer
from export_service.render.concatenator import Concatenator
from export_service.render.ffmpeg_runner import FFmpegRunner, run_ffmpeg
from export_service.render.segment_renderer import SegmentRenderer
from export_service.schemas.export import ExportRequest
from export_service.services.asset_fetcher import FetchedAssets, fetch_assets, resolve_reference
from export_service.services.result_encoder import VIDEO_MEDIA_TYPE, encode_data_uri
from export_service.services.workspace import Workspace, acquire_workspace

logger = logging.getLogger(__name__)


# ============================================================================
# Stage outputs
# ============================================================================


@dataclass
class ResolvedAssets:
    """Absolute asset URLs, in request order."""

    image_urls: list[str]
    audio_url: str


@dataclass
class RenderedSegments:
    """Rendered segment files; paths[i] belongs to image i."""

    paths: list[Path]


@dataclass
class ConcatenatedVideo:
    path: Path


@dataclass
class FinalArtifact:
    path: Path


@dataclass
class ExportResult:
    """Encoded final video returned to the caller."""

    data_uri: str
    segment_count: int
    size_bytes: int
    media_type: str = VIDEO_MEDIA_TYPE


# ============================================================================
# Pipeline
# ============================================================================


class ExportPipeline:
    """
    Drives one export request from asset references to an encoded video.

    Handles:
    - Reference resolution as a precondition
    - Concurrent, bounded asset downloads
    - Sequential segment rendering, concatenation and muxing
    - Unconditional workspace cleanup
    """

    def __init__(
        self,
        settings: Settings,
        *,
        runner: FFmpegRunner = run_ffmpeg,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.transport = transport
        self.segment_renderer = SegmentRenderer(settings, runner)
        self.concatenator = Concatenator(settings, runner)
        self.audio_muxer = AudioMuxer(settings, runner)
        self._progress_callback: Optional[Callable[[int, str], None]] = None
        self._stage = "idle"

    def set_progress_callback(self, callback: Callable[[int, str], None]) -> None:
        """Set callback for progress updates."""
        self._progress_callback = callback

    def _update_progress(self, progress: int, stage: str) -> None:
        self._stage = stage
        if self._progress_callback:
            self._progress_callback(progress, stage)

    async def run(self, request: ExportRequest, request_id: str = "-") -> ExportResult:
        """
        Execute the full export pipeline.

        Args:
            request: Validated export request
            request_id: Identifier used in log lines

        Returns:
            ExportResult with the final video as a data URI

        Raises:
            ExportError: Subclass naming the failed stage
        """
        try:
            return await self._run(request, request_id)
        except ExportError as e:
            logger.error(f"[EXPORT] {request_id} failed during '{self._stage}': {e.code}: {e.message}")
            raise

    async def _run(self, request: ExportRequest, request_id: str) -> ExportResult:
        self._update_progress(0, "Resolving assets")
        resolved = self.resolve_assets(request)

        async with acquire_workspace(self.settings.workspace_root) as workspace:
            logger.info(
                f"[EXPORT] {request_id} started: {len(resolved.image_urls)} images, workspace={workspace.path.name}"
            )

            self._update_progress(5, "Downloading assets")
            assets = await fetch_assets(
                resolved.image_urls,
                resolved.audio_url,
                workspace,
                self.settings,
                transport=self.transport,
            )

            segments = await self.render_segments(request, assets, workspace)

            self._update_progress(80, "Concatenating segments")
            video = ConcatenatedVideo(
                await self.concatenator.concatenate(
                    segments.paths, workspace.manifest_path, workspace.concat_path
                )
            )

            self._update_progress(90, "Muxing audio")
            artifact = FinalArtifact(
                await self.audio_muxer.mux(video.path, assets.audio_path, workspace.output_path)
            )

            self._update_progress(95, "Encoding result")
            data_uri = await asyncio.to_thread(encode_data_uri, artifact.path)
            size_bytes = artifact.path.stat().st_size

        self._update_progress(100, "Complete")
        logger.info(f"[EXPORT] {request_id} complete: {len(segments.paths)} segments, {size_bytes} bytes")
        return ExportResult(
            data_uri=data_uri,
            segment_count=len(segments.paths),
            size_bytes=size_bytes,
        )

    def resolve_assets(self, request: ExportRequest) -> ResolvedAssets:
        """Resolve every reference of the request or fail before any side effect."""
        base_url = self.settings.base_image_url
        return ResolvedAssets(
            image_urls=[resolve_reference(ref, base_url) for ref in request.image_list],
            audio_url=resolve_reference(request.audio_file_url, base_url),
        )

    async def render_segments(
        self,
        request: ExportRequest,
        assets: FetchedAssets,
        workspace: Workspace,
    ) -> RenderedSegments:
        """Render one segment per image, strictly in image order."""
        total = len(assets.image_paths)
        paths: list[Path] = []
        for i, image_path in enumerate(assets.image_paths):
            self._update_progress(10 + int(70 * i / total), f"Rendering segment {i + 1}/{total}")
            logger.info(f"[SEGMENT] Generating segment {i + 1}/{total}")
            paths.append(
                await self.segment_renderer.render(
                    i, image_path, request.caption_for(i), workspace.segment_path(i)
                )
            )
        return RenderedSegments(paths)
