from export_service.render.audio_muxer import AudioMuxer
from export_service.render.concatenator import Concatenator
from export_service.render.pipeline import ExportPipeline, ExportResult
from export_service.render.segment_renderer import SegmentRenderer

__all__ = [
    "ExportPipeline",
    "ExportResult",
    "SegmentRenderer",
    "Concatenator",
    "AudioMuxer",
]
