import json
import tempfile
from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "FFmpeg Export Service"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 10000

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "*"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from pipe/comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        if "|" in v:
            return [origin.strip() for origin in v.split("|") if origin.strip()]
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Asset download
    # Relative asset references are joined against this URL (BASE_IMAGE_URL)
    base_image_url: str = ""
    download_concurrency: int = 8
    download_timeout_s: float = 60.0

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ffmpeg_timeout_s: float = 300.0
    font_path: str = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"

    # Export settings
    workspace_root: str = tempfile.gettempdir()
    export_segment_duration_s: int = 5
    export_fps: int = 30
    export_pixel_format: str = "yuv420p"
    export_width: int = 1280
    export_height: int = 720
    export_video_codec: str = "libx264"
    export_preset: str = "veryfast"
    export_audio_codec: str = "aac"
    export_audio_bitrate: str = "192k"

    # Caption overlay
    caption_font_size: int = 24
    caption_font_color: str = "white"
    caption_box_color: str = "0x00000099"
    caption_box_border: int = 5
    caption_margin_bottom: int = 36
    caption_line_chars: int = 50
    caption_max_chars: int = 500


@lru_cache
def get_settings() -> Settings:
    return Settings()
