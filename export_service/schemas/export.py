from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ScriptEntry(BaseModel):
    """One caption record of the export script."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    content_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ContentText", "contentText", "text"),
    )

    @field_validator("content_text", mode="before")
    @classmethod
    def ignore_non_text(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_list: list[Annotated[str, Field(min_length=1)]] = Field(alias="imageList", min_length=1)
    audio_file_url: str = Field(alias="audioFileUrl", min_length=1)
    # May be shorter than image_list; missing captions render as empty text
    script: list[ScriptEntry | None]

    @field_validator("script", mode="before")
    @classmethod
    def drop_malformed_entries(cls, v: Any) -> Any:
        """Treat entries that are not records as missing captions."""
        if not isinstance(v, list):
            return v
        return [entry if isinstance(entry, (dict, ScriptEntry)) else None for entry in v]

    def caption_for(self, index: int) -> str:
        """Return the caption text for the image at index ("" if absent)."""
        if index >= len(self.script):
            return ""
        entry = self.script[index]
        if entry is None or entry.content_text is None:
            return ""
        return entry.content_text


class ExportResponse(BaseModel):
    result: str  # data:video/mp4;base64,...
    request_id: str
    processing_time_ms: int


class ErrorResponse(BaseModel):
    error: str
    code: str
    details: str | None = None
    index: int | None = None  # Segment index for render failures
    retryable: bool = False
    suggested_fix: str | None = None
    request_id: str | None = None
