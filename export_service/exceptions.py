"""Custom exceptions for the export service.

Every pipeline stage raises one of these. The API layer converts them into a
uniform error body with a machine-readable code and the underlying diagnostic.
"""

from export_service.constants.error_codes import get_error_spec
from export_service.schemas.export import ErrorResponse


class ExportError(Exception):
    """Base exception for all export errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    summary: str = "Export failed"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        index: int | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.index = index
        self.request_id: str | None = None
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse for the API body."""
        spec = get_error_spec(self.code)
        return ErrorResponse(
            error=self.summary,
            code=self.code,
            details=self.message,
            index=self.index,
            retryable=spec.get("retryable", False),
            suggested_fix=spec.get("suggested_fix"),
            request_id=self.request_id,
        )


# =============================================================================
# Request Errors (400)
# =============================================================================


class BadRequestError(ExportError):
    """Base class for errors caused by the request itself."""

    status_code = 400
    summary = "Invalid input data"


class InvalidInputError(BadRequestError):
    """Request body is malformed or missing required fields."""

    code = "INVALID_INPUT"
    message = "Invalid input data"


class InvalidReferenceError(BadRequestError):
    """Asset reference cannot be resolved to an absolute URL."""

    code = "INVALID_REFERENCE"
    message = "Invalid asset reference"

    def __init__(self, reference: str, reason: str | None = None):
        self.reference = reference
        message = f"Invalid asset reference: {reference!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


# =============================================================================
# Asset Retrieval Errors (500)
# =============================================================================


class FetchFailedError(ExportError):
    """Remote endpoint answered with a non-success status."""

    code = "FETCH_FAILED"
    message = "Asset download failed"

    def __init__(self, url: str, status_code: int, reason: str | None = None):
        self.url = url
        self.response_status = status_code
        message = f"Failed to download {url}: HTTP {status_code}"
        if reason:
            message += f" {reason}"
        super().__init__(message)


class NetworkError(ExportError):
    """Connection to the remote endpoint failed."""

    code = "NETWORK_ERROR"
    message = "Network error while downloading asset"

    def __init__(self, url: str, detail: str | None = None):
        self.url = url
        message = f"Network error while downloading {url}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


# =============================================================================
# Pipeline Errors (500)
# =============================================================================


class WorkspaceCreateFailedError(ExportError):
    """Temporary workspace could not be created."""

    code = "WORKSPACE_CREATE_FAILED"
    message = "Failed to create workspace"


class RenderFailedError(ExportError):
    """A segment could not be rendered."""

    code = "RENDER_FAILED"
    message = "Segment render failed"

    def __init__(self, index: int, diagnostic: str | None = None):
        message = f"Rendering segment {index} failed"
        if diagnostic:
            message += f": {diagnostic}"
        super().__init__(message, index=index)


class ConcatFailedError(ExportError):
    """Rendered segments could not be concatenated."""

    code = "CONCAT_FAILED"
    message = "Segment concatenation failed"

    def __init__(self, diagnostic: str | None = None):
        message = f"{self.message}: {diagnostic}" if diagnostic else self.message
        super().__init__(message)


class MuxFailedError(ExportError):
    """Narration audio could not be muxed with the video."""

    code = "MUX_FAILED"
    message = "Audio muxing failed"

    def __init__(self, diagnostic: str | None = None):
        message = f"{self.message}: {diagnostic}" if diagnostic else self.message
        super().__init__(message)


class ReadFailedError(ExportError):
    """Final artifact is missing or unreadable."""

    code = "READ_FAILED"
    message = "Failed to read final video"
