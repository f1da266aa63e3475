"""Error codes dictionary for the export API.

This is the single source of truth for all error codes, their retryability,
and suggested fixes. Used by exception handlers to generate machine-readable
error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


# Error codes dictionary - single source of truth
ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Request errors (caller must change the request)
    # ==========================================================================
    "INVALID_INPUT": {
        "retryable": False,
        "suggested_fix": "Send a non-empty imageList, an audioFileUrl and a script list",
    },
    "INVALID_REFERENCE": {
        "retryable": False,
        "suggested_fix": "Use absolute http(s) URLs or configure BASE_IMAGE_URL",
    },
    # ==========================================================================
    # Asset retrieval errors
    # ==========================================================================
    "FETCH_FAILED": {
        "retryable": False,
        "suggested_fix": "Check that every asset URL is reachable and returns 2xx",
    },
    "NETWORK_ERROR": {
        "retryable": True,
    },
    # ==========================================================================
    # Pipeline errors
    # ==========================================================================
    "WORKSPACE_CREATE_FAILED": {
        "retryable": True,
    },
    "RENDER_FAILED": {
        "retryable": False,
        "suggested_fix": "Check that the image at the reported index is a decodable image",
    },
    "CONCAT_FAILED": {
        "retryable": False,
    },
    "MUX_FAILED": {
        "retryable": False,
        "suggested_fix": "Check that audioFileUrl points to a decodable audio file",
    },
    "READ_FAILED": {
        "retryable": True,
    },
    # ==========================================================================
    # System errors
    # ==========================================================================
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested fix
    """
    return ERROR_CODES.get(code, {"retryable": False})
