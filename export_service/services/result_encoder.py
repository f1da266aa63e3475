import base64
from pathlib import Path

from export_service.exceptions import ReadFailedError

VIDEO_MEDIA_TYPE = "video/mp4"


def encode_data_uri(path: str | Path, media_type: str = VIDEO_MEDIA_TYPE) -> str:
    """Read a file and return it as a base64 data URI.

    Raises:
        ReadFailedError: If the file is missing, unreadable or empty
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ReadFailedError(f"Failed to read final video {path}: {e}") from e
    if not data:
        raise ReadFailedError(f"Final video is empty: {path}")
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{payload}"
