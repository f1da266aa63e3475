"""Asset resolution and download.

Resolves asset references (absolute URLs or paths relative to the configured
base URL) and downloads them into the request workspace. Images and audio are
fetched concurrently with a bounded number of transfers in flight.
"""

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urljoin, urlsplit

import httpx

from export_service.config import Settings
from export_service.exceptions import FetchFailedError, InvalidReferenceError, NetworkError
from export_service.services.workspace import Workspace

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_IMAGE_EXT = ".jpg"
DEFAULT_AUDIO_EXT = ".mp3"

# Only plain alphanumeric suffixes become file extensions in the workspace
_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,8}$")


@dataclass
class FetchedAssets:
    """Local paths of downloaded assets, in request order."""

    image_paths: list[Path]
    audio_path: Path


def resolve_reference(reference: str, base_url: str = "") -> str:
    """Resolve an asset reference to an absolute http(s) URL.

    Args:
        reference: Absolute URL or path relative to base_url
        base_url: Base location for relative references

    Returns:
        Absolute URL

    Raises:
        InvalidReferenceError: If the reference cannot be resolved
    """
    if not isinstance(reference, str) or not reference.strip():
        raise InvalidReferenceError(str(reference), "empty reference")

    reference = reference.strip()
    try:
        parts = urlsplit(reference)
        if parts.scheme:
            absolute = reference
        else:
            if not base_url:
                raise InvalidReferenceError(reference, "relative reference and no base URL configured")
            absolute = urljoin(base_url, reference)
        resolved = urlsplit(absolute)
        # Accessing .port validates the authority part
        resolved.port
    except ValueError as e:
        raise InvalidReferenceError(reference, str(e)) from e

    if resolved.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidReferenceError(reference, f"unsupported scheme {resolved.scheme!r}")
    if not resolved.hostname:
        raise InvalidReferenceError(reference, "missing host")

    # The HTTP client applies stricter rules (IDNA hosts, control characters)
    try:
        httpx.URL(absolute).host
    except (httpx.InvalidURL, UnicodeError) as e:
        raise InvalidReferenceError(reference, str(e)) from e
    return absolute


def asset_extension(url: str, default: str) -> str:
    """Return the file extension of the URL path, or default if not usable."""
    path = unquote(urlsplit(url).path)
    ext = os.path.splitext(path)[1]
    if _EXTENSION_RE.match(ext):
        return ext.lower()
    return default


async def download_asset(client: httpx.AsyncClient, url: str) -> bytes:
    """Download url and return the response body.

    Raises:
        FetchFailedError: If the server answers with a non-success status
        NetworkError: If the connection fails or times out
        InvalidReferenceError: If the client rejects the URL
    """
    try:
        response = await client.get(url)
    except (httpx.InvalidURL, UnicodeError) as e:
        raise InvalidReferenceError(url, str(e)) from e
    except httpx.HTTPError as e:
        raise NetworkError(url, str(e) or type(e).__name__) from e

    if not response.is_success:
        raise FetchFailedError(url, response.status_code, response.reason_phrase)
    return response.content


async def fetch_asset(client: httpx.AsyncClient, url: str, dest: Path) -> Path:
    """Download url and write the body verbatim to dest."""
    content = await download_asset(client, url)
    await asyncio.to_thread(dest.write_bytes, content)
    logger.info(f"[FETCH] {url} -> {dest.name} ({len(content)} bytes)")
    return dest


async def fetch_assets(
    image_urls: list[str],
    audio_url: str,
    workspace: Workspace,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchedAssets:
    """Download all images and the narration audio into the workspace.

    All transfers run concurrently, limited by settings.download_concurrency.
    The first failure cancels the remaining transfers and is re-raised once
    every file write already started has finished.

    Args:
        image_urls: Resolved image URLs, in segment order
        audio_url: Resolved audio URL
        workspace: Destination workspace
        settings: Service settings
        transport: Optional httpx transport (used by tests)

    Returns:
        FetchedAssets with local paths in the same order as image_urls
    """
    semaphore = asyncio.Semaphore(max(1, settings.download_concurrency))
    writes: list[asyncio.Task] = []

    async with httpx.AsyncClient(
        timeout=settings.download_timeout_s,
        follow_redirects=True,
        transport=transport,
    ) as client:

        async def fetch_one(url: str, dest: Path) -> Path:
            async with semaphore:
                content = await download_asset(client, url)
            # Cancelling the fetch must not cut off a write in progress
            write = asyncio.create_task(asyncio.to_thread(dest.write_bytes, content))
            writes.append(write)
            await asyncio.shield(write)
            logger.info(f"[FETCH] {url} -> {dest.name} ({len(content)} bytes)")
            return dest

        image_dests = [
            workspace.image_path(i, asset_extension(url, DEFAULT_IMAGE_EXT))
            for i, url in enumerate(image_urls)
        ]
        audio_dest = workspace.audio_path(asset_extension(audio_url, DEFAULT_AUDIO_EXT))

        logger.info(f"[FETCH] Downloading {len(image_urls)} images and audio into {workspace.path}")
        tasks = [asyncio.create_task(fetch_one(url, dest)) for url, dest in zip(image_urls, image_dests)]
        tasks.append(asyncio.create_task(fetch_one(audio_url, audio_dest)))

        try:
            paths = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await asyncio.gather(*writes, return_exceptions=True)
            raise

    return FetchedAssets(image_paths=list(paths[:-1]), audio_path=paths[-1])
