"""
Bulk data downloads.

Streams large provider files (MTGJSON, Scryfall) straight to disk in chunks,
so a multi-hundred-megabyte download never sits in memory.
"""

import logging
from pathlib import Path

import httpx

from cardsync.config import settings
from cardsync.models.errors import FetchError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def _partial_path(dest: Path) -> Path:
    return dest.with_name(dest.name + ".part")


async def download_file(
    url: str,
    dest: Path,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> Path:
    """
    Stream a remote file to disk.

    Args:
        url: Source URL
        dest: Where to save the file. Parent directories are created.
        client: HTTP client to use. A short-lived client is created if None.
        timeout: Request timeout in seconds. Defaults to settings.

    Returns:
        Path to the downloaded file.

    Raises:
        FetchError: On a non-2xx status, transport error, or empty body
    """
    logger.info("Downloading %s to %s", url, dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = _partial_path(dest)

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
        )

    written = 0
    try:
        async with client.stream(
            "GET", url, timeout=timeout or settings.http_timeout_seconds
        ) as response:
            response.raise_for_status()
            with open(partial, "wb") as f:
                async for chunk in response.aiter_bytes(CHUNK_SIZE):
                    f.write(chunk)
                    written += len(chunk)
    except httpx.HTTPStatusError as e:
        cleanup_file(partial)
        raise FetchError(f"Failed to download {url}: HTTP {e.response.status_code}") from e
    except httpx.RequestError as e:
        cleanup_file(partial)
        raise FetchError(f"Failed to download {url}: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if written == 0:
        cleanup_file(partial)
        raise FetchError(f"Failed to download {url}: empty response body")

    partial.replace(dest)
    logger.info("Download complete: %s (%d bytes)", dest, written)
    return dest


async def resolve_scryfall_bulk_url(
    bulk_type: str = "default_cards",
    *,
    client: httpx.AsyncClient | None = None,
    api_url: str | None = None,
) -> str:
    """
    Look up the download URL for a Scryfall bulk data file.

    Raises:
        FetchError: If the index request fails or has no entry for bulk_type
    """
    api_url = api_url or settings.scryfall_bulk_api

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
        )

    try:
        response = await client.get(api_url, timeout=30.0)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        raise FetchError(f"Scryfall bulk index failed: HTTP {e.response.status_code}") from e
    except (httpx.RequestError, ValueError) as e:
        raise FetchError(f"Scryfall bulk index failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    for item in data.get("data", []):
        if item.get("type") == bulk_type and item.get("download_uri"):
            return str(item["download_uri"])

    raise FetchError(f"Could not find {bulk_type} bulk data URL")


def cleanup_file(path: Path) -> None:
    """Remove a downloaded file and any partial download next to it."""
    for candidate in (path, _partial_path(path)):
        if candidate.exists():
            candidate.unlink()
