"""
Open asset sources: files inside the package directory, or HTTP downloads.
"""
from __future__ import annotations

import logging
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Optional
import httpx
import aiofiles

from pkgrepo.domain.errors import AssetFetchError
from pkgrepo.domain.models import BuilderConfig

logger = logging.getLogger(__name__)

DOWNLOAD_FILENAME = "download"


def create_http_client(config: BuilderConfig) -> httpx.AsyncClient:
    """HTTP client used for every download of a run."""
    return httpx.AsyncClient(follow_redirects=True, timeout=config.download_timeout)


def local_source_path(source: str, package_dir: Path) -> Optional[Path]:
    """
    Return the file a source refers to when it exists on disk.

    Relative sources are looked up under the package directory. Absolute
    sources (such as entries extracted from a parent archive) are used as is.
    """
    candidate = package_dir / source
    try:
        if candidate.is_file():
            return candidate
    except OSError:
        pass
    return None


async def download_to(client: httpx.AsyncClient, url: str, target_path: Path) -> int:
    """Stream ``url`` into ``target_path`` and return the number of bytes written."""
    logger.info(f"- Downloading {url}...")

    downloaded = 0
    try:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            async with aiofiles.open(target_path, "wb") as f:
                async for chunk in response.aiter_bytes():
                    await f.write(chunk)
                    downloaded += len(chunk)
    except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
        raise AssetFetchError(url, f"failed to download: {e}") from e

    logger.debug(f"Downloaded {downloaded} bytes from {url}")
    return downloaded


@asynccontextmanager
async def open_source(
    source: Optional[str],
    package_dir: Path,
    client: httpx.AsyncClient,
) -> AsyncIterator[BinaryIO]:
    """
    Yield a readable, seekable file for an asset source, positioned at 0.

    Local files are opened in place. Anything else is treated as a URL and
    downloaded into a temporary directory that is removed when the context
    exits, whether or not the caller succeeded.
    """
    if not source:
        raise AssetFetchError("<none>", "asset has no source")

    local_path = local_source_path(source, package_dir)
    if local_path is not None:
        logger.info(f"- Asset is local: {source}")
        try:
            handle = local_path.open("rb")
        except OSError as e:
            raise AssetFetchError(source, f"failed to open local file: {e}") from e
        with handle:
            yield handle
        return

    with tempfile.TemporaryDirectory(prefix="asset_") as tmpdirname:
        tmp_path = Path(tmpdirname) / DOWNLOAD_FILENAME
        await download_to(client, source, tmp_path)
        try:
            handle = tmp_path.open("rb")
        except OSError as e:
            raise AssetFetchError(source, f"failed to open downloaded file: {e}") from e
        with handle:
            yield handle
