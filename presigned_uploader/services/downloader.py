"""
Downloader - fetch remote URLs into in-memory files for re-upload.

Each body is read fully into memory. One failing URL does not affect the
others; its slot in the result list carries the error.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence
from urllib.parse import unquote, urlparse

import httpx

from ..context import TransportContext
from ..errors import DownloadError, UploadError
from ..files import DEFAULT_TYPE, BytesFile
from ..models import FileResult, UploadConfig

logger = logging.getLogger(__name__)

UNKNOWN_FILENAME = "unknown-filename"


def filename_from_url(url: str) -> str:
    """Last non-empty path segment of ``url``, percent-decoded."""
    path = urlparse(str(url)).path
    segments = [s for s in path.split("/") if s]
    if not segments:
        return UNKNOWN_FILENAME
    return unquote(segments[-1]) or UNKNOWN_FILENAME


def _safe_filename(url: str) -> str:
    try:
        return filename_from_url(url)
    except ValueError:
        return UNKNOWN_FILENAME


def _content_type(response: httpx.Response) -> str:
    value = response.headers.get("Content-Type", "")
    mime = value.split(";", 1)[0].strip()
    return mime or DEFAULT_TYPE


class Downloader:
    """Downloads URLs concurrently under ``download_concurrency``."""

    def __init__(self, context: TransportContext, config: Optional[UploadConfig] = None):
        self._context = context
        self._config = config or UploadConfig()

    async def download_one(self, url: str) -> BytesFile:
        try:
            name = filename_from_url(url)
            response = await self._context.client.get(str(url), follow_redirects=True)
        except (ValueError, httpx.InvalidURL, httpx.HTTPError) as exc:
            raise DownloadError(f"Failed to download {url}: {exc}", detail=str(exc)) from exc

        if not response.is_success:
            raise DownloadError(
                f"Failed to download {url} (HTTP {response.status_code})",
                detail=response.text,
            )
        return BytesFile(content=response.content, name=name, type=_content_type(response))

    async def download(self, urls: Sequence[str]) -> List[FileResult[BytesFile]]:
        """
        Download all URLs.

        Returns:
            One FileResult per URL, in input order
        """
        semaphore = asyncio.Semaphore(self._config.download_concurrency)

        async def run(url: str) -> FileResult[BytesFile]:
            async with semaphore:
                try:
                    file = await self.download_one(url)
                except UploadError as exc:
                    logger.error(f"Download failed for {url}: {exc}")
                    return FileResult.fail(_safe_filename(url), exc)
            logger.debug("Downloaded %s (%d bytes)", url, file.size)
            return FileResult.ok(file.name, file)

        logger.info(f"Downloading {len(urls)} files (max {self._config.download_concurrency} parallel)")
        return list(await asyncio.gather(*(run(url) for url in urls)))
