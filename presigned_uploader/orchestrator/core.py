"""Core orchestrator - coordinates batch upload workflows."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from .. import __version__
from ..config import get_api_key_or_throw, guard_server_only
from ..context import TransportContext
from ..errors import UploadError
from ..files import BytesFile
from ..models import ACL, ContentDisposition, FileResult, UploadConfig, UploadResult
from ..protocols import IUploadableFile
from ..services.api_client import ControlPlaneClient
from ..services.downloader import Downloader
from ..services.multipart import MultipartUploadExecutor, PartUploader
from ..services.poller import CompletionPoller
from ..services.presigned import PresignedUpload, PresignedUrlRequester
from ..services.presigned_post import PresignedPostUploadExecutor
from ..utils.retry import Sleep
from .pipeline import FilePipeline

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-uploader-api-key"
VERSION_HEADER = "x-uploader-version"


def _describe_exception(exc: BaseException) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


class UploadOrchestrator:
    """
    Uploads batches of files through the control plane and storage.

    Failures are isolated per file: every input gets a FileResult in input
    order and one bad file never aborts its siblings. Configuration and
    contract errors still abort the whole call.

    Usage:
        async with UploadOrchestrator(api_key="sk_...") as uploader:
            results = await uploader.upload_files([LocalFile("a.png")])

        # Re-upload remote files
        async with UploadOrchestrator() as uploader:
            results = await uploader.upload_files_from_url(["https://x/y.jpg"])
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        config: Optional[UploadConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Mapping[str, str]] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize orchestrator.

        Args:
            api_key: Control-plane secret (falls back to UPLOADER_SECRET)
            api_url: Control-plane base URL (falls back to UPLOADER_API_URL)
            config: Upload configuration
            client: Pre-built HTTP client; the orchestrator closes only clients it creates
            headers: Extra headers for control-plane requests
            sleep: Backoff sleep, injectable for tests
        """
        self._api_key = api_key
        self._api_url = api_url
        self._config = config or UploadConfig()
        self._external_client = client
        self._extra_headers = dict(headers or {})
        self._sleep = sleep

        self._owned_client: Optional[httpx.AsyncClient] = None
        self._context: Optional[TransportContext] = None

    async def __aenter__(self):
        """Validate environment and build the transport context."""
        guard_server_only()
        api_key = get_api_key_or_throw(self._api_key)

        client = self._external_client
        if client is None:
            self._owned_client = httpx.AsyncClient(timeout=self._config.request_timeout)
            client = self._owned_client

        headers: Dict[str, str] = {
            API_KEY_HEADER: api_key,
            VERSION_HEADER: __version__,
        }
        headers.update(self._extra_headers)
        self._context = TransportContext(client=client, headers=headers, api_url=self._api_url)
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._owned_client:
            await self._owned_client.aclose()
            self._owned_client = None
        self._context = None

    @property
    def context(self) -> TransportContext:
        if self._context is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")
        return self._context

    def _build_pipeline(self, api: ControlPlaneClient, limiter: asyncio.Semaphore) -> FilePipeline:
        part_uploader = PartUploader(self.context, self._config, limiter, self._sleep)
        return FilePipeline(
            multipart=MultipartUploadExecutor(api, part_uploader),
            presigned_post=PresignedPostUploadExecutor(self.context, limiter),
            poller=CompletionPoller(api, self._config, self._sleep),
        )

    async def _run_isolated(
        self,
        pipeline: FilePipeline,
        upload: PresignedUpload,
        index: int,
        total: int,
    ) -> FileResult[UploadResult]:
        name = upload.file.name
        try:
            result = await pipeline.run(upload)
        except UploadError as exc:
            logger.error(f"[{index}/{total}] Upload failed for {name}: {exc}", exc_info=True)
            return FileResult.fail(name, exc)
        except Exception as exc:
            logger.error(
                "[%d/%d] Unexpected error uploading %s: %s",
                index,
                total,
                name,
                _describe_exception(exc),
                exc_info=True,
            )
            error = UploadError(_describe_exception(exc), detail=repr(exc))
            error.__cause__ = exc
            return FileResult.fail(name, error)

        logger.info(f"[{index}/{total}] Uploaded {name} -> {result.key}")
        return FileResult.ok(name, result)

    async def upload_files(
        self,
        files: Sequence[IUploadableFile],
        metadata: Any = None,
        content_disposition: ContentDisposition = "inline",
        acl: Optional[ACL] = None,
    ) -> List[FileResult[UploadResult]]:
        """
        Upload a batch of files.

        Args:
            files: Files to upload
            metadata: Opaque JSON metadata forwarded to the control plane
            content_disposition: "inline" or "attachment"
            acl: Optional access-control setting

        Returns:
            One FileResult per file, in input order

        Raises:
            ContractError: descriptor response was malformed (nothing uploaded)
            ControlPlaneError: descriptor request failed (nothing uploaded)
        """
        files = list(files)
        if not files:
            return []

        limiter = asyncio.Semaphore(self._config.max_concurrency)
        api = ControlPlaneClient(self.context, limiter)

        presigneds = await PresignedUrlRequester(api).request(
            files, metadata, content_disposition, acl
        )

        pipeline = self._build_pipeline(api, limiter)
        total = len(presigneds)
        logger.info(f"Starting upload: {total} files (max {self._config.max_concurrency} parallel)")

        tasks = [
            asyncio.create_task(self._run_isolated(pipeline, upload, idx, total))
            for idx, upload in enumerate(presigneds, 1)
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        uploaded = sum(1 for r in results if r.success)
        logger.info(f"Upload complete: {uploaded} successful, {total - uploaded} failed")
        return list(results)

    async def download_files(self, urls: Sequence[str]) -> List[FileResult[BytesFile]]:
        """Download URLs into memory, one FileResult per URL."""
        return await Downloader(self.context, self._config).download(urls)

    async def upload_files_from_url(
        self,
        urls: Sequence[str],
        metadata: Any = None,
        content_disposition: ContentDisposition = "inline",
        acl: Optional[ACL] = None,
    ) -> List[FileResult[Any]]:
        """
        Download URLs and upload their contents as one batch.

        Download failures keep their position in the result list.
        """
        downloads = await self.download_files(urls)
        ready = [r.data for r in downloads if r.success]
        uploaded = iter(await self.upload_files(ready, metadata, content_disposition, acl))

        results: List[FileResult[Any]] = []
        for download in downloads:
            results.append(next(uploaded) if download.success else download)
        return results
