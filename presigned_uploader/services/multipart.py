"""
Multipart upload: partition a file, PUT each part, complete the upload.

Parts of one file share the batch-wide concurrency ceiling with every other
file's network calls; there is no per-file pool.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional
from urllib.parse import quote

import httpx

from ..context import TransportContext
from ..errors import ContractError, PartUploadError, RetryableError
from ..models import ContentDisposition, MultipartDescriptor, PartAck, PartRange, UploadConfig
from ..protocols import IUploadableFile
from ..utils.concurrency import bounded
from ..utils.retry import Sleep, retry_async
from .api_client import ControlPlaneClient

logger = logging.getLogger(__name__)

COMPLETE_MULTIPART_ENDPOINT = "/api/completeMultipart"


def split_into_parts(file_size: int, chunk_size: int, chunk_count: int) -> List[PartRange]:
    """
    Partition ``[0, file_size)`` into ``chunk_count`` contiguous ranges.

    Every part except the last is exactly ``chunk_size`` bytes.

    Raises:
        ValueError: the declared chunking cannot cover the file exactly
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_count <= 0:
        raise ValueError(f"chunk_count must be positive, got {chunk_count}")
    if file_size < 0:
        raise ValueError(f"file_size must be non-negative, got {file_size}")

    if file_size == 0:
        expected = 1
    else:
        expected = -(-file_size // chunk_size)  # ceil division
    if chunk_count != expected:
        raise ValueError(
            f"{chunk_count} chunks of {chunk_size} bytes do not partition "
            f"{file_size} bytes (expected {expected})"
        )

    parts = []
    for i in range(chunk_count):
        start = i * chunk_size
        end = min(start + chunk_size, file_size)
        parts.append(PartRange(part_number=i + 1, start=start, end=end))
    return parts


def content_disposition_header(disposition: ContentDisposition, file_name: str) -> str:
    encoded = quote(file_name, safe="")
    return f"{disposition}; filename=\"{encoded}\"; filename*=UTF-8''{encoded}"


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, RetryableError)


class PartUploader:
    """
    Uploads one byte range to a presigned PUT URL with bounded retry.

    Non-2xx responses, a missing ETag and transport errors are transient.
    Exhausting ``max_attempts`` escalates to PartUploadError.
    """

    def __init__(
        self,
        context: TransportContext,
        config: Optional[UploadConfig] = None,
        limiter: Optional[asyncio.Semaphore] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._context = context
        self._config = config or UploadConfig()
        self._limiter = limiter
        self._sleep = sleep

    async def upload(
        self,
        url: str,
        file: IUploadableFile,
        part: PartRange,
        content_disposition: ContentDisposition = "inline",
    ) -> PartAck:
        headers = {
            "Content-Type": file.type,
            "Content-Disposition": content_disposition_header(content_disposition, file.name),
        }

        async def attempt() -> str:
            async with bounded(self._limiter):
                chunk = file.slice(part.start, part.end)
                try:
                    response = await self._context.client.put(url, content=chunk, headers=headers)
                except httpx.TransportError as exc:
                    raise RetryableError(f"transport error: {exc}", exc) from exc

            if not response.is_success:
                raise RetryableError(f"storage returned HTTP {response.status_code}")
            etag = response.headers.get("ETag")
            if not etag:
                raise RetryableError("storage response has no ETag header")
            return etag

        max_attempts = self._config.max_part_attempts
        try:
            tag = await retry_async(
                attempt,
                self._config.backoff,
                _is_retryable,
                max_attempts=max_attempts,
                sleep=self._sleep,
                description=f"part {part.part_number} of {file.name}",
            )
        except RetryableError as exc:
            logger.error(
                "Part %d of %s failed after %d attempts: %s",
                part.part_number,
                file.name,
                max_attempts,
                exc,
            )
            raise PartUploadError(
                f"Failed to upload part {part.part_number} of {file.name} to storage",
                part_number=part.part_number,
                attempts=max_attempts,
                detail=str(exc),
            ) from exc

        logger.debug(f"Part {part.part_number} of {file.name} uploaded")
        return PartAck(part_number=part.part_number, tag=tag)


class MultipartUploadExecutor:
    """Drives all parts of one file and finalizes the multipart upload."""

    def __init__(
        self,
        api: ControlPlaneClient,
        part_uploader: PartUploader,
    ):
        self._api = api
        self._part_uploader = part_uploader

    async def execute(
        self,
        file: IUploadableFile,
        descriptor: MultipartDescriptor,
    ) -> List[PartAck]:
        """
        Upload every part, then call the completion endpoint.

        Returns:
            Acks in ascending part order, as submitted for completion
        """
        if len(descriptor.urls) != descriptor.chunk_count:
            raise ContractError(
                f"Descriptor for {file.name} declares {descriptor.chunk_count} chunks "
                f"but provides {len(descriptor.urls)} URLs",
            )
        try:
            parts = split_into_parts(file.size, descriptor.chunk_size, descriptor.chunk_count)
        except ValueError as exc:
            raise ContractError(f"Invalid chunking for {file.name}: {exc}") from exc

        logger.debug(
            "Uploading file %s with %d chunks of size %d bytes each",
            file.name,
            descriptor.chunk_count,
            descriptor.chunk_size,
        )

        tasks = [
            asyncio.create_task(
                self._part_uploader.upload(url, file, part, descriptor.content_disposition)
            )
            for url, part in zip(descriptor.urls, parts)
        ]
        try:
            acks = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        logger.debug(f"File {file.name} uploaded successfully")
        return await self.complete(descriptor, acks)

    async def complete(self, descriptor: MultipartDescriptor, acks: List[PartAck]) -> List[PartAck]:
        """Submit acks in ascending part order; returns them as submitted."""
        ordered = sorted(acks, key=lambda ack: ack.part_number)
        logger.debug("Completing multipart upload for %s...", descriptor.key)
        await self._api.post(
            COMPLETE_MULTIPART_ENDPOINT,
            json={
                "fileKey": descriptor.key,
                "uploadId": descriptor.upload_id,
                "etags": [ack.to_json() for ack in ordered],
            },
        )
        logger.debug("Multipart upload complete for %s", descriptor.key)
        return ordered
