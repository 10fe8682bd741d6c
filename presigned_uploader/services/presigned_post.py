"""Presigned-Post Upload Executor - single form POST straight to storage."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Tuple

import httpx

from ..context import TransportContext
from ..errors import StorageProviderError
from ..models import PresignedPostDescriptor
from ..protocols import IUploadableFile
from ..utils.concurrency import bounded

logger = logging.getLogger(__name__)

FILE_FIELD = "file"

FormFiles = Dict[str, Tuple[str, bytes, str]]


def build_form(
    descriptor: PresignedPostDescriptor,
    file: IUploadableFile,
) -> Tuple[Dict[str, str], FormFiles]:
    """
    Build httpx ``data``/``files`` arguments for the presigned POST.

    httpx encodes ``data`` fields in iteration order before ``files``, so
    the payload is always the last part of the body. Storage rejects or
    truncates uploads where the file precedes the policy fields.
    """
    data = {name: value for name, value in descriptor.fields.items()}
    files = {FILE_FIELD: (file.name, file.slice(0, file.size), file.type)}
    return data, files


class PresignedPostUploadExecutor:
    """Uploads a whole file with one presigned form POST. No retry."""

    def __init__(
        self,
        context: TransportContext,
        limiter: Optional[asyncio.Semaphore] = None,
    ):
        self._context = context
        self._limiter = limiter

    async def execute(self, file: IUploadableFile, descriptor: PresignedPostDescriptor) -> None:
        logger.debug("Uploading file %s using presigned POST URL", file.name)

        async with bounded(self._limiter):
            data, files = build_form(descriptor, file)
            try:
                response = await self._context.client.post(
                    descriptor.url,
                    data=data,
                    files=files,
                    headers={"Accept": "application/xml"},
                )
            except httpx.HTTPError as exc:
                raise StorageProviderError(
                    f"Failed to upload {file.name} to storage: {exc}",
                    detail=str(exc),
                ) from exc

        if not response.is_success:
            text = response.text
            logger.error(
                "Presigned POST for %s failed with HTTP %d: %s",
                file.name,
                response.status_code,
                text,
            )
            raise StorageProviderError(
                f"Failed to upload {file.name} to storage (HTTP {response.status_code})",
                detail=text,
            )

        logger.debug(f"File {file.name} uploaded successfully")
