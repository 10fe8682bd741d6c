"""
Presigned URL Requester - exchange file metadata for upload descriptors.

One round trip per batch. The response is a contract: anything that does
not decode into exactly one descriptor per input file aborts the batch.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..errors import ContractError, UploadError
from ..files import DEFAULT_NAME
from ..models import (
    ACL,
    ContentDisposition,
    MultipartDescriptor,
    PresignedPostDescriptor,
    UploadDescriptor,
)
from ..protocols import IUploadableFile
from .api_client import ControlPlaneClient

logger = logging.getLogger(__name__)

UPLOAD_FILES_ENDPOINT = "/api/uploadFiles"
CONTENT_DISPOSITIONS = ("inline", "attachment")
ACLS = ("public-read", "private")


@dataclass(frozen=True)
class PresignedUpload:
    """A file paired with the descriptor the control plane issued for it."""
    file: IUploadableFile
    descriptor: UploadDescriptor


def file_payload(file: IUploadableFile) -> Dict[str, Any]:
    """Serialize the metadata the control plane needs for one file."""
    payload: Dict[str, Any] = {
        "name": getattr(file, "name", None) or DEFAULT_NAME,
        "type": file.type,
        "size": file.size,
    }
    custom_id = getattr(file, "custom_id", None)
    if custom_id is not None:
        payload["customId"] = custom_id
    return payload


def _require(item: Mapping[str, Any], key: str, kind: type, index: int) -> Any:
    value = item.get(key)
    # bool is an int subclass but never a valid size/count
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ContractError(
            f"Descriptor {index}: field '{key}' must be {kind.__name__}",
            detail=dict(item),
        )
    return value


def _disposition(item: Mapping[str, Any], fallback: ContentDisposition) -> ContentDisposition:
    value = item.get("contentDisposition", fallback)
    return value if value in CONTENT_DISPOSITIONS else fallback


def decode_descriptor(
    item: Any,
    index: int = 0,
    content_disposition: ContentDisposition = "inline",
) -> UploadDescriptor:
    """
    Decode one descriptor, choosing the variant by shape.

    ``urls`` + ``uploadId`` means multipart, ``url`` + ``fields`` means
    presigned POST. Anything else raises ContractError.
    """
    if not isinstance(item, Mapping):
        raise ContractError(f"Descriptor {index} is not an object", detail=item)

    if "urls" in item and "uploadId" in item:
        urls = _require(item, "urls", list, index)
        if not all(isinstance(u, str) for u in urls):
            raise ContractError(f"Descriptor {index}: 'urls' must be strings", detail=dict(item))
        return MultipartDescriptor(
            urls=list(urls),
            key=_require(item, "key", str, index),
            file_url=_require(item, "fileUrl", str, index),
            file_type=_require(item, "fileType", str, index),
            upload_id=_require(item, "uploadId", str, index),
            chunk_size=_require(item, "chunkSize", int, index),
            chunk_count=_require(item, "chunkCount", int, index),
            content_disposition=_disposition(item, content_disposition),
        )

    if "url" in item and "fields" in item:
        fields = _require(item, "fields", dict, index)
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in fields.items()):
            raise ContractError(
                f"Descriptor {index}: 'fields' values must be strings", detail=dict(item)
            )
        return PresignedPostDescriptor(
            url=_require(item, "url", str, index),
            fields=dict(fields),
            key=_require(item, "key", str, index),
            file_url=_require(item, "fileUrl", str, index),
            content_disposition=_disposition(item, content_disposition),
        )

    raise ContractError(
        f"Descriptor {index} matches neither multipart nor presigned POST",
        detail=dict(item),
    )


class PresignedUrlRequester:
    """Requests upload descriptors for a whole batch in one call."""

    def __init__(self, api: ControlPlaneClient):
        self._api = api

    async def request(
        self,
        files: Sequence[IUploadableFile],
        metadata: Any = None,
        content_disposition: ContentDisposition = "inline",
        acl: Optional[ACL] = None,
    ) -> List[PresignedUpload]:
        """
        Get one descriptor per file, in input order.

        Args:
            files: Files to upload
            metadata: Opaque JSON value forwarded to the control plane
            content_disposition: "inline" or "attachment"
            acl: Optional access-control setting

        Returns:
            Files paired with their descriptors

        Raises:
            UploadError: invalid content_disposition or acl (code BAD_REQUEST)
            ContractError: response shape or count is wrong
            ControlPlaneError: request failed
        """
        if content_disposition not in CONTENT_DISPOSITIONS:
            raise UploadError(
                f"Invalid content disposition: {content_disposition!r}", code="BAD_REQUEST"
            )
        if acl is not None and acl not in ACLS:
            raise UploadError(f"Invalid acl: {acl!r}", code="BAD_REQUEST")

        file_data = [file_payload(f) for f in files]
        logger.debug("Getting presigned URLs for files: %s", file_data)

        body: Dict[str, Any] = {
            "files": file_data,
            "metadata": metadata,
            "contentDisposition": content_disposition,
        }
        if acl is not None:
            body["acl"] = acl

        response = await self._api.post_json(UPLOAD_FILES_ENDPOINT, body)
        data = response.get("data") if isinstance(response, Mapping) else None
        if not isinstance(data, list):
            raise ContractError("Response is missing the 'data' array", detail=response)
        if len(data) != len(files):
            raise ContractError(
                f"Expected {len(files)} descriptors, got {len(data)}",
                detail=response,
            )

        descriptors = [
            decode_descriptor(item, i, content_disposition) for i, item in enumerate(data)
        ]
        logger.debug("Got presigned URLs: %s", descriptors)

        return [
            PresignedUpload(file=f, descriptor=d) for f, d in zip(files, descriptors)
        ]
