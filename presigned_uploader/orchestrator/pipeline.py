"""Per-file pipeline: byte transfer for the descriptor's variant, then polling."""
import logging

from ..errors import ContractError
from ..models import MultipartDescriptor, PresignedPostDescriptor, UploadResult
from ..services.multipart import MultipartUploadExecutor
from ..services.poller import CompletionPoller
from ..services.presigned import PresignedUpload
from ..services.presigned_post import PresignedPostUploadExecutor

logger = logging.getLogger(__name__)


class FilePipeline:
    """Runs one file from descriptor to confirmed upload."""

    def __init__(
        self,
        multipart: MultipartUploadExecutor,
        presigned_post: PresignedPostUploadExecutor,
        poller: CompletionPoller,
    ):
        self._multipart = multipart
        self._presigned_post = presigned_post
        self._poller = poller

    async def run(self, upload: PresignedUpload) -> UploadResult:
        file, descriptor = upload.file, upload.descriptor

        if isinstance(descriptor, MultipartDescriptor):
            await self._multipart.execute(file, descriptor)
        elif isinstance(descriptor, PresignedPostDescriptor):
            await self._presigned_post.execute(file, descriptor)
        else:
            raise ContractError(f"Unsupported descriptor for {file.name}: {descriptor!r}")

        await self._poller.wait_until_done(descriptor.key)

        return UploadResult(
            key=descriptor.key,
            url=descriptor.file_url,
            name=file.name,
            size=file.size,
        )
