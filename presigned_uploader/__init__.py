"""
presigned_uploader - batch uploads through presigned storage URLs.

Two-phase protocol: ask the control plane for per-file descriptors, push
bytes straight to storage (multipart PUTs or one presigned form POST), then
poll until the control plane confirms each file.

Usage:
    from presigned_uploader import UploadOrchestrator, LocalFile, BytesFile

    async with UploadOrchestrator(api_key="sk_live_...") as uploader:
        results = await uploader.upload_files(
            [LocalFile("report.pdf"), BytesFile(b"hello", name="hello.txt", type="text/plain")],
            metadata={"userId": "u_1"},
            content_disposition="attachment",
        )
        for result in results:
            if result.success:
                print(result.data.url)
            else:
                print(result.name, result.error.code, result.error.message)
"""
__version__ = "0.1.0"

from .context import TransportContext
from .errors import (
    ConfigurationError,
    ContractError,
    ControlPlaneError,
    DownloadError,
    MissingSecretError,
    PartUploadError,
    PollTimeoutError,
    ServerOnlyError,
    StorageProviderError,
    UploadError,
)
from .files import BytesFile, LocalFile
from .models import (
    FileResult,
    MultipartDescriptor,
    PartAck,
    PollStatus,
    PresignedPostDescriptor,
    UploadConfig,
    UploadResult,
)
from .orchestrator import UploadOrchestrator
from .utils.retry import BackoffSchedule

__all__ = [
    # Main
    "UploadOrchestrator",
    "TransportContext",
    # Files
    "BytesFile",
    "LocalFile",
    # Models
    "FileResult",
    "MultipartDescriptor",
    "PartAck",
    "PollStatus",
    "PresignedPostDescriptor",
    "UploadConfig",
    "UploadResult",
    "BackoffSchedule",
    # Errors
    "UploadError",
    "ConfigurationError",
    "MissingSecretError",
    "ServerOnlyError",
    "ContractError",
    "ControlPlaneError",
    "StorageProviderError",
    "PartUploadError",
    "PollTimeoutError",
    "DownloadError",
]
