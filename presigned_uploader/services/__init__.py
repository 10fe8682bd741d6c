"""Services for presigned_uploader."""
from .api_client import ControlPlaneClient
from .downloader import Downloader, filename_from_url
from .multipart import MultipartUploadExecutor, PartUploader, split_into_parts
from .poller import CompletionPoller
from .presigned import PresignedUpload, PresignedUrlRequester, decode_descriptor
from .presigned_post import PresignedPostUploadExecutor, build_form

__all__ = [
    "ControlPlaneClient",
    "Downloader",
    "filename_from_url",
    "MultipartUploadExecutor",
    "PartUploader",
    "split_into_parts",
    "CompletionPoller",
    "PresignedUpload",
    "PresignedUrlRequester",
    "decode_descriptor",
    "PresignedPostUploadExecutor",
    "build_form",
]
