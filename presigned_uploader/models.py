"""
Models for presigned_uploader.

Immutable dataclasses shared by the services and the orchestrator.
"""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar, Union

from .errors import UploadError
from .utils.retry import BackoffSchedule

ContentDisposition = Literal["inline", "attachment"]
ACL = Literal["public-read", "private"]

T = TypeVar("T")

TERMINAL_STATUS = "done"


@dataclass(frozen=True)
class MultipartDescriptor:
    """Chunked upload: one presigned PUT URL per part."""
    urls: List[str]
    key: str
    file_url: str
    file_type: str
    upload_id: str
    chunk_size: int
    chunk_count: int
    content_disposition: ContentDisposition = "inline"


@dataclass(frozen=True)
class PresignedPostDescriptor:
    """Single-shot upload: one presigned form POST."""
    url: str
    fields: Dict[str, str]
    key: str
    file_url: str
    content_disposition: ContentDisposition = "inline"


UploadDescriptor = Union[MultipartDescriptor, PresignedPostDescriptor]


@dataclass(frozen=True)
class PartRange:
    """Byte range ``[start, end)`` of one part; ``part_number`` is 1-based."""
    part_number: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class PartAck:
    """Storage acknowledgement for one uploaded part."""
    part_number: int
    tag: str

    def to_json(self) -> Dict[str, Any]:
        return {"tag": self.tag, "partNumber": self.part_number}


@dataclass(frozen=True)
class PollStatus:
    status: str

    @property
    def is_done(self) -> bool:
        return self.status == TERMINAL_STATUS


@dataclass(frozen=True)
class UploadResult:
    """A file that reached storage and was confirmed by the control plane."""
    key: str
    url: str
    name: str
    size: int


@dataclass(frozen=True)
class FileResult(Generic[T]):
    """Per-file outcome: exactly one of ``data`` / ``error`` is set."""
    name: str
    data: Optional[T] = None
    error: Optional[UploadError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, name: str, data: T) -> "FileResult[T]":
        return cls(name=name, data=data)

    @classmethod
    def fail(cls, name: str, error: UploadError) -> "FileResult[T]":
        return cls(name=name, error=error)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    max_concurrency: int = 10        # in-flight network calls per batch
    download_concurrency: int = 10   # in-flight GETs per download batch
    max_part_attempts: int = 10
    backoff: BackoffSchedule = field(default_factory=BackoffSchedule)
    poll_max_elapsed: Optional[float] = 60.0  # seconds, None = no bound
    request_timeout: float = 60.0

    def __post_init__(self):
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.download_concurrency < 1:
            raise ValueError("download_concurrency must be >= 1")
        if self.max_part_attempts < 1:
            raise ValueError("max_part_attempts must be >= 1")

    @classmethod
    def from_env(cls, **overrides) -> "UploadConfig":
        """Build config from UPLOADER_* environment variables."""
        values = {
            "max_concurrency": _env_int("UPLOADER_MAX_CONCURRENCY", 10),
            "download_concurrency": _env_int("UPLOADER_DOWNLOAD_CONCURRENCY", 10),
            "max_part_attempts": _env_int("UPLOADER_MAX_PART_ATTEMPTS", 10),
        }
        values.update(overrides)
        return cls(**values)
