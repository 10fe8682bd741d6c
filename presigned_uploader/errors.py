"""
Error taxonomy for upload operations.

Every fatal error carries a stable machine-readable ``code`` and a human
message. Diagnostic detail (raw response text, the last transient failure)
is kept on ``detail``. When the failure was triggered by another exception
(a transport error, an exhausted retry) that exception is chained as
``__cause__``; plain non-2xx responses have nothing to chain.
"""
from typing import Any, Optional


class UploadError(Exception):
    """Base class for all errors surfaced to callers."""

    code = "INTERNAL_CLIENT_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        detail: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.detail = detail

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class ConfigurationError(UploadError):
    """Misconfiguration detected before any network activity."""

    code = "INTERNAL_SERVER_ERROR"


class MissingSecretError(ConfigurationError):
    code = "MISSING_ENV"


class ServerOnlyError(ConfigurationError):
    code = "INTERNAL_SERVER_ERROR"


class ContractError(UploadError):
    """Control-plane response did not match the expected shape."""

    code = "BAD_RESPONSE"


class ControlPlaneError(UploadError):
    """Control-plane request failed (transport error or non-2xx status)."""

    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, *, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class StorageProviderError(UploadError):
    """Storage provider rejected a presigned POST."""

    code = "UPLOAD_FAILED"


class PartUploadError(UploadError):
    """A multipart part could not be uploaded within the retry budget."""

    code = "UPLOAD_FAILED"

    def __init__(self, message: str, *, part_number: int, attempts: int, **kwargs):
        super().__init__(message, **kwargs)
        self.part_number = part_number
        self.attempts = attempts


class PollTimeoutError(UploadError):
    """Upload never reached the terminal status within the polling window."""

    code = "UPLOAD_FAILED"


class DownloadError(UploadError):
    code = "DOWNLOAD_FAILED"


class RetryableError(Exception):
    """Internal marker for a transient failure inside a retry loop."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
