"""
Protocols (Interfaces) for Dependency Inversion.

Small, focused interfaces for the values the services consume.
"""
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class IUploadableFile(Protocol):
    """A file that can be sent to storage in whole or by byte range."""

    name: str
    type: str
    size: int
    custom_id: Optional[str]

    def slice(self, start: int, end: int) -> bytes:
        """Return bytes in ``[start, end)``."""
        ...
