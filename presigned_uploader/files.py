"""Concrete uploadable files: in-memory payloads and files on disk."""
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_NAME = "unnamed-blob"
DEFAULT_TYPE = "application/octet-stream"


def _check_range(start: int, end: int, size: int) -> None:
    if start < 0 or end < start or end > size:
        raise ValueError(f"Invalid byte range [{start}, {end}) for size {size}")


@dataclass(frozen=True)
class BytesFile:
    """In-memory file, e.g. a downloaded body."""
    content: bytes = field(repr=False)
    name: str = DEFAULT_NAME
    type: str = DEFAULT_TYPE
    custom_id: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            object.__setattr__(self, "name", DEFAULT_NAME)

    @property
    def size(self) -> int:
        return len(self.content)

    def slice(self, start: int, end: int) -> bytes:
        _check_range(start, end, self.size)
        return self.content[start:end]


class LocalFile:
    """
    File on disk, read lazily by range.

    Size is captured at construction; the file must not change while it is
    being uploaded.
    """

    def __init__(
        self,
        path: Path,
        name: Optional[str] = None,
        type: Optional[str] = None,
        custom_id: Optional[str] = None,
    ):
        self.path = Path(path)
        self.name = name or self.path.name or DEFAULT_NAME
        self.type = type or mimetypes.guess_type(self.name)[0] or DEFAULT_TYPE
        self.custom_id = custom_id
        self.size = self.path.stat().st_size

    def slice(self, start: int, end: int) -> bytes:
        _check_range(start, end, self.size)
        with open(self.path, "rb") as f:
            f.seek(start)
            return f.read(end - start)

    def __repr__(self) -> str:
        return f"LocalFile(path={str(self.path)!r}, size={self.size})"
