"""Transport context shared read-only by every concurrent task of a batch."""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import httpx

from .config import generate_url, resolve_api_url


@dataclass(frozen=True)
class TransportContext:
    """
    Injected HTTP capability plus outgoing control-plane headers.

    Attributes:
        client: Async HTTP client used for every request
        headers: Headers attached to control-plane requests only
        api_url: Control-plane base URL
    """
    client: httpx.AsyncClient
    headers: Mapping[str, str] = field(default_factory=dict)
    api_url: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "api_url", resolve_api_url(self.api_url))

    def url(self, path: str) -> str:
        return generate_url(path, self.api_url)
