"""
Environment-derived settings: API secret, control-plane URL, server guard.

Nothing here touches the network; every check runs before the first request.
"""
import os
import sys
from typing import Optional

from .errors import MissingSecretError, ServerOnlyError

SECRET_ENV = "UPLOADER_SECRET"
API_URL_ENV = "UPLOADER_API_URL"
DEFAULT_API_URL = "http://127.0.0.1:8787"

# Runtimes where the code executes inside a browser tab
_BROWSER_PLATFORMS = {"emscripten", "wasi"}


def guard_server_only() -> None:
    """Refuse to run where the API secret would be exposed to end users."""
    if sys.platform in _BROWSER_PLATFORMS:
        raise ServerOnlyError("The upload API can only be used on the server.")


def get_api_key_or_throw(api_key: Optional[str] = None) -> str:
    if api_key:
        return api_key
    env_key = os.getenv(SECRET_ENV)
    if env_key:
        return env_key
    raise MissingSecretError(f"Missing `{SECRET_ENV}` env variable.")


def resolve_api_url(api_url: Optional[str] = None) -> str:
    """Control-plane base URL: explicit value, then env, then the local default."""
    url = api_url or os.getenv(API_URL_ENV) or DEFAULT_API_URL
    return url.rstrip("/")


def generate_url(path: str, api_url: Optional[str] = None) -> str:
    """
    Build an absolute control-plane URL.

    Args:
        path: Endpoint path, e.g. "/api/uploadFiles"
        api_url: Base URL override

    Returns:
        Absolute URL string
    """
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{resolve_api_url(api_url)}{path}"
