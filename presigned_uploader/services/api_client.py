"""HTTP adapter for control-plane API operations."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from ..context import TransportContext
from ..errors import ContractError, ControlPlaneError
from ..utils.concurrency import bounded

logger = logging.getLogger(__name__)

STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "FORBIDDEN",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    413: "TOO_LARGE",
    429: "TOO_MANY_REQUESTS",
}


class ControlPlaneClient:
    """
    JSON client for the control plane.

    Every request carries the context headers. No retries here: callers
    decide whether a failure is transient.
    """

    def __init__(self, context: TransportContext, limiter: Optional[asyncio.Semaphore] = None):
        self._context = context
        self._limiter = limiter

    async def post(self, endpoint: str, json: Any) -> httpx.Response:
        return await self._request("POST", endpoint, json=json)

    async def get(self, endpoint: str) -> httpx.Response:
        return await self._request("GET", endpoint)

    async def post_json(self, endpoint: str, json: Any) -> Any:
        return self._decode(await self.post(endpoint, json), "POST", endpoint)

    async def get_json(self, endpoint: str) -> Any:
        return self._decode(await self.get(endpoint), "GET", endpoint)

    async def _request(self, method: str, endpoint: str, json: Any = None) -> httpx.Response:
        url = self._context.url(endpoint)
        headers = dict(self._context.headers)
        try:
            async with bounded(self._limiter):
                response = await self._context.client.request(
                    method, url, json=json, headers=headers
                )
        except httpx.HTTPError as exc:
            raise ControlPlaneError(
                f"Request failed on {method} {endpoint}: {exc}",
                detail=str(exc),
            ) from exc

        if response.status_code >= 400:
            try:
                error_detail = response.json()
            except ValueError:
                error_detail = response.text
            raise ControlPlaneError(
                f"API error {response.status_code} on {method} {endpoint}",
                code=STATUS_CODES.get(response.status_code, "INTERNAL_SERVER_ERROR"),
                status_code=response.status_code,
                detail=error_detail,
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response, method: str, endpoint: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ContractError(
                f"Invalid JSON from {method} {endpoint}",
                detail=response.text,
            ) from exc
