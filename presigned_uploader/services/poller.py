"""
Completion Poller - wait for the control plane to report an upload as done.

States: polling -> done. Only the literal status "done" is terminal; any
other status sleeps for the next backoff delay and polls again. Transport
failures are fatal, never "keep polling".
"""
from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional
from urllib.parse import quote

from ..errors import ContractError, PollTimeoutError
from ..models import PollStatus, UploadConfig
from ..utils.retry import Sleep
from .api_client import ControlPlaneClient

logger = logging.getLogger(__name__)

POLL_UPLOAD_ENDPOINT = "/api/pollUpload/{key}"


class CompletionPoller:
    """Polls ``/api/pollUpload/{key}`` until the upload is finished."""

    def __init__(
        self,
        api: ControlPlaneClient,
        config: Optional[UploadConfig] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._api = api
        self._config = config or UploadConfig()
        self._sleep = sleep

    async def poll_once(self, key: str) -> PollStatus:
        payload = await self._api.get_json(POLL_UPLOAD_ENDPOINT.format(key=quote(key, safe="")))
        status = payload.get("status") if isinstance(payload, Mapping) else None
        if not isinstance(status, str):
            raise ContractError(f"Poll response for {key} has no status", detail=payload)
        return PollStatus(status=status)

    async def wait_until_done(self, key: str) -> int:
        """
        Poll until terminal.

        Returns:
            Number of poll requests issued

        Raises:
            PollTimeoutError: total backoff would exceed ``poll_max_elapsed``
            ControlPlaneError: a poll request failed
        """
        backoff = self._config.backoff
        max_elapsed = self._config.poll_max_elapsed
        waited = 0.0
        attempt = 0

        while True:
            result = await self.poll_once(key)
            attempt += 1
            if result.is_done:
                logger.debug(f"Upload {key} is done after {attempt} poll(s)")
                return attempt

            delay = backoff.delay(attempt - 1)
            if max_elapsed is not None and waited + delay > max_elapsed:
                raise PollTimeoutError(
                    f"Upload {key} not done after {attempt} polls",
                    detail={"last_status": result.status, "waited": waited},
                )
            logger.debug(
                "Upload %s status is %r, polling again in %.3fs", key, result.status, delay
            )
            await self._sleep(delay)
            waited += delay
