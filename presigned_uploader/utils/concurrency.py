"""Concurrency ceiling helpers."""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional


@asynccontextmanager
async def bounded(limiter: Optional[asyncio.Semaphore]) -> AsyncIterator[None]:
    """Hold one slot of ``limiter`` for the duration of a network call."""
    if limiter is None:
        yield
        return
    async with limiter:
        yield
