"""Shared helpers."""
from .concurrency import bounded
from .retry import BackoffSchedule, retry_async

__all__ = ["BackoffSchedule", "bounded", "retry_async"]
