"""Orchestrator package - batch upload coordination."""
from .core import UploadOrchestrator
from .pipeline import FilePipeline

__all__ = ["UploadOrchestrator", "FilePipeline"]
