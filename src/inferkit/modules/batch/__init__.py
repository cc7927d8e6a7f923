"""Batch module: queued inference grouped per model."""

from .queue import BatchInferenceQueue
from .schemas import QueuedInferenceRequest

__all__ = ["BatchInferenceQueue", "QueuedInferenceRequest"]
