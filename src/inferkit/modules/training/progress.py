"""Progress sink recording training progress on a job."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from inferkit.core.events import EventSink
from inferkit.core.logging import get_logger

from .schemas import TrainingJob

logger = get_logger(__name__)


class JobProgressSink:
    """Updates a job's progress and metrics and emits ``training:progress``."""

    def __init__(self, job: TrainingJob, events: EventSink) -> None:
        self.job = job
        self.events = events

    async def report(self, progress: float, metrics: Mapping[str, Any]) -> None:
        """Record progress clamped to [0, 100] and the latest metrics."""
        self.job.progress = min(100.0, max(0.0, float(progress)))
        self.job.metrics = dict(metrics)
        logger.debug("training.progress", job_id=self.job.job_id, progress=self.job.progress)
        await self.events.emit(
            "training:progress",
            {
                "job_id": self.job.job_id,
                "model_id": self.job.model_id,
                "progress": self.job.progress,
                "metrics": dict(metrics),
            },
        )
