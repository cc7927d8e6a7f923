"""Training job manager enforcing the concurrent job cap."""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from typing import Any

from ulid import ULID

from inferkit.core.concurrency import call_maybe_async
from inferkit.core.events import EventSink
from inferkit.core.exceptions import CapacityError, NotFoundError, NotReadyError, ServingError, TrainingError
from inferkit.core.logging import get_logger
from inferkit.core.settings import ServingSettings
from inferkit.modules.prediction import PredictionService
from inferkit.modules.registry import ModelRegistry, ModelStatus, TrainingPayload

from .progress import JobProgressSink
from .schemas import JobStatus, TrainingJob, TrainOptions

logger = get_logger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def _coerce_payload(prepared: Any) -> TrainingPayload:
    """Accept whatever a registered preprocessor returns as training payload."""
    if isinstance(prepared, TrainingPayload):
        return prepared
    if isinstance(prepared, Mapping) and "features" in prepared:
        return TrainingPayload.model_validate(dict(prepared))
    return TrainingPayload(features=prepared)


class TrainingJobManager:
    """Runs training jobs against registered models, at most ``max_concurrent_jobs`` at a time.

    A slot is reserved by inserting the job into the active set in the same
    synchronous block that checks the cap, so concurrent bursts cannot overshoot.
    Terminal jobs leave the active set and are only reported through events.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        events: EventSink,
        settings: ServingSettings | None = None,
        *,
        prediction: PredictionService | None = None,
    ) -> None:
        """Initialize manager; ``prediction`` supplies per-model preprocessors for data preparation."""
        self.registry = registry
        self.events = events
        self.settings = settings or ServingSettings()
        self.prediction = prediction
        self._active: dict[str, TrainingJob] = {}
        self.total_jobs = 0
        self.failed_jobs = 0

    @property
    def active_count(self) -> int:
        """Number of non-terminal jobs."""
        return len(self._active)

    def get_job(self, job_id: str) -> TrainingJob:
        """Return an active job."""
        job = self._active.get(job_id)
        if job is None:
            raise NotFoundError("Training job", job_id)
        return job

    def list_jobs(self) -> list[TrainingJob]:
        """Return all active jobs."""
        return list(self._active.values())

    def _reserve(self, model_id: str) -> TrainingJob:
        """Check the model and the cap and insert the job; must not await."""
        model = self.registry.resolve(model_id)
        if model.status != ModelStatus.READY:
            raise NotReadyError(model_id, model.status)

        limit = self.settings.max_concurrent_jobs
        if len(self._active) >= limit:
            raise CapacityError(limit)

        job = TrainingJob(job_id=f"train_{model_id}_{ULID()}", model_id=model_id, started_at=_utcnow())
        self._active[job.job_id] = job
        return job

    async def train_model(
        self,
        model_id: str,
        training_data: Any,
        options: TrainOptions | Mapping[str, Any] | None = None,
    ) -> TrainingJob:
        """Prepare data, train, record metrics and optionally save; returns the finished job."""
        if options is None:
            opts = TrainOptions()
        elif isinstance(options, TrainOptions):
            opts = options
        else:
            opts = TrainOptions.model_validate(dict(options))

        job = self._reserve(model_id)
        train_options = {
            **(opts.model_extra or {}),
            "epochs": opts.epochs or self.settings.default_epochs,
            "batch_size": opts.batch_size or self.settings.batch_size,
        }

        try:
            logger.info(
                "training.started",
                job_id=job.job_id,
                model_id=model_id,
                epochs=train_options["epochs"],
                batch_size=train_options["batch_size"],
            )
            await self.events.emit("training:started", {"job_id": job.job_id, "model_id": model_id})

            job.status = JobStatus.PREPROCESSING
            async with self.registry.lease(model_id) as model:
                kind = self.registry.kind_for(model)
                preprocessor = self.prediction.preprocessor_for(model_id) if self.prediction else None
                if preprocessor is not None:
                    payload = _coerce_payload(await call_maybe_async(preprocessor, training_data, train_options))
                else:
                    payload = await kind.prepare_training_data(model.handle, training_data, train_options)

                job.status = JobStatus.TRAINING
                result = await kind.train(model.handle, payload, train_options, JobProgressSink(job, self.events))

            self.registry.record_training(model_id, result)
            job.result = result

            if opts.save:
                job.artifact_key = await self.registry.save_model(model_id, opts.save_path)

            job.status = JobStatus.COMPLETED
            job.progress = 100.0
            job.completed_at = _utcnow()
            self.total_jobs += 1

            logger.info(
                "training.completed",
                job_id=job.job_id,
                model_id=model_id,
                accuracy=result.accuracy,
                error=result.error,
            )
            await self.events.emit(
                "training:completed",
                {"job_id": job.job_id, "model_id": model_id, "result": result.model_dump()},
            )
            return job

        except Exception as e:
            job.status = JobStatus.FAILED
            job.error = str(e)
            job.completed_at = _utcnow()
            self.failed_jobs += 1
            logger.error("training.failed", job_id=job.job_id, model_id=model_id, error=str(e))
            await self.events.emit("training:failed", {"job_id": job.job_id, "model_id": model_id, "error": str(e)})
            if isinstance(e, ServingError):
                raise
            raise TrainingError(model_id, e) from e

        finally:
            self._active.pop(job.job_id, None)
