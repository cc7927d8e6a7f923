"""Serving facade wiring registry, prediction, pipelines, training and the batch queue."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from inferkit.core.events import EventBus, EventSink
from inferkit.core.logging import get_logger
from inferkit.core.settings import ServingSettings
from inferkit.modules.artifact import ArtifactStore
from inferkit.modules.batch import BatchInferenceQueue
from inferkit.modules.pipeline import ExecuteOptions, Execution, Pipeline, PipelineEngine, Step
from inferkit.modules.prediction import (
    InMemoryPredictionCache,
    PredictionCache,
    PredictionService,
    PredictOptions,
    Processor,
)
from inferkit.modules.registry import BaseModelKind, Model, ModelConfig, ModelOut, ModelRegistry
from inferkit.modules.training import TrainingJob, TrainingJobManager, TrainOptions

from .schemas import FrameworkMetrics

logger = get_logger(__name__)


class ServingManager:
    """Explicitly constructed owner of every serving component; one per application."""

    def __init__(
        self,
        kinds: Iterable[BaseModelKind] | Mapping[str, BaseModelKind],
        *,
        settings: ServingSettings | None = None,
        events: EventSink | None = None,
        artifacts: ArtifactStore | None = None,
        cache: PredictionCache | None = None,
    ) -> None:
        """Build the component graph from the kind table and optional collaborators."""
        self.settings = settings or ServingSettings()
        self.events: EventSink = events if events is not None else EventBus()
        self.registry = ModelRegistry(kinds, events=self.events, artifacts=artifacts)
        self.prediction = PredictionService(
            self.registry,
            self.events,
            cache=cache if cache is not None else InMemoryPredictionCache(),
            default_ttl=self.settings.cache_ttl,
        )
        self.pipelines = PipelineEngine(self.prediction, self.events)
        self.training = TrainingJobManager(self.registry, self.events, self.settings, prediction=self.prediction)
        self.queue = BatchInferenceQueue(
            self.prediction,
            self.events,
            max_batch_size=self.settings.max_batch_size,
            retry_delay=self.settings.queue_retry_delay,
        )

    async def register_model(self, model_id: str, config: ModelConfig | Mapping[str, Any]) -> Model:
        """Load and register a model."""
        return await self.registry.register(model_id, config)

    async def unregister_model(self, model_id: str) -> None:
        """Unregister a model once in-flight calls have finished."""
        await self.registry.unregister(model_id)

    def register_preprocessor(self, model_id: str, func: Processor) -> None:
        """Set a model's input preprocessor (also used to prepare its training data)."""
        self.prediction.register_preprocessor(model_id, func)

    def register_postprocessor(self, model_id: str, func: Processor) -> None:
        """Set a model's output postprocessor."""
        self.prediction.register_postprocessor(model_id, func)

    async def predict(
        self,
        model_id: str,
        data: Any,
        options: PredictOptions | Mapping[str, Any] | None = None,
    ) -> Any:
        """Run one prediction."""
        return await self.prediction.predict(model_id, data, options)

    def create_pipeline(self, pipeline_id: str, steps: Sequence[Step | Mapping[str, Any]]) -> Pipeline:
        """Create an immutable pipeline."""
        return self.pipelines.create_pipeline(pipeline_id, steps)

    async def execute_pipeline(
        self,
        pipeline_id: str,
        data: Any,
        options: ExecuteOptions | Mapping[str, Any] | None = None,
    ) -> Execution:
        """Execute a pipeline."""
        return await self.pipelines.execute(pipeline_id, data, options)

    async def train_model(
        self,
        model_id: str,
        training_data: Any,
        options: TrainOptions | Mapping[str, Any] | None = None,
    ) -> TrainingJob:
        """Run a training job to completion."""
        return await self.training.train_model(model_id, training_data, options)

    async def queue_inference(
        self,
        model_id: str,
        data: Any,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Submit a request to the batch queue and wait for its result."""
        return await self.queue.queue_inference(model_id, data, options)

    async def save_model(self, model_id: str, path: str | None = None) -> str:
        """Persist a model to the artifact store and return its key."""
        return await self.registry.save_model(model_id, path)

    def list_models(self) -> list[ModelOut]:
        """Return every registry entry."""
        return self.registry.list_models()

    def get_job(self, job_id: str) -> TrainingJob:
        """Return an active training job."""
        return self.training.get_job(job_id)

    def get_metrics(self) -> FrameworkMetrics:
        """Collect serving-wide and per-model metrics."""
        models = self.registry.list_models()
        return FrameworkMetrics(
            total_predictions=self.registry.total_predictions,
            total_training_jobs=self.training.total_jobs,
            failed_training_jobs=self.training.failed_jobs,
            average_inference_time=self.registry.average_inference_time,
            model_accuracies={
                m.model_id: m.metrics.trained_accuracy for m in models if m.metrics.trained_accuracy is not None
            },
            models={m.model_id: m.metrics for m in models},
            active_jobs=self.training.active_count,
            total_models=len(models),
            total_pipelines=len(self.pipelines),
            queue_depth=self.queue.pending,
        )

    async def shutdown(self) -> None:
        """Close the queue and unregister every model."""
        logger.info("serving.shutdown", models=len(self.registry), pending=self.queue.pending)
        await self.queue.close()
        await self.registry.shutdown()
