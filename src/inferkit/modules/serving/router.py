"""REST API router for the serving operations."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Response, status
from opentelemetry import metrics

from inferkit.core.api.router import Router
from inferkit.modules.pipeline import Execution
from inferkit.modules.registry import ModelConfig, ModelOut
from inferkit.modules.training import TrainingJob

from .manager import ServingManager
from .schemas import (
    ExecutePipelineRequest,
    FrameworkMetrics,
    ModelList,
    PredictRequest,
    PredictResponse,
    RegisterModelRequest,
    TrainRequest,
)

# Lazily initialized counters (created on first use so a configured meter provider is picked up)
_predict_counter = None
_train_counter = None
_pipeline_counter = None


def _get_counters() -> tuple[Any, Any, Any]:
    """Get or create serving counters."""
    global _predict_counter, _train_counter, _pipeline_counter

    if _predict_counter is None:
        meter = metrics.get_meter("inferkit.serving")
        _predict_counter = meter.create_counter(
            name="inferkit_predictions_total",
            description="Total number of predictions served",
            unit="1",
        )
        _train_counter = meter.create_counter(
            name="inferkit_train_jobs_total",
            description="Total number of training jobs completed",
            unit="1",
        )
        _pipeline_counter = meter.create_counter(
            name="inferkit_pipeline_executions_total",
            description="Total number of pipeline executions completed",
            unit="1",
        )

    return _predict_counter, _train_counter, _pipeline_counter


class ServingRouter(Router):
    """Router exposing model registration, prediction, training, pipelines and metrics."""

    def __init__(
        self,
        prefix: str,
        tags: list[str],
        manager_factory: Any,
        **kwargs: Any,
    ) -> None:
        """Initialize serving router with a dependency returning the ServingManager."""
        self.manager_factory = manager_factory
        super().__init__(prefix=prefix, tags=tags, **kwargs)

    def _register_routes(self) -> None:
        """Register serving routes."""
        manager_factory = self.manager_factory

        @self.router.post(
            "/models/$register",
            response_model=ModelOut,
            status_code=status.HTTP_201_CREATED,
            summary="Register model",
        )
        async def register_model(
            request: RegisterModelRequest,
            manager: ServingManager = Depends(manager_factory),
        ) -> ModelOut:
            config = ModelConfig(
                kind=request.kind,
                version=request.version,
                artifact_path=request.artifact_path,
                options=request.options,
            )
            model = await manager.register_model(request.model_id, config)
            return model.to_out()

        @self.router.delete(
            "/models/{model_id}",
            status_code=status.HTTP_204_NO_CONTENT,
            summary="Unregister model",
        )
        async def unregister_model(
            model_id: str,
            manager: ServingManager = Depends(manager_factory),
        ) -> Response:
            await manager.unregister_model(model_id)
            return Response(status_code=status.HTTP_204_NO_CONTENT)

        @self.router.get("/models", response_model=ModelList, summary="List models")
        async def list_models(manager: ServingManager = Depends(manager_factory)) -> ModelList:
            return ModelList(models=manager.list_models())

        @self.router.post(
            "/models/{model_id}/$predict",
            response_model=PredictResponse,
            summary="Predict",
            description="Run one prediction synchronously",
        )
        async def predict(
            model_id: str,
            request: PredictRequest,
            manager: ServingManager = Depends(manager_factory),
        ) -> PredictResponse:
            output = await manager.predict(model_id, request.input, request.options)
            predict_counter, _, _ = _get_counters()
            predict_counter.add(1, {"model_id": model_id})
            return PredictResponse(model_id=model_id, output=output)

        @self.router.post(
            "/models/{model_id}/$queue",
            response_model=PredictResponse,
            summary="Queued predict",
            description="Run one prediction through the batch inference queue",
        )
        async def queue_predict(
            model_id: str,
            request: PredictRequest,
            manager: ServingManager = Depends(manager_factory),
        ) -> PredictResponse:
            output = await manager.queue_inference(model_id, request.input, request.options.model_dump())
            predict_counter, _, _ = _get_counters()
            predict_counter.add(1, {"model_id": model_id})
            return PredictResponse(model_id=model_id, output=output)

        @self.router.post(
            "/models/{model_id}/$train",
            response_model=TrainingJob,
            summary="Train model",
            description="Train a model on tabular data and return the finished job",
        )
        async def train(
            model_id: str,
            request: TrainRequest,
            manager: ServingManager = Depends(manager_factory),
        ) -> TrainingJob:
            job = await manager.train_model(model_id, request.data.to_dataframe(), request.options)
            _, train_counter, _ = _get_counters()
            train_counter.add(1, {"model_id": model_id})
            return job

        @self.router.post(
            "/pipelines/{pipeline_id}/$execute",
            response_model=Execution,
            summary="Execute pipeline",
        )
        async def execute_pipeline(
            pipeline_id: str,
            request: ExecutePipelineRequest,
            manager: ServingManager = Depends(manager_factory),
        ) -> Execution:
            execution = await manager.execute_pipeline(pipeline_id, request.input, request.options)
            _, _, pipeline_counter = _get_counters()
            pipeline_counter.add(1, {"pipeline_id": pipeline_id})
            return execution

        @self.router.get("/metrics", response_model=FrameworkMetrics, summary="Serving metrics")
        async def get_metrics(manager: ServingManager = Depends(manager_factory)) -> FrameworkMetrics:
            return manager.get_metrics()
