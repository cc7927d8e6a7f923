"""Pydantic schemas for the serving facade and its HTTP boundary."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from inferkit.core.types import JsonSafe
from inferkit.modules.pipeline import ExecuteOptions
from inferkit.modules.prediction import PredictOptions
from inferkit.modules.registry import ModelMetrics, ModelOut
from inferkit.modules.training import PandasDataFrame, TrainOptions


class FrameworkMetrics(BaseModel):
    """Snapshot of serving-wide counters."""

    total_predictions: int
    total_training_jobs: int
    failed_training_jobs: int
    average_inference_time: float = Field(description="Milliseconds per prediction across all models")
    model_accuracies: dict[str, float] = Field(default_factory=dict)
    models: dict[str, ModelMetrics] = Field(default_factory=dict)
    active_jobs: int
    total_models: int
    total_pipelines: int
    queue_depth: int

    model_config = ConfigDict(protected_namespaces=())


class RegisterModelRequest(BaseModel):
    """Register a model from a JSON-describable config."""

    model_id: str = Field(min_length=1)
    kind: str
    version: str = "1.0.0"
    artifact_path: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(protected_namespaces=())


class PredictRequest(BaseModel):
    """Input for a direct or queued prediction."""

    input: Any
    options: PredictOptions = Field(default_factory=PredictOptions)


class PredictResponse(BaseModel):
    """Prediction output for one input."""

    model_id: str
    output: JsonSafe

    model_config = ConfigDict(protected_namespaces=())


class TrainRequest(BaseModel):
    """Tabular training data plus options."""

    data: PandasDataFrame
    options: TrainOptions = Field(default_factory=TrainOptions)


class ExecutePipelineRequest(BaseModel):
    """Input for one pipeline execution."""

    input: Any
    options: ExecuteOptions = Field(default_factory=ExecuteOptions)


class ModelList(BaseModel):
    """All registered models."""

    models: list[ModelOut]
