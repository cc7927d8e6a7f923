"""Pydantic schemas for registered models, their configuration and training payloads."""

from __future__ import annotations

import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, computed_field


class ModelStatus(StrEnum):
    """Lifecycle status of a registry entry."""

    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ModelConfig(BaseModel):
    """Registration config; extra keys are kept for the kind's load capability."""

    kind: str = Field(description="Model kind resolved against the capability table")
    version: str = Field(default="1.0.0", description="Caller-assigned model version")
    artifact_path: str | None = Field(default=None, description="Artifact key to load the model from")
    options: dict[str, Any] = Field(default_factory=dict, description="Kind-specific load options")

    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)


class ModelMetrics(BaseModel):
    """Usage and training metrics for one model."""

    prediction_count: int = 0
    cumulative_inference_time: float = Field(default=0.0, description="Milliseconds spent in inference")
    last_used_at: datetime.datetime | None = None
    trained_accuracy: float | None = None
    trained_error: float | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def predictions(self) -> int:
        """Number of predictions served, as reported in framework metrics."""
        return self.prediction_count

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_inference_time(self) -> float:
        """Mean inference time per prediction in milliseconds."""
        if self.prediction_count == 0:
            return 0.0
        return self.cumulative_inference_time / self.prediction_count


class Model(BaseModel):
    """Registry entry owning the loaded handle."""

    model_id: str
    kind: str
    version: str
    config: ModelConfig
    status: ModelStatus = ModelStatus.LOADING
    handle: Any = Field(default=None, exclude=True, repr=False)
    error: str | None = None
    loaded_at: datetime.datetime | None = None
    metrics: ModelMetrics = Field(default_factory=ModelMetrics)

    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    _leases: int = PrivateAttr(default=0)

    def to_out(self) -> ModelOut:
        """Return the boundary-safe view of this entry."""
        return ModelOut(
            model_id=self.model_id,
            kind=self.kind,
            version=self.version,
            status=self.status,
            error=self.error,
            loaded_at=self.loaded_at,
            metrics=self.metrics.model_copy(),
        )


class ModelOut(BaseModel):
    """Model view exposed outside the registry (never carries the handle)."""

    model_id: str
    kind: str
    version: str
    status: ModelStatus
    error: str | None = None
    loaded_at: datetime.datetime | None = None
    metrics: ModelMetrics

    model_config = ConfigDict(protected_namespaces=())


class TrainingPayload(BaseModel):
    """Kind-appropriate training input produced by data preparation."""

    features: Any = None
    labels: Any = None
    validation: Any = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class TrainingResult(BaseModel):
    """Final metrics reported by a kind's train capability."""

    accuracy: float | None = None
    error: float | None = None
    loss: float | None = None
    iterations: int | None = None
    history: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")
