"""Pydantic schemas for pipelines, their steps and execution records."""

from __future__ import annotations

import datetime
from collections.abc import Callable
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, model_validator

from inferkit.core.types import JsonSafe


class StepStatus(StrEnum):
    """Status of a step definition or a step within one execution."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionStatus(StrEnum):
    """Lifecycle status of a pipeline execution."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


StepFunction = Callable[[Any, dict[str, Any]], Any]


class _StepBase(BaseModel):
    """Fields shared by every step kind."""

    name: str | None = Field(default=None, description="Display name; derived from kind and operation when unset")
    index: int = Field(default=0, ge=0, description="Position in the pipeline, assigned at creation")
    params: dict[str, Any] = Field(default_factory=dict)
    status: StepStatus = StepStatus.PENDING

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True, protected_namespaces=())

    @property
    def label(self) -> str:
        """Name used in results and errors."""
        return self.name or self._default_name()

    def _default_name(self) -> str:
        operation = getattr(self, "operation", None)
        kind = getattr(self, "kind")
        return f"{kind}:{operation}" if operation else kind


class PreprocessStep(_StepBase):
    """Preprocess with a user function or a built-in operation."""

    kind: Literal["preprocess"] = "preprocess"
    operation: Literal["normalize", "tokenize", "vectorize"] | None = None
    preprocessor: StepFunction | None = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def _require_operation(self) -> PreprocessStep:
        if self.operation is None and self.preprocessor is None:
            raise ValueError("preprocess step requires an operation or a preprocessor")
        return self


class PredictStep(_StepBase):
    """Run the current data through a registered model."""

    kind: Literal["predict"] = "predict"
    model_id: str = Field(min_length=1)
    options: dict[str, Any] = Field(default_factory=dict)

    def _default_name(self) -> str:
        return f"predict:{self.model_id}"


class TransformStep(_StepBase):
    """Transform with a user function or a built-in operation."""

    kind: Literal["transform"] = "transform"
    operation: Literal["reshape", "filter", "map"] | None = None
    transformer: StepFunction | None = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def _require_operation(self) -> TransformStep:
        if self.operation is None and self.transformer is None:
            raise ValueError("transform step requires an operation or a transformer")
        return self


class AggregateStep(_StepBase):
    """Aggregate with a user function or a built-in operation."""

    kind: Literal["aggregate"] = "aggregate"
    operation: Literal["mean", "ensemble", "vote"] | None = None
    aggregator: StepFunction | None = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def _require_operation(self) -> AggregateStep:
        if self.operation is None and self.aggregator is None:
            raise ValueError("aggregate step requires an operation or an aggregator")
        return self


class CustomStep(_StepBase):
    """Call a user function with ``(data, options)``."""

    kind: Literal["custom"] = "custom"
    execute: StepFunction = Field(exclude=True)


Step = Annotated[
    PreprocessStep | PredictStep | TransformStep | AggregateStep | CustomStep,
    Discriminator("kind"),
]


class PipelineMetrics(BaseModel):
    """Aggregate execution metrics of one pipeline."""

    executions: int = 0
    total_time: float = Field(default=0.0, description="Milliseconds spent in successful executions")
    errors: int = 0


class Pipeline(BaseModel):
    """Immutable ordered step sequence plus mutable metrics."""

    pipeline_id: str
    steps: tuple[Step, ...]
    metrics: PipelineMetrics = Field(default_factory=PipelineMetrics)
    created_at: datetime.datetime

    model_config = ConfigDict(arbitrary_types_allowed=True)


class PipelineOut(BaseModel):
    """Pipeline summary exposed at the boundary."""

    pipeline_id: str
    steps: list[str]
    metrics: PipelineMetrics
    created_at: datetime.datetime


class StepResult(BaseModel):
    """Outcome of one step within an execution."""

    step: str
    index: int
    kind: str
    status: StepStatus
    output: JsonSafe = None
    error: str | None = None


class Execution(BaseModel):
    """Record of one pipeline run."""

    execution_id: str
    pipeline_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    current_step: int | None = None
    results: list[StepResult] = Field(default_factory=list)
    output: JsonSafe = None
    error: str | None = None
    started_at: datetime.datetime
    completed_at: datetime.datetime | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class ExecuteOptions(BaseModel):
    """Execution options; extra keys are passed to user step functions and predict steps."""

    include_intermediate_results: bool = False

    model_config = ConfigDict(extra="allow")


STEP_TYPES = (PreprocessStep, PredictStep, TransformStep, AggregateStep, CustomStep)
