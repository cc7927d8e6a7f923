"""Pipeline module: immutable step sequences and their execution."""

from .engine import PipelineEngine
from .schemas import (
    AggregateStep,
    CustomStep,
    ExecuteOptions,
    Execution,
    ExecutionStatus,
    Pipeline,
    PipelineMetrics,
    PipelineOut,
    PredictStep,
    PreprocessStep,
    Step,
    StepResult,
    StepStatus,
    TransformStep,
)

__all__ = [
    "AggregateStep",
    "CustomStep",
    "ExecuteOptions",
    "Execution",
    "ExecutionStatus",
    "Pipeline",
    "PipelineEngine",
    "PipelineMetrics",
    "PipelineOut",
    "PredictStep",
    "PreprocessStep",
    "Step",
    "StepResult",
    "StepStatus",
    "TransformStep",
]
