"""Model registry module: model kinds, registry entries and lifecycle."""

from .kinds import (
    BaseModelKind,
    CustomModelKind,
    FunctionalModelKind,
    ProgressSink,
    ThreadProgressAdapter,
    build_kind_table,
    default_training_payload,
)
from .registry import ModelRegistry
from .schemas import Model, ModelConfig, ModelMetrics, ModelOut, ModelStatus, TrainingPayload, TrainingResult

__all__ = [
    "BaseModelKind",
    "CustomModelKind",
    "FunctionalModelKind",
    "Model",
    "ModelConfig",
    "ModelMetrics",
    "ModelOut",
    "ModelRegistry",
    "ModelStatus",
    "ProgressSink",
    "ThreadProgressAdapter",
    "TrainingPayload",
    "TrainingResult",
    "build_kind_table",
    "default_training_payload",
]
