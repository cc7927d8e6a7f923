"""Inferkit - async model serving with pipelines, training jobs and batched inference."""

# Core framework
from inferkit.core import (
    EventBus,
    ServingError,
    ServingSettings,
    configure_logging,
    get_logger,
)

# Artifact storage
from inferkit.modules.artifact import ArtifactStore, DatabaseArtifactStore, FileArtifactStore

# Batch queue
from inferkit.modules.batch import BatchInferenceQueue

# Pipelines
from inferkit.modules.pipeline import Execution, Pipeline, PipelineEngine

# Prediction
from inferkit.modules.prediction import InMemoryPredictionCache, PredictionService

# Model registry
from inferkit.modules.registry import (
    BaseModelKind,
    CustomModelKind,
    FunctionalModelKind,
    Model,
    ModelConfig,
    ModelRegistry,
    ModelStatus,
    TrainingPayload,
    TrainingResult,
)

# Serving facade
from inferkit.modules.serving import FrameworkMetrics, ServingManager

# Training
from inferkit.modules.training import JobStatus, TrainingJob, TrainingJobManager

__all__ = [
    # Core framework
    "EventBus",
    "ServingError",
    "ServingSettings",
    "configure_logging",
    "get_logger",
    # Model registry
    "BaseModelKind",
    "CustomModelKind",
    "FunctionalModelKind",
    "Model",
    "ModelConfig",
    "ModelRegistry",
    "ModelStatus",
    "TrainingPayload",
    "TrainingResult",
    # Prediction
    "InMemoryPredictionCache",
    "PredictionService",
    # Pipelines
    "Execution",
    "Pipeline",
    "PipelineEngine",
    # Training
    "JobStatus",
    "TrainingJob",
    "TrainingJobManager",
    # Batch queue
    "BatchInferenceQueue",
    # Artifact storage
    "ArtifactStore",
    "DatabaseArtifactStore",
    "FileArtifactStore",
    # Serving facade
    "FrameworkMetrics",
    "ServingManager",
]
