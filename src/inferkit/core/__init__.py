"""Core framework: database, errors, events, logging, settings and types."""

from .database import Base, Database
from .events import ALL_EVENTS, EventBus, EventSink
from .exceptions import (
    CapacityError,
    DuplicateError,
    DuplicateModelError,
    DuplicatePipelineError,
    InvalidPipelineError,
    ModelLoadError,
    NotFoundError,
    NotReadyError,
    PipelineStepError,
    PredictionError,
    QueueClosedError,
    ServingError,
    TrainingError,
    UnsupportedKindError,
)
from .logging import configure_logging, get_logger
from .settings import ServingSettings
from .types import JsonSafe, ULIDType

__all__ = [
    # Database
    "Base",
    "Database",
    "ULIDType",
    "JsonSafe",
    # Events
    "ALL_EVENTS",
    "EventBus",
    "EventSink",
    # Errors
    "ServingError",
    "NotFoundError",
    "NotReadyError",
    "DuplicateError",
    "DuplicateModelError",
    "DuplicatePipelineError",
    "CapacityError",
    "UnsupportedKindError",
    "ModelLoadError",
    "PredictionError",
    "TrainingError",
    "InvalidPipelineError",
    "PipelineStepError",
    "QueueClosedError",
    # Logging and settings
    "configure_logging",
    "get_logger",
    "ServingSettings",
]
