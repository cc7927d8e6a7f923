"""Error taxonomy shared by every serving component."""

from __future__ import annotations

from typing import Any


class ServingError(Exception):
    """Base class for all inferkit errors with a stable error kind."""

    error_kind: str = "serving_error"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Return the boundary-safe representation (kind and message only)."""
        return {"error": self.error_kind, "message": self.message}


class NotFoundError(ServingError):
    """Unknown model, pipeline or job id."""

    error_kind = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class NotReadyError(ServingError):
    """Model exists but is not in the ready state."""

    error_kind = "not_ready"
    status_code = 409

    def __init__(self, model_id: str, status: str) -> None:
        super().__init__(f"Model not ready: {model_id} (status={status})")
        self.model_id = model_id
        self.status = status


class DuplicateError(ServingError):
    """An entity with the same id already exists."""

    error_kind = "duplicate"
    status_code = 409


class DuplicateModelError(DuplicateError):
    """Model id is already registered."""

    def __init__(self, model_id: str) -> None:
        super().__init__(f"Model already registered: {model_id}")
        self.model_id = model_id


class DuplicatePipelineError(DuplicateError):
    """Pipeline id is already in use."""

    def __init__(self, pipeline_id: str) -> None:
        super().__init__(f"Pipeline already exists: {pipeline_id}")
        self.pipeline_id = pipeline_id


class CapacityError(ServingError):
    """Training concurrency cap reached."""

    error_kind = "capacity"
    status_code = 429

    def __init__(self, limit: int) -> None:
        super().__init__(f"Maximum concurrent training jobs reached ({limit})")
        self.limit = limit


class UnsupportedKindError(ServingError):
    """No capability is registered for the requested model kind."""

    error_kind = "unsupported_kind"
    status_code = 400

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unsupported model kind: {kind}")
        self.kind = kind


class ModelLoadError(ServingError):
    """The kind's load capability failed."""

    error_kind = "model_load_failed"

    def __init__(self, model_id: str, cause: BaseException) -> None:
        super().__init__(f"Failed to load model {model_id}: {cause}")
        self.model_id = model_id
        self.cause = cause


class PredictionError(ServingError):
    """Pre-processing, inference or post-processing failed for a model."""

    error_kind = "prediction_failed"

    def __init__(self, model_id: str, cause: BaseException) -> None:
        super().__init__(f"Prediction failed for model {model_id}: {cause}")
        self.model_id = model_id
        self.cause = cause


class TrainingError(ServingError):
    """A training job failed."""

    error_kind = "training_failed"

    def __init__(self, model_id: str, cause: BaseException) -> None:
        super().__init__(f"Training failed for model {model_id}: {cause}")
        self.model_id = model_id
        self.cause = cause


class InvalidPipelineError(ServingError):
    """Pipeline definition rejected at creation time."""

    error_kind = "invalid_pipeline"
    status_code = 400


class PipelineStepError(ServingError):
    """A pipeline step raised; wraps the original error with step name and index."""

    error_kind = "pipeline_step_failed"

    def __init__(self, step_name: str, index: int, cause: BaseException, execution: Any = None) -> None:
        super().__init__(f"Pipeline step {index} ({step_name}) failed: {cause}")
        self.step_name = step_name
        self.index = index
        self.cause = cause
        self.execution = execution


class QueueClosedError(ServingError):
    """The batch inference queue no longer accepts or processes requests."""

    error_kind = "queue_closed"
    status_code = 503

    def __init__(self) -> None:
        super().__init__("Inference queue is closed")
