"""Model registry owning loaded model handles, their status and usage metrics."""

from __future__ import annotations

import asyncio
import datetime
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from typing import Any

from inferkit.core.events import EventBus, EventSink
from inferkit.core.exceptions import (
    DuplicateModelError,
    ModelLoadError,
    NotFoundError,
    NotReadyError,
    UnsupportedKindError,
)
from inferkit.core.logging import get_logger
from inferkit.modules.artifact import ArtifactStore

from .kinds import BaseModelKind, build_kind_table
from .schemas import Model, ModelConfig, ModelOut, ModelStatus, TrainingResult

logger = get_logger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class ModelRegistry:
    """Single source of truth for model state; every mutation goes through its methods.

    All mutations run on the event loop without a suspension point between the
    check and the write, so they are atomic with respect to other tasks. Callers
    that use a handle take a lease; ``unregister`` waits for leases to drain
    before disposing the handle.
    """

    def __init__(
        self,
        kinds: Iterable[BaseModelKind] | Mapping[str, BaseModelKind],
        *,
        events: EventSink | None = None,
        artifacts: ArtifactStore | None = None,
    ) -> None:
        """Initialize registry with the kind capability table and optional collaborators."""
        self._kinds = build_kind_table(kinds)
        self._models: dict[str, Model] = {}
        self._lease_released = asyncio.Condition()
        self.events: EventSink = events if events is not None else EventBus()
        self.artifacts = artifacts
        self.total_predictions = 0
        self.total_inference_time = 0.0

    # ------------------------------------------------------------------ lifecycle

    async def register(self, model_id: str, config: ModelConfig | Mapping[str, Any]) -> Model:
        """Load a model through its kind's capability and make it addressable once ready."""
        if not isinstance(config, ModelConfig):
            config = ModelConfig.model_validate(dict(config))

        kind = self._kinds.get(config.kind)
        if kind is None:
            raise UnsupportedKindError(config.kind)

        existing = self._models.get(model_id)
        if existing is not None and existing.status != ModelStatus.FAILED:
            raise DuplicateModelError(model_id)

        model = Model(model_id=model_id, kind=config.kind, version=config.version, config=config)
        self._models[model_id] = model
        logger.info("model.loading", model_id=model_id, kind=config.kind, version=config.version)

        try:
            artifact = await self._load_artifact(config)
            handle = await kind.load(config, artifact)
            if handle is None:
                raise ValueError(f"Model kind '{config.kind}' returned no handle")
        except Exception as e:
            model.status = ModelStatus.FAILED
            model.error = str(e)
            logger.error("model.load_failed", model_id=model_id, kind=config.kind, error=str(e))
            await self.events.emit("model:failed", {"model_id": model_id, "kind": config.kind, "error": str(e)})
            raise ModelLoadError(model_id, e) from e

        if self._models.get(model_id) is not model:
            # Unregistered while loading
            await kind.dispose(handle)
            raise NotFoundError("Model", model_id)

        model.handle = handle
        model.loaded_at = _utcnow()
        model.status = ModelStatus.READY

        logger.info("model.registered", model_id=model_id, kind=config.kind, version=config.version)
        await self.events.emit(
            "model:registered",
            {"model_id": model_id, "kind": config.kind, "version": config.version},
        )
        return model

    async def _load_artifact(self, config: ModelConfig) -> bytes | None:
        """Read the artifact named by the config, if any."""
        if config.artifact_path is None:
            return None
        if self.artifacts is None:
            raise RuntimeError("Loading from an artifact requires an artifact store")
        return await self.artifacts.load(config.artifact_path)

    async def unregister(self, model_id: str) -> None:
        """Remove a model, wait for in-flight users and release its handle."""
        model = self._models.pop(model_id, None)
        if model is None:
            raise NotFoundError("Model", model_id)

        async with self._lease_released:
            await self._lease_released.wait_for(lambda: model._leases == 0)

        handle = model.handle
        model.handle = None
        if handle is not None:
            await self._kinds[model.kind].dispose(handle)

        logger.info("model.unregistered", model_id=model_id)
        await self.events.emit("model:unregistered", {"model_id": model_id})

    async def shutdown(self) -> None:
        """Unregister every model."""
        for model_id in list(self._models):
            try:
                await self.unregister(model_id)
            except NotFoundError:
                # Removed concurrently
                continue

    # ------------------------------------------------------------------ lookup

    def resolve(self, model_id: str) -> Model:
        """Return the entry by identity regardless of status."""
        model = self._models.get(model_id)
        if model is None:
            raise NotFoundError("Model", model_id)
        return model

    def get(self, model_id: str) -> Model:
        """Return a ready model."""
        model = self.resolve(model_id)
        if model.status != ModelStatus.READY:
            raise NotReadyError(model_id, model.status)
        return model

    def kind_for(self, model: Model) -> BaseModelKind:
        """Return the capability object for the model's kind."""
        return self._kinds[model.kind]

    @asynccontextmanager
    async def lease(self, model_id: str) -> AsyncIterator[Model]:
        """Pin a ready model for the duration of the block."""
        model = self.get(model_id)
        model._leases += 1
        try:
            yield model
        finally:
            model._leases -= 1
            if model._leases == 0:
                async with self._lease_released:
                    self._lease_released.notify_all()

    def list_models(self) -> list[ModelOut]:
        """Return boundary-safe views of all entries."""
        return [model.to_out() for model in self._models.values()]

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    @property
    def kinds(self) -> list[str]:
        """Names of the registered model kinds."""
        return sorted(self._kinds)

    # ------------------------------------------------------------------ metrics

    def record_usage(self, model_id: str, inference_time_ms: float, count: int = 1) -> None:
        """Add ``count`` predictions taking ``inference_time_ms`` in total to the model's metrics."""
        model = self._models.get(model_id)
        if model is None:
            logger.warning("model.usage_for_unknown_model", model_id=model_id)
            return

        model.metrics.prediction_count += count
        model.metrics.cumulative_inference_time += inference_time_ms
        model.metrics.last_used_at = _utcnow()
        self.total_predictions += count
        self.total_inference_time += inference_time_ms

    def record_training(self, model_id: str, result: TrainingResult) -> None:
        """Store final training metrics on the model."""
        model = self.resolve(model_id)
        model.metrics.trained_accuracy = result.accuracy
        model.metrics.trained_error = result.error

    @property
    def average_inference_time(self) -> float:
        """Mean inference time across all models in milliseconds."""
        if self.total_predictions == 0:
            return 0.0
        return self.total_inference_time / self.total_predictions

    # ------------------------------------------------------------------ persistence

    async def save_model(self, model_id: str, path: str | None = None) -> str:
        """Serialize a ready model via its kind and write it to the artifact store."""
        if self.artifacts is None:
            raise RuntimeError("Saving a model requires an artifact store")

        key = path or model_id
        async with self.lease(model_id) as model:
            data = await self.kind_for(model).save(model.handle)

        await self.artifacts.save(key, data)
        logger.info("model.saved", model_id=model_id, key=key, size_bytes=len(data))
        return key
