"""Model kind capabilities: load, infer, train, save and dispose for one computation family."""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Protocol

import pandas as pd

from inferkit.core.concurrency import call_maybe_async

from .schemas import ModelConfig, TrainingPayload, TrainingResult

LoadFunction = Callable[[ModelConfig, bytes | None], Any]
InferFunction = Callable[[Any, Any], Any]
InferBatchFunction = Callable[[Any, list[Any]], Any]
TrainFunction = Callable[[Any, TrainingPayload, Mapping[str, Any], Any], Any]
SaveFunction = Callable[[Any], Any]
DisposeFunction = Callable[[Any], Any]


class ProgressSink(Protocol):
    """Observer receiving training progress as a percentage plus the latest metrics."""

    async def report(self, progress: float, metrics: Mapping[str, Any]) -> None:
        """Record progress in [0, 100] with current metrics."""
        ...


class ThreadProgressAdapter:
    """Synchronous progress reporter for train functions running in a worker thread."""

    def __init__(self, sink: ProgressSink, loop: asyncio.AbstractEventLoop) -> None:
        self._sink = sink
        self._loop = loop

    def report(self, progress: float, metrics: Mapping[str, Any]) -> None:
        """Forward a report to the event loop and block until it has been recorded."""
        asyncio.run_coroutine_threadsafe(self._sink.report(progress, metrics), self._loop).result()


class BaseModelKind(ABC):
    """Abstract capability set for one model kind, keyed in the kind table by ``name``."""

    name: str

    @abstractmethod
    async def load(self, config: ModelConfig, artifact: bytes | None) -> Any:
        """Build or deserialize the model handle; must not return None."""
        ...

    @abstractmethod
    async def infer(self, handle: Any, data: Any) -> Any:
        """Run a single inference."""
        ...

    async def infer_batch(self, handle: Any, inputs: list[Any]) -> list[Any]:
        """Run inference over a batch; the default maps ``infer`` over the inputs in order."""
        return [await self.infer(handle, item) for item in inputs]

    async def prepare_training_data(self, handle: Any, data: Any, options: Mapping[str, Any]) -> TrainingPayload:
        """Convert raw training data into a payload for ``train``."""
        return default_training_payload(data, label_column=options.get("label_column", "label"))

    async def train(
        self,
        handle: Any,
        payload: TrainingPayload,
        options: Mapping[str, Any],
        progress: ProgressSink,
    ) -> TrainingResult:
        """Train the model in place, reporting progress to the sink."""
        raise NotImplementedError(f"Training not supported for model kind: {self.name}")

    async def save(self, handle: Any) -> bytes:
        """Serialize the model handle to bytes."""
        raise NotImplementedError(f"Saving not supported for model kind: {self.name}")

    async def dispose(self, handle: Any) -> None:
        """Release resources held by the handle."""
        dispose = getattr(handle, "dispose", None)
        if callable(dispose):
            await call_maybe_async(dispose)


class FunctionalModelKind(BaseModelKind):
    """Model kind assembled from plain functions (sync functions run in worker threads)."""

    def __init__(
        self,
        name: str,
        *,
        infer: InferFunction,
        load: LoadFunction | None = None,
        infer_batch: InferBatchFunction | None = None,
        train: TrainFunction | None = None,
        save: SaveFunction | None = None,
        dispose: DisposeFunction | None = None,
    ) -> None:
        """Initialize kind; without ``load`` the handle is the registration config."""
        self.name = name
        self._load = load
        self._infer = infer
        self._infer_batch = infer_batch
        self._train = train
        self._save = save
        self._dispose = dispose

    async def load(self, config: ModelConfig, artifact: bytes | None) -> Any:
        """Call the load function or fall back to the config itself as handle."""
        if self._load is None:
            return config
        return await call_maybe_async(self._load, config, artifact)

    async def infer(self, handle: Any, data: Any) -> Any:
        """Call the infer function."""
        return await call_maybe_async(self._infer, handle, data)

    async def infer_batch(self, handle: Any, inputs: list[Any]) -> list[Any]:
        """Call the batch function when given, else map ``infer``."""
        if self._infer_batch is None:
            return await super().infer_batch(handle, inputs)
        return list(await call_maybe_async(self._infer_batch, handle, inputs))

    async def train(
        self,
        handle: Any,
        payload: TrainingPayload,
        options: Mapping[str, Any],
        progress: ProgressSink,
    ) -> TrainingResult:
        """Call the train function; sync functions get a blocking progress adapter."""
        if self._train is None:
            return await super().train(handle, payload, options, progress)

        if inspect.iscoroutinefunction(self._train):
            result = await self._train(handle, payload, options, progress)
        else:
            adapter = ThreadProgressAdapter(progress, asyncio.get_running_loop())
            result = await asyncio.to_thread(self._train, handle, payload, options, adapter)
        return coerce_training_result(result)

    async def save(self, handle: Any) -> bytes:
        """Call the save function."""
        if self._save is None:
            return await super().save(handle)
        return await call_maybe_async(self._save, handle)

    async def dispose(self, handle: Any) -> None:
        """Call the dispose function or the handle's own ``dispose``."""
        if self._dispose is None:
            await super().dispose(handle)
            return
        await call_maybe_async(self._dispose, handle)


class CustomModelKind(BaseModelKind):
    """Kind whose handle is built by a ``loader`` callable in the config and exposes its own methods.

    The handle must provide ``predict(data)`` and may provide ``predict_batch(inputs)``,
    ``train(payload, options, progress)``, ``save()`` and ``dispose()``; each may be sync or async.
    """

    name = "custom"

    async def load(self, config: ModelConfig, artifact: bytes | None) -> Any:
        """Build the handle with ``config.loader`` (called with the artifact bytes when present)."""
        loader = getattr(config, "loader", None)
        if not callable(loader):
            raise ValueError("Custom model loader function required")
        if artifact is None:
            return await call_maybe_async(loader)
        return await call_maybe_async(loader, artifact)

    async def infer(self, handle: Any, data: Any) -> Any:
        """Delegate to ``handle.predict``."""
        return await call_maybe_async(handle.predict, data)

    async def infer_batch(self, handle: Any, inputs: list[Any]) -> list[Any]:
        """Delegate to ``handle.predict_batch`` when available."""
        predict_batch = getattr(handle, "predict_batch", None)
        if predict_batch is None:
            return await super().infer_batch(handle, inputs)
        return list(await call_maybe_async(predict_batch, inputs))

    async def train(
        self,
        handle: Any,
        payload: TrainingPayload,
        options: Mapping[str, Any],
        progress: ProgressSink,
    ) -> TrainingResult:
        """Delegate to ``handle.train`` (which must be async to report progress)."""
        train = getattr(handle, "train", None)
        if train is None:
            return await super().train(handle, payload, options, progress)
        result = train(payload, options, progress)
        if inspect.isawaitable(result):
            result = await result
        return coerce_training_result(result)

    async def save(self, handle: Any) -> bytes:
        """Delegate to ``handle.save``."""
        save = getattr(handle, "save", None)
        if save is None:
            return await super().save(handle)
        return await call_maybe_async(save)


def build_kind_table(kinds: Iterable[BaseModelKind] | Mapping[str, BaseModelKind]) -> dict[str, BaseModelKind]:
    """Build the closed kind table, rejecting duplicate kind names."""
    if isinstance(kinds, Mapping):
        return dict(kinds)

    table: dict[str, BaseModelKind] = {}
    for kind in kinds:
        if kind.name in table:
            raise ValueError(f"Model kind '{kind.name}' already registered")
        table[kind.name] = kind
    return table


def coerce_training_result(result: Any) -> TrainingResult:
    """Accept a TrainingResult, a mapping of metrics or None."""
    if isinstance(result, TrainingResult):
        return result
    if result is None:
        return TrainingResult()
    if isinstance(result, Mapping):
        return TrainingResult.model_validate(dict(result))
    raise TypeError(f"Train capability returned unsupported result type {type(result).__name__}")


def default_training_payload(data: Any, *, label_column: str = "label") -> TrainingPayload:
    """Split DataFrames and ``{"features", "label"}`` records into features and labels."""
    if isinstance(data, pd.DataFrame):
        if label_column not in data.columns:
            return TrainingPayload(features=data.to_numpy().tolist())
        features = data.drop(columns=[label_column])
        return TrainingPayload(features=features.to_numpy().tolist(), labels=data[label_column].tolist())

    if isinstance(data, Sequence) and not isinstance(data, (str, bytes)) and data:
        if all(isinstance(item, Mapping) and "features" in item for item in data):
            return TrainingPayload(
                features=[item["features"] for item in data],
                labels=[item.get("label") for item in data],
            )

    return TrainingPayload(features=data)
