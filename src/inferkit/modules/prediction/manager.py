"""Prediction path: preprocess, infer, postprocess and record usage for one model."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

from inferkit.core.concurrency import call_maybe_async
from inferkit.core.events import EventSink
from inferkit.core.exceptions import PredictionError, ServingError
from inferkit.core.logging import get_logger
from inferkit.modules.registry import ModelRegistry

from .cache import PredictionCache, cache_key
from .schemas import PredictOptions

logger = get_logger(__name__)

Processor = Callable[[Any, Mapping[str, Any]], Any]


def _coerce_options(options: PredictOptions | Mapping[str, Any] | None) -> PredictOptions:
    if options is None:
        return PredictOptions()
    if isinstance(options, PredictOptions):
        return options
    return PredictOptions.model_validate(dict(options))


class PredictionService:
    """Runs single and batched predictions against ready models in the registry."""

    def __init__(
        self,
        registry: ModelRegistry,
        events: EventSink,
        *,
        cache: PredictionCache | None = None,
        default_ttl: float = 300.0,
    ) -> None:
        """Initialize service with registry, event sink and optional result cache."""
        self.registry = registry
        self.events = events
        self.cache = cache
        self.default_ttl = default_ttl
        self._preprocessors: dict[str, Processor] = {}
        self._postprocessors: dict[str, Processor] = {}

    def register_preprocessor(self, model_id: str, func: Processor) -> None:
        """Set the function applied to inputs of ``model_id`` before inference."""
        self._preprocessors[model_id] = func

    def register_postprocessor(self, model_id: str, func: Processor) -> None:
        """Set the function applied to outputs of ``model_id`` after inference."""
        self._postprocessors[model_id] = func

    def preprocessor_for(self, model_id: str) -> Processor | None:
        """Return the preprocessor registered for a model, if any."""
        return self._preprocessors.get(model_id)

    async def predict(
        self,
        model_id: str,
        data: Any,
        options: PredictOptions | Mapping[str, Any] | None = None,
    ) -> Any:
        """Run one prediction; registry errors propagate, everything else becomes PredictionError."""
        opts = _coerce_options(options)
        extra = opts.model_extra or {}

        key: str | None = None
        if opts.cache and self.cache is not None:
            try:
                key = cache_key(model_id, data)
            except TypeError as e:
                logger.debug("prediction.uncacheable_input", model_id=model_id, reason=str(e))
            else:
                hit, cached = self.cache.get(key)
                if hit:
                    logger.debug("prediction.cache_hit", model_id=model_id)
                    return cached

        try:
            async with self.registry.lease(model_id) as model:
                kind = self.registry.kind_for(model)
                start = time.perf_counter()
                try:
                    processed = await self._apply(self._preprocessors.get(model_id), data, extra)
                    raw = await kind.infer(model.handle, processed)
                    output = await self._apply(self._postprocessors.get(model_id), raw, extra)
                except Exception as e:
                    raise PredictionError(model_id, e) from e
                inference_time = (time.perf_counter() - start) * 1000
        except ServingError as e:
            logger.warning("prediction.failed", model_id=model_id, error=str(e))
            await self.events.emit("prediction:error", {"model_id": model_id, "error": str(e)})
            raise

        self.registry.record_usage(model_id, inference_time)
        if key is not None and self.cache is not None:
            self.cache.set(key, output, opts.cache_ttl or self.default_ttl)

        await self.events.emit("prediction:complete", {"model_id": model_id, "inference_time": inference_time})
        return output

    async def predict_batch(
        self,
        model_id: str,
        inputs: list[Any],
        options: PredictOptions | Mapping[str, Any] | None = None,
    ) -> list[Any]:
        """Run one ``infer_batch`` call for all inputs; results are in input order."""
        opts = _coerce_options(options)
        extra = opts.model_extra or {}
        if not inputs:
            return []

        try:
            async with self.registry.lease(model_id) as model:
                kind = self.registry.kind_for(model)
                preprocess = self._preprocessors.get(model_id)
                postprocess = self._postprocessors.get(model_id)
                start = time.perf_counter()
                try:
                    processed = [await self._apply(preprocess, item, extra) for item in inputs]
                    raw = await kind.infer_batch(model.handle, processed)
                    if len(raw) != len(inputs):
                        raise ValueError(f"Batch inference returned {len(raw)} outputs for {len(inputs)} inputs")
                    outputs = [await self._apply(postprocess, item, extra) for item in raw]
                except Exception as e:
                    raise PredictionError(model_id, e) from e
                inference_time = (time.perf_counter() - start) * 1000
        except ServingError as e:
            logger.warning("prediction.batch_failed", model_id=model_id, size=len(inputs), error=str(e))
            await self.events.emit(
                "prediction:error",
                {"model_id": model_id, "batch_size": len(inputs), "error": str(e)},
            )
            raise

        self.registry.record_usage(model_id, inference_time, count=len(inputs))
        return outputs

    async def _apply(self, func: Processor | None, data: Any, options: Mapping[str, Any]) -> Any:
        if func is None:
            return data
        return await call_maybe_async(func, data, options)
