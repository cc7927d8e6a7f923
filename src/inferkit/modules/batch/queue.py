"""Batch inference queue grouping pending requests by model."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import Any

from inferkit.core.events import EventSink
from inferkit.core.exceptions import QueueClosedError
from inferkit.core.logging import get_logger
from inferkit.modules.prediction import PredictionService

from .schemas import QueuedInferenceRequest

logger = get_logger(__name__)


class BatchInferenceQueue:
    """Buffers inference requests and drains them in per-model batches.

    A single drain task runs while requests are pending. Each pass takes up to
    ``max_batch_size`` requests from the front, groups them by model id in
    submission order and runs one ``predict_batch`` call per group. A failing
    group rejects only its own callers. The requests of a group share the
    options of the group's first request.
    """

    def __init__(
        self,
        prediction: PredictionService,
        events: EventSink,
        *,
        max_batch_size: int = 32,
        retry_delay: float = 1.0,
    ) -> None:
        """Initialize queue on top of the prediction path."""
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        self.prediction = prediction
        self.events = events
        self.max_batch_size = max_batch_size
        self.retry_delay = retry_delay
        self._pending: list[QueuedInferenceRequest] = []
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of requests not yet taken by a drain pass."""
        return len(self._pending)

    @property
    def is_processing(self) -> bool:
        """True while the drain task is running."""
        return self._task is not None and not self._task.done()

    def submit(
        self,
        model_id: str,
        data: Any,
        options: Mapping[str, Any] | None = None,
    ) -> asyncio.Future[Any]:
        """Append a request and make sure the drain task is running."""
        if self._closed:
            raise QueueClosedError()

        loop = asyncio.get_running_loop()
        request = QueuedInferenceRequest(
            model_id=model_id,
            input=data,
            options=dict(options or {}),
            future=loop.create_future(),
        )
        self._pending.append(request)

        if not self.is_processing:
            self._task = loop.create_task(self._drain())
        return request.future

    async def queue_inference(
        self,
        model_id: str,
        data: Any,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Enqueue one request and wait for its own result."""
        return await self.submit(model_id, data, options)

    async def _drain(self) -> None:
        """Run passes until the queue is empty."""
        while self._pending and not self._closed:
            try:
                await self._process_pass()
            except Exception:
                logger.exception("batch.queue_error", pending=len(self._pending))
                await asyncio.sleep(self.retry_delay)
                continue
            # Let new submissions in before the next pass
            await asyncio.sleep(0)

    async def _process_pass(self) -> None:
        """Take one bounded slice of the queue and process it group by group."""
        taken = self._pending[: self.max_batch_size]
        del self._pending[: len(taken)]

        # One group per model and distinct options, in order of first appearance
        groups: list[tuple[str, list[QueuedInferenceRequest]]] = []
        for request in taken:
            for model_id, requests in groups:
                if model_id == request.model_id and requests[0].options == request.options:
                    requests.append(request)
                    break
            else:
                groups.append((request.model_id, [request]))

        try:
            await asyncio.gather(*(self._process_group(model_id, requests) for model_id, requests in groups))
        except Exception as e:
            for request in taken:
                if not request.future.done():
                    request.future.set_exception(e)
            raise

    async def _process_group(self, model_id: str, requests: list[QueuedInferenceRequest]) -> None:
        """Run one batch call and resolve or reject every request of the group."""
        start = time.perf_counter()
        try:
            outputs = await self.prediction.predict_batch(
                model_id,
                [request.input for request in requests],
                requests[0].options,
            )
        except Exception as e:
            duration = (time.perf_counter() - start) * 1000
            logger.warning("batch.group_failed", model_id=model_id, size=len(requests), error=str(e))
            for request in requests:
                if not request.future.done():
                    request.future.set_exception(e)
            await self.events.emit(
                "batch:error",
                {"model_id": model_id, "batch_size": len(requests), "duration": duration, "error": str(e)},
            )
            return

        duration = (time.perf_counter() - start) * 1000
        for request, output in zip(requests, outputs, strict=True):
            if not request.future.done():
                request.future.set_result(output)

        logger.debug("batch.group_completed", model_id=model_id, size=len(requests), duration_ms=duration)
        await self.events.emit(
            "batch:complete",
            {"model_id": model_id, "batch_size": len(requests), "duration": duration},
        )

    async def close(self) -> None:
        """Stop accepting requests, let the running pass finish and reject the rest."""
        self._closed = True
        if self._task is not None:
            await self._task

        for request in self._pending:
            if not request.future.done():
                request.future.set_exception(QueueClosedError())
        self._pending.clear()
        logger.info("batch.queue_closed")
