"""Pipeline engine executing ordered steps over a single data value."""

from __future__ import annotations

import copy
import datetime
import time
from collections.abc import Mapping, Sequence
from typing import Any, assert_never

from pydantic import TypeAdapter, ValidationError
from ulid import ULID

from inferkit.core.concurrency import call_maybe_async
from inferkit.core.events import EventSink
from inferkit.core.exceptions import DuplicatePipelineError, InvalidPipelineError, NotFoundError, PipelineStepError
from inferkit.core.logging import get_logger
from inferkit.modules.prediction import PredictionService

from . import operations
from .schemas import (
    STEP_TYPES,
    AggregateStep,
    CustomStep,
    ExecuteOptions,
    Execution,
    ExecutionStatus,
    Pipeline,
    PipelineOut,
    PredictStep,
    PreprocessStep,
    Step,
    StepResult,
    StepStatus,
    TransformStep,
)

logger = get_logger(__name__)

_step_adapter: TypeAdapter[Step] = TypeAdapter(Step)

PREPROCESS_OPERATIONS = {
    "normalize": operations.normalize,
    "tokenize": operations.tokenize,
    "vectorize": operations.vectorize,
}
TRANSFORM_OPERATIONS = {
    "reshape": operations.reshape,
    "filter": operations.filter_values,
    "map": operations.map_values,
}
AGGREGATE_OPERATIONS = {
    "mean": operations.mean,
    "ensemble": operations.ensemble,
    "vote": operations.vote,
}


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class PipelineEngine:
    """Creates immutable pipelines and runs them strictly in step order."""

    def __init__(self, prediction: PredictionService, events: EventSink) -> None:
        """Initialize engine with the prediction path used by predict steps."""
        self.prediction = prediction
        self.events = events
        self._pipelines: dict[str, Pipeline] = {}

    def create_pipeline(self, pipeline_id: str, steps: Sequence[Step | Mapping[str, Any]]) -> Pipeline:
        """Validate steps into the closed step union and store them with their index."""
        if pipeline_id in self._pipelines:
            raise DuplicatePipelineError(pipeline_id)
        if not steps:
            raise InvalidPipelineError(f"Pipeline {pipeline_id} has no steps")

        validated: list[Step] = []
        for index, raw in enumerate(steps):
            try:
                step = raw if isinstance(raw, STEP_TYPES) else _step_adapter.validate_python(dict(raw))
            except ValidationError as e:
                raise InvalidPipelineError(f"Invalid step {index} in pipeline {pipeline_id}: {e}") from e
            validated.append(step.model_copy(update={"index": index, "status": StepStatus.PENDING}))

        pipeline = Pipeline(pipeline_id=pipeline_id, steps=tuple(validated), created_at=_utcnow())
        self._pipelines[pipeline_id] = pipeline
        logger.info("pipeline.created", pipeline_id=pipeline_id, steps=len(validated))
        return pipeline

    def get_pipeline(self, pipeline_id: str) -> Pipeline:
        """Return a pipeline by id."""
        pipeline = self._pipelines.get(pipeline_id)
        if pipeline is None:
            raise NotFoundError("Pipeline", pipeline_id)
        return pipeline

    def list_pipelines(self) -> list[PipelineOut]:
        """Return summaries of every pipeline."""
        return [
            PipelineOut(
                pipeline_id=p.pipeline_id,
                steps=[step.label for step in p.steps],
                metrics=p.metrics.model_copy(),
                created_at=p.created_at,
            )
            for p in self._pipelines.values()
        ]

    def __len__(self) -> int:
        return len(self._pipelines)

    async def execute(
        self,
        pipeline_id: str,
        data: Any,
        options: ExecuteOptions | Mapping[str, Any] | None = None,
    ) -> Execution:
        """Thread ``data`` through every step; the first failing step halts the run."""
        pipeline = self.get_pipeline(pipeline_id)
        if options is None:
            opts = ExecuteOptions()
        elif isinstance(options, ExecuteOptions):
            opts = options
        else:
            opts = ExecuteOptions.model_validate(dict(options))

        execution = Execution(
            execution_id=f"exec_{pipeline_id}_{ULID()}",
            pipeline_id=pipeline_id,
            started_at=_utcnow(),
        )
        logger.info("pipeline.execution_started", pipeline_id=pipeline_id, execution_id=execution.execution_id)
        start = time.perf_counter()

        for step in pipeline.steps:
            execution.current_step = step.index
            try:
                data = await self._run_step(step, data, opts)
                snapshot = copy.deepcopy(data) if opts.include_intermediate_results else None
            except Exception as e:
                execution.status = ExecutionStatus.FAILED
                execution.error = str(e)
                execution.completed_at = _utcnow()
                execution.results.append(
                    StepResult(
                        step=step.label,
                        index=step.index,
                        kind=step.kind,
                        status=StepStatus.FAILED,
                        error=str(e),
                    )
                )
                pipeline.metrics.errors += 1
                logger.error(
                    "pipeline.step_failed",
                    pipeline_id=pipeline_id,
                    execution_id=execution.execution_id,
                    step=step.label,
                    index=step.index,
                    error=str(e),
                )
                await self.events.emit(
                    "pipeline:failed",
                    {
                        "pipeline_id": pipeline_id,
                        "execution_id": execution.execution_id,
                        "step": step.label,
                        "index": step.index,
                        "error": str(e),
                    },
                )
                raise PipelineStepError(step.label, step.index, e, execution=execution) from e

            execution.results.append(
                StepResult(
                    step=step.label,
                    index=step.index,
                    kind=step.kind,
                    status=StepStatus.COMPLETED,
                    output=snapshot,
                )
            )

        elapsed = (time.perf_counter() - start) * 1000
        execution.status = ExecutionStatus.COMPLETED
        execution.output = data
        execution.completed_at = _utcnow()
        pipeline.metrics.executions += 1
        pipeline.metrics.total_time += elapsed

        logger.info(
            "pipeline.execution_completed",
            pipeline_id=pipeline_id,
            execution_id=execution.execution_id,
            duration_ms=elapsed,
        )
        await self.events.emit(
            "pipeline:completed",
            {"pipeline_id": pipeline_id, "execution_id": execution.execution_id, "duration": elapsed},
        )
        return execution

    async def _run_step(self, step: Step, data: Any, options: ExecuteOptions) -> Any:
        """Dispatch one step on its kind."""
        extra = dict(options.model_extra or {})
        match step:
            case PreprocessStep():
                if step.preprocessor is not None:
                    return await call_maybe_async(step.preprocessor, data, extra)
                assert step.operation is not None
                return PREPROCESS_OPERATIONS[step.operation](data, step.params)
            case PredictStep():
                return await self.prediction.predict(step.model_id, data, {**extra, **step.options})
            case TransformStep():
                if step.transformer is not None:
                    return await call_maybe_async(step.transformer, data, extra)
                assert step.operation is not None
                return TRANSFORM_OPERATIONS[step.operation](data, step.params)
            case AggregateStep():
                if step.aggregator is not None:
                    return await call_maybe_async(step.aggregator, data, extra)
                assert step.operation is not None
                return AGGREGATE_OPERATIONS[step.operation](data, step.params)
            case CustomStep():
                return await call_maybe_async(step.execute, data, extra)
            case _:
                assert_never(step)
