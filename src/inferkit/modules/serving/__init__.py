"""Serving module: the component facade and its REST router."""

from .manager import ServingManager
from .router import ServingRouter
from .schemas import (
    ExecutePipelineRequest,
    FrameworkMetrics,
    ModelList,
    PredictRequest,
    PredictResponse,
    RegisterModelRequest,
    TrainRequest,
)

__all__ = [
    "ExecutePipelineRequest",
    "FrameworkMetrics",
    "ModelList",
    "PredictRequest",
    "PredictResponse",
    "RegisterModelRequest",
    "ServingManager",
    "ServingRouter",
    "TrainRequest",
]
