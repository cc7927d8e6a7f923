"""Prediction module: single and batched predictions with optional result caching."""

from .cache import InMemoryPredictionCache, PredictionCache, cache_key, input_hash
from .manager import PredictionService, Processor
from .schemas import PredictOptions

__all__ = [
    "InMemoryPredictionCache",
    "PredictOptions",
    "PredictionCache",
    "PredictionService",
    "Processor",
    "cache_key",
    "input_hash",
]
