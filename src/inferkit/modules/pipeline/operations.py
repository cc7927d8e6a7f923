"""Built-in pipeline operations as pure functions over the data value and step params."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np

_WORD = re.compile(r"\w+")


def _as_array(data: Any) -> np.ndarray:
    arr = np.asarray(data, dtype=float)
    if arr.size == 0:
        raise ValueError("Cannot operate on empty data")
    return arr


# ---------------------------------------------------------------------- preprocess


def normalize(data: Any, params: Mapping[str, Any]) -> list[Any]:
    """Scale numbers with ``minmax`` into ``feature_range`` or standardize with ``zscore``."""
    method = params.get("method", "minmax")
    arr = _as_array(data)

    if method == "minmax":
        low, high = params.get("feature_range", (0.0, 1.0))
        span = arr.max() - arr.min()
        if span == 0:
            # Constant input maps to the low bound
            return np.full_like(arr, float(low)).tolist()
        return (low + (arr - arr.min()) * (high - low) / span).tolist()

    if method == "zscore":
        std = arr.std()
        if std == 0:
            return np.zeros_like(arr).tolist()
        return ((arr - arr.mean()) / std).tolist()

    raise ValueError(f"Unknown normalize method: {method}")


def _tokens(text: str, kind: str, lowercase: bool) -> list[str]:
    if kind == "word":
        tokens = _WORD.findall(text)
    elif kind == "whitespace":
        tokens = text.split()
    else:
        raise ValueError(f"Unknown tokenizer type: {kind}")
    return [t.lower() for t in tokens] if lowercase else tokens


def tokenize(data: Any, params: Mapping[str, Any]) -> list[Any]:
    """Split a string, or each string of a list, into tokens."""
    kind = params.get("type", "word")
    lowercase = params.get("lowercase", True)
    if isinstance(data, str):
        return _tokens(data, kind, lowercase)
    if isinstance(data, Sequence):
        return [_tokens(str(text), kind, lowercase) for text in data]
    raise ValueError(f"Cannot tokenize {type(data).__name__}")


def vectorize(data: Any, params: Mapping[str, Any]) -> list[list[int]]:
    """One-hot encode token lists over a given vocabulary or one built in first-seen order."""
    method = params.get("method", "onehot")
    if method != "onehot":
        raise ValueError(f"Unknown vectorize method: {method}")

    documents = [[doc] if isinstance(doc, str) else list(doc) for doc in data]
    vocabulary = params.get("vocabulary")
    if vocabulary is None:
        vocabulary = list(dict.fromkeys(token for doc in documents for token in doc))
    positions = {token: i for i, token in enumerate(vocabulary)}

    vectors = np.zeros((len(documents), len(vocabulary)), dtype=int)
    for row, doc in enumerate(documents):
        for token in doc:
            col = positions.get(token)
            if col is not None:
                vectors[row, col] = 1
    return vectors.tolist()


# ---------------------------------------------------------------------- transform


def reshape(data: Any, params: Mapping[str, Any]) -> list[Any]:
    """Reshape numeric data to ``shape`` (one dimension may be -1)."""
    shape = params.get("shape")
    if shape is None:
        raise ValueError("reshape requires a 'shape' parameter")
    return np.asarray(data).reshape(tuple(shape)).tolist()


def filter_values(data: Any, params: Mapping[str, Any]) -> list[Any]:
    """Keep items within ``[min, max]``; mappings are compared on ``field``."""
    low = params.get("min")
    high = params.get("max")
    field = params.get("field")

    def keep(item: Any) -> bool:
        value = item[field] if field is not None else item
        if low is not None and value < low:
            return False
        if high is not None and value > high:
            return False
        return True

    return [item for item in data if keep(item)]


def map_values(data: Any, params: Mapping[str, Any]) -> Any:
    """Apply ``value * scale + offset`` element-wise."""
    scale = params.get("scale", 1.0)
    offset = params.get("offset", 0.0)
    result = np.asarray(data, dtype=float) * scale + offset
    return result.tolist()


# ---------------------------------------------------------------------- aggregate


def mean(data: Any, params: Mapping[str, Any]) -> Any:
    """Element-wise mean of a list of vectors, or the mean of a flat list."""
    arr = _as_array(data)
    if arr.ndim == 1:
        return float(arr.mean())
    return arr.mean(axis=0).tolist()


def ensemble(data: Any, params: Mapping[str, Any]) -> Any:
    """Weighted average of model outputs (equal weights unless ``weights`` is given)."""
    arr = _as_array(data)
    weights = params.get("weights")
    if weights is not None and len(weights) != arr.shape[0]:
        raise ValueError(f"Expected {arr.shape[0]} weights, got {len(weights)}")
    result = np.average(arr, axis=0, weights=weights)
    return result.tolist() if isinstance(result, np.ndarray) else float(result)


def vote(data: Any, params: Mapping[str, Any]) -> Any:
    """Majority label; ties go to the label seen first."""
    labels = list(data)
    if not labels:
        raise ValueError("Cannot vote on empty data")
    counts = Counter(labels)
    best = max(counts.values())
    return next(label for label in labels if counts[label] == best)
