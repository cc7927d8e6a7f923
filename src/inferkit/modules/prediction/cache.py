"""Prediction result cache keyed by model id and input hash."""

from __future__ import annotations

import copy
import hashlib
import pickle
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import numpy as np

from inferkit.core.logging import get_logger

logger = get_logger(__name__)


class PredictionCache(Protocol):
    """Key/value store with per-entry time-to-live."""

    def get(self, key: str) -> tuple[bool, Any]:
        """Return ``(hit, value)``; expired entries are misses."""
        ...

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store a value for ``ttl`` seconds."""
        ...


class InMemoryPredictionCache:
    """LRU cache with per-entry expiry, evicting the least recently used entry when full.

    Values are copied on the way in and on the way out, so callers mutating a
    returned output never change what later hits see. Values that cannot be
    deep-copied are not cached.
    """

    def __init__(self, max_entries: int | None = 1024, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize cache; ``max_entries=None`` disables LRU eviction."""
        self._entries: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._max_entries = max_entries
        self._clock = clock
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> tuple[bool, Any]:
        """Look up a key, dropping it when expired."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return False, None

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.misses += 1
            return False, None

        self._entries.move_to_end(key)
        self.hits += 1
        return True, copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Insert or refresh a key."""
        try:
            stored = copy.deepcopy(value)
        except (TypeError, copy.Error, pickle.PicklingError) as e:
            logger.debug("prediction.cache_skipped", key=key, reason=str(e))
            return

        self._entries[key] = (stored, self._clock() + ttl)
        self._entries.move_to_end(key)
        if self._max_entries is not None:
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _feed(digest: Any, value: Any) -> None:
    """Write a type-tagged, length-prefixed encoding of ``value`` into ``digest``."""
    match value:
        case None:
            digest.update(b"N")
        case np.ndarray() | np.generic():
            _feed(digest, value.tolist())
        case bool():
            digest.update(b"T" if value else b"F")
        case int():
            digest.update(b"i%d;" % value)
        case float():
            digest.update(b"f" + repr(value).encode() + b";")
        case str():
            encoded = value.encode("utf-8")
            digest.update(b"s%d:" % len(encoded))
            digest.update(encoded)
        case bytes() | bytearray() | memoryview():
            raw = bytes(value)
            digest.update(b"b%d:" % len(raw))
            digest.update(raw)
        case Mapping():
            # Entries are ordered by the digest of their key
            entries = sorted(((input_hash(key), item) for key, item in value.items()), key=lambda entry: entry[0])
            digest.update(b"d%d:" % len(entries))
            for key_hash, item in entries:
                digest.update(key_hash.encode())
                _feed(digest, item)
        case list() | tuple():
            digest.update(b"l%d:" % len(value))
            for item in value:
                _feed(digest, item)
        case _:
            try:
                raw = pickle.dumps(value)
            except (TypeError, AttributeError, pickle.PicklingError) as e:
                raise TypeError(f"Cannot build a cache key for {type(value).__name__} input") from e
            digest.update(b"p%d:" % len(raw))
            digest.update(raw)


def input_hash(data: Any) -> str:
    """Stable digest of a prediction input (key order of mappings does not matter).

    Raises TypeError for inputs holding objects that cannot be pickled.
    """
    digest = hashlib.sha256()
    _feed(digest, data)
    return digest.hexdigest()


def cache_key(model_id: str, data: Any) -> str:
    """Build the cache key for one model and input."""
    return f"{model_id}:{input_hash(data)}"
