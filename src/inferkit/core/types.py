"""Custom types for inferkit - SQLAlchemy and Pydantic types."""

from __future__ import annotations

import json
from typing import Annotated, Any

from pydantic import PlainSerializer
from sqlalchemy import String
from sqlalchemy.types import TypeDecorator
from ulid import ULID


class ULIDType(TypeDecorator[ULID]):
    """SQLAlchemy custom type for ULID stored as 26-character strings."""

    impl = String(26)
    cache_ok = True

    def process_bind_param(self, value: ULID | str | None, dialect: Any) -> str | None:
        """Convert ULID to string for database storage."""
        if value is None:
            return None
        if isinstance(value, str):
            return str(ULID.from_str(value))  # Validate and normalize
        return str(value)

    def process_result_value(self, value: str | None, dialect: Any) -> ULID | None:
        """Convert string from database to ULID object."""
        if value is None:
            return None
        return ULID.from_str(value)


def _is_json_serializable(value: Any) -> bool:
    """Test if value can be serialized to JSON."""
    try:
        json.dumps(value)
        return True
    except (TypeError, ValueError, OverflowError):
        return False


def _describe(value: Any) -> dict[str, str]:
    """Build a type summary for values that cannot cross the serving boundary as JSON."""
    value_repr = repr(value)
    max_repr_length = 200

    if len(value_repr) > max_repr_length:
        value_repr = value_repr[:max_repr_length] + "..."

    return {
        "_type": type(value).__name__,
        "_module": type(value).__module__,
        "_repr": value_repr,
    }


def _serialize_output(value: Any) -> Any:
    """Serialize model outputs, converting numpy values and summarizing opaque objects."""
    if hasattr(value, "tolist") and callable(value.tolist):
        # numpy arrays and scalars
        value = value.tolist()

    if isinstance(value, dict):
        return {key: val if _is_json_serializable(val) else _serialize_output(val) for key, val in value.items()}

    if isinstance(value, (list, tuple)) and not _is_json_serializable(value):
        return [_serialize_output(item) for item in value]

    if _is_json_serializable(value):
        return value

    return _describe(value)


JsonSafe = Annotated[
    Any,
    PlainSerializer(_serialize_output, return_type=Any),
]
"""Pydantic type for prediction outputs and pipeline snapshots.

JSON-serializable values pass through unchanged, numpy arrays become lists and
anything else (tensors, estimator objects) is replaced by a ``_type``/``_module``/
``_repr`` summary so a response never fails to serialize and never exposes handles.
"""
