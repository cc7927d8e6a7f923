"""Queued inference request record."""

from __future__ import annotations

import asyncio
import datetime
from dataclasses import dataclass, field
from typing import Any

from ulid import ULID


@dataclass(slots=True)
class QueuedInferenceRequest:
    """One caller's pending request, resolved through its future."""

    model_id: str
    input: Any
    options: dict[str, Any]
    future: asyncio.Future[Any]
    request_id: ULID = field(default_factory=ULID)
    enqueued_at: datetime.datetime = field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
