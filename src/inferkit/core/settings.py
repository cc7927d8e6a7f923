"""Process-level settings loaded from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "INFERKIT_"


class ServingSettings(BaseModel):
    """Limits and defaults shared by the serving components."""

    max_concurrent_jobs: int = Field(default=5, ge=1, description="Cap on non-terminal training jobs")
    max_batch_size: int = Field(default=32, ge=1, description="Requests taken per drain pass of the queue")
    batch_size: int = Field(default=32, ge=1, description="Default training batch size")
    default_epochs: int = Field(default=10, ge=1, description="Default training epochs")
    cache_ttl: float = Field(default=300.0, gt=0, description="Default prediction cache lifetime in seconds")
    queue_retry_delay: float = Field(default=1.0, ge=0, description="Backoff after an internal queue error")
    artifact_path: str = Field(default="./inferkit-models", description="Root directory for file artifacts")
    database_url: str | None = Field(default=None, description="SQLAlchemy URL for the artifact database")

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServingSettings:
        """Build settings from INFERKIT_* variables, ignoring unset or empty ones."""
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        return cls.model_validate(values)
