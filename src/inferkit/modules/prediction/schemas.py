"""Pydantic schemas for prediction options."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PredictOptions(BaseModel):
    """Per-call prediction options; extra keys are passed through to pre/postprocessors."""

    cache: bool = Field(default=False, description="Serve from and store into the prediction cache")
    cache_ttl: float | None = Field(default=None, gt=0, description="Cache lifetime in seconds")

    model_config = ConfigDict(extra="allow")
