"""Pydantic schemas for training jobs, options and tabular training data."""

from __future__ import annotations

import datetime
from enum import StrEnum
from typing import Any

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from inferkit.modules.registry import TrainingResult


class JobStatus(StrEnum):
    """Lifecycle status of a training job."""

    PREPARING = "preparing"
    PREPROCESSING = "preprocessing"
    TRAINING = "training"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True for completed and failed."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class TrainingJob(BaseModel):
    """One training run against a registered model."""

    job_id: str
    model_id: str
    status: JobStatus = JobStatus.PREPARING
    progress: float = Field(default=0.0, ge=0, le=100)
    metrics: dict[str, Any] = Field(default_factory=dict, description="Latest reported metrics")
    result: TrainingResult | None = None
    error: str | None = None
    artifact_key: str | None = Field(default=None, description="Artifact key when the model was saved")
    started_at: datetime.datetime
    completed_at: datetime.datetime | None = None

    model_config = ConfigDict(protected_namespaces=())


class TrainOptions(BaseModel):
    """Training options; extra keys are passed through to the kind's train capability."""

    epochs: int | None = Field(default=None, ge=1, description="Defaults to the configured epochs")
    batch_size: int | None = Field(default=None, ge=1, description="Defaults to the configured batch size")
    save: bool = Field(default=False, description="Persist the model to the artifact store afterwards")
    save_path: str | None = Field(default=None, description="Artifact key; defaults to the model id")

    model_config = ConfigDict(extra="allow")


class PandasDataFrame(BaseModel):
    """Column-oriented table that converts to and from ``pandas.DataFrame``."""

    columns: list[str]
    data: list[list[Any]]

    def to_dataframe(self) -> pd.DataFrame:
        """Build a DataFrame from the rows."""
        return pd.DataFrame(self.data, columns=self.columns)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> PandasDataFrame:
        """Build the schema from a DataFrame."""
        return cls(columns=[str(c) for c in df.columns], data=df.to_numpy().tolist())
