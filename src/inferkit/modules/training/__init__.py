"""Training module: capacity-limited training jobs with progress reporting."""

from .manager import TrainingJobManager
from .progress import JobProgressSink
from .schemas import JobStatus, PandasDataFrame, TrainingJob, TrainOptions

__all__ = [
    "JobProgressSink",
    "JobStatus",
    "PandasDataFrame",
    "TrainOptions",
    "TrainingJob",
    "TrainingJobManager",
]
