"""Models package."""

from batch_predictor.models.schemas import (
    PredictionRequest,
    PredictionResult,
    RemoteLocation,
)
from batch_predictor.models.staged_file import StagedFile
from batch_predictor.models.staging import StagingArea

__all__ = [
    "PredictionRequest",
    "PredictionResult",
    "RemoteLocation",
    "StagedFile",
    "StagingArea",
]
