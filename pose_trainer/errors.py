"""Error taxonomy for pose-step-trainer.

Every failure the engine reports is local and recoverable except
``InvalidConfiguration``, which aborts construction of the component that
raised it. Missing or malformed individual landmarks are never errors; the
feature extractor substitutes zeros for them.
"""
from __future__ import annotations


class PoseTrainerError(Exception):
    """Base class for all pose-step-trainer errors."""


class NoTrainingData(PoseTrainerError, RuntimeError):
    """``classify`` was called before any sample was learned."""


class SessionBusy(PoseTrainerError, RuntimeError):
    """A recording was requested while another one is counting down or capturing."""


class InvalidConfiguration(PoseTrainerError, ValueError):
    """A component was constructed with unusable parameters."""


class DatasetLoadError(PoseTrainerError, OSError):
    """A dataset file could not be read or parsed."""


class DetectorUnavailable(PoseTrainerError, RuntimeError):
    """The camera or the landmark detector could not be initialised."""
