"""
Error taxonomy for the model lifecycle.

Every failure a caller can observe is a subclass of :class:`LifecycleError`
carrying a stable ``code`` (used by the HTTP layer) and a human-readable
message.  Underlying causes are chained with ``raise … from exc``.
"""

from __future__ import annotations


class LifecycleError(Exception):
    """Base class for all caller-facing lifecycle failures."""

    code = "lifecycle_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class DatasetUnavailable(LifecycleError):
    """The dataset root does not exist."""

    code = "dataset_unavailable"


class EmptyDataset(LifecycleError):
    """Ingestion produced zero usable samples."""

    code = "empty_dataset"


class UnsupportedImage(LifecycleError):
    """The image bytes could not be decoded or resized."""

    code = "unsupported_image"


class AlreadyInProgress(LifecycleError):
    """A load or training run is already in progress; retry later."""

    code = "already_in_progress"


class ModelUnavailable(LifecycleError):
    """No trained model is ready for inference."""

    code = "model_unavailable"


class ArtifactNotFound(LifecycleError):
    """No persisted model artifact exists on disk."""

    code = "artifact_not_found"


class TrainingFailure(LifecycleError):
    """Model building, fitting or persistence failed."""

    code = "training_failure"


class PersistenceFailure(LifecycleError):
    """Writing or reading the persisted artifact failed."""

    code = "persistence_failure"


class InvalidTransition(RuntimeError):
    """A state transition not allowed by the lifecycle state machine."""
