"""
Model lifecycle manager — the state machine that owns the served model.

State flow::

    UNINITIALIZED ──→ LOADING ──→ READY ──→ TRAINING ──→ READY
          │              ↘                      ↘
          └────────→ TRAINING ──→ FAILED ──→ TRAINING    FAILED

* ``initialize()`` loads the persisted artifact if there is one, otherwise
  trains from the dataset folder, otherwise reports "no model available".
* ``train(dataset)`` is single-flight: while a load or training run is in
  progress every other caller is rejected with ``AlreadyInProgress``
  instead of queueing.
* ``status()`` and ``current()`` never wait on a load or training run.

State, artifact and labels only change together, inside :meth:`_finish`.
The current model is an immutable :class:`LoadedModel` whose reference is
replaced as a whole, so readers never see a model paired with the wrong
label set.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .config import LifecycleConfig
from .data import Dataset, LabelSet, UploadedBlob, load_directory, load_uploads
from .errors import (
    AlreadyInProgress,
    DatasetUnavailable,
    EmptyDataset,
    InvalidTransition,
    PersistenceFailure,
    TrainingFailure,
)
from .evaluate import evaluate_predictions
from .scope import TensorScope
from .storage import ArtifactStore, ModelMetadata

logger = logging.getLogger(__name__)


class ModelState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    TRAINING = "training"
    READY = "ready"
    FAILED = "failed"


BUSY_STATES = frozenset({ModelState.LOADING, ModelState.TRAINING})

TRANSITIONS = {
    ModelState.UNINITIALIZED: frozenset({ModelState.LOADING, ModelState.TRAINING}),
    ModelState.LOADING: frozenset({ModelState.READY, ModelState.FAILED}),
    ModelState.TRAINING: frozenset({ModelState.READY, ModelState.FAILED}),
    ModelState.READY: frozenset({ModelState.TRAINING}),
    ModelState.FAILED: frozenset({ModelState.TRAINING}),
}


# ═══════════════════════════════════════════════════════════════════════════
# Value objects
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LoadedModel:
    """An artifact together with the metadata it was persisted with."""

    artifact: Any
    metadata: ModelMetadata

    @property
    def labels(self) -> LabelSet:
        return self.metadata.labels


@dataclass(frozen=True)
class ModelStatus:
    state: ModelState
    labels: List[str]
    trained_at: Optional[str] = None
    error: str = ""
    expected_labels: List[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.state is ModelState.READY

    @property
    def class_count(self) -> int:
        return len(self.labels)

    @property
    def missing_labels(self) -> List[str]:
        return [label for label in self.expected_labels if label not in self.labels]

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "ready": self.ready,
            "labels": list(self.labels),
            "classCount": self.class_count,
            "trainedAt": self.trained_at,
            "error": self.error,
            "expectedLabels": list(self.expected_labels),
            "missingLabels": self.missing_labels,
        }


@dataclass(frozen=True)
class TrainingResult:
    labels: List[str]
    total_images: int
    skipped: int
    history: List[Dict[str, Optional[float]]]
    validation_accuracy: Optional[float]
    trained_at: str
    evaluation: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            "labels": list(self.labels),
            "totalImages": self.total_images,
            "skipped": self.skipped,
            "metricsHistory": self.history,
            "validationAccuracy": self.validation_accuracy,
            "trainedAt": self.trained_at,
            "evaluation": self.evaluation,
        }


def epoch_metrics(history: Dict[str, List[float]]) -> List[Dict[str, Optional[float]]]:
    """Turn a Keras history dict into one record per epoch."""
    epochs = len(history.get("loss", []))

    def at(key: str, i: int) -> Optional[float]:
        values = history.get(key) or []
        return values[i] if i < len(values) else None

    return [
        {
            "epoch": i + 1,
            "loss": at("loss", i),
            "accuracy": at("accuracy", i),
            "val_loss": at("val_loss", i),
            "val_accuracy": at("val_accuracy", i),
        }
        for i in range(epochs)
    ]


# ═══════════════════════════════════════════════════════════════════════════
# Manager
# ═══════════════════════════════════════════════════════════════════════════

class ModelLifecycleManager:
    """Owns the current model, its label set and the lifecycle state.

    Construct one per process and pass it to every consumer.

    Parameters
    ----------
    config : LifecycleConfig
        Paths and hyperparameters.
    engine : optional
        Tensor-computation engine; defaults to :class:`~lifecycle.train.KerasEngine`.
    store : ArtifactStore, optional
        Persisted artifact location; defaults to ``config.artifact_root``.
    """

    def __init__(
        self,
        config: LifecycleConfig,
        engine: Any = None,
        store: Optional[ArtifactStore] = None,
    ) -> None:
        if engine is None:
            # TensorFlow takes seconds to import; only pay for it when needed.
            from .train import KerasEngine
            engine = KerasEngine(config)

        self.config = config
        self.engine = engine
        self.store = store or ArtifactStore(config.artifact_root)

        self._lock = threading.Lock()
        self._state = ModelState.UNINITIALIZED
        self._current: Optional[LoadedModel] = None
        self._error = ""

    # ── Reads (never block on training) ─────────────────────────────────

    @property
    def state(self) -> ModelState:
        return self._state

    def current(self) -> Optional[LoadedModel]:
        return self._current

    def status(self) -> ModelStatus:
        # One snapshot: _finish swaps state and model under the same lock.
        with self._lock:
            state, current, error = self._state, self._current, self._error
        return ModelStatus(
            state=state,
            labels=list(current.labels) if current else [],
            trained_at=current.metadata.trained_at if current else None,
            error=error,
            expected_labels=list(self.config.expected_labels),
        )

    # ── Transitions ─────────────────────────────────────────────────────

    def _begin(self, target: ModelState, *, allowed_from: Sequence[ModelState] = ()) -> None:
        """Atomically check that nothing is running and enter *target*."""
        with self._lock:
            if self._state in BUSY_STATES:
                raise AlreadyInProgress(
                    f"Cannot start {target.value}: model is {self._state.value}. "
                    "Retry once it finishes."
                )
            if allowed_from and self._state not in allowed_from:
                raise InvalidTransition(f"{self._state.value} → {target.value}")
            self._check(target)
            self._state = target
            self._error = ""
        logger.info("Model state → %s", target.value)

    def _finish(
        self,
        target: ModelState,
        *,
        model: Optional[LoadedModel] = None,
        error: str = "",
    ) -> None:
        with self._lock:
            self._check(target)
            if model is not None:
                self._current = model
            self._state = target
            self._error = error
        logger.info("Model state → %s", target.value)

    def _check(self, target: ModelState) -> None:
        if target not in TRANSITIONS[self._state]:
            raise InvalidTransition(f"{self._state.value} → {target.value}")

    # ── Dataset helpers for callers ─────────────────────────────────────

    def load_dataset(self, root=None) -> Dataset:
        """Directory-mode ingestion with this manager's image size."""
        return load_directory(
            root or self.config.dataset_root,
            size=self.config.image_size,
            expected_labels=self.config.expected_labels,
        )

    def load_uploads(self, files: Sequence[UploadedBlob]) -> Dataset:
        """Batch-mode ingestion with this manager's image size."""
        return load_uploads(files, size=self.config.image_size)

    # ── Initialise ──────────────────────────────────────────────────────

    def initialize(self) -> bool:
        """Bring the manager to READY once per process.

        Every path that touches the store or trains first claims LOADING or
        TRAINING through :meth:`_begin`, so a call that loses the race never
        disturbs the run that won it.

        Returns
        -------
        bool
            True if a model is ready, False if neither a persisted model
            nor a usable dataset was found.

        Raises
        ------
        AlreadyInProgress
            If a load or training run is already in progress.
        TrainingFailure
            If training from the dataset folder failed.
        """
        if self._state is ModelState.READY:
            logger.info("Model already initialised and ready")
            return True
        if self._state in BUSY_STATES:
            raise AlreadyInProgress(f"Model is {self._state.value}")

        if self._state is ModelState.UNINITIALIZED and self.store.recoverable():
            try:
                self._begin(ModelState.LOADING, allowed_from=[ModelState.UNINITIALIZED])
            except InvalidTransition:
                # Someone else moved the state on while we were looking.
                return self._state is ModelState.READY
            try:
                self._load_persisted()
                return True
            except PersistenceFailure as exc:
                logger.warning("Persisted model unusable (%s); retraining from dataset", exc)

        try:
            dataset = self.load_dataset()
        except (DatasetUnavailable, EmptyDataset) as exc:
            logger.warning("No model available: %s", exc)
            return False

        try:
            self._begin(
                ModelState.TRAINING,
                allowed_from=[ModelState.UNINITIALIZED, ModelState.FAILED],
            )
        except AlreadyInProgress:
            dataset.release()
            raise
        except InvalidTransition:
            dataset.release()
            logger.info(
                "Model became %s while scanning the dataset; not retraining",
                self._state.value,
            )
            return self._state is ModelState.READY

        self._train_claimed(dataset)
        return True

    def _load_persisted(self) -> None:
        """LOADING → READY with the persisted artifact, or → FAILED."""
        try:
            self.store.recover()
            metadata = self.store.load_metadata()
            artifact = self.engine.load(self.store.model_dir)
        except Exception as exc:
            self._finish(ModelState.FAILED, error=str(exc))
            logger.exception("Failed to load persisted model from %s", self.store.root)
            if isinstance(exc, PersistenceFailure):
                raise
            raise PersistenceFailure(f"Could not load model: {exc}") from exc

        self._finish(ModelState.READY, model=LoadedModel(artifact, metadata))
        logger.info(
            "Loaded persisted model (%d classes: %s, trained %s)",
            len(metadata.labels), ", ".join(metadata.labels), metadata.trained_at,
        )

    # ── Train ───────────────────────────────────────────────────────────

    def train(self, dataset: Dataset) -> TrainingResult:
        """Train a new model on *dataset* and make it the current one.

        The dataset's samples are released when the run ends.

        Raises
        ------
        EmptyDataset
            If *dataset* holds no samples (state untouched).
        AlreadyInProgress
            If a load or training run is in progress (state untouched).
        TrainingFailure
            If building, fitting or persisting failed (state → FAILED).
        """
        if not len(dataset):
            raise EmptyDataset("No images to train on.")

        self._begin(ModelState.TRAINING)
        return self._train_claimed(dataset)

    def _train_claimed(self, dataset: Dataset) -> TrainingResult:
        """Run training once the TRAINING claim is held."""
        logger.info("Training started with config: %s", self.config.to_dict())

        try:
            result, loaded = self._run_training(dataset)
        except Exception as exc:
            self._finish(ModelState.FAILED, error=str(exc))
            logger.exception("Training run failed")
            raise TrainingFailure(f"Training failed: {exc}") from exc
        finally:
            dataset.release()

        self._finish(ModelState.READY, model=loaded)
        logger.info(
            "═══ TRAINING COMPLETE ═══\n"
            "  Classes   : %s\n"
            "  Images    : %d (%d skipped)\n"
            "  Val acc.  : %s\n"
            "  Artefacts : %s",
            ", ".join(result.labels),
            result.total_images, result.skipped,
            result.validation_accuracy,
            self.store.root,
        )
        return result

    def _run_training(self, dataset: Dataset):
        labels = dataset.label_set()
        index = labels.index
        total, skipped = len(dataset), dataset.skipped

        logger.info("Training on %d images, %d classes: %s", total, len(labels), ", ".join(labels))

        with TensorScope(collect=True) as scope:
            x = scope.keep(np.stack([s.tensor for s in dataset.samples]).astype(np.float32))
            y_idx = scope.keep(np.array([index[s.label] for s in dataset.samples], dtype=np.int64))
            y = scope.keep(np.eye(len(labels), dtype=np.float32)[y_idx])
            dataset.release()

            model = self.engine.build(len(labels))
            self.engine.compile(model)
            logger.info("Model summary:\n%s", self.engine.summary(model))

            history = self.engine.fit(model, x, y)

            evaluation = None
            split_at = self.config.validation_start(total)
            if split_at is not None:
                probs = scope.keep(self.engine.predict(model, x[split_at:]))
                evaluation = evaluate_predictions(y_idx[split_at:], probs, labels.labels)

        val_acc = history.get("val_accuracy") or []
        metadata = ModelMetadata(
            labels=labels,
            sample_count=total,
            epochs=self.config.epochs,
            trained_at=datetime.now(timezone.utc).isoformat(),
            validation_accuracy=val_acc[-1] if val_acc else None,
            architecture=self.engine.describe(model),
        )
        self.store.save(lambda model_dir: self.engine.save(model, model_dir), metadata)

        result = TrainingResult(
            labels=list(labels),
            total_images=total,
            skipped=skipped,
            history=epoch_metrics(history),
            validation_accuracy=metadata.validation_accuracy,
            trained_at=metadata.trained_at,
            evaluation=evaluation,
        )
        return result, LoadedModel(model, metadata)
