"""
Inference — classify one image with the current model.

Pipeline:
    1. Take one snapshot of the manager's current model (artifact + labels).
    2. Preprocess image bytes → (1, 64, 64, 3) tensor.
    3. Forward pass → probability vector.
    4. Arg-max (ties → lowest label index) read through *that* model's
       label set.

Buffers live in a :class:`~lifecycle.scope.TensorScope` and are released
whether the prediction succeeds or fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .errors import ModelUnavailable
from .manager import ModelLifecycleManager, ModelState
from .preprocess import prepare_batch
from .scope import TensorScope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Prediction:
    label: str
    probability: float
    distribution: List[Tuple[str, float]]

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "probability": self.probability,
            "distribution": [
                {"label": label, "probability": p} for label, p in self.distribution
            ],
        }


class InferenceService:
    """Classifies images with whatever model the manager currently serves."""

    def __init__(self, manager: ModelLifecycleManager) -> None:
        self.manager = manager

    def predict(self, data: bytes) -> Prediction:
        """Classify one encoded image.

        Raises
        ------
        ModelUnavailable
            If the manager is not READY.
        UnsupportedImage
            If the bytes cannot be decoded.
        """
        loaded = self.manager.current()
        if self.manager.state is not ModelState.READY or loaded is None:
            raise ModelUnavailable(
                f"No model available for prediction (state: {self.manager.state.value})."
            )

        labels = loaded.labels
        with TensorScope() as scope:
            batch = scope.keep(prepare_batch(data, self.manager.config.image_size))
            probs = scope.keep(self.manager.engine.predict(loaded.artifact, batch))
            vector = np.asarray(probs[0], dtype=np.float64)

            if vector.shape != (len(labels),):
                raise ModelUnavailable(
                    f"Model output has shape {vector.shape}, expected ({len(labels)},)"
                )

            best = int(np.argmax(vector))             # first maximum → lowest index
            distribution = [(label, float(vector[i])) for i, label in enumerate(labels)]

        prediction = Prediction(
            label=labels[best],
            probability=float(vector[best]),
            distribution=distribution,
        )
        logger.info("Predicted %s (p=%.4f)", prediction.label, prediction.probability)
        return prediction
