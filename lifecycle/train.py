"""
Keras engine — the fixed CNN recipe used for every training run.

Architecture (input 64×64 RGB, values in [0, 1])::

    Conv2D(32, 3×3, relu, same) → MaxPooling2D(2) → Dropout(0.25)
    Conv2D(64, 3×3, relu, same) → MaxPooling2D(2) → Dropout(0.25)
    Flatten → Dense(128, relu) → Dropout(0.5) → Dense(N, softmax)

Compiled with Adam(1e-3) and categorical cross-entropy, fitted with a
fixed number of epochs and a trailing validation split.

:class:`KerasEngine` is the only place the lifecycle touches TensorFlow;
the manager talks to it through ``build / compile / fit / predict /
save / load``.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import tensorflow as tf
from tensorflow.keras.callbacks import Callback
from tensorflow.keras.layers import (
    Conv2D,
    Dense,
    Dropout,
    Flatten,
    Input,
    MaxPooling2D,
)
from tensorflow.keras.models import Sequential, load_model
from tensorflow.keras.optimizers import Adam

from .config import LifecycleConfig

logger = logging.getLogger(__name__)

MODEL_FILENAME = "model.keras"
ARCHITECTURE_NAME = "sequential-cnn"


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

class EpochLogger(Callback):
    """Log loss / accuracy for each epoch with the elapsed time."""

    def __init__(self, epochs: int) -> None:
        super().__init__()
        self.epochs = epochs
        self.started = time.monotonic()

    def on_train_begin(self, logs=None):
        self.started = time.monotonic()

    def on_epoch_end(self, epoch, logs=None):
        logs = logs or {}
        logger.info(
            "Epoch %d/%d: loss=%.4f, accuracy=%.2f%%, val_loss=%s, val_accuracy=%s (%.1fs)",
            epoch + 1, self.epochs,
            logs.get("loss", float("nan")),
            100.0 * logs.get("accuracy", float("nan")),
            _fmt(logs.get("val_loss")),
            _fmt(logs.get("val_accuracy"), percent=True),
            time.monotonic() - self.started,
        )


def _fmt(value: Optional[float], percent: bool = False) -> str:
    if value is None:
        return "n/a"
    return f"{100.0 * value:.2f}%" if percent else f"{value:.4f}"


# ═══════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════

class KerasEngine:
    """TensorFlow / Keras implementation of the tensor-computation engine."""

    def __init__(self, config: LifecycleConfig) -> None:
        self.config = config

    # ── Model building ──────────────────────────────────────────────────

    def build(self, num_classes: int) -> tf.keras.Model:
        """Build the two-stage CNN with a softmax head of *num_classes* units."""
        model = Sequential(
            [
                Input(shape=self.config.input_shape),
                Conv2D(32, kernel_size=3, activation="relu", padding="same"),
                MaxPooling2D(pool_size=2),
                Dropout(0.25),
                Conv2D(64, kernel_size=3, activation="relu", padding="same"),
                MaxPooling2D(pool_size=2),
                Dropout(0.25),
                Flatten(),
                Dense(128, activation="relu"),
                Dropout(0.5),
                Dense(num_classes, activation="softmax", name="probabilities"),
            ],
            name="fruit_cnn",
        )
        logger.info("Built %s: %d classes", ARCHITECTURE_NAME, num_classes)
        return model

    def compile(self, model: tf.keras.Model) -> None:
        model.compile(
            optimizer=Adam(learning_rate=self.config.learning_rate),
            loss="categorical_crossentropy",
            metrics=["accuracy"],
        )

    def summary(self, model: tf.keras.Model) -> str:
        lines: List[str] = []
        model.summary(print_fn=lambda s, *args, **kwargs: lines.append(s))
        return "\n".join(lines)

    def describe(self, model: tf.keras.Model) -> Dict[str, Any]:
        """JSON-safe architecture descriptor stored in ``info.json``."""
        return {
            "name": ARCHITECTURE_NAME,
            "input_shape": list(self.config.input_shape),
            "layers": [
                {"type": layer.__class__.__name__, "name": layer.name}
                for layer in model.layers
            ],
            "parameters": int(model.count_params()),
            "optimizer": "adam",
            "learning_rate": self.config.learning_rate,
            "loss": "categorical_crossentropy",
        }

    # ── Training ────────────────────────────────────────────────────────

    def fit(
        self,
        model: tf.keras.Model,
        x: np.ndarray,
        y: np.ndarray,
    ) -> Dict[str, List[float]]:
        """Fit for ``config.epochs`` epochs; return the Keras history dict.

        ``y`` is one-hot encoded.  The last ``validation_split`` of the
        samples is held out when the dataset is large enough.
        """
        epochs = self.config.epochs
        split_at = self.config.validation_start(len(x))
        validation_split = self.config.validation_split if split_at is not None else 0.0
        if split_at is None:
            logger.warning(
                "Only %d samples, training without a validation split", len(x),
            )

        logger.info(
            "Training for %d epochs (batch=%d, validation_split=%.2f)…",
            epochs, self.config.batch_size, validation_split,
        )
        history = model.fit(
            x,
            y,
            epochs=epochs,
            batch_size=self.config.batch_size,
            validation_split=validation_split,
            callbacks=[EpochLogger(epochs)],
            verbose=0,
        )
        return {k: [float(v) for v in values] for k, values in history.history.items()}

    # ── Inference ───────────────────────────────────────────────────────

    def predict(self, model: tf.keras.Model, batch: np.ndarray) -> np.ndarray:
        """Forward pass; returns a (batch, num_classes) probability array."""
        return np.asarray(model.predict(batch, verbose=0), dtype=np.float64)

    # ── Persistence ─────────────────────────────────────────────────────

    def save(self, model: tf.keras.Model, directory: Path) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / MODEL_FILENAME
        model.save(str(path))
        logger.info("Saved model to %s", path)
        return path

    def load(self, directory: Path) -> tf.keras.Model:
        path = directory / MODEL_FILENAME
        model = load_model(str(path), compile=False)
        logger.info("Loaded model from %s", path)
        return model
