"""
Lifecycle configuration and paths.

All tuneable settings live here so they are easy to find, review,
and override without touching training logic.

Directory conventions
---------------------
::

    fruitlab/
    ├── models/
    │   └── artifact/                 ← Current persisted model (one unit)
    │       ├── model/
    │       │   └── model.keras       ← Keras artefact
    │       ├── labels.json           ← {labels, labelIndex}
    │       └── info.json             ← Training metadata
    │
    ├── dataset/
    │   └── fruits/                   ← Directory-mode training data
    │       ├── apple/
    │       ├── banana/
    │       └── …
    │
    └── lifecycle/                    ← This package
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Tuple

# ── Defaults (relative to the Django BASE_DIR) ──────────────────────────────

DEFAULT_DATASET_DIR = Path("dataset") / "fruits"
DEFAULT_ARTIFACT_DIR = Path("models") / "artifact"

# File extensions accepted by directory-mode ingestion
IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".bmp", ".gif"})


@dataclass
class LifecycleConfig:
    """All paths and hyperparameters for one lifecycle manager.

    Training follows a single fixed recipe: a two-stage CNN compiled with
    Adam and categorical cross-entropy, fitted for ``epochs`` epochs with
    ``validation_split`` of the samples held out.

    Attributes
    ----------
    dataset_root : Path
        Root of the directory-mode dataset (``<root>/<label>/<images>``).
    artifact_root : Path
        Directory holding ``model/``, ``labels.json`` and ``info.json``.
    image_size : tuple
        (height, width) every image is resized to (default 64×64).
    epochs : int
        Training epochs (default 50).
    batch_size : int
        Mini-batch size (default 32).
    validation_split : float
        Fraction of samples held out for validation (default 0.2).
    learning_rate : float
        Adam learning rate (default 1e-3).
    expected_labels : tuple
        Label folders the dataset is expected to contain; missing ones
        are reported, never enforced.
    max_upload_files : int
        Upper bound on files accepted by one batch-mode training request.
    max_upload_size : int
        Upper bound on the size of a single uploaded file, in bytes.
    auto_initialize : bool
        Launch ``initialize()`` in the background when Django starts.
    """

    # ── Paths ───────────────────────────────────────────────────────────
    dataset_root: Path = DEFAULT_DATASET_DIR
    artifact_root: Path = DEFAULT_ARTIFACT_DIR

    # ── Hyperparameters ─────────────────────────────────────────────────
    image_size: Tuple[int, int] = (64, 64)
    epochs: int = 50
    batch_size: int = 32
    validation_split: float = 0.2
    learning_rate: float = 1e-3

    # ── Dataset expectations ────────────────────────────────────────────
    expected_labels: Tuple[str, ...] = field(default_factory=tuple)

    # ── Transport limits ────────────────────────────────────────────────
    max_upload_files: int = 100
    max_upload_size: int = 10 * 1024 * 1024  # 10 MB

    # ── Startup ─────────────────────────────────────────────────────────
    auto_initialize: bool = True

    def __post_init__(self) -> None:
        self.dataset_root = Path(self.dataset_root)
        self.artifact_root = Path(self.artifact_root)
        self.image_size = tuple(self.image_size)
        self.expected_labels = tuple(label.lower() for label in self.expected_labels)
        if self.epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {self.epochs}")
        if not 0.0 <= self.validation_split < 1.0:
            raise ValueError(
                f"validation_split must be in [0, 1), got {self.validation_split}"
            )

    # ── Helpers ──────────────────────────────────────────────────────────

    @classmethod
    def from_settings(cls, base_dir: Optional[Path] = None) -> "LifecycleConfig":
        """Build a config from ``settings.CLASSIFIER``.

        Keys are the lower-case attribute names; relative paths are
        resolved against ``settings.BASE_DIR``.  Unknown keys raise
        ``TypeError`` so typos are caught at startup.
        """
        from django.conf import settings

        base = Path(base_dir or settings.BASE_DIR)
        overrides = {k.lower(): v for k, v in getattr(settings, "CLASSIFIER", {}).items()}

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown CLASSIFIER settings: {sorted(unknown)}")

        for key, default in (
            ("dataset_root", DEFAULT_DATASET_DIR),
            ("artifact_root", DEFAULT_ARTIFACT_DIR),
        ):
            path = Path(overrides.get(key) or default)
            overrides[key] = path if path.is_absolute() else base / path

        return cls(**overrides)

    @property
    def input_shape(self) -> Tuple[int, int, int]:
        h, w = self.image_size
        return (h, w, 3)

    def validation_start(self, num_samples: int) -> Optional[int]:
        """Return the index where the validation tail starts, or None.

        Keras holds out the *last* ``validation_split`` fraction of the
        samples.  With too few samples the split would leave one side
        empty, in which case validation is skipped.
        """
        if self.validation_split <= 0:
            return None
        split_at = int(math.floor(num_samples * (1.0 - self.validation_split)))
        if split_at <= 0 or split_at >= num_samples:
            return None
        return split_at

    def to_dict(self) -> dict:
        """Serialise to a JSON-safe dict (for logs and the info endpoint)."""
        return {
            "dataset_root": str(self.dataset_root),
            "artifact_root": str(self.artifact_root),
            "image_size": list(self.image_size),
            "epochs": self.epochs,
            "batch_size": self.batch_size,
            "validation_split": self.validation_split,
            "learning_rate": self.learning_rate,
            "expected_labels": list(self.expected_labels),
            "max_upload_files": self.max_upload_files,
            "max_upload_size": self.max_upload_size,
            "auto_initialize": self.auto_initialize,
        }
