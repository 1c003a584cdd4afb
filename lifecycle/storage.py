"""
Persisted artifact layout and metadata.

The artifact is always written and read as one unit::

    <artifact_root>/
    ├── model/          ← engine files (opaque)
    ├── labels.json     ← {"labels": [...], "labelIndex": {label: int}}
    └── info.json       ← {"labels", "trainedAt", "sampleCount", "epochs",
                           "architecture", "validationAccuracy"}

Saving builds the complete unit in a temporary sibling directory and only
then swaps it into place, so a crash mid-write never leaves a model next to
metadata from a different run.  The swap is two renames (current → backup,
temporary → current); :meth:`ArtifactStore.recover` repairs a swap that
was interrupted between them.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .data import LabelSet
from .errors import ArtifactNotFound, PersistenceFailure

logger = logging.getLogger(__name__)

MODEL_DIR = "model"
LABELS_FILE = "labels.json"
INFO_FILE = "info.json"


# ═══════════════════════════════════════════════════════════════════════════
# Metadata
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ModelMetadata:
    """Everything persisted next to the model files."""

    labels: LabelSet
    sample_count: int
    epochs: int
    trained_at: str
    validation_accuracy: Optional[float] = None
    architecture: Dict[str, Any] = field(default_factory=dict)

    def to_info(self) -> dict:
        return {
            "labels": list(self.labels),
            "trainedAt": self.trained_at,
            "sampleCount": self.sample_count,
            "epochs": self.epochs,
            "architecture": self.architecture,
            "validationAccuracy": self.validation_accuracy,
        }

    @classmethod
    def from_payloads(cls, labels_payload: dict, info: dict) -> "ModelMetadata":
        """Combine ``labels.json`` and ``info.json`` contents.

        The label set always comes from ``labels.json``; ``info.json`` must
        list the same labels.
        """
        labels = LabelSet.from_dict(labels_payload)
        if list(info.get("labels", labels.labels)) != list(labels.labels):
            raise ValueError("info.json labels disagree with labels.json")
        return cls(
            labels=labels,
            sample_count=int(info["sampleCount"]),
            epochs=int(info["epochs"]),
            trained_at=str(info["trainedAt"]),
            validation_accuracy=info.get("validationAccuracy"),
            architecture=info.get("architecture") or {},
        )


# ═══════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════

class ArtifactStore:
    """Reads and atomically replaces the artifact under *root*."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    # ── Paths ───────────────────────────────────────────────────────────

    @property
    def model_dir(self) -> Path:
        return self.root / MODEL_DIR

    @property
    def labels_path(self) -> Path:
        return self.root / LABELS_FILE

    @property
    def info_path(self) -> Path:
        return self.root / INFO_FILE

    @property
    def _backup(self) -> Path:
        return self.root.parent / f".{self.root.name}.old"

    def _temp_dir(self) -> Path:
        return self.root.parent / f".{self.root.name}.tmp-{uuid.uuid4().hex[:8]}"

    # ── Queries ─────────────────────────────────────────────────────────

    def exists(self) -> bool:
        """True if the model directory and both metadata files are present."""
        return (
            self.model_dir.is_dir()
            and any(self.model_dir.iterdir())
            and self.labels_path.is_file()
            and self.info_path.is_file()
        )

    def recoverable(self) -> bool:
        """True if :meth:`exists` or an interrupted swap left a backup behind.

        Read-only: nothing is repaired until :meth:`recover` runs.
        """
        return self.exists() or (not self.root.exists() and self._backup.is_dir())

    def files(self) -> List[Tuple[str, Path]]:
        """``(archive name, path)`` for every persisted file, sorted.

        Raises
        ------
        ArtifactNotFound
            If the artifact is incomplete or absent.
        """
        if not self.exists():
            raise ArtifactNotFound(f"No persisted model found in {self.root}")

        entries = [
            (f"{MODEL_DIR}/{p.relative_to(self.model_dir).as_posix()}", p)
            for p in self.model_dir.rglob("*")
            if p.is_file()
        ]
        entries.append((LABELS_FILE, self.labels_path))
        entries.append((INFO_FILE, self.info_path))
        return sorted(entries, key=lambda e: e[0])

    def load_metadata(self) -> ModelMetadata:
        """Read ``labels.json`` + ``info.json``.

        Raises
        ------
        ArtifactNotFound
            If the artifact is absent.
        PersistenceFailure
            If the metadata is unreadable or inconsistent.
        """
        if not self.exists():
            raise ArtifactNotFound(f"No persisted model found in {self.root}")
        try:
            labels_payload = json.loads(self.labels_path.read_text(encoding="utf-8"))
            info = json.loads(self.info_path.read_text(encoding="utf-8"))
            return ModelMetadata.from_payloads(labels_payload, info)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise PersistenceFailure(f"Corrupt model metadata in {self.root}: {exc}") from exc

    # ── Writes ──────────────────────────────────────────────────────────

    def recover(self) -> bool:
        """Repair an interrupted swap and drop stale temporary directories.

        Only call this while holding the manager's LOADING or TRAINING
        claim: a temporary directory may belong to an in-flight save.

        Returns True if a backup was restored.
        """
        restored = False
        if not self.root.exists() and self._backup.is_dir():
            os.replace(self._backup, self.root)
            logger.warning("Restored model artifact from interrupted swap: %s", self.root)
            restored = True

        parent = self.root.parent
        if parent.is_dir():
            for stale in parent.glob(f".{self.root.name}.tmp-*"):
                shutil.rmtree(stale, ignore_errors=True)
                logger.info("Removed stale temporary artifact %s", stale)
        return restored

    def save(self, write_model: Callable[[Path], Any], metadata: ModelMetadata) -> Path:
        """Write model + metadata to a temp dir, then swap it into place.

        Parameters
        ----------
        write_model : callable
            Called with the target ``model/`` directory; writes the engine
            files there.
        metadata : ModelMetadata
            Labels and training info written next to the model.

        Raises
        ------
        PersistenceFailure
            If any write fails.  The previous artifact is left untouched
            unless the failure happens during the final swap.
        """
        self.root.parent.mkdir(parents=True, exist_ok=True)
        self.recover()

        tmp = self._temp_dir()
        try:
            model_dir = tmp / MODEL_DIR
            model_dir.mkdir(parents=True)
            write_model(model_dir)
            (tmp / LABELS_FILE).write_text(
                json.dumps(metadata.labels.to_dict(), indent=2), encoding="utf-8",
            )
            (tmp / INFO_FILE).write_text(
                json.dumps(metadata.to_info(), indent=2), encoding="utf-8",
            )
        except Exception as exc:
            shutil.rmtree(tmp, ignore_errors=True)
            raise PersistenceFailure(f"Could not write model artifact: {exc}") from exc

        try:
            if self._backup.exists():
                shutil.rmtree(self._backup)
            if self.root.exists():
                os.replace(self.root, self._backup)
            os.replace(tmp, self.root)
        except OSError as exc:
            shutil.rmtree(tmp, ignore_errors=True)
            self.recover()
            raise PersistenceFailure(f"Could not swap model artifact into place: {exc}") from exc

        shutil.rmtree(self._backup, ignore_errors=True)
        logger.info("Persisted model artifact to %s", self.root)
        return self.root
