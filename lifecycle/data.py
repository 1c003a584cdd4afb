"""
Dataset loading — label folders or uploaded files → in-memory ``Dataset``.

Two ingestion modes produce the same output:

* **Directory mode** (:func:`load_directory`) walks ``<root>/<label>/<image>``;
  each immediate sub-folder name (lower-cased) is a label.
* **Batch mode** (:func:`load_uploads`) takes ``(filename, bytes)`` pairs;
  the label is the filename prefix up to the first ``_``.

Both modes build a list of tagged entries (:class:`DirectoryEntry` or
:class:`UploadedBlob`) and hand it to :func:`load_entries`, which
preprocesses each one.  A file that fails to decode is skipped and counted,
and ingestion only fails if *nothing* usable remains.

Public API
----------
LabelSet        – Frozen, ordered label ↔ index mapping.
Dataset         – Ordered samples + skip count.
load_directory  – Directory mode.
load_uploads    – Batch mode.
load_entries    – Shared consumer of the tagged entry variant.

Usage::

    from lifecycle.data import load_directory

    dataset = load_directory(Path("dataset/fruits"))
    labels = dataset.label_set()
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple, Union

import numpy as np

from .config import IMAGE_EXTENSIONS
from .errors import DatasetUnavailable, EmptyDataset, UnsupportedImage
from .preprocess import INPUT_SIZE, prepare

logger = logging.getLogger(__name__)

LABEL_SEPARATOR = "_"
PROGRESS_EVERY = 5


# ═══════════════════════════════════════════════════════════════════════════
# Data model
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LabelSet:
    """Ordered, bijective mapping between class names and indices.

    The index of a label is its first-seen position at training time.
    A ``LabelSet`` is saved with the artifact it was trained with and
    predictions are always read through that one.
    """

    labels: Tuple[str, ...]

    def __post_init__(self) -> None:
        if len(set(self.labels)) != len(self.labels):
            raise ValueError(f"Duplicate labels in {list(self.labels)}")

    @classmethod
    def from_labels(cls, labels: Iterable[str]) -> "LabelSet":
        """Deduplicate *labels* keeping first-seen order."""
        return cls(tuple(dict.fromkeys(labels)))

    @classmethod
    def from_dict(cls, payload: dict) -> "LabelSet":
        """Rebuild from ``labels.json``; ``labelIndex`` must agree with the order."""
        label_set = cls(tuple(payload["labels"]))
        index = payload.get("labelIndex")
        if index is not None and index != label_set.index:
            raise ValueError("labels.json: labelIndex disagrees with labels order")
        return label_set

    @property
    def index(self) -> Dict[str, int]:
        return {label: i for i, label in enumerate(self.labels)}

    def to_dict(self) -> dict:
        return {"labels": list(self.labels), "labelIndex": self.index}

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self):
        return iter(self.labels)

    def __getitem__(self, i: int) -> str:
        return self.labels[i]


@dataclass
class LabeledSample:
    """One preprocessed image and its label (lives for one training pass)."""

    tensor: np.ndarray
    label: str


@dataclass
class Dataset:
    """Samples in ingestion order plus the number of entries skipped."""

    samples: List[LabeledSample] = field(default_factory=list)
    skipped: int = 0
    source: str = ""

    def __len__(self) -> int:
        return len(self.samples)

    def label_set(self) -> LabelSet:
        return LabelSet.from_labels(s.label for s in self.samples)

    def class_counts(self) -> Dict[str, int]:
        """``{label: n}`` in first-seen order."""
        return dict(Counter(s.label for s in self.samples))

    def release(self) -> None:
        """Drop references to every sample tensor."""
        self.samples.clear()


# ── Tagged entry variant ────────────────────────────────────────────────────

@dataclass(frozen=True)
class DirectoryEntry:
    """An image file on disk whose label comes from its folder."""

    path: Path
    label: str

    @property
    def name(self) -> str:
        return str(self.path)

    def read(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise UnsupportedImage(f"Cannot read {self.path}: {exc}") from exc


@dataclass(frozen=True)
class UploadedBlob:
    """An uploaded file whose label comes from its filename prefix."""

    filename: str
    data: bytes

    @property
    def name(self) -> str:
        return self.filename

    @property
    def label(self) -> str:
        return label_from_filename(self.filename)

    def read(self) -> bytes:
        return self.data


DatasetEntry = Union[DirectoryEntry, UploadedBlob]


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def label_from_filename(filename: str) -> str:
    """Return the lower-cased stem prefix before the first ``_``.

    ``"Apple_001.jpg"`` → ``"apple"``; ``"banana.png"`` → ``"banana"``.
    """
    stem = Path(filename).stem
    return stem.split(LABEL_SEPARATOR, 1)[0].strip().lower()


def is_image_file(path: Path) -> bool:
    return path.suffix.lower() in IMAGE_EXTENSIONS


def _is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


# ═══════════════════════════════════════════════════════════════════════════
# Shared consumer
# ═══════════════════════════════════════════════════════════════════════════

def load_entries(
    entries: Iterable[DatasetEntry],
    *,
    size: Tuple[int, int] = INPUT_SIZE,
    source: str = "",
    skipped: int = 0,
) -> Dataset:
    """Preprocess every entry into a :class:`Dataset`.

    Parameters
    ----------
    entries : iterable of DirectoryEntry | UploadedBlob
        Consumed in order; that order is the dataset order.
    size : (int, int)
        Target image size.
    source : str
        Human-readable description used in logs.
    skipped : int
        Skips already counted by the caller (e.g. nested folders).

    Raises
    ------
    EmptyDataset
        If no entry produced a usable sample.
    """
    dataset = Dataset(source=source, skipped=skipped)
    per_label: Counter = Counter()

    for entry in entries:
        label = entry.label
        if not label:
            logger.warning("Skipping %s: cannot derive a label", entry.name)
            dataset.skipped += 1
            continue
        try:
            tensor = prepare(entry.read(), size)
        except UnsupportedImage as exc:
            logger.warning("Skipping %s: %s", entry.name, exc)
            dataset.skipped += 1
            continue

        dataset.samples.append(LabeledSample(tensor=tensor, label=label))
        per_label[label] += 1
        if per_label[label] % PROGRESS_EVERY == 0:
            logger.info("   processed %d images of '%s'", per_label[label], label)

    if not dataset.samples:
        raise EmptyDataset(
            f"No usable images found in {source or 'the dataset'} "
            f"({dataset.skipped} skipped)."
        )

    logger.info(
        "Dataset loaded from %s: %d images, %d classes, %d skipped",
        source or "<entries>", len(dataset), len(per_label), dataset.skipped,
    )
    for label, count in dataset.class_counts().items():
        logger.info("   %s: %d images", label, count)

    return dataset


# ═══════════════════════════════════════════════════════════════════════════
# Directory mode
# ═══════════════════════════════════════════════════════════════════════════

def scan_directory(
    root: Path,
    expected_labels: Sequence[str] = (),
) -> Tuple[List[DirectoryEntry], int]:
    """Collect image entries from ``<root>/<label>/<file>``.

    Label folders are visited in sorted order, files inside a folder
    likewise.  Nested folders inside a label folder are counted as
    skipped; non-image files and hidden entries (``.ipynb_checkpoints``,
    ``._photo.jpg``) are ignored.

    Returns
    -------
    (entries, skipped)

    Raises
    ------
    DatasetUnavailable
        If *root* is missing or not a directory.
    """
    root = Path(root)
    if not root.is_dir():
        raise DatasetUnavailable(f"Dataset folder not found: {root}")

    label_dirs = sorted(
        d for d in root.iterdir() if d.is_dir() and not _is_hidden(d)
    )
    present = {d.name.lower() for d in label_dirs}
    for label in expected_labels:
        if label not in present:
            logger.warning("Missing expected label folder: %s", label)

    entries: List[DirectoryEntry] = []
    skipped = 0

    for label_dir in label_dirs:
        label = label_dir.name.lower()
        logger.info("Scanning folder: %s", label_dir.name)
        for path in sorted(label_dir.iterdir()):
            if _is_hidden(path):
                logger.debug("Ignoring hidden entry %s", path)
            elif path.is_dir():
                logger.warning("Skipping nested folder %s", path)
                skipped += 1
            elif path.is_file() and is_image_file(path):
                entries.append(DirectoryEntry(path=path, label=label))
            else:
                logger.debug("Ignoring non-image file %s", path)

    return entries, skipped


def load_directory(
    root: Path,
    *,
    size: Tuple[int, int] = INPUT_SIZE,
    expected_labels: Sequence[str] = (),
) -> Dataset:
    """Directory mode: load every label folder under *root*.

    Raises
    ------
    DatasetUnavailable
        If *root* does not exist.
    EmptyDataset
        If no decodable image was found.
    """
    logger.info("Loading dataset from %s…", root)
    entries, skipped = scan_directory(root, expected_labels)
    return load_entries(entries, size=size, source=str(root), skipped=skipped)


# ═══════════════════════════════════════════════════════════════════════════
# Batch mode
# ═══════════════════════════════════════════════════════════════════════════

def load_uploads(
    files: Iterable[Union[UploadedBlob, Tuple[str, bytes]]],
    *,
    size: Tuple[int, int] = INPUT_SIZE,
) -> Dataset:
    """Batch mode: load ``(filename, bytes)`` pairs or :class:`UploadedBlob`.

    Raises
    ------
    EmptyDataset
        If no upload produced a usable sample.
    """
    blobs = [
        f if isinstance(f, UploadedBlob) else UploadedBlob(filename=f[0], data=f[1])
        for f in files
    ]
    logger.info("Processing %d uploaded images…", len(blobs))
    return load_entries(blobs, size=size, source=f"{len(blobs)} uploads")
