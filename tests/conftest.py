"""Shared fixtures: Django setup, synthetic images and datasets, managers."""

import io
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "fruitlab.settings")
os.environ.setdefault("FRUITLAB_AUTO_INITIALIZE", "0")
os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

import django  # noqa: E402

django.setup()

import pytest  # noqa: E402
from PIL import Image  # noqa: E402

from lifecycle.config import LifecycleConfig  # noqa: E402
from lifecycle.manager import ModelLifecycleManager  # noqa: E402
from tests.fakes import FakeEngine  # noqa: E402

COLORS = {
    "apple": (200, 30, 30),
    "banana": (230, 220, 40),
    "pear": (150, 200, 60),
    "orange": (250, 140, 20),
    "grape": (90, 30, 120),
}


def image_bytes(color=(128, 128, 128), fmt="PNG", size=(20, 16), mode="RGB") -> bytes:
    """Encode a solid-colour image."""
    buf = io.BytesIO()
    fill = color if mode != "L" else color[0]
    Image.new(mode, size, fill).save(buf, format=fmt)
    return buf.getvalue()


def write_dataset(root, counts, fmt="PNG", ext=".png"):
    """Create ``root/<label>/<label>_<i><ext>`` for each ``{label: n}``."""
    root.mkdir(parents=True, exist_ok=True)
    for label, n in counts.items():
        folder = root / label
        folder.mkdir(exist_ok=True)
        for i in range(n):
            (folder / f"{label}_{i}{ext}").write_bytes(
                image_bytes(COLORS.get(label.lower(), (10 * i, 10 * i, 10 * i)), fmt=fmt)
            )
    return root


@pytest.fixture
def dataset_root(tmp_path):
    """``apple/`` with 3 images, ``banana/`` with 2."""
    return write_dataset(tmp_path / "fruits", {"apple": 3, "banana": 2})


@pytest.fixture
def config(tmp_path, dataset_root):
    return LifecycleConfig(
        dataset_root=dataset_root,
        artifact_root=tmp_path / "models" / "artifact",
        epochs=2,
        batch_size=4,
        auto_initialize=False,
    )


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def manager(config, engine):
    return ModelLifecycleManager(config, engine=engine)
