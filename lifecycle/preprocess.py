"""
Image preprocessing — raw bytes to a fixed-shape, normalised tensor.

Every image (training or inference) goes through :func:`prepare`:
decode with Pillow → RGB → resize to 64×64 → float32 / 255.  The result
has shape ``(64, 64, 3)`` and values in ``[0, 1]``.

Pure functions, no shared state: safe to call from any thread.
"""

import io
import logging
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import UnsupportedImage

logger = logging.getLogger(__name__)

# ── Constants ───────────────────────────────────────────────────────────────

INPUT_SIZE: Tuple[int, int] = (64, 64)        # (height, width)

_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    ValueError,
    SyntaxError,                               # raised by some truncated PNGs
)


def prepare(data: bytes, size: Tuple[int, int] = INPUT_SIZE) -> np.ndarray:
    """Decode image bytes and return a (H, W, 3) float32 array in [0, 1].

    Animated images contribute their first frame; alpha channels are
    dropped and palette / greyscale images are expanded to RGB.

    Args:
        data: Encoded image bytes (JPEG, PNG, BMP, GIF, …).
        size: Target (height, width), default 64×64.

    Returns:
        Numpy array with shape ``(height, width, 3)``.

    Raises:
        UnsupportedImage: If the bytes cannot be decoded or resized.
    """
    if not data:
        raise UnsupportedImage("Empty image payload.")

    height, width = size
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.seek(0)
            rgb = img.convert("RGB")
        rgb = rgb.resize((width, height))
        arr = np.asarray(rgb, dtype=np.float32) / 255.0
    except _DECODE_ERRORS as exc:
        raise UnsupportedImage(f"Cannot decode image: {exc}") from exc

    return arr


def prepare_batch(data: bytes, size: Tuple[int, int] = INPUT_SIZE) -> np.ndarray:
    """Like :func:`prepare` but returns a batch-ready ``(1, H, W, 3)`` array."""
    return np.expand_dims(prepare(data, size), axis=0)

