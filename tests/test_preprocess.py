import numpy as np
import pytest

from lifecycle.errors import UnsupportedImage
from lifecycle.preprocess import prepare, prepare_batch
from tests.conftest import image_bytes


@pytest.mark.parametrize("fmt", ["PNG", "JPEG", "BMP", "GIF"])
def test_prepare_returns_fixed_shape_in_unit_range(fmt):
    arr = prepare(image_bytes((255, 0, 0), fmt=fmt, size=(120, 40)))

    assert arr.shape == (64, 64, 3)
    assert arr.dtype == np.float32
    assert arr.min() >= 0.0 and arr.max() <= 1.0


def test_prepare_keeps_rgb_channel_order():
    arr = prepare(image_bytes((255, 0, 0)))

    assert arr[..., 0].mean() == pytest.approx(1.0)
    assert arr[..., 1].mean() == pytest.approx(0.0)
    assert arr[..., 2].mean() == pytest.approx(0.0)


def test_prepare_expands_greyscale_and_drops_alpha():
    grey = prepare(image_bytes((100, 100, 100), mode="L"))
    rgba = prepare(image_bytes((0, 0, 255, 10), mode="RGBA"))

    assert grey.shape == (64, 64, 3)
    assert rgba.shape == (64, 64, 3)
    assert rgba[..., 2].mean() == pytest.approx(1.0)


@pytest.mark.parametrize("payload", [b"", b"definitely not an image", b"\x89PNG\r\n\x1a\n\x00"])
def test_prepare_rejects_undecodable_bytes(payload):
    with pytest.raises(UnsupportedImage):
        prepare(payload)


def test_prepare_batch_adds_batch_axis():
    assert prepare_batch(image_bytes()).shape == (1, 64, 64, 3)
