"""Shared test fixtures: synthetic images."""

from __future__ import annotations

import numpy as np
import pytest

from voxbuf.core.geometry import Geometry
from voxbuf.core.image import Image
from voxbuf.core.types import RescaleSlopeAndIntercept


def make_image(
    size: list[int],
    buffer: np.ndarray | None = None,
    dtype=np.int16,
    origin: tuple[float, float, float] = (0.0, 0.0, 0.0),
    uids: list[str] | None = None,
) -> Image:
    """Image whose values are their own offsets unless a buffer is given."""
    geometry = Geometry(origin=origin, size=size)
    if buffer is None:
        buffer = np.arange(geometry.size.get_total_size(), dtype=dtype)
    return Image(geometry, buffer, uids or ["uid-0"])


def make_slice(
    value: int,
    z: float,
    ncols: int = 3,
    nrows: int = 2,
    uid: str | None = None,
    rsi: RescaleSlopeAndIntercept | None = None,
    meta: dict | None = None,
) -> Image:
    """Single slice filled with ``value`` and located at height ``z``."""
    buffer = np.full(ncols * nrows, value, dtype=np.int16)
    image = make_image([ncols, nrows, 1], buffer, origin=(0.0, 0.0, z), uids=[uid or f"uid-{value}"])
    if rsi is not None:
        image.set_rescale_slope_and_intercept(rsi)
    image.meta = dict(meta) if meta is not None else {"modality": "CT"}
    return image


@pytest.fixture
def volume_3d() -> Image:
    """3 columns x 2 rows x 2 slices, value == offset."""
    return make_image([3, 2, 2])


@pytest.fixture
def volume_cube() -> Image:
    """4 x 3 x 2 volume, value == offset."""
    return make_image([4, 3, 2])


@pytest.fixture
def volume_4d() -> Image:
    """2 x 2 x 2 volume with 2 frames, value == offset."""
    return make_image([2, 2, 2, 2])


@pytest.fixture
def rgb_interleaved() -> Image:
    """2 x 1 x 1 RGB image, interleaved."""
    geometry = Geometry(origin=(0.0, 0.0, 0.0), size=[2, 1, 1])
    image = Image(geometry, np.array([10, 20, 30, 11, 21, 31], dtype=np.uint8), ["rgb"])
    image.photometric_interpretation = "RGB"
    return image


@pytest.fixture
def rgb_planar() -> Image:
    """2 x 1 x 1 RGB image, planar."""
    geometry = Geometry(origin=(0.0, 0.0, 0.0), size=[2, 1, 1])
    image = Image(geometry, np.array([10, 11, 20, 21, 30, 31], dtype=np.uint8), ["rgb"])
    image.photometric_interpretation = "RGB"
    image.planar_configuration = 1
    return image


@pytest.fixture
def image_factory():
    return make_image


@pytest.fixture
def slice_factory():
    return make_slice
