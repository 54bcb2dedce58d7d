"""Typed sample buffer allocation."""

from __future__ import annotations

import logging

import numpy as np

from voxbuf.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_INT_DTYPES = {
    (8, False): np.uint8,
    (8, True): np.int8,
    (16, False): np.uint16,
    (16, True): np.int16,
    (32, False): np.uint32,
    (32, True): np.int32,
    (64, False): np.uint64,
    (64, True): np.int64,
}


def get_typed_array(bits_allocated: int, is_signed: bool, size: int) -> np.ndarray:
    """Zero-filled integer buffer of the given element width and signedness."""
    dtype = _INT_DTYPES.get((int(bits_allocated), bool(is_signed)))
    if dtype is None:
        raise ConfigurationError(
            f"Unsupported bits allocated for a typed buffer: {bits_allocated}"
        )
    return np.zeros(int(size), dtype=dtype)


def reallocate(
    buffer: np.ndarray, size: int, is_signed: bool | None = None
) -> np.ndarray:
    """Return a new buffer of ``size`` elements holding ``buffer`` as its prefix.

    Integer buffers keep their element width; their signedness is kept
    unless ``is_signed`` says otherwise. Other buffers keep their dtype.
    """
    if buffer.dtype.kind in "iu":
        if is_signed is None:
            is_signed = buffer.dtype.kind == "i"
        new_buffer = get_typed_array(buffer.dtype.itemsize * 8, is_signed, size)
    else:
        new_buffer = np.zeros(int(size), dtype=buffer.dtype)
    n = min(len(buffer), len(new_buffer))
    new_buffer[:n] = buffer[:n]
    logger.debug("Reallocated buffer: %d -> %d elements (%s)", len(buffer), size, new_buffer.dtype)
    return new_buffer
