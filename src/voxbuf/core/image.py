"""Image: a flat sample buffer plus geometry, rescale and display metadata.

The buffer is a one dimensional numpy array addressed through the geometry
(column fastest, then row, slice and time). For three component images each
voxel holds three samples, interleaved (planar configuration 0) or in
component blocks (planar configuration 1).

Value accessors do not check bounds: reading outside the buffer is the
caller's responsibility.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from scipy import ndimage

from voxbuf.core.buffer import reallocate
from voxbuf.core.errors import AppendError, ConfigurationError, MissingContextError
from voxbuf.core.events import EventCallback, ListenerHandler
from voxbuf.core.geometry import Geometry, Index, Matrix33
from voxbuf.core.types import DataRange, RescaleSlopeAndIntercept, WindowPreset

logger = logging.getLogger(__name__)

# meta keys allowed to differ between appended slices
_APPEND_EXCLUDED_META = ("windowPresets", "numberOfFiles")
_ORIENTATION_TOLERANCE = 0.0001


@dataclass
class ConstantRsi:
    """One rescale slope and intercept for the whole image."""

    rsi: RescaleSlopeAndIntercept


@dataclass
class PerOffsetRsi:
    """One rescale slope and intercept per secondary offset (slice/frame)."""

    rsis: list[RescaleSlopeAndIntercept] = field(default_factory=list)


RsiState = ConstantRsi | PerOffsetRsi


class Image:
    """Decoded multi-dimensional image.

    Args:
        geometry: Geometry of the image, owned and updated by appends.
        buffer: Flat sample buffer; its length over the geometry total size
            gives the number of components.
        image_uids: One UID per secondary offset, or a single UID shared by
            all slices.
    """

    def __init__(
        self,
        geometry: Geometry,
        buffer: np.ndarray | Sequence[float],
        image_uids: Sequence[str] | None = None,
    ):
        self._geometry = geometry
        self._buffer = np.asarray(buffer)
        if self._buffer.ndim != 1:
            self._buffer = self._buffer.ravel()
        self._image_uids: list[str] = list(image_uids) if image_uids else [""]

        total = geometry.size.get_total_size()
        if len(self._buffer) % total != 0:
            raise ConfigurationError(
                f"Buffer length {len(self._buffer)} is not a multiple of "
                f"the geometry size {total}"
            )
        self._number_of_components = len(self._buffer) // total

        self._rsi_state: RsiState = ConstantRsi(RescaleSlopeAndIntercept(1.0, 0.0))
        self._is_identity_rsi = True
        self._photometric_interpretation = "MONOCHROME2"
        self._planar_configuration = 0
        self._meta: dict[str, Any] = {}

        self._data_range: DataRange | None = None
        self._rescaled_data_range: DataRange | None = None
        self._histogram: list[tuple[float, int]] | None = None

        self._listener_handler = ListenerHandler()

    # --- properties ---

    @property
    def geometry(self) -> Geometry:
        return self._geometry

    @property
    def buffer(self) -> np.ndarray:
        """The sample buffer itself, not a copy."""
        return self._buffer

    @property
    def number_of_components(self) -> int:
        return self._number_of_components

    @property
    def image_uids(self) -> list[str]:
        return list(self._image_uids)

    @property
    def photometric_interpretation(self) -> str:
        return self._photometric_interpretation

    @photometric_interpretation.setter
    def photometric_interpretation(self, value: str) -> None:
        self._photometric_interpretation = value

    @property
    def planar_configuration(self) -> int:
        """0: RGBRGB..., 1: RRR...GGG...BBB..."""
        return self._planar_configuration

    @planar_configuration.setter
    def planar_configuration(self, value: int) -> None:
        self._planar_configuration = value

    @property
    def meta(self) -> dict[str, Any]:
        return self._meta

    @meta.setter
    def meta(self, value: dict[str, Any]) -> None:
        self._meta = value

    def can_quantify(self) -> bool:
        return self._number_of_components == 1

    def can_window_level(self) -> bool:
        return re.search("MONOCHROME", self._photometric_interpretation) is not None

    def can_scroll(self, view_orientation: Matrix33 | None = None) -> bool:
        """True if the view has more than one slice, or a load is still in progress."""
        n_files = self._meta.get("numberOfFiles", 1)
        return self._geometry.can_scroll(view_orientation) or n_files != 1

    # --- uids and secondary offsets ---

    def get_secondary_offset_max(self) -> int:
        return self._geometry.size.get_total_size(2)

    def get_secondary_offset(self, index: Index | Sequence[int]) -> int:
        """Offset over the slice and higher dimensions of an index."""
        return self._geometry.size.index_to_offset(index, 2)

    def get_image_uid(self, index: Index | Sequence[int] | None = None) -> str:
        uid = self._image_uids[0]
        if len(self._image_uids) != 1 and index is not None:
            uid = self._image_uids[self.get_secondary_offset(index)]
        return uid

    # --- rescale slope and intercept ---

    def is_identity_rsi(self) -> bool:
        return self._is_identity_rsi

    def is_constant_rsi(self) -> bool:
        return isinstance(self._rsi_state, ConstantRsi)

    def get_rescale_slope_and_intercept(
        self, index: Index | Sequence[int] | None = None
    ) -> RescaleSlopeAndIntercept:
        """Rescale slope and intercept, the index is needed for non constant ones."""
        state = self._rsi_state
        if isinstance(state, ConstantRsi):
            return state.rsi
        if index is None:
            raise MissingContextError("Cannot get non constant RSI with empty slice index.")
        offset = self.get_secondary_offset(index)
        return self._get_rsi_at_offset(offset)

    def _get_rsi_at_offset(self, offset: int) -> RescaleSlopeAndIntercept:
        state = self._rsi_state
        if isinstance(state, ConstantRsi):
            return state.rsi
        if 0 <= offset < len(state.rsis):
            return state.rsis[offset]
        logger.warning("Undefined non constant RSI at offset %d", offset)
        return RescaleSlopeAndIntercept(1.0, 0.0)

    def set_rescale_slope_and_intercept(
        self, rsi: RescaleSlopeAndIntercept, offset: int | None = None
    ) -> None:
        """Store a rescale slope and intercept.

        While constant, an equal RSI is ignored and a different one replaces
        it when no offset is given. A different RSI given with an offset
        switches the image to one RSI per secondary offset, for good; from
        then on every RSI is inserted at its offset.
        """
        state = self._rsi_state
        if isinstance(state, PerOffsetRsi):
            if offset is None:
                raise MissingContextError(
                    "Cannot store non constant RSI with empty slice index."
                )
            state.rsis.insert(offset, rsi)
        elif state.rsi.equals(rsi):
            return
        elif offset is None:
            self._rsi_state = ConstantRsi(rsi)
        else:
            rsis = [state.rsi] * self.get_secondary_offset_max()
            rsis.insert(offset, rsi)
            self._rsi_state = PerOffsetRsi(rsis)
            logger.debug("Switched to per-offset RSI at offset %d", offset)
        self._is_identity_rsi = self._is_identity_rsi and rsi.is_identity()
        self._clear_rescaled_caches()

    # --- value access ---

    def get_value_at_offset(self, offset: int) -> Any:
        """Buffer value at a flat offset. No bounds check."""
        return self._buffer[offset]

    def get_value_at_index(self, index: Index | Sequence[int]) -> Any:
        return self.get_value_at_offset(self._geometry.size.index_to_offset(index))

    def get_value(self, i: int, j: int, k: int, f: int = 0) -> Any:
        return self.get_value_at_index(Index([i, j, k, f]))

    def get_rescaled_value_at_offset(self, offset: int) -> Any:
        value = self.get_value_at_offset(offset)
        if self._is_identity_rsi:
            return value
        state = self._rsi_state
        if isinstance(state, ConstantRsi):
            return state.rsi.apply(value)
        index = self._geometry.size.offset_to_index(offset)
        return self.get_rescale_slope_and_intercept(index).apply(value)

    def get_rescaled_value_at_index(self, index: Index | Sequence[int]) -> Any:
        return self.get_rescaled_value_at_offset(
            self._geometry.size.index_to_offset(index)
        )

    def get_rescaled_value(self, i: int, j: int, k: int, f: int = 0) -> Any:
        value = self.get_value(i, j, k, f)
        if self._is_identity_rsi:
            return value
        return self.get_rescale_slope_and_intercept(Index([i, j, k, f])).apply(value)

    # --- copies ---

    def clone(self) -> Image:
        """Copy of this image with its own buffer and geometry.

        The meta mapping is shared with this image; the UID list and the RSI
        list are copied.
        """
        copy = Image(deepcopy(self._geometry), self._buffer.copy(), list(self._image_uids))
        state = self._rsi_state
        if isinstance(state, ConstantRsi):
            copy._rsi_state = ConstantRsi(state.rsi)
        else:
            copy._rsi_state = PerOffsetRsi(list(state.rsis))
        copy._is_identity_rsi = self._is_identity_rsi
        copy.photometric_interpretation = self._photometric_interpretation
        copy.planar_configuration = self._planar_configuration
        copy.meta = self._meta
        return copy

    # --- appends ---

    def _realloc(self, size: int) -> None:
        self._buffer = reallocate(self._buffer, size, self._meta.get("IsSigned"))

    def _check_appendable(self, rhs: Image) -> RescaleSlopeAndIntercept:
        """Validate a slice for `append_slice` and return its single RSI."""
        if rhs is None:
            raise AppendError("Cannot append null slice")
        size = self._geometry.size
        rhs_size = rhs.geometry.size
        if rhs_size.get(2) != 1:
            raise AppendError("Cannot append more than one slice")
        if size.get(0) != rhs_size.get(0):
            raise AppendError("Cannot append a slice with different number of columns")
        if size.get(1) != rhs_size.get(1):
            raise AppendError("Cannot append a slice with different number of rows")
        if not self._geometry.orientation.equals(
            rhs.geometry.orientation, _ORIENTATION_TOLERANCE
        ):
            raise AppendError("Cannot append a slice with different orientation")
        if self._photometric_interpretation != rhs.photometric_interpretation:
            raise AppendError(
                "Cannot append a slice with different photometric interpretation"
            )
        for key, value in self._meta.items():
            if key in _APPEND_EXCLUDED_META:
                continue
            if key not in rhs.meta or not _meta_equal(value, rhs.meta[key]):
                raise AppendError(f"Cannot append a slice with different {key}")
        if "numberOfFiles" not in self._meta:
            raise MissingContextError("Missing number of files for buffer manipulation.")
        # the slice holds a single rsi
        return rhs.get_rescale_slope_and_intercept()

    def append_slice(self, rhs: Image, time_id: int = 0) -> None:
        """Insert a single slice image at the position given by its origin.

        Slices of the first time frame shift the existing data to make room;
        later frames write into slots reserved by the first one.

        Raises:
            AppendError: The slice does not match this image.
            MissingContextError: ``numberOfFiles`` is not in the meta, or the
                slice RSI is not constant.
        """
        rhs_rsi = self._check_appendable(rhs)

        size = self._geometry.size
        slice_size = self._number_of_components * size.get_dim_size(2)

        full_buffer_size = slice_size * int(self._meta["numberOfFiles"])
        if size.length == 4:
            full_buffer_size *= size.get(3)
        if len(self._buffer) != full_buffer_size:
            self._realloc(full_buffer_size)

        new_slice_index = self._geometry.get_slice_index(rhs.geometry.origin)
        values = [0] * size.length
        values[2] = new_slice_index
        if size.length == 4:
            values[3] = time_id
        index = Index(values)
        primary_offset = size.index_to_offset(index) * self._number_of_components
        secondary_offset = self.get_secondary_offset(index)

        if time_id == 0:
            old_number_of_slices = size.get(2)
            if new_slice_index < old_number_of_slices:
                start = primary_offset
                end = start + (old_number_of_slices - new_slice_index) * slice_size
                self._buffer[start + slice_size:end + slice_size] = self._buffer[start:end].copy()

        rhs_buffer = rhs.buffer
        self._buffer[primary_offset:primary_offset + len(rhs_buffer)] = rhs_buffer

        if time_id == 0:
            self._geometry.append_origin(rhs.geometry.origin, new_slice_index)

        self.set_rescale_slope_and_intercept(rhs_rsi, secondary_offset)

        number_of_images = len(self._image_uids)
        self._image_uids.insert(secondary_offset, rhs.get_image_uid())

        if "windowPresets" in self._meta:
            self._update_window_presets(rhs, secondary_offset, number_of_images)

        self._clear_caches()
        logger.debug(
            "Appended slice %d (time %d) at secondary offset %d",
            new_slice_index, time_id, secondary_offset,
        )

    def _update_window_presets(
        self, rhs: Image, secondary_offset: int, number_of_images: int
    ) -> None:
        presets: dict[str, WindowPreset] = self._meta["windowPresets"]
        rhs_presets: dict[str, WindowPreset] = rhs.meta.get("windowPresets", {})
        for key, rhs_preset in rhs_presets.items():
            preset = presets.get(key)
            if preset is None:
                presets[key] = rhs_preset
                continue
            if not preset.perslice and preset.wl[0] != rhs_preset.wl[0]:
                # one value per slice from now on, back-fill previous slices
                preset.perslice = True
                preset.wl.extend([preset.wl[0]] * (number_of_images - 1))
            if preset.perslice:
                preset.wl.insert(secondary_offset, rhs_preset.wl[0])

    def append_frame_buffer(
        self, frame_buffer: np.ndarray | Sequence[float], frame_index: int
    ) -> None:
        """Write a whole frame at ``frame_index`` and signal the new frame.

        Storage grows to hold ``numberOfFiles`` frames.
        """
        if "numberOfFiles" not in self._meta:
            raise MissingContextError(
                "Missing number of files for frame buffer manipulation."
            )
        number_of_frames = int(self._meta["numberOfFiles"])
        if frame_index >= number_of_frames:
            raise AppendError(
                "Cannot append a frame at an index above the number of frames"
            )
        size = self._geometry.size
        frame_size = self._number_of_components * size.get_dim_size(3)
        full_buffer_size = frame_size * number_of_frames
        if len(self._buffer) != full_buffer_size:
            self._realloc(full_buffer_size)

        frame_buffer = np.asarray(frame_buffer)
        start = frame_size * frame_index
        self._buffer[start:start + len(frame_buffer)] = frame_buffer
        self._clear_caches()
        self.append_frame()

    def append_frame(self) -> None:
        """Add a frame to the geometry and fire ``appendframe``.

        Storage is updated by the next slice or frame buffer append.
        """
        self._geometry.append_frame()
        logger.debug("Appended frame, size is now %s", list(self._geometry.size.values))
        self._fire_event({"type": "appendframe"})

    # --- statistics ---

    def _clear_rescaled_caches(self) -> None:
        self._rescaled_data_range = None
        self._histogram = None

    def _clear_caches(self) -> None:
        self._data_range = None
        self._clear_rescaled_caches()

    def _first_frame_size(self) -> int:
        size = self._geometry.size
        if size.length >= 3:
            return size.get_dim_size(3)
        return size.get_total_size()

    def _rescaled_values(self, count: int) -> np.ndarray:
        """Rescaled values of the first ``count`` buffer samples."""
        values = self._buffer[:count]
        if self._is_identity_rsi:
            return values
        state = self._rsi_state
        if isinstance(state, ConstantRsi):
            return values * state.rsi.slope + state.rsi.intercept
        result = values.astype(np.float64)
        slice_size = self._geometry.size.get_dim_size(2)
        for offset in range(0, -(-count // slice_size)):
            rsi = self._get_rsi_at_offset(offset)
            block = slice(offset * slice_size, min((offset + 1) * slice_size, count))
            result[block] = result[block] * rsi.slope + rsi.intercept
        return result

    def get_data_range(self) -> DataRange:
        """Raw value range, computed on the first time frame only."""
        if self._data_range is None:
            self._data_range = self.calculate_data_range()
        return self._data_range

    def get_rescaled_data_range(self) -> DataRange:
        """Rescaled value range, computed on the first time frame only."""
        if self._rescaled_data_range is None:
            self._rescaled_data_range = self.calculate_rescaled_data_range()
        return self._rescaled_data_range

    def get_histogram(self) -> list[tuple[float, int]]:
        """Histogram of the rescaled values as ``(bucket, count)`` pairs."""
        if self._histogram is None:
            data_range, rescaled_data_range, histogram = self.calculate_histogram()
            self._data_range = data_range
            self._rescaled_data_range = rescaled_data_range
            self._histogram = histogram
        return self._histogram

    def calculate_data_range(self) -> DataRange:
        values = self._buffer[:self._first_frame_size()]
        return DataRange(min=values.min().item(), max=values.max().item())

    def calculate_rescaled_data_range(self) -> DataRange:
        if self._is_identity_rsi:
            return self.get_data_range()
        state = self._rsi_state
        if isinstance(state, ConstantRsi):
            data_range = self.get_data_range()
            res_min = state.rsi.apply(data_range.min)
            res_max = state.rsi.apply(data_range.max)
            return DataRange(min=min(res_min, res_max), max=max(res_min, res_max))
        values = self._rescaled_values(self._first_frame_size())
        return DataRange(min=values.min().item(), max=values.max().item())

    def calculate_histogram(self) -> tuple[DataRange, DataRange, list[tuple[float, int]]]:
        """Scan the whole image once for ranges and rescaled value counts.

        Counts are keyed by rescaled value; buckets run from the rescaled
        minimum to the rescaled maximum in steps of one.
        """
        count = self._geometry.size.get_total_size()
        values = self._buffer[:count]
        rescaled = self._rescaled_values(count)
        data_range = DataRange(min=values.min().item(), max=values.max().item())
        rmin = rescaled.min().item()
        rmax = rescaled.max().item()
        rescaled_data_range = DataRange(min=rmin, max=rmax)

        buckets, counts = np.unique(rescaled, return_counts=True)
        histo = dict(zip(buckets.tolist(), counts.tolist()))
        histogram = []
        bucket = rmin
        while bucket <= rmax:
            histogram.append((bucket, histo.get(bucket, 0)))
            bucket += 1
        return data_range, rescaled_data_range, histogram

    # --- processing ---

    def convolute_2d(self, weights: Sequence[float]) -> Image:
        """Correlate every 2D slice with a 3x3 kernel, on raw values.

        Borders are extended by replicating the edge samples. Three
        component images are processed component by component.
        """
        if len(weights) != 9:
            raise ConfigurationError(
                "The convolution matrix does not have a length of 9; "
                f"it has {len(weights)}"
            )
        kernel = np.asarray(weights, dtype=np.float64).reshape(3, 3)

        new_image = self.clone()
        new_buffer = new_image.buffer

        size = self._geometry.size
        ncols = size.get(0)
        nrows = size.get(1)
        ncomp = self._number_of_components
        slice_offset = size.get_dim_size(2) * ncomp
        n_slices = len(self._buffer) // slice_offset
        for k in range(n_slices):
            start = k * slice_offset
            block = self._buffer[start:start + slice_offset]
            if ncomp == 1:
                planes = block.reshape(1, nrows, ncols)
            elif self._planar_configuration == 0:
                planes = block.reshape(nrows, ncols, ncomp).transpose(2, 0, 1)
            else:
                planes = block.reshape(ncomp, nrows, ncols)
            result = np.stack([
                ndimage.correlate(plane.astype(np.float64), kernel, mode="nearest")
                for plane in planes
            ])
            if ncomp != 1 and self._planar_configuration == 0:
                result = result.transpose(1, 2, 0)
            new_buffer[start:start + slice_offset] = result.ravel()

        return new_image

    def transform(self, operator: Callable[[Any], Any]) -> Image:
        """Image with every raw value replaced by ``operator(value)``."""
        new_image = self.clone()
        new_buffer = new_image.buffer
        op = np.frompyfunc(operator, 1, 1)
        new_buffer[:] = op(new_buffer).astype(np.float64)
        return new_image

    def compose(self, rhs: Image, operator: Callable[[Any, Any], Any]) -> Image:
        """Image with values ``floor(operator(value, rhs_value))``.

        Buffers are assumed to have the same length.
        """
        new_image = self.clone()
        new_buffer = new_image.buffer
        op = np.frompyfunc(operator, 2, 1)
        new_buffer[:] = np.floor(op(self._buffer, rhs.buffer).astype(np.float64))
        return new_image

    # --- events ---

    def add_event_listener(self, event_type: str, callback: EventCallback) -> None:
        self._listener_handler.add(event_type, callback)

    def remove_event_listener(self, event_type: str, callback: EventCallback) -> None:
        self._listener_handler.remove(event_type, callback)

    def _fire_event(self, event: dict[str, Any]) -> None:
        self._listener_handler.fire_event(event)

    def __repr__(self) -> str:
        return (
            f"Image(size={list(self._geometry.size.values)}, "
            f"components={self._number_of_components}, dtype={self._buffer.dtype})"
        )


def _meta_equal(lhs: Any, rhs: Any) -> bool:
    if isinstance(lhs, np.ndarray) or isinstance(rhs, np.ndarray):
        return bool(np.array_equal(lhs, rhs))
    return bool(lhs == rhs)
