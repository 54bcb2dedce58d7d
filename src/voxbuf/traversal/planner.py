"""Slice iterator planner: pick the traversal that walks a view plane in display order.

The values of a plane are produced row by row from the top left pixel of the
view, whatever the storage order of the buffer. Only stride parameters change
between views; the buffer is never copied.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from voxbuf.core.errors import ConfigurationError
from voxbuf.core.geometry import Index, Matrix33, as_index
from voxbuf.traversal.ranges import (
    DataAccessor,
    RangeIterator,
    counted_range,
    simple_range,
    vector3_range,
)

if TYPE_CHECKING:
    from voxbuf.core.image import Image

logger = logging.getLogger(__name__)


def get_data_accessor(image: Image, is_rescaled: bool = False) -> DataAccessor:
    """Offset accessor for raw or rescaled values of an image."""
    if is_rescaled:
        return image.get_rescaled_value_at_offset
    return image.get_value_at_offset


def get_slice_iterator(
    image: Image,
    position: Index | Sequence[int],
    is_rescaled: bool = False,
    view_orientation: Matrix33 | None = None,
) -> RangeIterator:
    """Iterator over the plane through ``position`` seen with ``view_orientation``.

    Without orientation the stored slice is walked as is. With an orientation
    (single component images only), the storage axis dominant for the third
    view axis selects the plane (axial, coronal or sagittal) and the storage
    axis dominant for the first view axis selects whether rows and columns
    are transposed. Three component images ignore the orientation.

    Raises:
        ConfigurationError: Unsupported number of components or unknown
            dominant axis.
    """
    position = as_index(position)
    geometry = image.geometry

    # keep only the through-plane coordinate
    dir_max2_index = 2
    if view_orientation is not None:
        dir_max2_index = view_orientation.get_col_abs_max(2).index
    pos_start = Index(
        [v if i == dir_max2_index else 0 for i, v in enumerate(position.values)]
    )
    start = geometry.index_to_offset(pos_start)

    accessor = get_data_accessor(image, is_rescaled)

    size = geometry.size
    ncols = size.get(0)
    nrows = size.get(1)
    nslices = size.get(2)
    slice_size = size.get_dim_size(2)

    n_components = image.number_of_components
    if n_components == 1:
        if view_orientation is None:
            return simple_range(accessor, start, start + slice_size)
        return _oriented_range(
            accessor, start, view_orientation, ncols, nrows, nslices, slice_size
        )
    if n_components == 3:
        # orientation is ignored, walk the stored slice
        start *= 3
        slice_size *= 3
        is_planar = image.planar_configuration == 1
        return vector3_range(accessor, start, start + slice_size, 1, is_planar)
    raise ConfigurationError(f"Unsupported number of components: {n_components}")


def _oriented_range(
    accessor: DataAccessor,
    start: int,
    view_orientation: Matrix33,
    ncols: int,
    nrows: int,
    nslices: int,
    slice_size: int,
) -> RangeIterator:
    dir_max0 = view_orientation.get_col_abs_max(0).index
    dir_max2 = view_orientation.get_col_abs_max(2).index
    logger.debug("Oriented slice walk, dominant axes %d (rows) and %d (normal)", dir_max0, dir_max2)

    # the first value is the top left pixel of the view, which inverts
    # left/right and top/bottom: both reversals are on by default
    reverse1 = True
    reverse2 = True

    if dir_max2 == 2:
        # axial: xyz or yxz
        end = start + slice_size
        if dir_max0 == 0:
            # xyz
            return counted_range(
                accessor, start, end, 1, ncols, ncols, not reverse1, not reverse2,
                row_count=nrows,
            )
        # yxz
        return counted_range(
            accessor, start, end, ncols, nrows, 1, reverse1, not reverse2,
            row_count=ncols,
        )
    if dir_max2 == 0:
        # sagittal: yzx or zyx
        end = start + (nslices - 1) * slice_size + ncols * (nrows - 1) + 1
        if dir_max0 == 1:
            # yzx
            return counted_range(
                accessor, start, end, ncols, nrows, slice_size, reverse1, reverse2,
                row_count=nslices,
            )
        # zyx
        return counted_range(
            accessor, start, end, slice_size, nslices, ncols, not reverse1, reverse2,
            row_count=nrows,
        )
    if dir_max2 == 1:
        # coronal: xzy or zxy
        end = start + (nslices - 1) * slice_size + ncols
        if dir_max0 == 0:
            # xzy
            return counted_range(
                accessor, start, end, 1, ncols, slice_size, reverse1, reverse2,
                row_count=nslices,
            )
        # zxy
        return counted_range(
            accessor, start, end, slice_size, nslices, 1, not reverse1, reverse2,
            row_count=ncols,
        )
    raise ConfigurationError(f"Unknown direction: {dir_max2}")
