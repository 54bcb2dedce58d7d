"""Region iterator planners: bound a slice traversal to a rectangle or to per-row spans."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from voxbuf.core.errors import ConfigurationError
from voxbuf.core.geometry import Index, as_index
from voxbuf.traversal.planner import get_data_accessor
from voxbuf.traversal.ranges import MultiRegionRange, RegionRange, multi_region_range, region_range

if TYPE_CHECKING:
    from voxbuf.core.image import Image

logger = logging.getLogger(__name__)

Point2D = tuple[int, int]
RowSpan = tuple[Point2D, Point2D]
"""Row region as ``((min_x, min_y), (max_x, max_y))``, ``max_x`` exclusive."""


def _check_single_component(image: Image) -> None:
    if image.number_of_components != 1:
        raise ConfigurationError(
            "Unsupported number of components for region iterator: "
            f"{image.number_of_components}"
        )


def get_region_slice_iterator(
    image: Image,
    position: Index | Sequence[int],
    is_rescaled: bool = False,
    min_point: Point2D | None = None,
    max_point: Point2D | None = None,
) -> RegionRange:
    """Iterator over a rectangle of the slice through ``position``.

    The maximum row is exclusive while the maximum column is not taken into
    the row width, so the default ``max_point`` is ``(ncols - 1, nrows)``.
    Rows are at least one column wide.
    """
    _check_single_component(image)
    position = as_index(position)
    accessor = get_data_accessor(image, is_rescaled)

    geometry = image.geometry
    size = geometry.size
    if min_point is None:
        min_point = (0, 0)
    if max_point is None:
        max_point = (size.get(0) - 1, size.get(1))

    # extra column is fine, remove extra row
    start_offset = geometry.index_to_offset(
        position.get_with_new_2d(min_point[0], min_point[1])
    )
    end_offset = geometry.index_to_offset(
        position.get_with_new_2d(max_point[0], max_point[1] - 1)
    )

    range_width = max(1, max_point[0] - min_point[0])
    row_increment = size.get(0) - range_width

    return region_range(
        accessor, start_offset, end_offset + 1, 1, range_width, row_increment
    )


def get_variable_region_slice_iterator(
    image: Image,
    position: Index | Sequence[int],
    is_rescaled: bool = False,
    regions: Sequence[RowSpan] = (),
) -> MultiRegionRange | None:
    """Iterator over consecutive rows each with its own column span.

    Zero width rows are dropped. Returns ``None`` when no row is left, which
    is different from an iterator that yields nothing.
    """
    _check_single_component(image)
    position = as_index(position)
    accessor = get_data_accessor(image, is_rescaled)

    geometry = image.geometry
    ncols = geometry.size.get(0)

    offset_regions: list[tuple[int, int, int]] = []
    first: RowSpan | None = None
    last: RowSpan | None = None
    for region in regions:
        (min_x, _), (max_x, _) = region
        width = max_x - min_x
        if width == 0:
            continue
        if first is None:
            first = region
        last = region
        offset_regions.append((min_x, width, ncols - max_x))

    if not offset_regions:
        logger.debug("No non-empty row in variable region, no iterator")
        return None

    start_offset = geometry.index_to_offset(
        position.get_with_new_2d(first[0][0], first[0][1])
    )
    end_offset = geometry.index_to_offset(
        position.get_with_new_2d(last[1][0], last[1][1])
    )

    return multi_region_range(accessor, start_offset, end_offset + 1, 1, offset_regions)
