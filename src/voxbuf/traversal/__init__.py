"""Traversal: stride iterators and the planners that parameterise them."""

from voxbuf.traversal.planner import get_slice_iterator
from voxbuf.traversal.ranges import get_iterator_values
from voxbuf.traversal.regions import (
    get_region_slice_iterator,
    get_variable_region_slice_iterator,
)

__all__ = [
    "get_slice_iterator",
    "get_region_slice_iterator",
    "get_variable_region_slice_iterator",
    "get_iterator_values",
]
