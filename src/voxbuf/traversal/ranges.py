"""Traversal primitives: single-pass iterators over flat buffer offsets.

Each iterator walks integer offsets with pure stride arithmetic and feeds them
to a caller supplied accessor (offset -> value). None of them knows about
geometry; the planners in :mod:`voxbuf.traversal.planner` and
:mod:`voxbuf.traversal.regions` pick the parameters.

Iterators can be drained with :meth:`RangeIterator.pull`, which returns a
``(value, done)`` pair, or with the Python iterator protocol. Once done, an
iterator stays done and never calls the accessor again. They cannot be
restarted and must not be shared between consumers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from typing import Any, NamedTuple

DataAccessor = Callable[[int], Any]
"""Function returning the buffer value at a flat offset."""


class RangeResult(NamedTuple):
    value: Any
    done: bool


_DONE = RangeResult(value=None, done=True)


class RangeIterator(ABC):
    """Base class for all traversal primitives."""

    def __init__(self, accessor: DataAccessor):
        self._accessor = accessor
        self._done = False

    @abstractmethod
    def _has_next(self) -> bool:
        """Whether the cursor is still inside the range."""
        ...

    @abstractmethod
    def _emit(self) -> Any:
        """Read the value at the cursor and advance it."""
        ...

    def pull(self) -> RangeResult:
        if not self._done:
            if self._has_next():
                return RangeResult(value=self._emit(), done=False)
            self._done = True
        return _DONE

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        result = self.pull()
        if result.done:
            raise StopIteration
        return result.value


class SimpleRange(RangeIterator):
    """Offsets ``start, start + increment, ...`` while below ``end``."""

    def __init__(self, accessor: DataAccessor, start: int, end: int, increment: int = 1):
        super().__init__(accessor)
        self._next = start
        self._end = end
        self._increment = increment

    def _has_next(self) -> bool:
        return self._next < self._end

    def _emit(self) -> Any:
        value = self._accessor(self._next)
        self._next += self._increment
        return value


class CountedRange(RangeIterator):
    """Nested 2D loop (outer row, inner column) flattened to 1D strides.

    After ``count_max`` steps of ``increment`` the cursor jumps by
    ``count_increment - count_max * increment``, i.e. ``count_increment`` is
    the distance between the first elements of two consecutive rows.
    ``reverse1`` walks the rows from ``end`` back to ``start``; ``reverse2``
    walks each row from its last element back to its first.

    When rows are closer to each other than their length (transposed walks
    inside one slice), row starts never leave ``[start, end)``: ``row_count``
    then bounds the number of rows. Without it, the walk ends as soon as a
    row finishes outside the range.
    """

    def __init__(
        self,
        accessor: DataAccessor,
        start: int,
        end: int,
        increment: int,
        count_max: int,
        count_increment: int,
        reverse1: bool = False,
        reverse2: bool = False,
        row_count: int | None = None,
    ):
        super().__init__(accessor)
        self._start = start
        self._end = end
        self._reverse1 = reverse1
        self._rows_left = row_count

        if reverse1:
            next_index = end - 1
            count_increment = -count_increment
            if reverse2:
                next_index -= (count_max - 1) * increment
            else:
                increment = -increment
        else:
            next_index = start
            if reverse2:
                next_index += (count_max - 1) * increment
                increment = -increment

        self._next = next_index
        self._increment = increment
        self._count_max = count_max
        self._final_count_increment = count_increment - count_max * increment
        self._count = 0
        self._exhausted = False

    def _has_next(self) -> bool:
        if self._exhausted:
            return False
        if self._rows_left is not None and self._rows_left <= 0:
            return False
        return not self._outside()

    def _outside(self) -> bool:
        if self._reverse1:
            return self._next < self._start
        return self._next >= self._end

    def _emit(self) -> Any:
        value = self._accessor(self._next)
        self._next += self._increment
        self._count += 1
        if self._count == self._count_max:
            self._count = 0
            if self._rows_left is None and self._outside():
                # the last row ran past the range, do not jump back into it
                self._exhausted = True
                return value
            self._next += self._final_count_increment
            if self._rows_left is not None:
                self._rows_left -= 1
        return value


class RegionRange(RangeIterator):
    """Walk one rectangular window: skip ``region_offset`` after every ``region_size`` values."""

    def __init__(
        self,
        accessor: DataAccessor,
        start: int,
        end: int,
        increment: int,
        region_size: int,
        region_offset: int,
    ):
        super().__init__(accessor)
        self._next = start
        self._end = end
        self._increment = increment
        self._region_size = region_size
        self._region_offset = region_offset
        self._region_element_count = 0

    def _has_next(self) -> bool:
        return self._next < self._end

    def _emit(self) -> Any:
        value = self._accessor(self._next)
        self._region_element_count += 1
        self._next += self._increment
        if self._region_element_count == self._region_size:
            self._region_element_count = 0
            self._next += self._region_offset
        return value


class MultiRegionRange(RangeIterator):
    """Walk per-row regions given as ``(lead_offset, size, trail_offset)`` triples.

    After ``size`` values of region ``k`` the cursor moves by the trailing
    offset of region ``k`` and by the leading offset of region ``k + 1``.
    The leading offset of the first region is already part of ``start``.
    """

    def __init__(
        self,
        accessor: DataAccessor,
        start: int,
        end: int,
        increment: int,
        regions: Sequence[Sequence[int]],
    ):
        super().__init__(accessor)
        self._next = start
        self._end = end
        self._increment = increment
        self._regions = [tuple(r) for r in regions]
        self._region_count = 0
        self._region_element_count = 0

    def _has_next(self) -> bool:
        return self._next < self._end and self._region_count < len(self._regions)

    def _emit(self) -> Any:
        value = self._accessor(self._next)
        self._region_element_count += 1
        self._next += self._increment
        _, size, trail = self._regions[self._region_count]
        if self._region_element_count == size:
            self._region_element_count = 0
            self._next += trail
            self._region_count += 1
            if self._region_count < len(self._regions):
                self._next += self._regions[self._region_count][0]
        return value


class Vector3Range(RangeIterator):
    """Three component values per step, interleaved (RGBRGB...) or planar (RR..GG..BB..).

    ``end - start`` covers all three components and should be a multiple of 3.
    """

    def __init__(
        self,
        accessor: DataAccessor,
        start: int,
        end: int,
        increment: int = 1,
        planar: bool = False,
    ):
        super().__init__(accessor)
        component_increment = 1
        if planar:
            component_increment = (end - start) // 3
        else:
            increment *= 3
        self._next = start
        self._next1 = start + component_increment
        self._next2 = start + 2 * component_increment
        self._increment = increment
        # planar data: the first component block ends a third of the way in
        self._end = start + component_increment if planar else end

    def _has_next(self) -> bool:
        return self._next < self._end

    def _emit(self) -> tuple[Any, Any, Any]:
        value = (
            self._accessor(self._next),
            self._accessor(self._next1),
            self._accessor(self._next2),
        )
        self._next += self._increment
        self._next1 += self._increment
        self._next2 += self._increment
        return value


def simple_range(
    accessor: DataAccessor, start: int, end: int, increment: int = 1
) -> SimpleRange:
    return SimpleRange(accessor, start, end, increment)


def counted_range(
    accessor: DataAccessor,
    start: int,
    end: int,
    increment: int,
    count_max: int,
    count_increment: int,
    reverse1: bool = False,
    reverse2: bool = False,
    row_count: int | None = None,
) -> CountedRange:
    return CountedRange(
        accessor, start, end, increment, count_max, count_increment,
        reverse1, reverse2, row_count,
    )


def region_range(
    accessor: DataAccessor,
    start: int,
    end: int,
    increment: int,
    region_size: int,
    region_offset: int,
) -> RegionRange:
    return RegionRange(accessor, start, end, increment, region_size, region_offset)


def multi_region_range(
    accessor: DataAccessor,
    start: int,
    end: int,
    increment: int,
    regions: Sequence[Sequence[int]],
) -> MultiRegionRange:
    return MultiRegionRange(accessor, start, end, increment, regions)


def vector3_range(
    accessor: DataAccessor,
    start: int,
    end: int,
    increment: int = 1,
    planar: bool = False,
) -> Vector3Range:
    return Vector3Range(accessor, start, end, increment, planar)


def get_iterator_values(iterator: RangeIterator) -> list[Any]:
    """Drain an iterator into a list."""
    values = []
    result = iterator.pull()
    while not result.done:
        values.append(result.value)
        result = iterator.pull()
    return values
