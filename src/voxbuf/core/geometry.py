"""Image geometry: indices, sizes, orientation matrices and slice origins.

Dimension order is fixed: columns, rows, slices, then time. Offsets are
computed with the column dimension varying fastest.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import NamedTuple

import numpy as np

from voxbuf.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Index:
    """Multi-dimensional integer index (col, row, slice, time, ...)."""

    __slots__ = ("_values",)

    def __init__(self, values: Sequence[int]):
        if len(values) == 0:
            raise ValueError("Cannot create an index with no values")
        self._values = tuple(int(v) for v in values)

    @property
    def values(self) -> tuple[int, ...]:
        return self._values

    @property
    def length(self) -> int:
        return len(self._values)

    def get(self, i: int) -> int:
        """Coordinate ``i``, 0 for coordinates beyond the last one."""
        if i >= len(self._values):
            return 0
        return self._values[i]

    def get_with_new_2d(self, x: int, y: int) -> Index:
        """Copy of this index with the first two coordinates replaced."""
        return Index((x, y) + self._values[2:])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Index):
            return NotImplemented
        return self._values == other._values

    def __hash__(self) -> int:
        return hash(self._values)

    def __repr__(self) -> str:
        return f"Index({list(self._values)})"


def as_index(index: Index | Sequence[int]) -> Index:
    return index if isinstance(index, Index) else Index(index)


class Size:
    """Number of elements along each dimension."""

    __slots__ = ("_values",)

    def __init__(self, values: Sequence[int]):
        if len(values) == 0:
            raise ValueError("Cannot create a size with no values")
        if any(int(v) <= 0 for v in values):
            raise ValueError(f"Size values must be strictly positive: {list(values)}")
        self._values = tuple(int(v) for v in values)

    @property
    def values(self) -> tuple[int, ...]:
        return self._values

    @property
    def length(self) -> int:
        return len(self._values)

    def get(self, dimension: int) -> int:
        """Size of a dimension, 1 for dimensions beyond the last one."""
        if dimension >= len(self._values):
            return 1
        return self._values[dimension]

    def more_than_one(self, dimension: int) -> bool:
        return self.get(dimension) > 1

    def can_scroll(self, view_orientation: Matrix33 | None = None) -> bool:
        """Whether the through-plane dimension of the view has more than one element."""
        dimension = 2
        if view_orientation is not None:
            dimension = view_orientation.get_col_abs_max(2).index
        return self.more_than_one(dimension)

    def get_dim_size(self, dimension: int, start: int = 0) -> int:
        """Product of the sizes of dimensions ``start <= k < dimension``."""
        size = 1
        for i in range(start, min(dimension, len(self._values))):
            size *= self._values[i]
        return size

    def get_total_size(self, start: int = 0) -> int:
        """Product of the sizes of dimensions ``>= start``."""
        return self.get_dim_size(len(self._values), start)

    def index_to_offset(self, index: Index | Sequence[int], start: int = 0) -> int:
        """Flat offset of an index, counting only dimensions ``>= start``."""
        index = as_index(index)
        offset = 0
        for i in range(start, len(self._values)):
            offset += index.get(i) * self.get_dim_size(i, start)
        return offset

    def offset_to_index(self, offset: int) -> Index:
        values = [0] * len(self._values)
        off = int(offset)
        for i in range(len(self._values) - 1, -1, -1):
            dim_size = self.get_dim_size(i)
            values[i] = off // dim_size
            off -= values[i] * dim_size
        return Index(values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Size):
            return NotImplemented
        return self._values == other._values

    def __hash__(self) -> int:
        return hash(self._values)

    def __repr__(self) -> str:
        return f"Size({list(self._values)})"


class AbsMax(NamedTuple):
    value: float
    index: int


class Matrix33:
    """Row-major 3x3 direction cosine matrix."""

    def __init__(self, values: Sequence[float] | np.ndarray):
        arr = np.asarray(values, dtype=np.float64).reshape(3, 3)
        self._values = arr

    def get_column(self, col: int) -> np.ndarray:
        return self._values[:, col].copy()

    def get_third_column(self) -> np.ndarray:
        return self.get_column(2)

    def get_col_abs_max(self, col: int) -> AbsMax:
        """Row with the largest absolute value in a column.

        For a view orientation, this is the storage axis dominant for the
        given view axis.
        """
        column = self._values[:, col]
        row = int(np.argmax(np.abs(column)))
        return AbsMax(value=float(column[row]), index=row)

    def equals(self, rhs: Matrix33 | None, tol: float = 1e-8) -> bool:
        if rhs is None:
            return False
        return bool(np.allclose(self._values, rhs._values, rtol=0.0, atol=tol))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix33):
            return NotImplemented
        return self.equals(other)

    __hash__ = None

    def __repr__(self) -> str:
        return f"Matrix33({self._values.ravel().tolist()})"


def get_identity_mat33() -> Matrix33:
    return Matrix33([1, 0, 0, 0, 1, 0, 0, 0, 1])


def get_coronal_mat33() -> Matrix33:
    return Matrix33([1, 0, 0, 0, 0, 1, 0, -1, 0])


def get_sagittal_mat33() -> Matrix33:
    return Matrix33([0, 0, -1, 1, 0, 0, 0, -1, 0])


_VIEW_MATRICES = {
    "axial": get_identity_mat33,
    "coronal": get_coronal_mat33,
    "sagittal": get_sagittal_mat33,
}


def get_matrix_from_name(name: str) -> Matrix33:
    """View orientation matrix for 'axial', 'coronal' or 'sagittal'."""
    try:
        return _VIEW_MATRICES[name.lower()]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown view orientation: {name!r}. "
            f"Expected one of: {', '.join(_VIEW_MATRICES)}"
        ) from None


class Geometry:
    """Size, spacing, orientation and per-slice origins of an image.

    The image owning a geometry mutates it in place while slices and frames
    are appended during an incremental load.
    """

    def __init__(
        self,
        origin: Sequence[float],
        size: Size | Sequence[int],
        spacing: Sequence[float] | None = None,
        orientation: Matrix33 | None = None,
    ):
        self._origins: list[np.ndarray] = [np.asarray(origin, dtype=np.float64)]
        self._size = size if isinstance(size, Size) else Size(size)
        if spacing is None:
            spacing = [1.0] * self._size.length
        self._spacing = tuple(float(s) for s in spacing)
        self._orientation = orientation if orientation is not None else get_identity_mat33()

    @property
    def origin(self) -> np.ndarray:
        return self._origins[0]

    @property
    def origins(self) -> list[np.ndarray]:
        return list(self._origins)

    @property
    def size(self) -> Size:
        return self._size

    @property
    def spacing(self) -> tuple[float, ...]:
        return self._spacing

    @property
    def orientation(self) -> Matrix33:
        return self._orientation

    def index_to_offset(self, index: Index | Sequence[int], start: int = 0) -> int:
        return self._size.index_to_offset(index, start)

    def offset_to_index(self, offset: int) -> Index:
        return self._size.offset_to_index(offset)

    def can_scroll(self, view_orientation: Matrix33 | None = None) -> bool:
        return self._size.can_scroll(view_orientation)

    def get_slice_index(self, point: Sequence[float]) -> int:
        """Index at which a slice with the given origin should be inserted.

        Finds the closest existing origin; the new slice goes after it if it
        lies above it along the slice normal, before it otherwise (a
        duplicate origin included).
        """
        point = np.asarray(point, dtype=np.float64)
        distances = [float(np.linalg.norm(point - o)) for o in self._origins]
        closest = int(np.argmin(distances))
        normal = self._orientation.get_third_column()
        if float(np.dot(normal, point - self._origins[closest])) > 0:
            return closest + 1
        return closest

    def append_origin(self, origin: Sequence[float], index: int) -> None:
        """Insert a slice origin and grow the slice dimension by one."""
        self._origins.insert(index, np.asarray(origin, dtype=np.float64))
        values = list(self._size.values)
        if len(values) < 3:
            values.extend([1] * (3 - len(values)))
        values[2] += 1
        self._size = Size(values)
        self._pad_spacing()

    def append_frame(self) -> None:
        """Grow the time dimension by one (a 3D geometry becomes 2 frames)."""
        values = list(self._size.values)
        if len(values) < 3:
            values.extend([1] * (3 - len(values)))
        if len(values) == 3:
            values.append(2)
        else:
            values[3] += 1
        self._size = Size(values)
        self._pad_spacing()
        logger.debug("Geometry size after frame append: %s", list(values))

    def _pad_spacing(self) -> None:
        missing = self._size.length - len(self._spacing)
        if missing > 0:
            self._spacing = self._spacing + (1.0,) * missing

    def __repr__(self) -> str:
        return (
            f"Geometry(origin={self.origin.tolist()}, size={list(self._size.values)}, "
            f"spacing={list(self._spacing)})"
        )
