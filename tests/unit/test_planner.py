"""Unit tests for the slice iterator planner."""

from __future__ import annotations

import numpy as np
import pytest

from voxbuf.core.errors import ConfigurationError
from voxbuf.core.geometry import (
    AbsMax,
    Geometry,
    Matrix33,
    get_coronal_mat33,
    get_identity_mat33,
    get_sagittal_mat33,
)
from voxbuf.core.image import Image
from voxbuf.core.types import RescaleSlopeAndIntercept
from voxbuf.traversal.planner import get_slice_iterator
from voxbuf.traversal.ranges import get_iterator_values

# volume_3d: 3 columns x 2 rows x 2 slices, value == offset


class TestWithoutOrientation:
    def test_first_slice(self, volume_3d):
        values = get_iterator_values(get_slice_iterator(volume_3d, [0, 0, 0]))
        assert values == [0, 1, 2, 3, 4, 5]

    def test_second_slice_ignores_in_plane_position(self, volume_3d):
        values = get_iterator_values(get_slice_iterator(volume_3d, [2, 1, 1]))
        assert values == [6, 7, 8, 9, 10, 11]

    def test_rescaled(self, volume_3d):
        volume_3d.set_rescale_slope_and_intercept(RescaleSlopeAndIntercept(2.0, 10.0))
        values = get_iterator_values(get_slice_iterator(volume_3d, [0, 0, 0], True))
        assert values == [10, 12, 14, 16, 18, 20]

    def test_time_coordinate_is_dropped(self, volume_4d):
        # only the through-plane coordinate is kept
        values = get_iterator_values(get_slice_iterator(volume_4d, [0, 0, 1, 1]))
        assert values == [4, 5, 6, 7]

    def test_short_position_on_4d_image(self, volume_4d):
        # missing trailing coordinates are 0
        values = get_iterator_values(get_slice_iterator(volume_4d, [0, 0, 1]))
        assert values == [4, 5, 6, 7]
        oriented = get_slice_iterator(volume_4d, [0, 1, 0], False, get_coronal_mat33())
        assert get_iterator_values(oriented) == [6, 7, 2, 3]


class TestWithOrientation:
    def test_axial(self, volume_3d):
        iterator = get_slice_iterator(volume_3d, [0, 0, 1], False, get_identity_mat33())
        assert get_iterator_values(iterator) == [6, 7, 8, 9, 10, 11]

    def test_axial_matches_unoriented(self, volume_cube):
        for k in range(2):
            oriented = get_slice_iterator(volume_cube, [0, 0, k], False, get_identity_mat33())
            plain = get_slice_iterator(volume_cube, [0, 0, k])
            assert get_iterator_values(oriented) == get_iterator_values(plain)

    def test_axial_transposed(self, volume_3d):
        orientation = Matrix33([0, 1, 0, 1, 0, 0, 0, 0, 1])
        iterator = get_slice_iterator(volume_3d, [0, 0, 0], False, orientation)
        assert get_iterator_values(iterator) == [5, 2, 4, 1, 3, 0]

    def test_coronal(self, volume_3d):
        iterator = get_slice_iterator(volume_3d, [0, 1, 0], False, get_coronal_mat33())
        # top row is the last slice
        assert get_iterator_values(iterator) == [9, 10, 11, 3, 4, 5]

    def test_coronal_transposed(self, volume_3d):
        orientation = Matrix33([0, 1, 0, 0, 0, 1, 1, 0, 0])
        iterator = get_slice_iterator(volume_3d, [0, 0, 0], False, orientation)
        assert get_iterator_values(iterator) == [6, 0, 7, 1, 8, 2]

    def test_sagittal(self, volume_3d):
        iterator = get_slice_iterator(volume_3d, [1, 0, 0], False, get_sagittal_mat33())
        assert get_iterator_values(iterator) == [7, 10, 1, 4]

    def test_sagittal_transposed(self, volume_3d):
        orientation = Matrix33([0, 0, 1, 0, 1, 0, 1, 0, 0])
        iterator = get_slice_iterator(volume_3d, [0, 0, 0], False, orientation)
        assert get_iterator_values(iterator) == [6, 0, 9, 3]

    @pytest.mark.parametrize(
        "orientation, n_values",
        [
            (get_identity_mat33(), 12),
            (get_coronal_mat33(), 8),
            (get_sagittal_mat33(), 6),
        ],
    )
    def test_plane_sizes(self, volume_cube, orientation, n_values):
        # volume_cube is 4 x 3 x 2
        values = get_iterator_values(get_slice_iterator(volume_cube, [1, 1, 1], False, orientation))
        assert len(values) == n_values
        assert len(set(values)) == n_values

    def test_unknown_direction(self, volume_3d):
        class BadOrientation:
            def get_col_abs_max(self, col):
                return AbsMax(value=1.0, index=3)

        with pytest.raises(ConfigurationError, match="Unknown direction"):
            get_slice_iterator(volume_3d, [0, 0, 0], False, BadOrientation())


class TestComponents:
    def test_rgb_interleaved(self, rgb_interleaved):
        values = get_iterator_values(get_slice_iterator(rgb_interleaved, [0, 0, 0]))
        assert values == [(10, 20, 30), (11, 21, 31)]

    def test_rgb_planar(self, rgb_planar):
        values = get_iterator_values(get_slice_iterator(rgb_planar, [0, 0, 0]))
        assert values == [(10, 20, 30), (11, 21, 31)]

    def test_rgb_ignores_orientation(self, rgb_interleaved):
        iterator = get_slice_iterator(rgb_interleaved, [0, 0, 0], False, get_coronal_mat33())
        assert get_iterator_values(iterator) == [(10, 20, 30), (11, 21, 31)]

    def test_rgb_second_slice(self):
        geometry = Geometry(origin=(0.0, 0.0, 0.0), size=[1, 1, 2])
        image = Image(geometry, np.array([1, 2, 3, 4, 5, 6], dtype=np.uint8))
        values = get_iterator_values(get_slice_iterator(image, [0, 0, 1]))
        assert values == [(4, 5, 6)]

    def test_unsupported_components(self):
        geometry = Geometry(origin=(0.0, 0.0, 0.0), size=[2, 1, 1])
        image = Image(geometry, np.zeros(4, dtype=np.uint8))
        assert image.number_of_components == 2
        with pytest.raises(ConfigurationError, match="Unsupported number of components"):
            get_slice_iterator(image, [0, 0, 0])
