"""
Unit tests for IndexBox and GridDescriptor.

Tests the strided index convention (array index = global index - box.lo),
centered alignment of smaller fields and the validation helpers used by every
engine.
"""

import pytest

import numpy as np

from lsm_pde.core.precision import Precision
from lsm_pde.geometry.grid_descriptor import GridDescriptor, IndexBox
from lsm_pde.utils.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    GhostWidthError,
    PrecisionMismatchError,
)


class TestIndexBox:
    """Test IndexBox geometry."""

    def test_shape_and_size(self):
        box = IndexBox(lo=(0, 0), hi=(9, 19))
        assert box.ndim == 2
        assert box.shape == (10, 20)
        assert box.size == 200

    def test_from_shape(self):
        box = IndexBox.from_shape((3, 4), lo=(-1, 2))
        assert box.lo == (-1, 2)
        assert box.hi == (1, 5)

    def test_grow(self):
        box = IndexBox(lo=(0, 0), hi=(9, 9)).grow(2)
        assert box.lo == (-2, -2)
        assert box.hi == (11, 11)

        box = IndexBox(lo=(0, 0), hi=(9, 9)).grow((1, 3))
        assert box.lo == (-1, -3)

    def test_intersect(self):
        a = IndexBox(lo=(0, 0), hi=(5, 5))
        b = IndexBox(lo=(3, -2), hi=(8, 4))
        overlap = a.intersect(b)
        assert overlap == IndexBox(lo=(3, 0), hi=(5, 4))

        disjoint = IndexBox(lo=(6, 6), hi=(7, 7))
        assert a.intersect(disjoint) is None

    def test_contains(self):
        box = IndexBox(lo=(0, 0), hi=(2, 2))
        points = np.array([[0, 0], [2, 2], [3, 0], [-1, 1]])
        np.testing.assert_array_equal(box.contains(points), [True, True, False, False])
        assert box.contains_box(IndexBox(lo=(1, 1), hi=(2, 2)))
        assert not box.contains_box(IndexBox(lo=(1, 1), hi=(3, 2)))

    def test_slices_in(self):
        outer = IndexBox(lo=(-2,), hi=(12,))
        inner = IndexBox(lo=(0,), hi=(10,))
        assert inner.slices_in(outer) == (slice(2, 13),)

    def test_empty_box_rejected(self):
        with pytest.raises(DimensionMismatchError):
            IndexBox(lo=(0, 5), hi=(3, 4))

    def test_mismatched_lengths_rejected(self):
        with pytest.raises(DimensionMismatchError):
            IndexBox(lo=(0, 0), hi=(3,))

    def test_centered_box(self):
        box = IndexBox(lo=(-3, -3), hi=(13, 13))
        centered = box.centered_box((15, 17))
        assert centered.lo == (-2, -3)
        assert centered.hi == (12, 13)

    def test_centered_box_odd_difference(self):
        box = IndexBox(lo=(0,), hi=(9,))
        with pytest.raises(DimensionMismatchError):
            box.centered_box((9,))


class TestGridDescriptorConstruction:
    """Test GridDescriptor factories and invariants."""

    def test_from_bounds(self):
        grid = GridDescriptor.from_bounds([(0.0, 1.0), (0.0, 2.0)], [11, 21], ghost_width=2)

        assert grid.ndim == 2
        assert grid.interior_shape == (11, 21)
        assert grid.shape == (15, 25)
        assert grid.ghost_width == (2, 2)
        np.testing.assert_allclose(grid.spacing, (0.1, 0.1))
        assert grid.precision is Precision.DOUBLE

    def test_coordinates_include_ghosts(self):
        grid = GridDescriptor.from_bounds([(0.0, 1.0)], [11], ghost_width=2)
        (x,) = grid.coordinates()

        assert x.shape == (15,)
        np.testing.assert_allclose(x[0], -0.2)
        np.testing.assert_allclose(x[grid.fill_slices][[0, -1]], [0.0, 1.0])

    def test_meshgrid_ij_order(self):
        grid = GridDescriptor.from_bounds([(0.0, 1.0), (0.0, 2.0)], [3, 5], ghost_width=1)
        X, Y = grid.meshgrid()

        assert X.shape == grid.shape
        assert np.all(X[:, 0] == X[:, -1])
        assert np.all(Y[0, :] == Y[-1, :])

    def test_single_precision(self):
        grid = GridDescriptor.from_shape((8, 8), ghost_width=1, spacing=0.5, precision="single")
        assert grid.dtype == np.float32
        assert grid.with_precision("double").dtype == np.float64

    def test_nonpositive_spacing_rejected(self):
        with pytest.raises(ConfigurationError):
            GridDescriptor.from_shape((8,), ghost_width=1, spacing=0.0)

    def test_asymmetric_padding_rejected(self):
        with pytest.raises(DimensionMismatchError):
            GridDescriptor(
                ghostbox=IndexBox(lo=(-1,), hi=(12,)),
                fillbox=IndexBox(lo=(0,), hi=(10,)),
                spacing=(0.1,),
            )

    def test_fillbox_outside_ghostbox_rejected(self):
        with pytest.raises(DimensionMismatchError):
            GridDescriptor(ghostbox=IndexBox(lo=(0,), hi=(5,)), fillbox=IndexBox(lo=(-1,), hi=(6,)), spacing=(1.0,))

    def test_too_few_points_rejected(self):
        with pytest.raises(ConfigurationError):
            GridDescriptor.from_bounds([(0.0, 1.0)], [1], ghost_width=1)


class TestGridDescriptorValidation:
    """Test field validation and alignment."""

    @pytest.fixture
    def grid(self):
        return GridDescriptor.from_bounds([(0.0, 1.0), (0.0, 1.0)], [11, 11], ghost_width=2)

    def test_full_field(self, grid):
        phi = np.zeros(grid.shape)
        assert grid.validate_field(phi) == grid.ghostbox

    def test_centered_smaller_field(self, grid):
        """A field one cell thinner per side is aligned by centering."""
        phi = np.zeros((13, 13))
        box = grid.validate_field(phi)
        assert box.lo == (-1, -1)

        view = grid.fill_view(phi)
        view[...] = 1.0
        assert phi[0, 0] == 0.0
        assert phi[1, 1] == 1.0

    def test_odd_difference_rejected(self, grid):
        with pytest.raises(DimensionMismatchError):
            grid.validate_field(np.zeros((14, 15)))

    def test_field_not_covering_fillbox(self, grid):
        with pytest.raises(DimensionMismatchError):
            grid.validate_field(np.zeros((9, 9)))

    def test_wrong_ndim(self, grid):
        with pytest.raises(DimensionMismatchError):
            grid.validate_field(np.zeros(15))

    def test_precision_checked(self, grid):
        with pytest.raises(PrecisionMismatchError):
            grid.validate_field(np.zeros(grid.shape, dtype=np.float32))
        grid.validate_field(np.zeros(grid.shape, dtype=np.float32), check_precision=False)

    def test_stencil_reach_uses_array_padding(self, grid):
        """Ghost width is measured on the array's own box."""
        grid.stencil_fill_slices(np.zeros((13, 13)), 1, "test")
        with pytest.raises(GhostWidthError):
            grid.stencil_fill_slices(np.zeros((13, 13)), 2, "test")

    def test_require_ghost_width(self, grid):
        grid.require_ghost_width(2, "HJ ENO2")
        with pytest.raises(GhostWidthError):
            grid.require_ghost_width(3, "HJ ENO3")


class TestIndexLists:
    """Test global index lists."""

    @pytest.fixture
    def grid(self):
        return GridDescriptor.from_shape((5, 5), ghost_width=1, spacing=1.0)

    def test_validate_points(self, grid):
        points = grid.validate_points(np.array([[0, 0], [-1, 5], [4, 4]]))
        assert points.dtype == np.intp

    def test_empty_list(self, grid):
        assert grid.validate_points(np.empty((0, 2), dtype=int)).shape == (0, 2)

    def test_point_outside_ghostbox(self, grid):
        with pytest.raises(DimensionMismatchError):
            grid.validate_points(np.array([[0, 0], [6, 0]]))

    def test_wrong_columns(self, grid):
        with pytest.raises(DimensionMismatchError):
            grid.validate_points(np.array([[0, 0, 0]]))

    def test_point_index(self, grid):
        field = np.arange(49).reshape(7, 7)
        index = grid.point_index(np.array([[0, 0], [-1, -1]]))
        np.testing.assert_array_equal(field[index], [8, 0])
