"""
Unit tests for level set right-hand side assembly.

Tests upwind selection of each term, the combined external/normal velocity
upwinding, curvature terms and restriction to narrow band points.
"""

import pytest

import numpy as np

from lsm_pde.evolution.rhs import (
    add_advection_term,
    add_const_normal_velocity_term,
    add_curvature_term,
    add_external_and_normal_velocity_term,
    add_normal_velocity_term,
    add_precomputed_curvature_term,
    compute_level_set_rhs,
)
from lsm_pde.geometry.grid_descriptor import GridDescriptor
from lsm_pde.geometry.level_set.curvature import compute_curvature
from lsm_pde.geometry.narrow_band import build_narrow_band
from lsm_pde.operators.spatial_derivatives import compute_upwind_gradient
from lsm_pde.operators.stencils.finite_difference import UpwindGradient
from lsm_pde.utils.exceptions import DimensionMismatchError


@pytest.fixture
def line_grid():
    """1D grid with four interior points and one ghost cell per side."""
    return GridDescriptor.from_shape((4,), ghost_width=1, spacing=1.0)


@pytest.fixture
def line_gradient():
    # Interior entries: valley, peak, shock and rarefaction configurations
    plus = np.array([0.0, 1.0, -2.0, -1.0, 2.0, 0.0])
    minus = np.array([0.0, -1.0, 3.0, 2.0, -3.0, 0.0])
    return UpwindGradient(plus=(plus,), minus=(minus,))


class TestAdvectionTerm:
    def test_upwind_selection(self, line_grid, line_gradient):
        rhs = np.zeros(6)
        velocity = [np.array([0.0, 1.0, -1.0, 0.0, 2.0, 0.0])]

        add_advection_term(rhs, line_grid, line_gradient, velocity)

        # V > 0 uses φ⁻, V < 0 uses φ⁺, V = 0 contributes nothing
        np.testing.assert_allclose(rhs, [0.0, 1.0, -2.0, 0.0, 6.0, 0.0])

    def test_precomputed_gradient(self, line_grid):
        rhs = np.zeros(6)
        gradient = [np.arange(6, dtype=float)]
        velocity = [np.full(6, 2.0)]
        add_advection_term(rhs, line_grid, gradient, velocity)
        np.testing.assert_allclose(rhs[1:5], -2.0 * np.arange(1, 5))
        assert rhs[0] == rhs[5] == 0.0

    def test_accumulates(self, line_grid, line_gradient):
        rhs = np.ones(6)
        add_advection_term(rhs, line_grid, line_gradient, [np.zeros(6)])
        np.testing.assert_array_equal(rhs, 1.0)

    def test_velocity_component_count(self, grid_2d, circle_phi):
        gradient = compute_upwind_gradient(circle_phi, grid_2d, "eno1")
        with pytest.raises(DimensionMismatchError):
            add_advection_term(np.zeros(grid_2d.shape), grid_2d, gradient, [np.ones(grid_2d.shape)])

    def test_linear_field(self, grid_2d):
        X, Y = grid_2d.meshgrid()
        phi = 2.0 * X - Y
        velocity = [np.ones(grid_2d.shape), np.full(grid_2d.shape, 3.0)]

        rhs = compute_level_set_rhs(phi, grid_2d, velocity=velocity, scheme="eno3")

        np.testing.assert_allclose(rhs[grid_2d.fill_slices], -(2.0 * 1.0 - 1.0 * 3.0), atol=1e-10)


def _advection_rhs_error(scheme, n):
    """Max error of -V·∇φ for φ = sin(x) cos(y) with constant positive V."""
    grid = GridDescriptor.from_bounds([(0.0, 2 * np.pi), (0.0, 2 * np.pi)], [n, n], ghost_width=3)
    X, Y = grid.meshgrid()
    velocity = [np.ones(grid.shape), np.full(grid.shape, 0.5)]

    rhs = compute_level_set_rhs(np.sin(X) * np.cos(Y), grid, velocity=velocity, scheme=scheme)

    exact = -(np.cos(X) * np.cos(Y) - 0.5 * np.sin(X) * np.sin(Y))
    return np.max(np.abs(rhs[grid.fill_slices] - exact[grid.fill_slices]))


@pytest.mark.mathematical
class TestUpwindConsistency:
    """The advection RHS converges at the order of the derivative scheme."""

    @pytest.mark.parametrize(("scheme", "min_order"), [("eno1", 0.9), ("eno2", 1.8), ("eno3", 2.7), ("weno5", 4.5)])
    def test_refinement_order(self, scheme, min_order):
        coarse = _advection_rhs_error(scheme, 41)
        fine = _advection_rhs_error(scheme, 81)
        assert np.log2(coarse / fine) > min_order


class TestNormalVelocityTerm:
    def test_godunov_positive_speed(self, line_grid, line_gradient):
        rhs = np.zeros(6)
        add_normal_velocity_term(rhs, line_grid, line_gradient, np.ones(6))
        # |∇φ| for V > 0: max(max(φ⁻,0)², min(φ⁺,0)²)
        np.testing.assert_allclose(rhs[1:5], -np.array([0.0, 3.0, 2.0, 0.0]))

    def test_godunov_negative_speed(self, line_grid, line_gradient):
        rhs = np.zeros(6)
        add_normal_velocity_term(rhs, line_grid, line_gradient, -np.ones(6))
        # V < 0: max(min(φ⁻,0)², max(φ⁺,0)²), times -V = +1
        np.testing.assert_allclose(rhs[1:5], [1.0, 0.0, 0.0, 3.0])

    def test_constant_speed_matches_field(self, line_grid, line_gradient):
        field_rhs = np.zeros(6)
        const_rhs = np.zeros(6)
        add_normal_velocity_term(field_rhs, line_grid, line_gradient, np.full(6, 2.5))
        add_const_normal_velocity_term(const_rhs, line_grid, line_gradient, 2.5)
        np.testing.assert_allclose(const_rhs, field_rhs)

    def test_zero_constant_speed(self, line_grid, line_gradient):
        rhs = np.zeros(6)
        add_const_normal_velocity_term(rhs, line_grid, line_gradient, 0.0)
        assert np.all(rhs == 0.0)

    def test_distance_function(self, grid_2d, circle_phi):
        rhs = compute_level_set_rhs(circle_phi, grid_2d, normal_velocity=1.5, scheme="eno3")
        fill = grid_2d.fill_slices
        near = (np.abs(circle_phi) < 0.2)[fill]
        np.testing.assert_allclose(rhs[fill][near], -1.5, atol=0.05)


class TestCombinedTerm:
    def test_reduces_to_advection(self, grid_2d, circle_phi):
        gradient = compute_upwind_gradient(circle_phi, grid_2d, "eno2")
        X, Y = grid_2d.meshgrid()
        velocity = [np.sin(np.pi * Y), np.cos(np.pi * X)]

        combined = np.zeros(grid_2d.shape)
        advection = np.zeros(grid_2d.shape)
        add_external_and_normal_velocity_term(combined, grid_2d, gradient, 0.0, velocity)
        add_advection_term(advection, grid_2d, gradient, velocity)

        np.testing.assert_allclose(combined, advection, atol=1e-14)

    def test_reduces_to_godunov_for_positive_speed(self, line_grid, line_gradient):
        combined = np.zeros(6)
        normal = np.zeros(6)
        add_external_and_normal_velocity_term(combined, line_grid, line_gradient, 1.0, [np.zeros(6)])
        add_const_normal_velocity_term(normal, line_grid, line_gradient, 1.0)
        np.testing.assert_allclose(combined, normal)

    def test_stationary_point(self, line_grid):
        """φ⁻ <= -V/V_n <= φ⁺ selects the stationary slope -V/V_n."""
        gradient = UpwindGradient(plus=(np.full(6, 1.0),), minus=(np.full(6, -1.0),))
        rhs = np.zeros(6)
        add_external_and_normal_velocity_term(rhs, line_grid, gradient, 2.0, [np.full(6, 0.5)])
        # φ_k = -0.25: -(V φ_k + V_n |φ_k|) = -(0.5 * -0.25 + 2 * 0.25)
        np.testing.assert_allclose(rhs[1:5], -0.375)

    def test_used_when_both_terms_given(self, grid_2d, circle_phi):
        velocity = [np.ones(grid_2d.shape), np.zeros(grid_2d.shape)]
        gradient = compute_upwind_gradient(circle_phi, grid_2d, "eno3")

        rhs = compute_level_set_rhs(circle_phi, grid_2d, velocity=velocity, normal_velocity=0.5, gradient=gradient)

        expected = np.zeros(grid_2d.shape)
        add_external_and_normal_velocity_term(expected, grid_2d, gradient, 0.5, velocity)
        np.testing.assert_allclose(rhs, expected)


class TestCurvatureTerm:
    def test_circle(self, grid_2d, circle_phi):
        rhs = np.zeros(grid_2d.shape)
        add_curvature_term(rhs, grid_2d, circle_phi, 0.1)

        fill = grid_2d.fill_slices
        X, Y = grid_2d.meshgrid()
        r = np.sqrt(X**2 + Y**2)
        near = (np.abs(circle_phi) < 0.1)[fill]
        np.testing.assert_allclose(rhs[fill][near], (-0.1 / r)[fill][near], rtol=0.02)

    def test_precomputed(self, grid_2d, circle_phi):
        kappa = compute_curvature(circle_phi, grid_2d)
        grad_mag = np.ones(grid_2d.shape)
        b = np.full(grid_2d.shape, 0.2)

        rhs = np.zeros(grid_2d.shape)
        add_precomputed_curvature_term(rhs, grid_2d, kappa, grad_mag, b)

        np.testing.assert_allclose(rhs, -0.2 * kappa)


class TestAssembly:
    def test_ghost_cells_zero(self, grid_2d, circle_phi):
        rhs = compute_level_set_rhs(circle_phi, grid_2d, normal_velocity=1.0, curvature_coefficient=-0.01)
        ghost = np.ones(grid_2d.shape, dtype=bool)
        ghost[grid_2d.fill_slices] = False
        assert np.all(rhs[ghost] == 0.0)
        assert rhs.dtype == grid_2d.dtype

    def test_no_terms(self, grid_2d, circle_phi):
        rhs = compute_level_set_rhs(circle_phi, grid_2d)
        assert np.all(rhs == 0.0)

    def test_narrow_band_restriction(self, grid_2d, circle_phi):
        band = build_narrow_band(circle_phi, grid_2d, width=3 * grid_2d.spacing[0])

        full = compute_level_set_rhs(circle_phi, grid_2d, normal_velocity=1.0)
        banded = compute_level_set_rhs(circle_phi, grid_2d, normal_velocity=1.0, narrow_band=band)

        fill = grid_2d.fill_slices
        active = band.active_mask()
        np.testing.assert_allclose(banded[fill][active], full[fill][active])
        assert np.all(banded[fill][~active] == 0.0)

    def test_mark(self, grid_2d, circle_phi):
        band = build_narrow_band(circle_phi, grid_2d, width=4 * grid_2d.spacing[0])
        rhs = compute_level_set_rhs(circle_phi, grid_2d, normal_velocity=1.0, narrow_band=band, mark=1)
        fill = grid_2d.fill_slices
        assert np.all(rhs[fill][~band.active_mask(mark=1)] == 0.0)
        assert np.all(rhs[fill][band.active_mask(mark=1)] < 0.0)

    def test_gradient_axis_count(self, grid_2d, circle_phi, line_gradient):
        with pytest.raises(DimensionMismatchError):
            compute_level_set_rhs(circle_phi, grid_2d, normal_velocity=1.0, gradient=line_gradient)
