"""Unit tests for CFL time step limits and TVD Runge-Kutta stages."""

import pytest

import numpy as np

from lsm_pde.evolution.time_step import (
    compute_stable_advection_dt,
    compute_stable_curvature_dt,
    compute_stable_normal_velocity_dt,
    tvd_rk1_step,
    tvd_rk2_stage2,
    tvd_rk3_stage2,
    tvd_rk3_stage3,
)
from lsm_pde.geometry.narrow_band import build_narrow_band
from lsm_pde.operators.spatial_derivatives import compute_upwind_gradient
from lsm_pde.utils.exceptions import ConfigurationError, DimensionMismatchError


class TestStableTimeStep:
    def test_advection(self, grid_2d):
        h = grid_2d.spacing[0]
        velocity = [np.full(grid_2d.shape, 2.0), np.full(grid_2d.shape, -1.0)]
        dt = compute_stable_advection_dt(velocity, grid_2d, cfl=0.9)
        assert dt == pytest.approx(0.9 / (3.0 / h))

    def test_advection_zero_velocity(self, grid_2d):
        velocity = [np.zeros(grid_2d.shape), np.zeros(grid_2d.shape)]
        assert compute_stable_advection_dt(velocity, grid_2d) == np.inf

    def test_advection_component_count(self, grid_2d):
        with pytest.raises(DimensionMismatchError):
            compute_stable_advection_dt([np.ones(grid_2d.shape)], grid_2d)

    @pytest.mark.parametrize("cfl", [0.0, -0.5, 1.5])
    def test_invalid_cfl(self, grid_2d, cfl):
        velocity = [np.ones(grid_2d.shape), np.ones(grid_2d.shape)]
        with pytest.raises(ConfigurationError):
            compute_stable_advection_dt(velocity, grid_2d, cfl=cfl)

    def test_normal_velocity(self, grid_2d):
        h = grid_2d.spacing[0]
        X, _ = grid_2d.meshgrid()
        gradient = compute_upwind_gradient(X, grid_2d, "eno1")

        dt = compute_stable_normal_velocity_dt(2.0, gradient, grid_2d, cfl=0.9)

        assert dt == pytest.approx(0.9 * h / 2.0)

    def test_normal_velocity_field(self, grid_2d):
        h = grid_2d.spacing[0]
        X, _ = grid_2d.meshgrid()
        gradient = compute_upwind_gradient(X, grid_2d, "eno1")
        speed = np.where(X > 0, 4.0, -1.0)

        dt = compute_stable_normal_velocity_dt(speed, gradient, grid_2d, cfl=0.5)

        assert dt == pytest.approx(0.5 * h / 4.0)

    def test_normal_velocity_flat_field(self, grid_2d):
        gradient = compute_upwind_gradient(np.ones(grid_2d.shape), grid_2d, "eno1")
        assert compute_stable_normal_velocity_dt(1.0, gradient, grid_2d) == np.inf

    def test_curvature(self, grid_2d):
        h = grid_2d.spacing[0]
        dt = compute_stable_curvature_dt(0.1, grid_2d, cfl=0.9)
        assert dt == pytest.approx(0.9 / (2.0 * 0.1 * 2.0 / h**2))

    def test_curvature_field_uses_max(self, grid_2d):
        b = np.zeros(grid_2d.shape)
        b[10, 10] = -0.3
        assert compute_stable_curvature_dt(b, grid_2d) == pytest.approx(compute_stable_curvature_dt(0.3, grid_2d))

    def test_zero_curvature_coefficient(self, grid_2d):
        assert compute_stable_curvature_dt(0.0, grid_2d) == np.inf

    def test_narrow_band_ignores_far_velocity(self, grid_2d, circle_phi):
        h = grid_2d.spacing[0]
        band = build_narrow_band(circle_phi, grid_2d, width=3 * h)
        velocity = [np.ones(grid_2d.shape), np.zeros(grid_2d.shape)]
        velocity[0][3, 3] = 100.0

        banded = compute_stable_advection_dt(velocity, grid_2d, cfl=0.5, narrow_band=band)
        full = compute_stable_advection_dt(velocity, grid_2d, cfl=0.5)

        assert banded == pytest.approx(0.5 * h)
        assert full == pytest.approx(0.5 * h / 100.0)


class TestRungeKuttaStages:
    def test_forward_euler(self, grid_2d):
        u = np.zeros(grid_2d.shape)
        u[0, 0] = 7.0
        rhs = np.ones(grid_2d.shape)

        result = tvd_rk1_step(u, rhs, 0.1, grid_2d)

        fill = grid_2d.fill_slices
        np.testing.assert_allclose(result[fill], 0.1)
        assert result[0, 0] == 7.0
        assert np.all(u[fill] == 0.0)

    def test_rk2_stage(self, grid_2d):
        u_cur = np.zeros(grid_2d.shape)
        u_stage1 = np.ones(grid_2d.shape)
        rhs = np.full(grid_2d.shape, 2.0)

        result = tvd_rk2_stage2(u_stage1, u_cur, rhs, 0.5, grid_2d)

        np.testing.assert_allclose(result[grid_2d.fill_slices], 1.0)

    def test_rk3_stages(self, grid_2d):
        u_cur = np.zeros(grid_2d.shape)
        u_stage = np.ones(grid_2d.shape)
        rhs = np.full(grid_2d.shape, 2.0)

        stage2 = tvd_rk3_stage2(u_stage, u_cur, rhs, 0.5, grid_2d)
        stage3 = tvd_rk3_stage3(u_stage, u_cur, rhs, 0.5, grid_2d)

        np.testing.assert_allclose(stage2[grid_2d.fill_slices], 0.5)
        np.testing.assert_allclose(stage3[grid_2d.fill_slices], 4.0 / 3.0)

    def test_rk3_exact_for_constant_rhs(self, grid_2d):
        u = np.full(grid_2d.shape, 1.0)
        rhs = np.full(grid_2d.shape, -3.0)
        dt = 0.01

        u1 = tvd_rk1_step(u, rhs, dt, grid_2d)
        u2 = tvd_rk3_stage2(u1, u, rhs, dt, grid_2d)
        u3 = tvd_rk3_stage3(u2, u, rhs, dt, grid_2d)

        np.testing.assert_allclose(u3[grid_2d.fill_slices], 1.0 - 3.0 * dt)

    def test_narrow_band_stage(self, grid_2d, circle_phi):
        band = build_narrow_band(circle_phi, grid_2d, width=3 * grid_2d.spacing[0])
        rhs = np.ones(grid_2d.shape)

        result = tvd_rk1_step(circle_phi, rhs, 0.1, grid_2d, narrow_band=band, mark=1)

        fill = grid_2d.fill_slices
        active = band.active_mask(mark=1)
        np.testing.assert_allclose(result[fill][active], circle_phi[fill][active] + 0.1)
        np.testing.assert_array_equal(result[fill][~active], circle_phi[fill][~active])

    def test_shape_mismatch(self, grid_2d):
        with pytest.raises(DimensionMismatchError):
            tvd_rk1_step(np.zeros(grid_2d.shape), np.zeros((5, 5)), 0.1, grid_2d)
