"""
Unit tests for LevelSetEvolver.

Tests front motion under normal velocity, advection and curvature flow, the
Runge-Kutta variants, narrow band rebuilding and input validation.
"""

import pytest

import numpy as np

from lsm_pde.config import EvolutionConfig, LevelSetConfig, NarrowBandConfig, SpatialDerivativeConfig
from lsm_pde.geometry.grid_descriptor import GridDescriptor
from lsm_pde.geometry.level_set.core import EvolutionResult, LevelSetEvolver
from lsm_pde.utils.exceptions import ConfigurationError, GhostWidthError, PrecisionMismatchError


def _crossings_on_x_axis(phi, grid):
    """x positions where phi changes sign along the row y = 0."""
    x = grid.coordinates()[0]
    j = grid.shape[1] // 2
    row = phi[:, j]
    lo, hi = grid.fill_slices[0].start, grid.fill_slices[0].stop
    result = []
    for i in range(lo, hi - 1):
        if (row[i] > 0) != (row[i + 1] > 0):
            t = row[i] / (row[i] - row[i + 1])
            result.append(x[i] + t * (x[i + 1] - x[i]))
    return result


class TestInitialization:
    def test_default_config_follows_grid_precision(self):
        grid = GridDescriptor.from_bounds([(-1.0, 1.0)] * 2, [21, 21], ghost_width=3, precision="float32")
        evolver = LevelSetEvolver(grid)
        assert evolver.config.precision == "float32"

    def test_precision_mismatch(self, grid_2d):
        with pytest.raises(ConfigurationError):
            LevelSetEvolver(grid_2d, LevelSetConfig(precision="float32"))

    def test_ghost_width_too_small(self):
        grid = GridDescriptor.from_bounds([(-1.0, 1.0)] * 2, [21, 21], ghost_width=2)
        with pytest.raises(GhostWidthError):
            LevelSetEvolver(grid, LevelSetConfig(spatial=SpatialDerivativeConfig(scheme="weno5")))

    def test_low_order_scheme_on_thin_ghost_layer(self):
        grid = GridDescriptor.from_bounds([(-1.0, 1.0)] * 2, [21, 21], ghost_width=1)
        evolver = LevelSetEvolver(grid, LevelSetConfig.fast())
        assert evolver.band_width == pytest.approx(4 * 0.1)

    def test_repr(self, grid_2d):
        text = repr(LevelSetEvolver(grid_2d))
        assert "LevelSetEvolver" in text
        assert "eno3" in text


class TestAdvanceValidation:
    @pytest.fixture
    def evolver(self, grid_2d):
        return LevelSetEvolver(grid_2d)

    def test_no_terms(self, evolver, circle_phi):
        with pytest.raises(ConfigurationError):
            evolver.advance(circle_phi, 0.1)

    def test_negative_time(self, evolver, circle_phi):
        with pytest.raises(ConfigurationError):
            evolver.advance(circle_phi, -0.1, normal_velocity=1.0)

    def test_wrong_precision(self, evolver, circle_phi):
        with pytest.raises(PrecisionMismatchError):
            evolver.advance(circle_phi.astype(np.float32), 0.1, normal_velocity=1.0)

    def test_zero_final_time(self, evolver, grid_2d, circle_phi):
        result = evolver.advance(circle_phi, 0.0, normal_velocity=1.0)
        assert result.num_steps == 0
        assert result.converged
        fill = grid_2d.fill_slices
        np.testing.assert_array_equal(result.phi[fill], circle_phi[fill])

    def test_input_not_modified(self, evolver, circle_phi):
        original = circle_phi.copy()
        evolver.advance(circle_phi, 0.05, normal_velocity=1.0)
        np.testing.assert_array_equal(circle_phi, original)


class TestFrontMotion:
    def test_expanding_circle(self, grid_2d, circle_phi):
        h = grid_2d.spacing[0]
        result = LevelSetEvolver(grid_2d).advance(circle_phi, 0.2, normal_velocity=1.0)

        assert isinstance(result, EvolutionResult)
        assert result.converged
        assert result.final_time == pytest.approx(0.2)
        assert sum(result.dt_history) == pytest.approx(0.2)
        left, right = _crossings_on_x_axis(result.phi, grid_2d)
        assert right == pytest.approx(0.7, abs=h)
        assert left == pytest.approx(-0.7, abs=h)

    def test_shrinking_circle_with_negative_speed(self, grid_2d, circle_phi):
        h = grid_2d.spacing[0]
        speed = -np.ones(grid_2d.shape)
        result = LevelSetEvolver(grid_2d).advance(circle_phi, 0.2, normal_velocity=speed)
        left, right = _crossings_on_x_axis(result.phi, grid_2d)
        assert right == pytest.approx(0.3, abs=h)
        assert left == pytest.approx(-0.3, abs=h)

    def test_translation(self, grid_2d, circle_phi):
        h = grid_2d.spacing[0]
        velocity = [np.ones(grid_2d.shape), np.zeros(grid_2d.shape)]
        result = LevelSetEvolver(grid_2d).advance(circle_phi, 0.2, velocity=velocity)
        left, right = _crossings_on_x_axis(result.phi, grid_2d)
        assert right == pytest.approx(0.7, abs=h)
        assert left == pytest.approx(-0.3, abs=h)

    def test_curvature_flow_shrinks_circle(self, grid_2d, circle_phi):
        h = grid_2d.spacing[0]
        b = -0.05
        result = LevelSetEvolver(grid_2d).advance(circle_phi, 0.5, curvature_coefficient=b)

        expected = np.sqrt(0.25 + 2.0 * b * 0.5)
        _, right = _crossings_on_x_axis(result.phi, grid_2d)
        assert right == pytest.approx(expected, abs=h)

    @pytest.mark.parametrize("rk_order", [1, 2, 3])
    def test_runge_kutta_orders(self, grid_2d, circle_phi, rk_order):
        h = grid_2d.spacing[0]
        config = LevelSetConfig(evolution=EvolutionConfig(rk_order=rk_order, cfl=0.5))
        result = LevelSetEvolver(grid_2d, config).advance(circle_phi, 0.1, normal_velocity=1.0)
        _, right = _crossings_on_x_axis(result.phi, grid_2d)
        assert right == pytest.approx(0.6, abs=h)

    def test_fast_and_accurate_presets_agree(self, grid_2d, circle_phi):
        fast = LevelSetEvolver(grid_2d, LevelSetConfig.fast()).advance(circle_phi, 0.1, normal_velocity=1.0)
        accurate = LevelSetEvolver(grid_2d, LevelSetConfig.accurate()).advance(circle_phi, 0.1, normal_velocity=1.0)
        assert _crossings_on_x_axis(fast.phi, grid_2d)[1] == pytest.approx(
            _crossings_on_x_axis(accurate.phi, grid_2d)[1], abs=grid_2d.spacing[0]
        )


class TestNarrowBandManagement:
    def test_band_rebuilt_as_front_moves(self, grid_2d, circle_phi):
        evolver = LevelSetEvolver(grid_2d, LevelSetConfig.fast())
        result = evolver.advance(circle_phi, 0.3, normal_velocity=1.0)

        assert result.num_band_rebuilds >= 1
        assert result.num_reinitializations >= result.num_band_rebuilds
        assert evolver.narrow_band is not None
        assert not evolver.needs_band_rebuild(result.phi)

    def test_band_disabled(self, grid_2d, circle_phi):
        config = LevelSetConfig(narrow_band=NarrowBandConfig(enabled=False))
        evolver = LevelSetEvolver(grid_2d, config)
        result = evolver.advance(circle_phi, 0.1, normal_velocity=1.0)

        assert evolver.narrow_band is None
        assert result.num_band_rebuilds == 0
        assert not evolver.needs_band_rebuild(result.phi)

    def test_points_outside_band_untouched(self, grid_2d, circle_phi):
        evolver = LevelSetEvolver(grid_2d, LevelSetConfig(evolution=EvolutionConfig(reinitialize_every=0)))
        phi = circle_phi.copy()
        band = evolver.build_band(phi)

        stepped = evolver.evolve_step(phi, 0.01, normal_velocity=1.0)

        outside = ~band.active_mask()
        fill = grid_2d.fill_slices
        np.testing.assert_array_equal(stepped[fill][outside], phi[fill][outside])
        assert not np.array_equal(stepped[fill][~outside], phi[fill][~outside])

    def test_reinitialize_respects_band_cutoff(self, grid_2d, circle_phi):
        evolver = LevelSetEvolver(grid_2d)
        phi = evolver.reinitialize(2.0 * circle_phi)
        limit = evolver.band_width + evolver.h_max
        assert np.abs(phi[grid_2d.fill_slices]).max() == pytest.approx(limit)

    def test_reinitialize_without_interface(self, grid_2d):
        evolver = LevelSetEvolver(grid_2d)
        phi = np.ones(grid_2d.shape)
        assert evolver.reinitialize(phi) is phi


class TestStepControl:
    def test_max_steps(self, grid_2d, circle_phi):
        config = LevelSetConfig(evolution=EvolutionConfig(max_steps=2))
        result = LevelSetEvolver(grid_2d, config).advance(circle_phi, 1.0, normal_velocity=1.0)
        assert result.num_steps == 2
        assert not result.converged

    def test_stable_dt(self, grid_2d, circle_phi):
        evolver = LevelSetEvolver(grid_2d)
        h = grid_2d.spacing[0]
        velocity = [2.0 * np.ones(grid_2d.shape), np.zeros(grid_2d.shape)]

        assert evolver.compute_stable_dt(circle_phi, velocity=velocity) == pytest.approx(0.5 * h / 2.0)
        assert evolver.compute_stable_dt(circle_phi) == np.inf
        assert evolver.compute_stable_dt(circle_phi, curvature_coefficient=0.1) == pytest.approx(
            0.5 / (2 * 0.1 * 2 / h**2)
        )

    def test_last_step_lands_on_final_time(self, grid_2d, circle_phi):
        result = LevelSetEvolver(grid_2d).advance(circle_phi, 0.013, normal_velocity=1.0)
        assert result.final_time == pytest.approx(0.013)
        assert result.dt_history[-1] <= result.dt_history[0]
