"""
Pytest configuration and shared fixtures for the lsm_pde test suite.

This module provides common fixtures, test configuration, and utilities
used across the entire test suite.
"""

import pytest

import numpy as np

from lsm_pde.config import LevelSetConfig
from lsm_pde.geometry.grid_descriptor import GridDescriptor

# =============================================================================
# Test Configuration
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (slower, cross-component)")
    config.addinivalue_line("markers", "mathematical: Mathematical property validation tests")
    config.addinivalue_line("markers", "slow: Slow tests (may take >10 seconds)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test paths."""
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)

        # Mark slow tests based on name patterns
        if "large" in item.name or "slow" in item.name:
            item.add_marker(pytest.mark.slow)


# =============================================================================
# Grid Fixtures
# =============================================================================


@pytest.fixture
def grid_1d():
    """1D grid on [0, 1] with 41 points and ghost width 3."""
    return GridDescriptor.from_bounds([(0.0, 1.0)], [41], ghost_width=3)


@pytest.fixture
def grid_2d():
    """2D grid on [-1, 1]² with 41×41 points and ghost width 3."""
    return GridDescriptor.from_bounds([(-1.0, 1.0), (-1.0, 1.0)], [41, 41], ghost_width=3)


@pytest.fixture
def grid_3d():
    """Small 3D grid on [-1, 1]³ with ghost width 3."""
    return GridDescriptor.from_bounds([(-1.0, 1.0)] * 3, [21, 21, 21], ghost_width=3)


@pytest.fixture(params=["float32", "float64"])
def precision(request):
    """Parametrized precision for testing both dtypes."""
    return request.param


# =============================================================================
# Field Fixtures
# =============================================================================


@pytest.fixture
def circle_phi(grid_2d):
    """Signed distance to a circle of radius 0.5 centered at the origin."""
    X, Y = grid_2d.meshgrid()
    return np.sqrt(X**2 + Y**2) - 0.5


@pytest.fixture
def sphere_phi(grid_3d):
    """Signed distance to a sphere of radius 0.5 centered at the origin."""
    X, Y, Z = grid_3d.meshgrid()
    return np.sqrt(X**2 + Y**2 + Z**2) - 0.5


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def fast_config():
    """Fast configuration for testing."""
    return LevelSetConfig.fast()


@pytest.fixture
def accurate_config():
    """Accurate configuration for testing."""
    return LevelSetConfig.accurate()
