"""
Time step control and TVD Runge-Kutta stages for level set evolution.

Stable Time Steps (CFL):
    Advection:        dt <= cfl / max_x Σ_k |V_k| / h_k
    Normal velocity:  dt <= cfl / max_x |V_n| Σ_k (|φ_k| / h_k) / |∇φ|
    Curvature:        dt <= cfl / max_x (2 |b| Σ_k 1 / h_k²)

where φ_k = max(|φ⁺_k|, |φ⁻_k|). A term that vanishes everywhere imposes no
limit (returns inf).

TVD Runge-Kutta (Shu & Osher 1988):
    RK1:  u¹ = uⁿ + dt L(uⁿ)
    RK2:  u^{n+1} = ½ uⁿ + ½ (u¹ + dt L(u¹))
    RK3:  u² = ¾ uⁿ + ¼ (u¹ + dt L(u¹))
          u^{n+1} = ⅓ uⁿ + ⅔ (u² + dt L(u²))

Each stage returns a new array: active points (fillbox or narrow band) are
updated, every other value (including ghost cells) is copied from the first
argument. Ghost cells must be refreshed by the caller before the next RHS.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from lsm_pde.geometry.narrow_band import ActiveRegion
from lsm_pde.utils.exceptions import ConfigurationError, DimensionMismatchError
from lsm_pde.utils.lsm_logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from lsm_pde.geometry.grid_descriptor import GridDescriptor
    from lsm_pde.geometry.narrow_band import NarrowBand
    from lsm_pde.operators.stencils.finite_difference import UpwindGradient

# Module logger
logger = get_logger(__name__)

COMPONENT = "TimeIntegration"


def _check_cfl(cfl: float) -> None:
    if not 0 < cfl <= 1:
        raise ConfigurationError(parameter_name="cfl", provided_value=cfl, valid_range=(0, 1), component=COMPONENT)


def _stable_dt(cfl: float, max_rate: float) -> float:
    return cfl / max_rate if max_rate > 0 else np.inf


def compute_stable_advection_dt(
    velocity: Sequence[NDArray],
    grid: GridDescriptor,
    cfl: float = 0.9,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> float:
    """Largest stable dt for the advection term -V·∇φ."""
    _check_cfl(cfl)
    if len(velocity) != grid.ndim:
        raise DimensionMismatchError("velocity", (len(velocity),), (grid.ndim,), COMPONENT)
    region = ActiveRegion(grid, narrow_band, mark, COMPONENT)

    rate = 0.0
    for k, (v, h) in enumerate(zip(velocity, grid.spacing, strict=True)):
        rate = rate + np.abs(region.gather(v, f"velocity[{k}]")).astype(np.float64) / h
    max_rate = float(np.max(rate)) if np.size(rate) else 0.0
    return _stable_dt(cfl, max_rate)


def compute_stable_normal_velocity_dt(
    normal_velocity: NDArray | float,
    gradient: UpwindGradient,
    grid: GridDescriptor,
    cfl: float = 0.9,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
    tolerance: float = 1e-12,
) -> float:
    """
    Largest stable dt for the normal velocity term -V_n |∇φ|.

    Points with |∇φ|² < tolerance are skipped.
    """
    _check_cfl(cfl)
    region = ActiveRegion(grid, narrow_band, mark, COMPONENT)

    rate = 0.0
    grad_sq = 0.0
    for k, h in enumerate(grid.spacing):
        plus = region.gather(gradient.plus[k], f"gradient.plus[{k}]").astype(np.float64)
        minus = region.gather(gradient.minus[k], f"gradient.minus[{k}]").astype(np.float64)
        phi_k = np.maximum(np.abs(plus), np.abs(minus))
        rate = rate + phi_k / h
        grad_sq = grad_sq + phi_k * phi_k

    if np.isscalar(normal_velocity):
        speed = abs(float(normal_velocity))
    else:
        speed = np.abs(region.gather(normal_velocity, "normal_velocity")).astype(np.float64)

    regular = np.asarray(grad_sq) >= tolerance
    if not np.any(regular):
        return np.inf
    with np.errstate(divide="ignore", invalid="ignore"):
        rate = np.where(regular, speed * rate / np.sqrt(grad_sq), 0.0)
    return _stable_dt(cfl, float(np.max(rate)))


def compute_stable_curvature_dt(
    b: NDArray | float,
    grid: GridDescriptor,
    cfl: float = 0.9,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> float:
    """Largest stable dt for the parabolic curvature term -b κ |∇φ|."""
    _check_cfl(cfl)
    if np.isscalar(b):
        b_max = abs(float(b))
    else:
        values = ActiveRegion(grid, narrow_band, mark, COMPONENT).gather(b, "b")
        b_max = float(np.max(np.abs(values))) if values.size else 0.0
    return _stable_dt(cfl, 2.0 * b_max * sum(1.0 / (h * h) for h in grid.spacing))


# =============================================================================
# TVD Runge-Kutta stages
# =============================================================================


def _combine(
    base: NDArray,
    grid: GridDescriptor,
    narrow_band: NarrowBand | None,
    mark: int | None,
    weights: Sequence[tuple[float, NDArray]],
) -> NDArray:
    """Copy base and overwrite its active points with Σ weight·array."""
    region = ActiveRegion(grid, narrow_band, mark, COMPONENT)
    result = base.copy()
    value = 0.0
    for weight, array in weights:
        value = value + weight * region.gather(array, "stage")
    region.assign(result, value, "result")
    return result


def tvd_rk1_step(
    u_cur: NDArray,
    rhs: NDArray,
    dt: float,
    grid: GridDescriptor,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> NDArray:
    """Forward Euler step u_cur + dt·rhs (also the first stage of RK2/RK3)."""
    return _combine(u_cur, grid, narrow_band, mark, [(1.0, u_cur), (dt, rhs)])


def tvd_rk2_stage2(
    u_stage1: NDArray,
    u_cur: NDArray,
    rhs: NDArray,
    dt: float,
    grid: GridDescriptor,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> NDArray:
    """Second stage of TVD RK2: ½ u_cur + ½ (u_stage1 + dt·rhs)."""
    return _combine(u_stage1, grid, narrow_band, mark, [(0.5, u_cur), (0.5, u_stage1), (0.5 * dt, rhs)])


def tvd_rk3_stage2(
    u_stage1: NDArray,
    u_cur: NDArray,
    rhs: NDArray,
    dt: float,
    grid: GridDescriptor,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> NDArray:
    """Second stage of TVD RK3: ¾ u_cur + ¼ (u_stage1 + dt·rhs)."""
    return _combine(u_stage1, grid, narrow_band, mark, [(0.75, u_cur), (0.25, u_stage1), (0.25 * dt, rhs)])


def tvd_rk3_stage3(
    u_stage2: NDArray,
    u_cur: NDArray,
    rhs: NDArray,
    dt: float,
    grid: GridDescriptor,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> NDArray:
    """Third stage of TVD RK3: ⅓ u_cur + ⅔ (u_stage2 + dt·rhs)."""
    return _combine(
        u_stage2, grid, narrow_band, mark, [(1.0 / 3.0, u_cur), (2.0 / 3.0, u_stage2), (2.0 / 3.0 * dt, rhs)]
    )
