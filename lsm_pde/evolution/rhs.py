"""
Right-hand side assembly for the level set evolution equation.

The level set equation is written as

    φ_t = -V·∇φ - V_n |∇φ| - b κ |∇φ|

and each function below adds one term to a caller-owned rhs array. Terms are
accumulated, so the caller zeroes rhs first (see zero_out_rhs or
compute_level_set_rhs).

Active Points:
    Every function accepts narrow_band and mark. Without a band the whole
    fillbox is written; with a band only index list points with tag <= mark
    (all listed points when mark is None). Ghost cells are never written.

Upwinding:
    - Advection: per axis φ⁻ where V_k > 0, φ⁺ where V_k < 0
    - Normal velocity: Godunov |∇φ| (see godunov_gradient_magnitude)
    - Curvature: central differences
    - External + normal velocity: the upwind side is chosen from the
      combined speed V_k + V_n φ_k, i.e. assuming |∇φ| ≈ 1 so that the
      normal direction is ∇φ itself

References:
- Osher & Fedkiw (2003): Level Set Methods, Chapters 3, 4 and 6
- Sethian (1999): Level Set Methods and Fast Marching Methods, Chapter 6
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from lsm_pde.geometry.level_set.curvature import GRADIENT_TOLERANCE, compute_mean_curvature_speed
from lsm_pde.geometry.narrow_band import ActiveRegion
from lsm_pde.operators.spatial_derivatives import compute_upwind_gradient, godunov_gradient_magnitude
from lsm_pde.operators.stencils.finite_difference import UpwindGradient
from lsm_pde.utils.exceptions import DimensionMismatchError
from lsm_pde.utils.lsm_logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from lsm_pde.geometry.grid_descriptor import GridDescriptor
    from lsm_pde.geometry.narrow_band import NarrowBand

# Module logger
logger = get_logger(__name__)

COMPONENT = "LevelSetRHS"


def _gather_pair(region: ActiveRegion, gradient: UpwindGradient) -> tuple[list[NDArray], list[NDArray]]:
    if len(gradient.plus) != region.grid.ndim or len(gradient.minus) != region.grid.ndim:
        raise DimensionMismatchError(
            "gradient", (len(gradient.plus), len(gradient.minus)), (region.grid.ndim, region.grid.ndim), COMPONENT
        )
    plus = [region.gather(g, f"gradient.plus[{k}]") for k, g in enumerate(gradient.plus)]
    minus = [region.gather(g, f"gradient.minus[{k}]") for k, g in enumerate(gradient.minus)]
    return plus, minus


def _gather_vector(region: ActiveRegion, vector: Sequence[NDArray], name: str) -> list[NDArray]:
    if len(vector) != region.grid.ndim:
        raise DimensionMismatchError(name, (len(vector),), (region.grid.ndim,), COMPONENT)
    return [region.gather(v, f"{name}[{k}]") for k, v in enumerate(vector)]


def _gather_coefficient(region: ActiveRegion, value: NDArray | float, name: str) -> NDArray | float:
    if np.isscalar(value):
        return float(value)
    return region.gather(value, name)


def add_advection_term(
    rhs: NDArray,
    grid: GridDescriptor,
    gradient: UpwindGradient | Sequence[NDArray],
    velocity: Sequence[NDArray],
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> None:
    """
    Add -V·∇φ for an external velocity field.

    Args:
        rhs: Accumulator over the ghostbox
        grid: Grid descriptor
        gradient: UpwindGradient (upwinded here per component) or an
            already upwinded per-axis gradient
        velocity: One velocity component array per axis
        narrow_band: Optional band restricting the update
        mark: Largest active tag (None: all listed points)
    """
    region = ActiveRegion(grid, narrow_band, mark, COMPONENT)
    v = _gather_vector(region, velocity, "velocity")

    if isinstance(gradient, UpwindGradient):
        plus, minus = _gather_pair(region, gradient)
        components = [np.where(vk > 0, m, np.where(vk < 0, p, 0.0)) for vk, p, m in zip(v, plus, minus, strict=True)]
    else:
        components = _gather_vector(region, gradient, "gradient")

    term = 0.0
    for vk, gk in zip(v, components, strict=True):
        term = term - vk * gk
    region.add(rhs, term)


def add_normal_velocity_term(
    rhs: NDArray,
    grid: GridDescriptor,
    gradient: UpwindGradient,
    normal_velocity: NDArray,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> None:
    """
    Add -V_n |∇φ| with the Godunov upwind |∇φ|.

    Per axis the squared one-sided derivative is
        V_n > 0:  max(max(φ⁻, 0)², min(φ⁺, 0)²)
        V_n < 0:  max(min(φ⁻, 0)², max(φ⁺, 0)²)

    Example:
        >>> grad = compute_upwind_gradient(phi, grid, "weno5")
        >>> add_normal_velocity_term(rhs, grid, grad, speed)
    """
    region = ActiveRegion(grid, narrow_band, mark, COMPONENT)
    plus, minus = _gather_pair(region, gradient)
    vn = region.gather(normal_velocity, "normal_velocity")
    region.add(rhs, -vn * godunov_gradient_magnitude(plus, minus, vn))


def add_const_normal_velocity_term(
    rhs: NDArray,
    grid: GridDescriptor,
    gradient: UpwindGradient,
    normal_velocity: float,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> None:
    """Add -V_n |∇φ| for a spatially constant normal speed."""
    region = ActiveRegion(grid, narrow_band, mark, COMPONENT)
    plus, minus = _gather_pair(region, gradient)
    vn = float(normal_velocity)
    if vn == 0.0:
        return
    region.add(rhs, -vn * godunov_gradient_magnitude(plus, minus, vn))


def add_curvature_term(
    rhs: NDArray,
    grid: GridDescriptor,
    phi: NDArray,
    b: NDArray | float,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
    tolerance: float = GRADIENT_TOLERANCE,
) -> None:
    """
    Add -b κ |∇φ| with κ from central first and second derivatives.

    κ|∇φ| = (|∇φ|² Δφ - ∇φᵀ H ∇φ) / |∇φ|², zero where |∇φ|² < tolerance.

    Args:
        rhs: Accumulator over the ghostbox
        grid: Grid descriptor
        phi: Level set function with ghost width >= 1
        b: Curvature coefficient (scalar or field)
        narrow_band: Optional band restricting the update
        mark: Largest active tag
        tolerance: Critical point threshold on |∇φ|²
    """
    region = ActiveRegion(grid, narrow_band, mark, COMPONENT)
    speed = region.gather(compute_mean_curvature_speed(phi, grid, tolerance), "curvature")
    coefficient = _gather_coefficient(region, b, "b")
    region.add(rhs, -coefficient * speed)


def add_precomputed_curvature_term(
    rhs: NDArray,
    grid: GridDescriptor,
    kappa: NDArray,
    grad_phi_mag: NDArray,
    b: NDArray | float,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> None:
    """Add -b κ |∇φ| from caller-supplied κ and |∇φ|."""
    region = ActiveRegion(grid, narrow_band, mark, COMPONENT)
    k = region.gather(kappa, "kappa")
    g = region.gather(grad_phi_mag, "grad_phi_mag")
    coefficient = _gather_coefficient(region, b, "b")
    region.add(rhs, -coefficient * k * g)


def add_external_and_normal_velocity_term(
    rhs: NDArray,
    grid: GridDescriptor,
    gradient: UpwindGradient,
    normal_velocity: NDArray | float,
    velocity: Sequence[NDArray],
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> None:
    """
    Add -V·∇φ - V_n |∇φ| with upwinding on the combined speed.

    Per axis, with w⁻ = V_k + V_n φ⁻ and w⁺ = V_k + V_n φ⁺:
        w⁻ > 0 and w⁺ >= 0:  φ_k = φ⁻
        w⁻ <= 0 and w⁺ < 0:  φ_k = φ⁺
        w⁻ > 0 > w⁺ (shock): φ⁻ if w⁻ + w⁺ > 0 else φ⁺
        w⁻ <= 0 <= w⁺:       φ_k = -V_k / V_n (0 when V_n = 0)

    The combined speed treats ∇φ as the unit normal, an approximation valid
    while |∇φ| ≈ 1; reinitialize φ regularly when using this term.
    """
    region = ActiveRegion(grid, narrow_band, mark, COMPONENT)
    plus, minus = _gather_pair(region, gradient)
    v = _gather_vector(region, velocity, "velocity")
    vn = _gather_coefficient(region, normal_velocity, "normal_velocity")

    grad_sq = 0.0
    advection = 0.0
    with np.errstate(divide="ignore", invalid="ignore"):
        for vk, p, m in zip(v, plus, minus, strict=True):
            w_minus = vk + vn * m
            w_plus = vk + vn * p
            stationary = np.where(vn != 0, -vk / vn, 0.0)

            choose_minus = (w_minus > 0) & (w_plus >= 0)
            choose_plus = (w_minus <= 0) & (w_plus < 0)
            shock = (w_minus > 0) & (w_plus < 0)
            shock_side = np.where(w_minus + w_plus > 0, m, p)

            phi_k = np.where(
                choose_minus, m, np.where(choose_plus, p, np.where(shock, shock_side, stationary))
            ).astype(rhs.dtype)
            advection = advection + vk * phi_k
            grad_sq = grad_sq + phi_k * phi_k

    region.add(rhs, -(advection + vn * np.sqrt(grad_sq)))


def compute_level_set_rhs(
    phi: NDArray,
    grid: GridDescriptor,
    *,
    velocity: Sequence[NDArray] | None = None,
    normal_velocity: NDArray | float | None = None,
    curvature_coefficient: NDArray | float | None = None,
    scheme: str | int = "eno3",
    weno_epsilon: float = 1e-6,
    gradient: UpwindGradient | None = None,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> NDArray:
    """
    Assemble a fresh right-hand side from any combination of terms.

    With both velocity and normal_velocity the combined upwinding of
    add_external_and_normal_velocity_term is used.

    Args:
        phi: Level set function over the ghostbox
        grid: Grid descriptor
        velocity: External velocity components
        normal_velocity: Normal speed (scalar or field)
        curvature_coefficient: b of the -b κ |∇φ| term
        scheme: Upwind derivative scheme for the first-order terms
        weno_epsilon: WENO5 regularization
        gradient: Precomputed upwind derivatives (skips the derivative call)
        narrow_band: Optional band restricting the update
        mark: Largest active tag

    Returns:
        rhs over the ghostbox; ghost cells and inactive points are zero

    Example:
        >>> rhs = compute_level_set_rhs(phi, grid, normal_velocity=1.0, scheme="weno5")
        >>> phi[grid.fill_slices] += dt * rhs[grid.fill_slices]
    """
    rhs = grid.precision.zeros(grid.shape)

    needs_gradient = velocity is not None or normal_velocity is not None
    if needs_gradient and gradient is None:
        gradient = compute_upwind_gradient(phi, grid, scheme, weno_epsilon=weno_epsilon)

    if velocity is not None and normal_velocity is not None:
        add_external_and_normal_velocity_term(rhs, grid, gradient, normal_velocity, velocity, narrow_band, mark)
    elif velocity is not None:
        add_advection_term(rhs, grid, gradient, velocity, narrow_band, mark)
    elif normal_velocity is not None:
        if np.isscalar(normal_velocity):
            add_const_normal_velocity_term(rhs, grid, gradient, normal_velocity, narrow_band, mark)
        else:
            add_normal_velocity_term(rhs, grid, gradient, normal_velocity, narrow_band, mark)

    if curvature_coefficient is not None:
        add_curvature_term(rhs, grid, phi, curvature_coefficient, narrow_band, mark)

    logger.debug(
        "Assembled level set RHS (advection=%s, normal=%s, curvature=%s)",
        velocity is not None,
        normal_velocity is not None,
        curvature_coefficient is not None,
    )
    return rhs
