"""
Upwind spatial derivative dispatch.

Selects one of the HJ ENO/WENO engines by scheme name or order and provides
the per-axis upwind choice used by advection-type terms.

Schemes:
    - "eno1"  (order 1): plain one-sided differences, ghost width 1
    - "eno2"  (order 2): HJ ENO2, ghost width 2
    - "eno3"  (order 3): HJ ENO3, ghost width 3
    - "weno5" (order 5): HJ WENO5, ghost width 3
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from lsm_pde.operators.reconstruction.eno import hj_eno2, hj_eno3
from lsm_pde.operators.reconstruction.weno import hj_weno5
from lsm_pde.operators.stencils.finite_difference import COMPONENT, UpwindGradient, allocate_scratch, hj_eno1
from lsm_pde.utils.exceptions import ConfigurationError, DimensionMismatchError
from lsm_pde.utils.lsm_logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from lsm_pde.geometry.grid_descriptor import GridDescriptor

# Module logger
logger = get_logger(__name__)

SCHEMES = ("eno1", "eno2", "eno3", "weno5")

SCHEME_BY_ORDER = {1: "eno1", 2: "eno2", 3: "eno3", 5: "weno5"}

GHOST_WIDTH = {"eno1": 1, "eno2": 2, "eno3": 3, "weno5": 3}


def resolve_scheme(scheme: str | int) -> str:
    """
    Normalize a scheme name or spatial order to a scheme name.

    Example:
        >>> resolve_scheme(5)
        'weno5'
        >>> resolve_scheme("ENO3")
        'eno3'
    """
    if isinstance(scheme, (int, np.integer)) and not isinstance(scheme, bool):
        if int(scheme) not in SCHEME_BY_ORDER:
            raise ConfigurationError(
                parameter_name="spatial_order",
                provided_value=scheme,
                valid_values=tuple(SCHEME_BY_ORDER),
                component=COMPONENT,
            )
        return SCHEME_BY_ORDER[int(scheme)]

    name = str(scheme).lower()
    if name not in SCHEMES:
        raise ConfigurationError(parameter_name="scheme", provided_value=scheme, valid_values=SCHEMES, component=COMPONENT)
    return name


def required_ghost_width(scheme: str | int) -> int:
    """Ghost cells per side needed by a scheme."""
    return GHOST_WIDTH[resolve_scheme(scheme)]


def compute_upwind_gradient(
    phi: NDArray,
    grid: GridDescriptor,
    scheme: str | int = "eno3",
    weno_epsilon: float = 1e-6,
    out: UpwindGradient | None = None,
) -> UpwindGradient:
    """
    Compute plus/minus one-sided derivatives of phi with the chosen scheme.

    Args:
        phi: Field over the ghostbox (or a centered box)
        grid: Grid descriptor
        scheme: "eno1" | "eno2" | "eno3" | "weno5", or order 1, 2, 3, 5
        weno_epsilon: Regularization for WENO5
        out: Optional caller buffers

    Returns:
        UpwindGradient(plus, minus)

    Raises:
        ConfigurationError: Unknown scheme
        GhostWidthError: phi carries too few ghost cells for the scheme
        PrecisionMismatchError: phi's dtype differs from grid.precision
    """
    name = resolve_scheme(scheme)
    logger.debug("Computing %s derivatives on %s interior points", name, grid.fillbox.size)

    if name == "eno1":
        return hj_eno1(phi, grid, out=out)
    if name == "eno2":
        return hj_eno2(phi, grid, out=out)
    if name == "eno3":
        return hj_eno3(phi, grid, out=out)
    return hj_weno5(phi, grid, epsilon=weno_epsilon, out=out)


def godunov_gradient_magnitude(
    plus: Sequence[NDArray],
    minus: Sequence[NDArray],
    speed: NDArray | float,
) -> NDArray:
    """
    Godunov upwind |∇φ| for motion in the normal direction with speed V.

    Per axis:
        V > 0:  max(max(φ⁻, 0)², min(φ⁺, 0)²)
        V < 0:  max(min(φ⁻, 0)², max(φ⁺, 0)²)
        V = 0:  0

    Args:
        plus: Right-biased derivatives at the points of interest
        minus: Left-biased derivatives at the same points
        speed: Normal speed at those points (or a scalar)

    Returns:
        Upwind |∇φ| at the points
    """
    speed = np.asarray(speed)
    total_pos = np.zeros(np.broadcast_shapes(plus[0].shape, speed.shape), dtype=plus[0].dtype)
    total_neg = np.zeros_like(total_pos)
    for p, m in zip(plus, minus, strict=True):
        total_pos += np.maximum(np.maximum(m, 0.0) ** 2, np.minimum(p, 0.0) ** 2)
        total_neg += np.maximum(np.minimum(m, 0.0) ** 2, np.maximum(p, 0.0) ** 2)
    return np.where(speed > 0, np.sqrt(total_pos), np.where(speed < 0, np.sqrt(total_neg), 0.0))


def select_upwind_gradient(
    gradient: UpwindGradient,
    velocity: Sequence[NDArray],
    grid: GridDescriptor,
) -> tuple[NDArray, ...]:
    """
    Per-axis upwind derivative for a velocity field.

    Uses the minus derivative where V_k > 0, the plus derivative where
    V_k < 0 and zero where V_k = 0. Only fillbox values are written.

    Args:
        gradient: Plus/minus derivatives over the ghostbox
        velocity: One array per axis (ghostbox or centered box)
        grid: Grid descriptor

    Returns:
        Tuple of ndim arrays over the ghostbox
    """
    if len(velocity) != grid.ndim:
        raise DimensionMismatchError("velocity", (len(velocity),), (grid.ndim,), COMPONENT)

    result = allocate_scratch(grid.shape, grid.dtype, grid.ndim)
    for axis in range(grid.ndim):
        v = grid.fill_view(velocity[axis], f"velocity[{axis}]", COMPONENT)
        plus = grid.fill_view(gradient.plus[axis], f"gradient.plus[{axis}]", COMPONENT)
        minus = grid.fill_view(gradient.minus[axis], f"gradient.minus[{axis}]", COMPONENT)
        result[axis][grid.fill_slices] = np.where(v > 0, minus, np.where(v < 0, plus, 0.0))
    return tuple(result)
