"""
Spatial derivative operators for lsm_pde.

Organization:
    stencils/             - Fixed-coefficient stencils (ENO1, central, second derivatives)
    reconstruction/       - HJ ENO2/ENO3 and HJ WENO5
    spatial_derivatives   - Scheme dispatch and upwind selection

Conceptual Hierarchy:
    Stencils (fixed coefficients) -> Reconstruction (adaptive) -> Upwind dispatch

Usage:
    >>> from lsm_pde.operators import compute_upwind_gradient
    >>> grad = compute_upwind_gradient(phi, grid, scheme="weno5")
    >>> grad.minus[0]  # left-biased ∂φ/∂x
"""

from lsm_pde.operators.reconstruction import hj_eno2, hj_eno3, hj_weno5
from lsm_pde.operators.spatial_derivatives import (
    compute_upwind_gradient,
    godunov_gradient_magnitude,
    required_ghost_width,
    resolve_scheme,
    select_upwind_gradient,
)
from lsm_pde.operators.stencils import (
    UpwindGradient,
    central_gradient,
    gradient_magnitude,
    hj_eno1,
    laplacian,
    second_derivatives,
)

__all__ = [
    "UpwindGradient",
    "central_gradient",
    "compute_upwind_gradient",
    "godunov_gradient_magnitude",
    "gradient_magnitude",
    "hj_eno1",
    "hj_eno2",
    "hj_eno3",
    "hj_weno5",
    "laplacian",
    "required_ghost_width",
    "resolve_scheme",
    "second_derivatives",
    "select_upwind_gradient",
]
