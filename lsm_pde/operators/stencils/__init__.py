"""
Finite Difference Stencils for lsm_pde.

Fixed-coefficient stencils evaluated on the fillbox of ghost-padded fields.

Available Stencils:
    First-order derivatives:
        - hj_eno1: one-sided differences (upwind pair)
        - central_gradient: 2nd or 4th order, symmetric

    Second-order derivatives:
        - second_derivatives: φ_kl for every axis pair k <= l
        - laplacian: sum of the pure second derivatives

    Utilities:
        - gradient_magnitude: |∇φ|
        - window: shifted fillbox views used by every stencil

Usage:
    >>> from lsm_pde.operators.stencils import central_gradient
    >>> phi_x, phi_y = central_gradient(phi, grid)
"""

from lsm_pde.operators.stencils.finite_difference import (
    UpwindGradient,
    allocate_scratch,
    central_gradient,
    gradient_magnitude,
    hj_eno1,
    laplacian,
    second_derivatives,
    window,
)

__all__ = [
    "UpwindGradient",
    "allocate_scratch",
    "central_gradient",
    "gradient_magnitude",
    "hj_eno1",
    "laplacian",
    "second_derivatives",
    "window",
]
