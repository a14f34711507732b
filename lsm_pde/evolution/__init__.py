"""
Level set equation right-hand side and explicit time integration.

Usage:
    >>> from lsm_pde.evolution import compute_level_set_rhs, tvd_rk1_step
    >>> rhs = compute_level_set_rhs(phi, grid, normal_velocity=1.0)
    >>> phi_next = tvd_rk1_step(phi, rhs, dt, grid)
"""

from lsm_pde.evolution.rhs import (
    add_advection_term,
    add_const_normal_velocity_term,
    add_curvature_term,
    add_external_and_normal_velocity_term,
    add_normal_velocity_term,
    add_precomputed_curvature_term,
    compute_level_set_rhs,
)
from lsm_pde.evolution.time_step import (
    compute_stable_advection_dt,
    compute_stable_curvature_dt,
    compute_stable_normal_velocity_dt,
    tvd_rk1_step,
    tvd_rk2_stage2,
    tvd_rk3_stage2,
    tvd_rk3_stage3,
)

__all__ = [
    # RHS terms
    "add_advection_term",
    "add_const_normal_velocity_term",
    "add_curvature_term",
    "add_external_and_normal_velocity_term",
    "add_normal_velocity_term",
    "add_precomputed_curvature_term",
    "compute_level_set_rhs",
    # Time step control
    "compute_stable_advection_dt",
    "compute_stable_curvature_dt",
    "compute_stable_normal_velocity_dt",
    # TVD Runge-Kutta
    "tvd_rk1_step",
    "tvd_rk2_stage2",
    "tvd_rk3_stage2",
    "tvd_rk3_stage3",
]
