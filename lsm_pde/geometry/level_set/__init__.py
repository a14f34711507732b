"""
Level Set Methods on structured grids.

Core Components:
- FastMarchingMethod: Signed distance, extension fields and general Eikonal
  solves in one ordered sweep
- compute_curvature: Mean curvature κ = ∇·(∇φ/|∇φ|)
- reinitialize: Restore |∇φ| = 1 (fast marching or Sussman PDE)
- LevelSetEvolver: TVD Runge-Kutta driver with narrow band and reinitialization

Mathematical Background:
    Level set evolution:
        ∂φ/∂t + V·∇φ + V_n|∇φ| + b κ|∇φ| = 0

    Eikonal equation (distance, arrival time):
        |∇T| F = 1,  T = T₀ on the frozen set

    Extension velocities:
        ∇E · ∇φ = 0

References:
- Sethian (1999): Level Set Methods and Fast Marching Methods
- Osher & Fedkiw (2003): Level Set Methods and Dynamic Implicit Surfaces
- Adalsteinsson & Sethian (1999): The fast construction of extension velocities
"""

from lsm_pde.geometry.level_set.curvature import compute_curvature, compute_mean_curvature_speed
from lsm_pde.geometry.level_set.fast_marching import (
    FastMarchingMethod,
    FastMarchingResult,
    compute_distance_function,
    compute_extension_fields,
    solve_eikonal_equation,
)
from lsm_pde.geometry.level_set.priority_queue import TrialHeap
from lsm_pde.geometry.level_set.reinitialization import reinitialize
from lsm_pde.geometry.level_set.core import EvolutionResult, LevelSetEvolver  # noqa: I001

__all__ = [
    # Fast marching
    "FastMarchingMethod",
    "FastMarchingResult",
    "TrialHeap",
    "compute_distance_function",
    "compute_extension_fields",
    "solve_eikonal_equation",
    # Geometry helpers
    "compute_curvature",
    "compute_mean_curvature_speed",
    "reinitialize",
    # Evolution driver
    "EvolutionResult",
    "LevelSetEvolver",
]
