"""
Grid geometry for lsm_pde.

- grid_descriptor: IndexBox and GridDescriptor (ghostbox, fillbox, spacing, precision)
- narrow_band: Layered index set around the zero level set
- ghost_cells: Extrapolation of ghost cells on a single patch
- level_set: Fast marching, curvature, reinitialization and the evolution driver
"""

from lsm_pde.geometry.grid_descriptor import GridDescriptor, IndexBox
from lsm_pde.geometry.narrow_band import (
    MAX_LEVEL,
    OUTSIDE_BAND,
    ActiveRegion,
    NarrowBand,
    build_narrow_band,
    front_near_band_edge,
    zero_out_rhs,
)
from lsm_pde.geometry.ghost_cells import fill_ghost_cells  # noqa: I001
from lsm_pde.geometry.level_set import (
    FastMarchingMethod,
    LevelSetEvolver,
    compute_distance_function,
    compute_extension_fields,
    solve_eikonal_equation,
)

__all__ = [
    "MAX_LEVEL",
    "OUTSIDE_BAND",
    "ActiveRegion",
    "FastMarchingMethod",
    "GridDescriptor",
    "IndexBox",
    "LevelSetEvolver",
    "NarrowBand",
    "build_narrow_band",
    "compute_distance_function",
    "compute_extension_fields",
    "fill_ghost_cells",
    "front_near_band_edge",
    "solve_eikonal_equation",
    "zero_out_rhs",
]
