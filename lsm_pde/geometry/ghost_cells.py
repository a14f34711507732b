"""
Ghost cell filling for single-patch level set computations.

The engines read ghost cells but never write them. On a single patch with
no neighbours to exchange data with, ghost cells are filled by extrapolating
the fillbox outward, one layer at a time and one axis after another (so
corner and edge ghosts are filled too).

Extrapolation Formulas (u_0 adjacent to the ghost, u_1, u_2 further in):
    constant:   u_ghost = u_0
    linear:     u_ghost = 2*u_0 - u_1              (zero second derivative)
    quadratic:  u_ghost = 3*u_0 - 3*u_1 + u_2      (zero third derivative)

Linear extrapolation keeps a signed distance function a distance function
across a planar boundary, which makes it the default for φ.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from lsm_pde.utils.exceptions import ConfigurationError, DimensionMismatchError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from lsm_pde.geometry.grid_descriptor import GridDescriptor

EXTRAPOLATION_METHODS = ("constant", "linear", "quadratic")

_POINTS_NEEDED = {"constant": 1, "linear": 2, "quadratic": 3}


def _extrapolate(method: str, u0: NDArray, u1: NDArray | None, u2: NDArray | None) -> NDArray:
    if method == "constant":
        return u0
    if method == "linear":
        return 2.0 * u0 - u1
    return 3.0 * u0 - 3.0 * u1 + u2


def fill_ghost_cells(field: NDArray, grid: GridDescriptor, method: str = "linear") -> NDArray:
    """
    Fill the ghost cells of field in place by extrapolation from the fillbox.

    Args:
        field: Array over the ghostbox (or a centered box)
        grid: Grid descriptor
        method: "constant", "linear" or "quadratic"

    Returns:
        field (for chaining)

    Example:
        >>> phi_next = tvd_rk1_step(phi, rhs, dt, grid)
        >>> fill_ghost_cells(phi_next, grid)  # ready for the next derivative call
    """
    if method not in EXTRAPOLATION_METHODS:
        raise ConfigurationError(
            parameter_name="method", provided_value=method, valid_values=EXTRAPOLATION_METHODS, component="GhostCells"
        )
    box = grid.validate_field(field, "field", "GhostCells", check_precision=False)
    needed = _POINTS_NEEDED[method]
    if min(grid.fillbox.shape) < needed:
        raise DimensionMismatchError(
            "field",
            grid.fillbox.shape,
            (needed,) * grid.ndim,
            "GhostCells",
            context=f"{method} extrapolation needs {needed} interior points per axis",
        )

    fill = grid.fillbox.slices_in(box)
    # Axes already filled extend over their full extent for later axes
    current = list(fill)
    for axis in range(grid.ndim):
        start, stop = fill[axis].start, fill[axis].stop

        def layer(position, _axis=axis):
            index = list(current)
            index[_axis] = position
            return tuple(index)

        for j in range(start - 1, -1, -1):
            u = [field[layer(j + m)] for m in range(1, needed + 1)] + [None] * (3 - needed)
            field[layer(j)] = _extrapolate(method, *u[:3])
        for j in range(stop, field.shape[axis]):
            u = [field[layer(j - m)] for m in range(1, needed + 1)] + [None] * (3 - needed)
            field[layer(j)] = _extrapolate(method, *u[:3])

        current[axis] = slice(None)
    return field
