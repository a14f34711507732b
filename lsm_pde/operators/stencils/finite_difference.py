"""
Finite Difference Stencils for lsm_pde.

This module provides the fixed-coefficient stencils used by the level set
engines, evaluated on the fillbox of ghost-padded fields:

    - HJ ENO1 one-sided differences (the first-order upwind pair)
    - Central first derivatives (2nd and 4th order)
    - Central second derivatives, including mixed partials
    - Laplacian and gradient magnitude

Conceptual Hierarchy:
    Stencils (this module)
        ↓ (fixed coefficients)
    Reconstruction (operators/reconstruction/: HJ ENO2/3, HJ WENO5)
        ↓ (adaptive stencil choice)
    Upwind dispatch (operators/spatial_derivatives.py)

Mathematical Background:
    Forward:   D⁺φ ≈ (φ[i+1] - φ[i]) / h                         Error: O(h)
    Backward:  D⁻φ ≈ (φ[i] - φ[i-1]) / h                         Error: O(h)
    Central:   ∂φ/∂x ≈ (φ[i+1] - φ[i-1]) / (2h)                  Error: O(h²)
    Central4:  ∂φ/∂x ≈ (-φ[i+2] + 8φ[i+1] - 8φ[i-1] + φ[i-2]) / (12h)
    Second:    ∂²φ/∂x² ≈ (φ[i+1] - 2φ[i] + φ[i-1]) / h²
    Mixed:     ∂²φ/∂x∂y ≈ (φ[i+1,j+1] - φ[i+1,j-1] - φ[i-1,j+1] + φ[i-1,j-1]) / (4 h_x h_y)

Note:
    Unlike periodic np.roll stencils, every function here reads ghost cells
    and writes only fillbox values. Freshly allocated outputs have zero ghost
    cells; the stencil reach is checked against the input's ghost width.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from lsm_pde.utils.exceptions import ConfigurationError, DimensionMismatchError, ScratchAllocationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from numpy.typing import NDArray

    from lsm_pde.geometry.grid_descriptor import GridDescriptor

COMPONENT = "SpatialDerivativeEngine"


class UpwindGradient(NamedTuple):
    """
    One-sided derivative pair returned by the HJ ENO/WENO engines.

    Attributes:
        plus: Right-biased derivatives (∂φ/∂x_k)⁺, one ghostbox array per axis
        minus: Left-biased derivatives (∂φ/∂x_k)⁻, one ghostbox array per axis
    """

    plus: tuple[NDArray, ...]
    minus: tuple[NDArray, ...]

    @property
    def ndim(self) -> int:
        return len(self.plus)


# =============================================================================
# Array Helpers
# =============================================================================


def window(array: NDArray, fill: Sequence[slice], offsets: Mapping[int, int] | None = None) -> NDArray:
    """
    View of the fillbox region of array, shifted by offsets cells per axis.

    Args:
        array: Field (or difference array) indexed like the stencil input
        fill: Fillbox slices into array
        offsets: {axis: shift}; positive shifts look to the right

    Example:
        >>> # φ[i+1] - φ[i] along axis 0, for every fillbox point i
        >>> window(phi, fill, {0: 1}) - window(phi, fill)
    """
    if not offsets:
        return array[tuple(fill)]
    index = list(fill)
    for axis, offset in offsets.items():
        s = index[axis]
        index[axis] = slice(s.start + offset, s.stop + offset)
    return array[tuple(index)]


def allocate_scratch(
    shape: tuple[int, ...], dtype: np.dtype, count: int, component: str | None = None
) -> list[NDArray]:
    """
    Allocate count zero-filled arrays, all or nothing.

    Raises:
        ScratchAllocationError: If numpy cannot provide the memory
    """
    try:
        return [np.zeros(shape, dtype=dtype) for _ in range(count)]
    except MemoryError as err:
        raise ScratchAllocationError(shape, count, component=component or COMPONENT) from err


def prepare_upwind_output(
    grid: GridDescriptor, out: UpwindGradient | None, component: str = COMPONENT
) -> tuple[UpwindGradient, list[NDArray], list[NDArray]]:
    """
    Resolve the output buffers of an upwind derivative engine.

    Returns:
        (gradient, plus fill views, minus fill views). Writes into the views
        land in gradient's arrays.
    """
    if out is None:
        arrays = allocate_scratch(grid.shape, grid.dtype, 2 * grid.ndim, component)
        out = UpwindGradient(plus=tuple(arrays[: grid.ndim]), minus=tuple(arrays[grid.ndim :]))
    elif out.ndim != grid.ndim or len(out.minus) != grid.ndim:
        raise DimensionMismatchError("out", (len(out.plus), len(out.minus)), (grid.ndim, grid.ndim), component)

    plus_views = [grid.fill_view(a, f"out.plus[{k}]", component) for k, a in enumerate(out.plus)]
    minus_views = [grid.fill_view(a, f"out.minus[{k}]", component) for k, a in enumerate(out.minus)]
    return out, plus_views, minus_views


# =============================================================================
# First-Order Upwind Stencils
# =============================================================================


def hj_eno1(phi: NDArray, grid: GridDescriptor, out: UpwindGradient | None = None) -> UpwindGradient:
    """
    First-order HJ ENO (plain one-sided differences).

    Formula:
        (∂φ/∂x_k)⁺ = (φ[i+1] - φ[i]) / h_k
        (∂φ/∂x_k)⁻ = (φ[i] - φ[i-1]) / h_k

    Args:
        phi: Field over the ghostbox (or a box centered on it), ghost width >= 1
        grid: Grid descriptor
        out: Optional caller buffers to write into

    Returns:
        UpwindGradient with fillbox values written
    """
    fill = grid.stencil_fill_slices(phi, 1, "HJ ENO1", component=COMPONENT)
    out, plus_views, minus_views = prepare_upwind_output(grid, out)

    center = window(phi, fill)
    for axis, h in enumerate(grid.spacing):
        plus_views[axis][...] = (window(phi, fill, {axis: 1}) - center) / h
        minus_views[axis][...] = (center - window(phi, fill, {axis: -1})) / h
    return out


# =============================================================================
# Central Stencils
# =============================================================================


def central_gradient(
    phi: NDArray, grid: GridDescriptor, order: int = 2, out: Sequence[NDArray] | None = None
) -> tuple[NDArray, ...]:
    """
    Central difference gradient on the fillbox.

    Args:
        phi: Field with ghost width >= 1 (order 2) or >= 2 (order 4)
        grid: Grid descriptor
        order: 2 or 4
        out: Optional per-axis output arrays

    Returns:
        Tuple of ndim arrays over the ghostbox
    """
    if order not in (2, 4):
        raise ConfigurationError(parameter_name="order", provided_value=order, valid_values=(2, 4), component=COMPONENT)

    fill = grid.stencil_fill_slices(phi, order // 2, f"central gradient (order {order})", component=COMPONENT)
    if out is None:
        out = allocate_scratch(grid.shape, grid.dtype, grid.ndim)
    elif len(out) != grid.ndim:
        raise DimensionMismatchError("out", (len(out),), (grid.ndim,), COMPONENT)

    for axis, h in enumerate(grid.spacing):
        view = grid.fill_view(out[axis], f"out[{axis}]", COMPONENT)
        if order == 2:
            view[...] = (window(phi, fill, {axis: 1}) - window(phi, fill, {axis: -1})) / (2.0 * h)
        else:
            view[...] = (
                -window(phi, fill, {axis: 2})
                + 8.0 * window(phi, fill, {axis: 1})
                - 8.0 * window(phi, fill, {axis: -1})
                + window(phi, fill, {axis: -2})
            ) / (12.0 * h)
    return tuple(out)


def second_derivatives(phi: NDArray, grid: GridDescriptor) -> dict[tuple[int, int], NDArray]:
    """
    Central second derivatives of phi, including mixed partials.

    Returns:
        Dict keyed by axis pairs (k, l) with k <= l, e.g. in 2D
        {(0, 0): φ_xx, (0, 1): φ_xy, (1, 1): φ_yy}. Arrays are over the
        ghostbox with fillbox values written.
    """
    fill = grid.stencil_fill_slices(phi, 1, "central second derivatives", component=COMPONENT)
    pairs = [(k, l) for k in range(grid.ndim) for l in range(k, grid.ndim)]
    arrays = allocate_scratch(grid.shape, grid.dtype, len(pairs))
    center = window(phi, fill)

    result = {}
    for (k, l), array in zip(pairs, arrays, strict=True):
        view = array[grid.fill_slices]
        hk, hl = grid.spacing[k], grid.spacing[l]
        if k == l:
            view[...] = (window(phi, fill, {k: 1}) - 2.0 * center + window(phi, fill, {k: -1})) / (hk * hk)
        else:
            view[...] = (
                window(phi, fill, {k: 1, l: 1})
                - window(phi, fill, {k: 1, l: -1})
                - window(phi, fill, {k: -1, l: 1})
                + window(phi, fill, {k: -1, l: -1})
            ) / (4.0 * hk * hl)
        result[(k, l)] = array
    return result


def laplacian(phi: NDArray, grid: GridDescriptor) -> NDArray:
    """Standard (2·ndim + 1)-point Laplacian on the fillbox."""
    fill = grid.stencil_fill_slices(phi, 1, "central Laplacian", component=COMPONENT)
    (result,) = allocate_scratch(grid.shape, grid.dtype, 1)
    view = result[grid.fill_slices]
    center = window(phi, fill)
    for axis, h in enumerate(grid.spacing):
        view += (window(phi, fill, {axis: 1}) - 2.0 * center + window(phi, fill, {axis: -1})) / (h * h)
    return result


def gradient_magnitude(gradient: Sequence[NDArray]) -> NDArray:
    """Euclidean norm |∇φ| of a per-axis gradient."""
    squared = np.zeros_like(gradient[0])
    for component in gradient:
        squared += component * component
    return np.sqrt(squared)
