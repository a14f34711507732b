"""
Grid descriptors for ghost-padded structured grids.

A GridDescriptor describes two nested index boxes and the physical spacing:

    ghostbox: full padded storage extent of every field array
    fillbox:  interior sub-region where computed output is valid

Index Convention:
    Boxes hold inclusive global integer bounds (lo, hi) per axis. A field
    over a box is a numpy array whose axis k is spatial axis k (x, y, z
    order, "ij" indexing) and whose element [0, 0, ...] is the box's lo
    corner:

        array index = global index - box.lo

    Nothing relies on C or Fortran contiguity. Callers holding data in
    MATLAB meshgrid order (y, x, z) transpose at their boundary.

Alignment:
    Fields whose extent differs from the ghostbox are assumed centered on
    it, i.e. shifted by (ghostbox extent - field extent) / 2 per axis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from lsm_pde.core.precision import Precision
from lsm_pde.utils.exceptions import ConfigurationError, DimensionMismatchError, GhostWidthError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray


@dataclass(frozen=True)
class IndexBox:
    """
    Rectangular range of integer grid indices with inclusive bounds.

    Example:
        >>> box = IndexBox(lo=(0, 0), hi=(9, 19))
        >>> box.shape
        (10, 20)
        >>> box.grow(2).lo
        (-2, -2)
    """

    lo: tuple[int, ...]
    hi: tuple[int, ...]

    def __post_init__(self):
        lo = tuple(int(v) for v in self.lo)
        hi = tuple(int(v) for v in self.hi)
        if len(lo) != len(hi):
            raise DimensionMismatchError("IndexBox.hi", (len(hi),), (len(lo),), context="lo and hi must have equal length")
        if len(lo) == 0:
            raise ConfigurationError(parameter_name="lo", provided_value=self.lo)
        if any(h < l for l, h in zip(lo, hi, strict=True)):
            raise DimensionMismatchError("IndexBox", hi, lo, context=f"empty box: hi {hi} below lo {lo}")
        object.__setattr__(self, "lo", lo)
        object.__setattr__(self, "hi", hi)

    @classmethod
    def from_shape(cls, shape: Sequence[int], lo: Sequence[int] | None = None) -> IndexBox:
        """Box of the given shape with lower corner lo (default: origin)."""
        lo = tuple(lo) if lo is not None else (0,) * len(shape)
        return cls(lo=lo, hi=tuple(l + n - 1 for l, n in zip(lo, shape, strict=True)))

    @property
    def ndim(self) -> int:
        return len(self.lo)

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(h - l + 1 for l, h in zip(self.lo, self.hi, strict=True))

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    def grow(self, width: int | Sequence[int]) -> IndexBox:
        """Box widened by width cells on both sides of every axis."""
        widths = (width,) * self.ndim if isinstance(width, (int, np.integer)) else tuple(width)
        return IndexBox(
            lo=tuple(l - w for l, w in zip(self.lo, widths, strict=True)),
            hi=tuple(h + w for h, w in zip(self.hi, widths, strict=True)),
        )

    def intersect(self, other: IndexBox) -> IndexBox | None:
        """Overlap of two boxes, or None when they are disjoint."""
        lo = tuple(max(a, b) for a, b in zip(self.lo, other.lo, strict=True))
        hi = tuple(min(a, b) for a, b in zip(self.hi, other.hi, strict=True))
        if any(h < l for l, h in zip(lo, hi, strict=True)):
            return None
        return IndexBox(lo=lo, hi=hi)

    def contains_box(self, other: IndexBox) -> bool:
        return all(sl <= ol and oh <= sh for sl, sh, ol, oh in zip(self.lo, self.hi, other.lo, other.hi, strict=True))

    def contains(self, points: NDArray) -> NDArray[np.bool_]:
        """Boolean mask of which (npoints, ndim) global coordinates lie inside."""
        points = np.asarray(points)
        return np.all((points >= np.asarray(self.lo)) & (points <= np.asarray(self.hi)), axis=-1)

    def slices_in(self, outer: IndexBox) -> tuple[slice, ...]:
        """Slices selecting this box from an array stored over outer."""
        return tuple(slice(l - ol, h - ol + 1) for l, h, ol in zip(self.lo, self.hi, outer.lo, strict=True))

    def centered_box(self, shape: Sequence[int], name: str = "field") -> IndexBox:
        """
        Box of the given shape centered on this one.

        Raises:
            DimensionMismatchError: If dimensions differ or an extent differs
                by an odd number of cells (no symmetric alignment exists)
        """
        shape = tuple(shape)
        if len(shape) != self.ndim:
            raise DimensionMismatchError(name, shape, self.shape)
        lo = []
        for axis, (n_ref, n, l) in enumerate(zip(self.shape, shape, self.lo, strict=True)):
            diff = n_ref - n
            if diff % 2:
                raise DimensionMismatchError(
                    name, shape, self.shape, context=f"axis {axis}: extents differ by an odd number of cells"
                )
            lo.append(l + diff // 2)
        return IndexBox.from_shape(shape, lo=lo)


@dataclass(frozen=True)
class GridDescriptor:
    """
    Ghostbox, fillbox and spacing of a structured level set grid.

    Attributes:
        ghostbox: Index range of the padded storage region
        fillbox: Index range of the computational interior
        spacing: Grid spacing per axis (all > 0)
        precision: Element type of every field on this grid
        x_lower: Physical coordinate of global index 0 on each axis

    Example:
        >>> # 51^3 interior nodes on [-1, 1]^3 with 3 ghost cells
        >>> grid = GridDescriptor.from_bounds([(-1, 1)] * 3, [51] * 3, ghost_width=3)
        >>> grid.shape
        (57, 57, 57)
        >>> grid.ghost_width
        (3, 3, 3)
    """

    ghostbox: IndexBox
    fillbox: IndexBox
    spacing: tuple[float, ...]
    precision: Precision = Precision.DOUBLE
    x_lower: tuple[float, ...] = field(default=())

    def __post_init__(self):
        object.__setattr__(self, "precision", Precision.from_value(self.precision))
        spacing = tuple(float(h) for h in self.spacing)
        object.__setattr__(self, "spacing", spacing)
        x_lower = tuple(float(x) for x in self.x_lower) if self.x_lower else (0.0,) * self.ghostbox.ndim
        object.__setattr__(self, "x_lower", x_lower)

        if self.fillbox.ndim != self.ghostbox.ndim:
            raise DimensionMismatchError("fillbox", self.fillbox.shape, self.ghostbox.shape)
        if len(spacing) != self.ndim:
            raise DimensionMismatchError("spacing", (len(spacing),), (self.ndim,))
        if len(x_lower) != self.ndim:
            raise DimensionMismatchError("x_lower", (len(x_lower),), (self.ndim,))
        if any(not np.isfinite(h) or h <= 0 for h in spacing):
            raise ConfigurationError(parameter_name="spacing", provided_value=spacing, valid_range=(0, np.inf))
        if not self.ghostbox.contains_box(self.fillbox):
            raise DimensionMismatchError(
                "fillbox", self.fillbox.shape, self.ghostbox.shape, context="ghostbox must contain fillbox"
            )
        for axis in range(self.ndim):
            lower = self.fillbox.lo[axis] - self.ghostbox.lo[axis]
            upper = self.ghostbox.hi[axis] - self.fillbox.hi[axis]
            if lower != upper:
                raise DimensionMismatchError(
                    "fillbox",
                    self.fillbox.shape,
                    self.ghostbox.shape,
                    context=f"axis {axis}: asymmetric ghost padding ({lower} below, {upper} above)",
                )

    @classmethod
    def from_shape(
        cls,
        interior_shape: Sequence[int],
        ghost_width: int | Sequence[int],
        spacing: float | Sequence[float],
        precision: Precision | str = Precision.DOUBLE,
        x_lower: Sequence[float] | None = None,
    ) -> GridDescriptor:
        """
        Grid whose fillbox starts at global index 0.

        Args:
            interior_shape: Number of interior points per axis
            ghost_width: Ghost cells per side (scalar or per axis)
            spacing: Grid spacing (scalar or per axis)
            precision: "float32"/"float64" (or "single"/"double")
            x_lower: Physical coordinate of global index 0
        """
        ndim = len(interior_shape)
        if isinstance(spacing, (int, float, np.floating, np.integer)):
            spacing = (float(spacing),) * ndim
        fillbox = IndexBox.from_shape(interior_shape)
        return cls(
            ghostbox=fillbox.grow(ghost_width),
            fillbox=fillbox,
            spacing=tuple(spacing),
            precision=precision,
            x_lower=tuple(x_lower) if x_lower is not None else (),
        )

    @classmethod
    def from_bounds(
        cls,
        bounds: Sequence[tuple[float, float]],
        num_points: Sequence[int],
        ghost_width: int | Sequence[int],
        precision: Precision | str = Precision.DOUBLE,
    ) -> GridDescriptor:
        """
        Grid whose interior nodes span the physical bounds, endpoints included.

        Example:
            >>> grid = GridDescriptor.from_bounds([(0.0, 1.0), (0.0, 2.0)], [11, 21], ghost_width=2)
            >>> grid.spacing
            (0.1, 0.1)
        """
        if len(bounds) != len(num_points):
            raise DimensionMismatchError("num_points", (len(num_points),), (len(bounds),))
        if any(n < 2 for n in num_points):
            raise ConfigurationError(parameter_name="num_points", provided_value=tuple(num_points), valid_range=(2, np.inf))
        spacing = tuple((b - a) / (n - 1) for (a, b), n in zip(bounds, num_points, strict=True))
        return cls.from_shape(
            num_points, ghost_width, spacing, precision=precision, x_lower=tuple(a for a, _ in bounds)
        )

    @property
    def ndim(self) -> int:
        return self.ghostbox.ndim

    @property
    def shape(self) -> tuple[int, ...]:
        """Array shape of a field over the ghostbox."""
        return self.ghostbox.shape

    @property
    def interior_shape(self) -> tuple[int, ...]:
        return self.fillbox.shape

    @property
    def dtype(self) -> np.dtype:
        return self.precision.dtype

    @property
    def ghost_width(self) -> tuple[int, ...]:
        return tuple(f - g for f, g in zip(self.fillbox.lo, self.ghostbox.lo, strict=True))

    @property
    def fill_slices(self) -> tuple[slice, ...]:
        """Slices selecting the fillbox from a ghostbox array."""
        return self.fillbox.slices_in(self.ghostbox)

    def with_precision(self, precision: Precision | str) -> GridDescriptor:
        return GridDescriptor(self.ghostbox, self.fillbox, self.spacing, Precision.from_value(precision), self.x_lower)

    def coordinates(self) -> list[NDArray[np.float64]]:
        """Physical node coordinates over the ghostbox, one 1D array per axis."""
        return [
            x0 + h * np.arange(lo, hi + 1)
            for x0, h, lo, hi in zip(self.x_lower, self.spacing, self.ghostbox.lo, self.ghostbox.hi, strict=True)
        ]

    def meshgrid(self) -> tuple[NDArray[np.float64], ...]:
        """Coordinate arrays over the ghostbox ("ij" indexing)."""
        return tuple(np.meshgrid(*self.coordinates(), indexing="ij"))

    def require_ghost_width(self, width: int, scheme: str, component: str | None = None) -> None:
        """Raise GhostWidthError unless every axis carries at least width ghost cells."""
        if min(self.ghost_width) < width:
            raise GhostWidthError(scheme, width, self.ghost_width, component=component)

    def box_for(self, array: NDArray, name: str = "field") -> IndexBox:
        """Index box of an array, centered on the ghostbox when extents differ."""
        if array.shape == self.shape:
            return self.ghostbox
        return self.ghostbox.centered_box(array.shape, name=name)

    def validate_field(
        self,
        array: NDArray,
        name: str = "field",
        component: str | None = None,
        check_precision: bool = True,
    ) -> IndexBox:
        """
        Validate a field array against this grid and return its index box.

        The array must be ndim-dimensional, centered-alignable with the
        ghostbox, cover the fillbox and (optionally) carry the grid precision.
        """
        if not isinstance(array, np.ndarray):
            raise DimensionMismatchError(name, (), self.shape, component=component, context="expected a numpy array")
        if array.ndim != self.ndim:
            raise DimensionMismatchError(name, array.shape, self.shape, component=component)
        box = self.box_for(array, name)
        if not box.contains_box(self.fillbox):
            raise DimensionMismatchError(
                name, array.shape, self.shape, component=component, context="field does not cover the fillbox"
            )
        if check_precision:
            self.precision.check(array, name, component=component)
        return box

    def fill_view(
        self,
        array: NDArray,
        name: str = "field",
        component: str | None = None,
        check_precision: bool = True,
    ) -> NDArray:
        """View of array restricted to the fillbox (writes go through)."""
        box = self.validate_field(array, name, component=component, check_precision=check_precision)
        return array[self.fillbox.slices_in(box)]

    def stencil_fill_slices(
        self,
        array: NDArray,
        width: int,
        scheme: str,
        name: str = "phi",
        component: str | None = None,
    ) -> tuple[slice, ...]:
        """
        Validate a stencil input and return the fillbox slices into it.

        The ghost width is measured on the array's own (centered) box, so a
        field padded less than the ghostbox is accepted as long as it still
        covers the stencil reach.

        Raises:
            GhostWidthError: If the array carries fewer than width ghost
                cells on some axis
        """
        box = self.validate_field(array, name, component=component)
        available = tuple(f - b for f, b in zip(self.fillbox.lo, box.lo, strict=True))
        if min(available) < width:
            raise GhostWidthError(scheme, width, available, component=component)
        return self.fillbox.slices_in(box)

    def validate_points(self, points: NDArray, name: str = "index_list", component: str | None = None) -> NDArray:
        """
        Validate an index list of global coordinates.

        Returns:
            (npoints, ndim) integer array

        Raises:
            DimensionMismatchError: If the list is not (npoints, ndim) or a
                coordinate lies outside the ghostbox
        """
        points = np.asarray(points)
        if points.size == 0:
            return np.empty((0, self.ndim), dtype=np.intp)
        if points.ndim != 2 or points.shape[1] != self.ndim or not np.issubdtype(points.dtype, np.integer):
            raise DimensionMismatchError(name, points.shape, ("npoints", self.ndim), component=component)
        inside = self.ghostbox.contains(points)
        if not np.all(inside):
            first_bad = tuple(int(v) for v in points[np.argmin(inside)])
            raise DimensionMismatchError(
                name,
                points.shape,
                ("npoints", self.ndim),
                component=component,
                context=f"coordinate {first_bad} lies outside ghostbox {self.ghostbox.lo}..{self.ghostbox.hi}",
            )
        return points.astype(np.intp, copy=False)

    def point_index(self, points: NDArray, box: IndexBox | None = None) -> tuple[NDArray, ...]:
        """Fancy index into an array over box (default: ghostbox) for global points."""
        box = box or self.ghostbox
        local = np.asarray(points) - np.asarray(box.lo)
        return tuple(local.T)

    def __repr__(self) -> str:
        return (
            f"GridDescriptor(ghostbox={self.ghostbox.lo}..{self.ghostbox.hi}, "
            f"fillbox={self.fillbox.lo}..{self.fillbox.hi}, spacing={self.spacing}, "
            f"precision={self.precision.value})"
        )
