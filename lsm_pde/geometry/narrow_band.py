"""
Narrow band index sets for localized level set updates.

A narrow band restricts the level set equation to grid points near the zero
level set. It is described by two pieces of data:

    tags:    uint8 array over the ghostbox. A band point carries its layer
             number (chessboard cell distance from the interface cells),
             every other cell carries OUTSIDE_BAND. A point is active for a
             given mark iff tag <= mark.
    indices: (npoints, ndim) global coordinates of the band points, ordered
             by layer (stable), with level_offsets[l]:level_offsets[l+1]
             selecting layer l.

Interface cells are grid points whose value changes sign across at least
one grid edge (or is exactly zero); they form layer 0.

Example:
    >>> band = build_narrow_band(phi, grid, width=6 * grid.spacing[0])
    >>> band.points(max_level=1)      # interface cells and their neighbours
    >>> band.active_mask(mark=3)      # boolean fillbox mask
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from scipy import ndimage

from lsm_pde.utils.exceptions import ConfigurationError, DimensionMismatchError
from lsm_pde.utils.lsm_logging import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from lsm_pde.geometry.grid_descriptor import GridDescriptor, IndexBox

# Module logger
logger = get_logger(__name__)

COMPONENT = "NarrowBand"

# Tag of cells outside the band
OUTSIDE_BAND = 255

# Largest layer number a band cell may carry
MAX_LEVEL = OUTSIDE_BAND - 1


def interface_cells(phi: NDArray) -> NDArray[np.bool_]:
    """
    Boolean mask of points adjacent to a sign change of phi.

    A point is an interface cell if phi is zero there or phi changes sign
    between it and one of its axis neighbours within the array.
    """
    positive = phi > 0
    mask = phi == 0
    for axis in range(phi.ndim):
        lower = [slice(None)] * phi.ndim
        upper = [slice(None)] * phi.ndim
        lower[axis] = slice(None, -1)
        upper[axis] = slice(1, None)
        change = positive[tuple(lower)] != positive[tuple(upper)]
        # Zero points already count; a zero neighbour does not mark both sides
        change &= (phi[tuple(lower)] != 0) & (phi[tuple(upper)] != 0)
        mask[tuple(lower)] |= change
        mask[tuple(upper)] |= change
    return mask


@dataclass
class NarrowBand:
    """
    Narrow band of a level set function on a GridDescriptor.

    Attributes:
        grid: Grid the band lives on
        tags: uint8 tag per ghostbox cell (OUTSIDE_BAND off the band)
        indices: (npoints, ndim) global coordinates ordered by tag level
        level_offsets: level_offsets[l] is the first row of layer l in
            indices; level_offsets[-1] == npoints

    Raises:
        DimensionMismatchError: tags not over the ghostbox, or an index list
            entry outside the ghostbox
    """

    grid: GridDescriptor
    tags: NDArray[np.uint8]
    indices: NDArray[np.intp]
    level_offsets: NDArray[np.intp] = field(init=False)

    def __post_init__(self):
        if self.tags.shape != self.grid.shape:
            raise DimensionMismatchError("tags", self.tags.shape, self.grid.shape, COMPONENT)
        if self.tags.dtype != np.uint8:
            raise DimensionMismatchError(
                "tags", self.tags.shape, self.grid.shape, COMPONENT, context=f"tags must be uint8, got {self.tags.dtype}"
            )

        indices = self.grid.validate_points(self.indices, "indices", COMPONENT)
        levels = self.tags[self.grid.point_index(indices)]
        if indices.shape[0] and np.any(np.diff(levels.astype(np.int16)) < 0):
            order = np.argsort(levels, kind="stable")
            indices, levels = indices[order], levels[order]
        self.indices = indices

        top = int(levels.max()) if levels.size else -1
        self.level_offsets = np.searchsorted(levels, np.arange(top + 2), side="left").astype(np.intp)

    @classmethod
    def from_tags(cls, tags: NDArray[np.uint8], grid: GridDescriptor) -> NarrowBand:
        """Band listing every fillbox cell whose tag is not OUTSIDE_BAND."""
        fill_tags = tags[grid.fill_slices]
        local = np.argwhere(fill_tags != OUTSIDE_BAND)
        points = local + np.asarray(grid.fillbox.lo)
        return cls(grid=grid, tags=tags, indices=points.astype(np.intp))

    @property
    def num_points(self) -> int:
        return int(self.indices.shape[0])

    @property
    def max_level(self) -> int:
        """Highest layer present in the index list (-1 when empty)."""
        return len(self.level_offsets) - 2

    def points(self, max_level: int | None = None, min_level: int = 0) -> NDArray[np.intp]:
        """Index list rows for layers min_level..max_level (inclusive)."""
        top = self.max_level if max_level is None else min(max_level, self.max_level)
        if top < min_level:
            return self.indices[:0]
        return self.indices[self.level_offsets[min_level] : self.level_offsets[top + 1]]

    def active_points(self, mark: int | None = None) -> NDArray[np.intp]:
        """
        Listed fillbox points with tag <= mark (all listed fillbox points if mark is None).

        Index list entries that fall in ghost cells are never active.
        """
        points = self.indices if mark is None else self.points(max_level=mark)
        inside = self.grid.fillbox.contains(points)
        return points if np.all(inside) else points[inside]

    def active_mask(self, mark: int | None = None) -> NDArray[np.bool_]:
        """Boolean fillbox mask of cells with tag <= mark (tag != OUTSIDE_BAND if mark is None)."""
        fill_tags = self.tags[self.grid.fill_slices]
        if mark is None:
            return fill_tags != OUTSIDE_BAND
        return fill_tags <= mark


def build_narrow_band(
    phi: NDArray,
    grid: GridDescriptor,
    width: float,
    max_level: int = MAX_LEVEL,
) -> NarrowBand:
    """
    Tag the cells around the zero level set of phi.

    Layers are chessboard distances (in cells) from the interface cells,
    computed with scipy.ndimage.distance_transform_cdt. A fillbox point joins
    the band when |phi| < width and its layer does not exceed max_level.

    Args:
        phi: Level set function over the ghostbox (or a centered box)
        grid: Grid descriptor
        width: Physical half-width of the band
        max_level: Largest layer kept in the band (<= 254)

    Returns:
        NarrowBand with tags over the ghostbox and a level-ordered index list
    """
    if not width > 0:
        raise ConfigurationError(parameter_name="width", provided_value=width, valid_range=(0, np.inf), component=COMPONENT)
    if not 0 <= max_level <= MAX_LEVEL:
        raise ConfigurationError(
            parameter_name="max_level", provided_value=max_level, valid_range=(0, MAX_LEVEL), component=COMPONENT
        )

    phi_box = grid.validate_field(phi, "phi", COMPONENT)
    tags = np.full(grid.shape, OUTSIDE_BAND, dtype=np.uint8)

    interface = interface_cells(phi)
    if not interface.any():
        logger.warning("No zero crossing found; narrow band is empty")
        return NarrowBand(grid=grid, tags=tags, indices=np.empty((0, grid.ndim), dtype=np.intp))

    layers = ndimage.distance_transform_cdt(~interface, metric="chessboard")

    phi_fill = phi[grid.fillbox.slices_in(phi_box)]
    layer_fill = layers[grid.fillbox.slices_in(phi_box)]
    in_band = (np.abs(phi_fill) < width) | (layer_fill == 0)
    in_band &= layer_fill <= max_level

    tags_fill = tags[grid.fill_slices]
    tags_fill[in_band] = layer_fill[in_band].astype(np.uint8)

    band = NarrowBand.from_tags(tags, grid)
    logger.debug(
        "Built narrow band: %d points in %d layers (width=%.4g)", band.num_points, band.max_level + 1, width
    )
    return band


def front_near_band_edge(phi: NDArray, band: NarrowBand, outer_level: int) -> bool:
    """
    Whether the zero level set has moved into the outer layers of the band.

    Returns True when an interface cell of phi lies in a fillbox cell with
    tag >= outer_level (including cells outside the band), the usual
    trigger for rebuilding the band.
    """
    grid = band.grid
    phi_box = grid.validate_field(phi, "phi", COMPONENT)
    interface = interface_cells(phi)[grid.fillbox.slices_in(phi_box)]
    fill_tags = band.tags[grid.fill_slices]
    return bool(np.any(interface & (fill_tags >= outer_level)))


def zero_out_rhs(
    rhs: NDArray,
    grid: GridDescriptor,
    narrow_band: NarrowBand | None = None,
    mark: int | None = None,
) -> None:
    """
    Zero the level set equation right-hand side in place.

    Without a band the whole fillbox is zeroed; with a band only the active
    index list points (tag <= mark). Ghost cells are untouched.
    """
    region = ActiveRegion(grid, narrow_band, mark)
    region.assign(rhs, 0.0, "rhs")


class ActiveRegion:
    """
    Points an accumulation touches: the full fillbox or active band points.

    Provides gather/scatter against any field on the grid, resolving each
    field's own (centered) box.

    Example:
        >>> region = ActiveRegion(grid, band, mark=2)
        >>> v = region.gather(velocity[0], "velocity[0]")
        >>> region.add(rhs, -v * grad_x, "rhs")
    """

    def __init__(
        self,
        grid: GridDescriptor,
        narrow_band: NarrowBand | None = None,
        mark: int | None = None,
        component: str | None = None,
    ):
        self.grid = grid
        self.component = component or COMPONENT
        if narrow_band is not None and narrow_band.grid.shape != grid.shape:
            raise DimensionMismatchError("narrow_band.tags", narrow_band.grid.shape, grid.shape, self.component)
        self.points = None if narrow_band is None else narrow_band.active_points(mark)

    @property
    def size(self) -> int:
        return self.grid.fillbox.size if self.points is None else int(self.points.shape[0])

    def _index(self, box: IndexBox) -> tuple:
        if self.points is None:
            return self.grid.fillbox.slices_in(box)
        return self.grid.point_index(self.points, box)

    def gather(self, array: NDArray, name: str) -> NDArray:
        """Values of array at the active points (a view in full-fillbox mode)."""
        box = self.grid.validate_field(array, name, self.component)
        return array[self._index(box)]

    def add(self, array: NDArray, values: NDArray | float, name: str = "rhs") -> None:
        box = self.grid.validate_field(array, name, self.component)
        array[self._index(box)] += values

    def assign(self, array: NDArray, values: NDArray | float, name: str = "rhs") -> None:
        box = self.grid.validate_field(array, name, self.component)
        array[self._index(box)] = values
