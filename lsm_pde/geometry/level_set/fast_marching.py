"""
Fast Marching Method for distance functions, extension fields and Eikonal equations.

Solves the Eikonal equation

    |∇T(x)| F(x) = 1,    T = T₀ on the frozen set,

by visiting grid points in order of increasing T (Sethian 1996). With F ≡ 1
and the zero level set of φ as the frozen set, T is the distance to the
interface and sign(φ)·T the signed distance function.

Algorithm:
    1. Initialization: points adjacent to a sign change of φ (or with φ = 0)
       become Known, with the distance to the linearly (or quadratically)
       interpolated zero crossing along each axis, combined as
       d = 1/sqrt(Σ 1/d_k²).
    2. Neighbours of Known points become Trial with a tentative value from
       the upwind local solve.
    3. Repeatedly pop the smallest Trial value from a binary heap keyed by
       (value, flat index), freeze it, and update its non-Known neighbours.

Local Solve:
    For each axis take the smaller Known neighbour value a_k. With axes sorted
    so that a_1 <= a_2 <= ..., grow the quadratic

        Σ_{k<=m} ((T - a_k)/h_k)² = 1/F²

    one axis at a time; an axis is dropped (lower-dimensional fallback) when
    the discriminant is negative or the root does not exceed a_m.

Extension Fields:
    When a point freezes, each extension field takes the upwind weighted
    average Σ w_k e_k / Σ w_k of the Known neighbours used by the solve, with
    w_k = (T - a_k)/h_k². This makes ∇T·∇e ≈ 0, i.e. e is constant along
    characteristics.

Complexity:
    O(N log N) for N fillbox points. Point states and the heap are
    call-local.

References:
    - Sethian (1996): A fast marching level set method for monotonically
      advancing fronts
    - Adalsteinsson & Sethian (1999): The fast construction of extension
      velocities in level set methods
    - Sethian (1999): Level Set Methods and Fast Marching Methods, Chapter 8
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from lsm_pde.geometry.level_set.priority_queue import TrialHeap
from lsm_pde.operators.stencils.finite_difference import window
from lsm_pde.utils.exceptions import ConfigurationError, DimensionMismatchError
from lsm_pde.utils.lsm_logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from lsm_pde.geometry.grid_descriptor import GridDescriptor

# Module logger
logger = get_logger(__name__)

COMPONENT = "FastMarchingMethod"

# Point states
FAR = 0
TRIAL = 1
KNOWN = 2
MASKED = 3


@dataclass
class FastMarchingResult:
    """
    Output of a fast marching run.

    Attributes:
        values: Signed distance (or arrival time) over the input's box; ghost
            cells are copies of the input
        extensions: Extended fields, one per source, over the sources' boxes
        states: Final point state per fillbox cell (FAR, KNOWN, MASKED)
        freeze_order: (num_known, ndim) global coordinates in the order the
            points became Known (interface points first)
        freeze_values: Unsigned value of each point at freeze time
        num_known: Number of Known fillbox points
        num_seeds: Number of leading freeze_order entries that were seeded
            (interface or frozen points); the rest were frozen by the march
            in non-decreasing order of value
        cutoff_reached: Whether the march stopped at the cutoff with Trial
            points left
    """

    values: NDArray
    extensions: list[NDArray] = field(default_factory=list)
    states: NDArray[np.uint8] | None = None
    freeze_order: NDArray[np.intp] | None = None
    freeze_values: NDArray[np.float64] | None = None
    num_known: int = 0
    num_seeds: int = 0
    cutoff_reached: bool = False


def _linear_crossing(p: NDArray, q: NDArray, h: float) -> NDArray:
    """Distance from p to the zero of the line through (0, p), (h, q)."""
    return np.abs(p / (p - q)) * h


def _quadratic_crossing(p: NDArray, q: NDArray, r: NDArray, h: float) -> NDArray:
    """
    Distance from p toward q to the zero of the parabola through r, p, q.

    Falls back to the linear crossing where the parabola has no root in (0, h].
    """
    b = (q - r) / (2.0 * h)
    a = (q - 2.0 * p + r) / (2.0 * h * h)
    disc = b * b - 4.0 * a * p
    root = np.sqrt(np.maximum(disc, 0.0))
    t1 = (-b + root) / (2.0 * a)
    t2 = (-b - root) / (2.0 * a)
    usable = (disc >= 0) & (a != 0)
    valid1 = usable & (t1 > 0) & (t1 <= h)
    valid2 = usable & (t2 > 0) & (t2 <= h)
    linear = _linear_crossing(p, q, h)
    return np.where(valid1 & valid2, np.minimum(t1, t2), np.where(valid1, t1, np.where(valid2, t2, linear)))


def initialize_interface(
    phi: NDArray,
    fill: Sequence[slice],
    spacing: Sequence[float],
    initialization_order: int = 1,
    sources: Sequence[NDArray] = (),
) -> tuple[NDArray[np.bool_], NDArray[np.float64], list[NDArray[np.float64]]]:
    """
    Distances from interface points to the zero level set.

    Args:
        phi: Level set function with at least one ghost cell per side
        fill: Fillbox slices into phi
        spacing: Grid spacing per axis
        initialization_order: 1 (linear crossing) or 2 (quadratic)
        sources: Fields to interpolate to the zero crossing

    Returns:
        (interface mask, unsigned distance, interpolated sources), all over
        the fillbox; distance is inf away from the interface
    """
    p = window(phi, fill).astype(np.float64)
    inv_sq_sum = np.zeros(p.shape)
    source_centers = [window(s, fill).astype(np.float64) for s in sources]
    weighted_sources = [np.zeros(p.shape) for _ in sources]

    with np.errstate(divide="ignore", invalid="ignore"):
        for axis, h in enumerate(spacing):
            best = np.full(p.shape, np.inf)
            best_source = [np.zeros(p.shape) for _ in sources]
            for side in (1, -1):
                q = window(phi, fill, {axis: side}).astype(np.float64)
                crossing = (p != 0) & (((p > 0) != (q > 0)) | (q == 0))
                if initialization_order == 2:
                    r = window(phi, fill, {axis: -side}).astype(np.float64)
                    d = _quadratic_crossing(p, q, r, h)
                else:
                    d = _linear_crossing(p, q, h)
                d = np.where(crossing, d, np.inf)
                closer = d < best
                best = np.where(closer, d, best)
                for k, source in enumerate(sources):
                    s_q = window(source, fill, {axis: side}).astype(np.float64)
                    s_p = source_centers[k]
                    interpolated = s_p + (s_q - s_p) * (d / h)
                    best_source[k] = np.where(closer, interpolated, best_source[k])

            has_crossing = np.isfinite(best)
            # A crossing exactly at p is handled by the phi == 0 branch below
            weight = np.where(has_crossing & (best > 0), 1.0 / (best * best), 0.0)
            inv_sq_sum += weight
            for k in range(len(sources)):
                weighted_sources[k] += weight * best_source[k]

        interface = (inv_sq_sum > 0) | (p == 0)
        distance = np.where(p == 0, 0.0, np.where(inv_sq_sum > 0, 1.0 / np.sqrt(inv_sq_sum), np.inf))
        extended = [
            np.where(p == 0, center, np.where(inv_sq_sum > 0, ws / inv_sq_sum, center))
            for center, ws in zip(source_centers, weighted_sources, strict=True)
        ]

    return interface, distance, extended


class FastMarchingMethod:
    """
    Fast marching solver over the fillbox of a GridDescriptor.

    Attributes:
        grid: Grid descriptor
        max_distance: Cutoff; marching stops once the smallest Trial value
            exceeds it (None: march every reachable point)
        mask: Optional boolean field, True at points excluded from marching

    Example:
        >>> fmm = FastMarchingMethod(grid, max_distance=0.5)
        >>> result = fmm.march(phi)
        >>> result.values          # signed distance
        >>> result.freeze_order    # coordinates in freeze order
    """

    def __init__(self, grid: GridDescriptor, max_distance: float | None = None, mask: NDArray | None = None):
        if max_distance is not None and not max_distance > 0:
            raise ConfigurationError(
                parameter_name="max_distance", provided_value=max_distance, valid_range=(0, np.inf), component=COMPONENT
            )
        self.grid = grid
        self.max_distance = max_distance
        if mask is not None:
            mask = np.asarray(grid.fill_view(mask, "mask", COMPONENT, check_precision=False), dtype=bool)
        self.mask = mask

    def march(
        self,
        phi: NDArray | None = None,
        sources: Sequence[NDArray] = (),
        speed: NDArray | None = None,
        frozen: NDArray | None = None,
        boundary_values: NDArray | None = None,
        initialization_order: int = 1,
    ) -> FastMarchingResult:
        """
        Run the march.

        Two modes:
            - Distance/extension: pass phi (and optionally sources). The
              interface of phi seeds the march; values are signed.
            - General Eikonal: pass frozen and boundary_values (and
              optionally speed). Frozen points seed the march with their
              boundary values; values are arrival times.

        Args:
            phi: Level set function (ghost width >= 1)
            sources: Fields to extend off the interface (distance mode)
            speed: Positive speed F of |∇T| F = 1 (default 1); points with
                F == 0 are never reached
            frozen: Boolean field of seed points (Eikonal mode)
            boundary_values: Arrival times at the seed points (Eikonal mode)
            initialization_order: 1 or 2 (distance mode)

        Returns:
            FastMarchingResult
        """
        grid = self.grid
        if initialization_order not in (1, 2):
            raise ConfigurationError(
                parameter_name="initialization_order",
                provided_value=initialization_order,
                valid_values=(1, 2),
                component=COMPONENT,
            )

        if phi is not None:
            fill = grid.stencil_fill_slices(phi, 1, "fast marching initialization", component=COMPONENT)
            for k, source in enumerate(sources):
                grid.stencil_fill_slices(source, 1, "fast marching extension", name=f"sources[{k}]", component=COMPONENT)
            known, seed_values, seed_extensions = initialize_interface(
                phi, fill, grid.spacing, initialization_order, [self._source_view(s, phi) for s in sources]
            )
            output = phi.copy()
            sign = np.sign(window(phi, fill))
        elif frozen is not None and boundary_values is not None:
            if sources:
                raise ConfigurationError(parameter_name="sources", provided_value=len(sources), component=COMPONENT)
            known = np.asarray(grid.fill_view(frozen, "frozen", COMPONENT, check_precision=False), dtype=bool)
            boundary_fill = grid.fill_view(boundary_values, "boundary_values", COMPONENT)
            seed_values = np.where(known, boundary_fill.astype(np.float64), np.inf)
            seed_extensions = []
            output = boundary_values.copy()
            sign = None
        else:
            raise ConfigurationError(
                parameter_name="phi",
                provided_value=None,
                valid_values=("phi", "frozen and boundary_values"),
                component=COMPONENT,
            )

        slowness = None
        unreachable = np.zeros(grid.interior_shape, dtype=bool)
        if speed is not None:
            speed_fill = grid.fill_view(speed, "speed", COMPONENT).astype(np.float64)
            if np.any(speed_fill < 0) or not np.all(np.isfinite(speed_fill)):
                raise ConfigurationError(
                    parameter_name="speed", provided_value="negative or non-finite entries", component=COMPONENT
                )
            unreachable = speed_fill == 0
            with np.errstate(divide="ignore"):
                slowness = np.where(unreachable, np.inf, 1.0 / speed_fill)

        excluded = unreachable if self.mask is None else (self.mask | unreachable)
        if self.mask is not None:
            known = known & ~self.mask

        if not known.any():
            logger.warning("Fast marching has no seed points; every point is left unreached")

        values, extensions, states, order, order_values, cutoff_reached = self._march(
            seed_values, known, excluded, slowness, seed_extensions
        )

        fill_out = grid.fill_view(output, "values", COMPONENT, check_precision=False)
        reached = states == KNOWN
        far_value = self.max_distance if self.max_distance is not None else np.inf
        with np.errstate(invalid="ignore"):
            if sign is not None:
                signed = np.where(reached, sign * values, sign * far_value)
                # Excluded points keep their input value
                fill_out[...] = np.where(states == MASKED, fill_out, signed)
            else:
                fill_out[...] = np.where(reached, values, np.where(states == MASKED, np.inf, far_value))

        extended_fields = []
        for source, extension in zip(sources, extensions, strict=True):
            extended = source.copy()
            view = grid.fill_view(extended, "extension", COMPONENT, check_precision=False)
            view[reached] = extension[reached]
            extended_fields.append(extended)

        freeze_order = np.stack(np.unravel_index(np.asarray(order, dtype=np.intp), grid.interior_shape), axis=-1)
        freeze_order = freeze_order + np.asarray(grid.fillbox.lo)
        num_known = int(reached.sum())

        logger.debug(
            "Fast marching: %d known, %d excluded, %d unreached of %d points",
            num_known,
            int((states == MASKED).sum()),
            int((states == FAR).sum()),
            states.size,
        )

        return FastMarchingResult(
            values=output,
            extensions=extended_fields,
            states=states,
            freeze_order=freeze_order.astype(np.intp),
            freeze_values=np.asarray(order_values, dtype=np.float64),
            num_known=num_known,
            num_seeds=int(known.sum()),
            cutoff_reached=cutoff_reached,
        )

    def _source_view(self, source: NDArray, phi: NDArray) -> NDArray:
        """Source array aligned with phi's box (sources share phi's extent)."""
        if source.shape != phi.shape:
            raise DimensionMismatchError("source", source.shape, phi.shape, COMPONENT)
        return source

    def _march(
        self,
        seed_values: NDArray[np.float64],
        known: NDArray[np.bool_],
        excluded: NDArray[np.bool_],
        slowness: NDArray[np.float64] | None,
        seed_extensions: Sequence[NDArray[np.float64]],
    ) -> tuple:
        """Heap-driven march over the flattened fillbox."""
        shape = self.grid.interior_shape
        ndim = len(shape)
        strides = [int(np.prod(shape[k + 1 :])) for k in range(ndim)]
        spacing = list(self.grid.spacing)
        inv_h2 = [1.0 / (h * h) for h in spacing]
        cutoff = self.max_distance if self.max_distance is not None else math.inf

        T = np.where(known, seed_values, np.inf).ravel().tolist()
        state_array = np.full(shape, FAR, dtype=np.uint8)
        state_array[excluded] = MASKED
        state_array[known] = KNOWN
        state = state_array.ravel().tolist()
        r = slowness.ravel().tolist() if slowness is not None else None
        ext = [e.ravel().tolist() for e in seed_extensions]

        def neighbors(p):
            for k in range(ndim):
                ck = (p // strides[k]) % shape[k]
                if ck > 0:
                    yield p - strides[k]
                if ck < shape[k] - 1:
                    yield p + strides[k]

        def local_solve(p):
            candidates = []
            for k in range(ndim):
                ck = (p // strides[k]) % shape[k]
                best = math.inf
                best_q = -1
                if ck > 0:
                    q = p - strides[k]
                    if state[q] == KNOWN and T[q] < best:
                        best, best_q = T[q], q
                if ck < shape[k] - 1:
                    q = p + strides[k]
                    if state[q] == KNOWN and T[q] < best:
                        best, best_q = T[q], q
                if best_q >= 0:
                    candidates.append((best, k, best_q))
            if not candidates:
                return math.inf, ()
            candidates.sort()

            rhs = 1.0 if r is None else r[p] * r[p]
            a, k, q = candidates[0]
            value = a + spacing[k] * (1.0 if r is None else r[p])
            used = [candidates[0]]
            sum_w = inv_h2[k]
            sum_wa = a * inv_h2[k]
            sum_wa2 = a * a * inv_h2[k]
            for a, k, q in candidates[1:]:
                if value <= a:
                    break
                A = sum_w + inv_h2[k]
                B = sum_wa + a * inv_h2[k]
                C = sum_wa2 + a * a * inv_h2[k] - rhs
                disc = B * B - A * C
                if disc < 0:
                    break
                root = (B + math.sqrt(disc)) / A
                if root < a:
                    break
                value = root
                used.append((a, k, q))
                sum_w, sum_wa, sum_wa2 = A, B, C + rhs
            return value, used

        heap = TrialHeap()
        support: dict[int, list] = {}

        def update_neighbors(p):
            for q in neighbors(p):
                if state[q] == KNOWN or state[q] == MASKED:
                    continue
                value, used = local_solve(q)
                if value < math.inf and heap.push(value, q):
                    support[q] = used
                    state[q] = TRIAL

        seeds = np.flatnonzero(known.ravel())
        order = sorted(seeds.tolist(), key=lambda p: (T[p], p))
        order_values = [T[p] for p in order]
        for p in order:
            update_neighbors(p)

        cutoff_reached = False
        while heap:
            value, p = heap.peek()
            if value > cutoff:
                cutoff_reached = True
                break
            heap.pop()
            T[p] = value
            state[p] = KNOWN
            used = support.pop(p)
            if ext:
                weights = [(value - a) * inv_h2[k] for a, k, _ in used]
                total = sum(weights)
                if total <= 0:
                    weights = [1.0] * len(used)
                    total = float(len(used))
                for field_values in ext:
                    field_values[p] = sum(w * field_values[q] for w, (_, _, q) in zip(weights, used, strict=True)) / total
            order.append(p)
            order_values.append(value)
            update_neighbors(p)

        if cutoff_reached:
            logger.debug("Fast marching stopped at cutoff %.4g with %d Trial points left", cutoff, len(heap))

        states = np.asarray(state, dtype=np.uint8).reshape(shape)
        # Trial points left behind by the cutoff count as unreached
        states[states == TRIAL] = FAR
        values = np.asarray(T, dtype=np.float64).reshape(shape)
        extensions = [np.asarray(e, dtype=np.float64).reshape(shape) for e in ext]
        return values, extensions, states, order, order_values, cutoff_reached


def compute_distance_function(
    phi: NDArray,
    grid: GridDescriptor,
    *,
    max_distance: float | None = None,
    mask: NDArray | None = None,
    initialization_order: int = 1,
) -> NDArray:
    """
    Signed distance function to the zero level set of phi.

    Args:
        phi: Level set function over the ghostbox (ghost width >= 1)
        grid: Grid descriptor
        max_distance: Cutoff; points farther away get sign(phi)·max_distance
        mask: Optional boolean field of excluded points (keep their phi value)
        initialization_order: 1 (linear) or 2 (quadratic) interface distances

    Returns:
        Array over phi's box; ghost cells are copies of phi

    Example:
        >>> grid = GridDescriptor.from_bounds([(-1, 1)] * 2, [101, 101], ghost_width=3)
        >>> X, Y = grid.meshgrid()
        >>> phi = (X**2 + Y**2 - 0.25)  # not a distance function
        >>> d = compute_distance_function(phi, grid)  # ≈ sqrt(X²+Y²) - 0.5
    """
    return FastMarchingMethod(grid, max_distance=max_distance, mask=mask).march(
        phi, initialization_order=initialization_order
    ).values


def compute_extension_fields(
    phi: NDArray,
    grid: GridDescriptor,
    sources: Sequence[NDArray],
    *,
    max_distance: float | None = None,
    mask: NDArray | None = None,
    initialization_order: int = 1,
) -> tuple[NDArray, list[NDArray]]:
    """
    Signed distance function and fields extended off the interface.

    Each source is sampled at the zero level set and carried outward along
    the characteristics of the distance function. Points never reached keep
    their source value.

    Returns:
        (distance, [extension field per source])
    """
    result = FastMarchingMethod(grid, max_distance=max_distance, mask=mask).march(
        phi, sources=sources, initialization_order=initialization_order
    )
    return result.values, result.extensions


def solve_eikonal_equation(
    speed: NDArray | None,
    grid: GridDescriptor,
    *,
    frozen: NDArray,
    boundary_values: NDArray,
    max_value: float | None = None,
    mask: NDArray | None = None,
) -> NDArray:
    """
    Arrival time T with |∇T| · speed = 1 and T fixed on the frozen set.

    Args:
        speed: Non-negative speed field (None for unit speed)
        grid: Grid descriptor
        frozen: Boolean field of seed points
        boundary_values: Field holding T at the seed points; its ghost cells
            are copied to the output
        max_value: Cutoff; later points get max_value
        mask: Optional boolean field of excluded points (set to inf)

    Returns:
        Arrival time over boundary_values' box
    """
    return FastMarchingMethod(grid, max_distance=max_value, mask=mask).march(
        speed=speed, frozen=frozen, boundary_values=boundary_values
    ).values
