from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("lsm_pde")  # Matches the name in pyproject.toml
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0-dev"

from .config import LevelSetConfig  # noqa: E402
from .core import Precision  # noqa: E402
# geometry first: geometry.level_set.core imports evolution, which imports geometry submodules
from .geometry import (  # noqa: E402
    GridDescriptor,
    IndexBox,
    NarrowBand,
    build_narrow_band,
    fill_ghost_cells,
)
from .evolution import compute_level_set_rhs  # noqa: E402, I001
from .geometry.level_set import (  # noqa: E402
    FastMarchingMethod,
    LevelSetEvolver,
    compute_curvature,
    compute_distance_function,
    compute_extension_fields,
    reinitialize,
    solve_eikonal_equation,
)
from .operators import compute_upwind_gradient  # noqa: E402
from .utils import (  # noqa: E402
    ConfigurationError,
    DimensionMismatchError,
    GhostWidthError,
    LevelSetError,
    PrecisionMismatchError,
    configure_logging,
    get_logger,
)

__all__ = [
    "ConfigurationError",
    "DimensionMismatchError",
    "FastMarchingMethod",
    "GhostWidthError",
    "GridDescriptor",
    "IndexBox",
    "LevelSetConfig",
    "LevelSetError",
    "LevelSetEvolver",
    "NarrowBand",
    "Precision",
    "PrecisionMismatchError",
    "build_narrow_band",
    "compute_curvature",
    "compute_distance_function",
    "compute_extension_fields",
    "compute_level_set_rhs",
    "compute_upwind_gradient",
    "configure_logging",
    "fill_ghost_cells",
    "get_logger",
    "reinitialize",
    "solve_eikonal_equation",
]
