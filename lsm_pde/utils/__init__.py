"""Shared utilities for lsm_pde: exceptions and logging."""

from lsm_pde.utils.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    GhostWidthError,
    LevelSetError,
    NumericalInstabilityError,
    PrecisionMismatchError,
    ScratchAllocationError,
    check_numerical_stability,
    validate_array_dimensions,
)
from lsm_pde.utils.lsm_logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DimensionMismatchError",
    "GhostWidthError",
    "LevelSetError",
    "NumericalInstabilityError",
    "PrecisionMismatchError",
    "ScratchAllocationError",
    "check_numerical_stability",
    "configure_logging",
    "get_logger",
    "validate_array_dimensions",
]
