"""Core numeric types for lsm_pde."""

from lsm_pde.core.precision import Precision

__all__ = ["Precision"]
