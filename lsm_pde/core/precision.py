"""
Floating point precision selection for the level set engines.

A single generic implementation serves both precisions: the element type is
chosen once per GridDescriptor and every engine allocates its outputs and
scratch with that dtype. Inputs of the other precision are rejected rather
than silently converted.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np

from lsm_pde.utils.exceptions import ConfigurationError, PrecisionMismatchError

if TYPE_CHECKING:
    from numpy.typing import NDArray


class Precision(Enum):
    """Numeric element type of level set fields."""

    SINGLE = "float32"
    DOUBLE = "float64"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @classmethod
    def from_value(cls, value: Any) -> Precision:
        """
        Resolve a precision from a name, dtype or Precision.

        Accepts "single"/"double", "float32"/"float64", numpy dtypes and
        scalar types.
        """
        if isinstance(value, Precision):
            return value
        if value is None:
            raise ConfigurationError(parameter_name="precision", provided_value=value, expected_type=str)
        if isinstance(value, str):
            key = value.lower()
            aliases = {"single": cls.SINGLE, "double": cls.DOUBLE, "float32": cls.SINGLE, "float64": cls.DOUBLE}
            if key in aliases:
                return aliases[key]
        try:
            dtype = np.dtype(value)
        except TypeError:
            dtype = None
        if dtype == np.float32:
            return cls.SINGLE
        if dtype == np.float64:
            return cls.DOUBLE
        raise ConfigurationError(
            parameter_name="precision",
            provided_value=value,
            valid_values=("single", "double", "float32", "float64"),
        )

    def check(self, array: NDArray, name: str, component: str | None = None) -> None:
        """Raise PrecisionMismatchError if array's dtype is not this precision."""
        if array.dtype != self.dtype:
            raise PrecisionMismatchError(name, array.dtype, self.dtype, component=component)

    def empty(self, shape: tuple[int, ...]) -> NDArray:
        return np.empty(shape, dtype=self.dtype)

    def zeros(self, shape: tuple[int, ...]) -> NDArray:
        return np.zeros(shape, dtype=self.dtype)
