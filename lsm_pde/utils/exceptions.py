"""
Exception classes for lsm_pde with descriptive messages and user guidance.

Every error raised by the engines derives from LevelSetError, which formats
a message with the failing component, a suggested action, an error code and
optional diagnostic data.

Taxonomy:
    - DimensionMismatchError: array extents, index lists, box bounds
    - GhostWidthError: ghost width smaller than the stencil reach
    - PrecisionMismatchError: array dtype differs from the configured precision
    - ScratchAllocationError: scratch buffers could not be allocated
    - ConfigurationError: invalid parameter values
    - NumericalInstabilityError: NaN/Inf detected in evolved fields
"""

from __future__ import annotations

from typing import Any

import numpy as np


class LevelSetError(Exception):
    """
    Base exception for level set engine errors with helpful context.

    Provides structured error information:
    - Clear error description
    - Component that raised the error
    - Suggested action for resolution
    - Optional diagnostic data
    """

    def __init__(
        self,
        message: str,
        component: str | None = None,
        suggested_action: str | None = None,
        error_code: str | None = None,
        diagnostic_data: dict[str, Any] | None = None,
    ):
        self.component = component or "lsm_pde"
        self.suggested_action = suggested_action
        self.error_code = error_code
        self.diagnostic_data = diagnostic_data or {}

        full_message = f"[{self.component}] {message}"

        if self.suggested_action:
            full_message += f"\nSuggestion: {self.suggested_action}"

        if self.error_code:
            full_message += f"\nError Code: {self.error_code}"

        if self.diagnostic_data:
            full_message += "\nDiagnostic Information:"
            for key, value in self.diagnostic_data.items():
                full_message += f"\n   - {key}: {value}"

        super().__init__(full_message)


class DimensionMismatchError(LevelSetError):
    """Exception raised when array extents or index bounds don't match."""

    def __init__(
        self,
        array_name: str,
        provided_shape: tuple,
        expected_shape: tuple,
        component: str | None = None,
        context: str | None = None,
    ):
        diagnostic_data = {
            "array_name": array_name,
            "provided_shape": str(provided_shape),
            "expected_shape": str(expected_shape),
            "dimension_mismatch": _describe_dimension_mismatch(provided_shape, expected_shape),
        }

        if context:
            diagnostic_data["context"] = context

        suggested_action = _generate_dimension_suggestions(array_name, provided_shape, expected_shape)

        super().__init__(
            message=f"Dimension mismatch for {array_name}",
            component=component,
            suggested_action=suggested_action,
            error_code="DIMENSION_MISMATCH",
            diagnostic_data=diagnostic_data,
        )


class GhostWidthError(DimensionMismatchError):
    """Exception raised when the ghost region is too thin for a stencil."""

    def __init__(
        self,
        scheme: str,
        required_width: int,
        ghost_width: tuple[int, ...],
        component: str | None = None,
    ):
        self.scheme = scheme
        self.required_width = required_width
        self.ghost_width = ghost_width
        LevelSetError.__init__(
            self,
            message=f"Ghost width {ghost_width} is too small for {scheme} (requires {required_width} on every axis)",
            component=component,
            suggested_action=f"Pad the field with at least {required_width} ghost cells per side",
            error_code="GHOST_WIDTH_TOO_SMALL",
            diagnostic_data={"scheme": scheme, "required_width": required_width, "ghost_width": str(ghost_width)},
        )


class PrecisionMismatchError(LevelSetError):
    """Exception raised when an array's dtype disagrees with the engine precision."""

    def __init__(
        self,
        array_name: str,
        provided_dtype: Any,
        expected_dtype: Any,
        component: str | None = None,
    ):
        provided = np.dtype(provided_dtype)
        expected = np.dtype(expected_dtype)
        super().__init__(
            message=f"Incompatible precision for {array_name}: got {provided.name}, engine configured for {expected.name}",
            component=component,
            suggested_action=f"Convert with {array_name}.astype(np.{expected.name}) or build the grid with "
            f"precision='{provided.name}'",
            error_code="PRECISION_MISMATCH",
            diagnostic_data={"array_name": array_name, "provided_dtype": provided.name, "expected_dtype": expected.name},
        )


class ScratchAllocationError(LevelSetError):
    """Exception raised when scratch buffers cannot be allocated."""

    def __init__(self, shape: tuple[int, ...], count: int, component: str | None = None):
        super().__init__(
            message=f"Unable to allocate {count} scratch arrays of shape {shape}",
            component=component,
            suggested_action="Reduce the ghostbox size or process the grid in smaller patches",
            error_code="SCRATCH_ALLOCATION_FAILED",
            diagnostic_data={"shape": str(shape), "count": count},
        )


class ConfigurationError(LevelSetError):
    """Exception raised when a parameter value is invalid."""

    def __init__(
        self,
        parameter_name: str,
        provided_value: Any,
        expected_type: type | None = None,
        valid_range: tuple | None = None,
        valid_values: tuple | None = None,
        component: str | None = None,
    ):
        diagnostic_data = {
            "parameter": parameter_name,
            "provided_value": str(provided_value),
            "provided_type": type(provided_value).__name__,
        }

        if expected_type:
            diagnostic_data["expected_type"] = expected_type.__name__

        if valid_range:
            diagnostic_data["valid_range"] = f"[{valid_range[0]}, {valid_range[1]}]"

        if valid_values:
            diagnostic_data["valid_values"] = ", ".join(str(v) for v in valid_values)

        suggested_action = _generate_configuration_suggestions(
            parameter_name, provided_value, expected_type, valid_range
        )

        super().__init__(
            message=f"Invalid configuration for parameter '{parameter_name}'",
            component=component,
            suggested_action=suggested_action,
            error_code="INVALID_CONFIGURATION",
            diagnostic_data=diagnostic_data,
        )


class NumericalInstabilityError(LevelSetError):
    """Exception raised when numerical instability is detected."""

    def __init__(
        self,
        instability_type: str,
        step_number: int | None = None,
        problematic_values: dict[str, Any] | None = None,
        component: str | None = None,
    ):
        diagnostic_data: dict[str, Any] = {"instability_type": instability_type}

        if step_number is not None:
            diagnostic_data["step"] = step_number

        if problematic_values:
            diagnostic_data.update(problematic_values)

        super().__init__(
            message=f"Numerical instability detected: {instability_type}",
            component=component,
            suggested_action=_generate_stability_suggestions(instability_type),
            error_code="NUMERICAL_INSTABILITY",
            diagnostic_data=diagnostic_data,
        )


# Helper functions for generating specific suggestions


def _describe_dimension_mismatch(provided_shape: tuple, expected_shape: tuple) -> str:
    """Describe the specific nature of dimension mismatch."""

    if len(provided_shape) != len(expected_shape):
        return f"Wrong number of dimensions: got {len(provided_shape)}, expected {len(expected_shape)}"

    mismatches = []
    for i, (provided, expected) in enumerate(zip(provided_shape, expected_shape, strict=False)):
        if provided != expected:
            mismatches.append(f"axis {i}: got {provided}, expected {expected}")

    return " | ".join(mismatches) if mismatches else "extents agree but alignment is invalid"


def _generate_dimension_suggestions(array_name: str, provided_shape: tuple, expected_shape: tuple) -> str:
    """Generate specific suggestions for dimension errors."""

    if len(provided_shape) != len(expected_shape):
        return f"Reshape {array_name} to a {len(expected_shape)}D array matching {expected_shape}"

    return f"Allocate {array_name} over the grid ghostbox {expected_shape} (or a box centered on it)"


def _generate_configuration_suggestions(
    parameter_name: str,
    provided_value: Any,
    expected_type: type | None,
    valid_range: tuple | None,
) -> str:
    """Generate specific suggestions for configuration errors."""

    suggestions = []

    if expected_type and not isinstance(provided_value, expected_type):
        suggestions.append(f"Convert {parameter_name} to {expected_type.__name__}")

    if valid_range and isinstance(provided_value, (int, float)):
        if provided_value < valid_range[0]:
            suggestions.append(f"Increase {parameter_name} to at least {valid_range[0]}")
        elif provided_value > valid_range[1]:
            suggestions.append(f"Decrease {parameter_name} to at most {valid_range[1]}")

    if "cfl" in parameter_name.lower() and isinstance(provided_value, (int, float)) and provided_value >= 1:
        suggestions.append("Explicit level set updates need a CFL number below 1")

    return " | ".join(suggestions) if suggestions else f"Check {parameter_name} value and try again"


def _generate_stability_suggestions(instability_type: str) -> str:
    """Generate suggestions for numerical stability issues."""

    if "nan" in instability_type.lower():
        return "Check for: 1) Uninitialized ghost cells, 2) Zero gradients in curvature terms, 3) Too large time steps"
    elif "inf" in instability_type.lower():
        return "Reduce the time step or the velocity magnitude"
    else:
        return "Reinitialize the level set more often and lower the CFL number"


# Convenience functions for common error scenarios


def validate_array_dimensions(
    array: np.ndarray, expected_shape: tuple, array_name: str, component: str | None = None
) -> None:
    """Validate that array has expected dimensions."""
    if array.shape != tuple(expected_shape):
        raise DimensionMismatchError(
            array_name=array_name,
            provided_shape=array.shape,
            expected_shape=tuple(expected_shape),
            component=component,
        )


def check_numerical_stability(
    array: np.ndarray, array_name: str, step: int | None = None, component: str | None = None
) -> None:
    """Check array for NaN or infinite values."""
    problematic_values: dict[str, Any] = {}

    if np.any(np.isnan(array)):
        problematic_values["nan_count"] = int(np.sum(np.isnan(array)))
        instability_type = "NaN values detected"
    elif np.any(np.isinf(array)):
        problematic_values["inf_count"] = int(np.sum(np.isinf(array)))
        instability_type = "Infinite values detected"
    else:
        return

    problematic_values["array_name"] = array_name

    raise NumericalInstabilityError(
        instability_type=instability_type,
        step_number=step,
        problematic_values=problematic_values,
        component=component,
    )
