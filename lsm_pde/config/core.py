"""
Core level set configuration classes.

Configurations specify HOW a level set is evolved (derivative scheme, time
stepping, narrow band, reinitialization), not WHAT is evolved (the grid and
the velocity fields, which are passed as arrays).

Key Principle
-------------
- GridDescriptor + arrays (Python code): the fields and their layout
- LevelSetConfig (YAML/Python): algorithmic choices (scheme, CFL, band width)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field, model_validator

from lsm_pde.utils.lsm_logging import configure_logging

if TYPE_CHECKING:
    from pathlib import Path


class LoggingConfig(BaseModel):
    """
    Configuration for logging.

    Attributes
    ----------
    level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
        Logging level (default: INFO)
    log_to_file : bool
        Also write log records to a file (default: False)
    log_file_path : str | None
        Log file location (default: None)
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_to_file: bool = False
    log_file_path: str | None = None

    @model_validator(mode="after")
    def validate_log_file(self) -> LoggingConfig:
        """Validate that log_file_path is provided if log_to_file is True."""
        if self.log_to_file and self.log_file_path is None:
            raise ValueError("log_file_path must be provided when log_to_file is True")
        return self

    def apply(self) -> None:
        """Apply these settings to every lsm_pde logger."""
        configure_logging(level=self.level, log_to_file=self.log_to_file, log_file_path=self.log_file_path)


class SpatialDerivativeConfig(BaseModel):
    """
    Configuration for the upwind spatial derivatives.

    Attributes
    ----------
    scheme : Literal["eno1", "eno2", "eno3", "weno5"]
        HJ ENO/WENO scheme for the first-order terms (default: eno3)
    weno_epsilon : float
        WENO5 smoothness regularization (default: 1e-6)
    """

    scheme: Literal["eno1", "eno2", "eno3", "weno5"] = "eno3"
    weno_epsilon: float = Field(default=1e-6, gt=0)

    @property
    def ghost_width(self) -> int:
        """Ghost cells per side required by the scheme."""
        return {"eno1": 1, "eno2": 2, "eno3": 3, "weno5": 3}[self.scheme]


class FastMarchingConfig(BaseModel):
    """
    Configuration for the fast marching method.

    Attributes
    ----------
    max_distance : float | None
        Marching cutoff in physical units (default: None = whole grid)
    initialization_order : Literal[1, 2]
        Order of the interface distance estimate (default: 1)
    """

    max_distance: float | None = Field(default=None, gt=0)
    initialization_order: Literal[1, 2] = 1


class NarrowBandConfig(BaseModel):
    """
    Configuration for narrow band evolution.

    Attributes
    ----------
    enabled : bool
        Restrict updates to a band around the interface (default: True)
    width_cells : int
        Band half-width in cells of the largest spacing (default: 6)
    rebuild_margin_cells : int
        Rebuild the band once the interface reaches a cell within this many
        layers of the band edge (default: 2)
    """

    enabled: bool = True
    width_cells: int = Field(default=6, ge=2, le=254)
    rebuild_margin_cells: int = Field(default=2, ge=1)

    @model_validator(mode="after")
    def validate_margin(self) -> NarrowBandConfig:
        """Validate that the rebuild margin fits inside the band."""
        if self.rebuild_margin_cells >= self.width_cells:
            raise ValueError("rebuild_margin_cells must be smaller than width_cells")
        return self


class EvolutionConfig(BaseModel):
    """
    Configuration for time integration.

    Attributes
    ----------
    cfl : float
        CFL number in (0, 1] (default: 0.5)
    rk_order : Literal[1, 2, 3]
        TVD Runge-Kutta order (default: 3)
    reinitialize_every : int
        Reinitialize with fast marching every this many steps (0 = never,
        default: 10)
    check_stability : bool
        Raise NumericalInstabilityError on NaN/Inf after each step
        (default: True)
    max_steps : int
        Safety limit on the number of steps of one advance call
        (default: 100000)
    """

    cfl: float = Field(default=0.5, gt=0, le=1.0)
    rk_order: Literal[1, 2, 3] = 3
    reinitialize_every: int = Field(default=10, ge=0)
    check_stability: bool = True
    max_steps: int = Field(default=100_000, ge=1)


class LevelSetConfig(BaseModel):
    """
    Unified level set configuration.

    Attributes
    ----------
    precision : Literal["float32", "float64"]
        Floating point precision of every field (default: float64)
    spatial : SpatialDerivativeConfig
        Upwind derivative configuration
    fast_marching : FastMarchingConfig
        Fast marching configuration
    narrow_band : NarrowBandConfig
        Narrow band configuration
    evolution : EvolutionConfig
        Time integration configuration
    logging : LoggingConfig
        Logging configuration

    Examples
    --------
    >>> # From YAML file
    >>> config = LevelSetConfig.from_yaml("config.yaml")

    >>> # Programmatically
    >>> config = LevelSetConfig(
    ...     spatial=SpatialDerivativeConfig(scheme="weno5"),
    ...     evolution=EvolutionConfig(cfl=0.8, rk_order=3),
    ... )

    >>> # Presets
    >>> config = LevelSetConfig.accurate()
    """

    precision: Literal["float32", "float64"] = "float64"
    spatial: SpatialDerivativeConfig = Field(default_factory=SpatialDerivativeConfig)
    fast_marching: FastMarchingConfig = Field(default_factory=FastMarchingConfig)
    narrow_band: NarrowBandConfig = Field(default_factory=NarrowBandConfig)
    evolution: EvolutionConfig = Field(default_factory=EvolutionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def fast(cls) -> LevelSetConfig:
        """First-order derivatives, forward Euler, narrow band."""
        return cls(
            spatial=SpatialDerivativeConfig(scheme="eno1"),
            evolution=EvolutionConfig(cfl=0.9, rk_order=1),
            narrow_band=NarrowBandConfig(enabled=True, width_cells=4, rebuild_margin_cells=1),
        )

    @classmethod
    def accurate(cls) -> LevelSetConfig:
        """WENO5 derivatives, TVD RK3, quadratic interface initialization."""
        return cls(
            spatial=SpatialDerivativeConfig(scheme="weno5"),
            fast_marching=FastMarchingConfig(initialization_order=2),
            evolution=EvolutionConfig(cfl=0.5, rk_order=3, reinitialize_every=5),
            narrow_band=NarrowBandConfig(enabled=True, width_cells=8, rebuild_margin_cells=3),
        )

    def to_yaml(self, path: str | Path) -> None:
        """
        Save configuration to YAML file.

        Examples
        --------
        >>> config = LevelSetConfig(...)
        >>> config.to_yaml("experiments/baseline.yaml")
        """
        from .io import save_level_set_config

        save_level_set_config(self, path)

    @classmethod
    def from_yaml(cls, path: str | Path) -> LevelSetConfig:
        """
        Load configuration from YAML file.

        Examples
        --------
        >>> config = LevelSetConfig.from_yaml("experiments/baseline.yaml")
        """
        from .io import load_level_set_config

        return load_level_set_config(path)
