"""
Configuration for lsm_pde.

Pydantic models describing the algorithmic choices of a level set run, with
YAML load/save.

Usage:
    >>> from lsm_pde.config import LevelSetConfig
    >>> config = LevelSetConfig.from_yaml("config.yaml")
    >>> config.spatial.scheme
    'weno5'
"""

from .core import (
    EvolutionConfig,
    FastMarchingConfig,
    LevelSetConfig,
    LoggingConfig,
    NarrowBandConfig,
    SpatialDerivativeConfig,
)
from .io import load_level_set_config, save_level_set_config, validate_yaml_config

__all__ = [
    "EvolutionConfig",
    "FastMarchingConfig",
    "LevelSetConfig",
    "LoggingConfig",
    "NarrowBandConfig",
    "SpatialDerivativeConfig",
    "load_level_set_config",
    "save_level_set_config",
    "validate_yaml_config",
]
