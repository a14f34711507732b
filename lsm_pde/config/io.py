"""
YAML files for LevelSetConfig.

Sections mirror the nested models; omitted sections and keys take their
defaults, so a file only needs what differs:

    precision: float64
    spatial:
      scheme: weno5
    narrow_band:
      width_cells: 6
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import ValidationError

if TYPE_CHECKING:
    from .core import LevelSetConfig


def load_level_set_config(path: str | Path) -> LevelSetConfig:
    """
    Read and validate a LevelSetConfig.

    Raises:
        FileNotFoundError: No file at path
        yaml.YAMLError: Malformed YAML
        ValueError: Values rejected by the config models
    """
    from .core import LevelSetConfig

    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Invalid YAML syntax in {path}: {e}") from e

    try:
        return LevelSetConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}:\n{e}") from e


def save_level_set_config(config: LevelSetConfig, path: str | Path) -> None:
    """Write config as YAML, creating parent directories. Unset optional values are left out."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    sections = config.model_dump(exclude_none=True, mode="json")
    path.write_text(yaml.safe_dump(sections, sort_keys=False))


def validate_yaml_config(path: str | Path) -> tuple[bool, str]:
    """Check a config file, returning (is_valid, message) instead of raising."""
    try:
        load_level_set_config(path)
    except FileNotFoundError as e:
        return False, str(e)
    except yaml.YAMLError as e:
        return False, f"YAML syntax error: {e}"
    except ValueError as e:
        return False, f"Validation error: {e}"
    return True, "Configuration is valid"
