"""
Logging utilities for lsm_pde.

Usage:
    >>> from lsm_pde.utils.lsm_logging import get_logger, configure_logging
    >>> logger = get_logger(__name__)
    >>> configure_logging(level="DEBUG")
    >>> logger.debug("Marching 1234 points...")
"""

from __future__ import annotations

from .logger import (
    LSMFormatter,
    LSMLogger,
    configure_development_logging,
    configure_logging,
    get_logger,
)

__all__ = [
    "LSMFormatter",
    "LSMLogger",
    "configure_development_logging",
    "configure_logging",
    "get_logger",
]
