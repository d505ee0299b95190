"""
Core utilities shared by the quantification code.

This module provides:
- Numerical constants and default tolerances
- Exception taxonomy
- Configuration and logging
- Abstract base classes and protocols for pluggable algorithms
"""

from epmaquant.core import constants
from epmaquant.core import config
from epmaquant.core import logging_config
from epmaquant.core.exceptions import (
    QuantificationError,
    ConfigurationError,
    GeometryMismatchError,
    CorrectionComputationError,
)
from epmaquant.core.abc import IterationStep, MatrixCorrection, SurfaceCoating

__all__ = [
    # Modules
    "constants",
    "config",
    "logging_config",
    # Exceptions
    "QuantificationError",
    "ConfigurationError",
    "GeometryMismatchError",
    "CorrectionComputationError",
    # Abstract base classes
    "IterationStep",
    "MatrixCorrection",
    "SurfaceCoating",
]
