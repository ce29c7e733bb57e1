"""
Core infrastructure for lmmdeck.

Shared abstractions used by the models, plots and slides subpackages.

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators for arrays and data frames
    config: DeckConfig rendering configuration
    timing: Section timer
"""

from lmmdeck.core.result import Result
from lmmdeck.core.config import DeckConfig
from lmmdeck.core.exceptions import (
    LMMDeckError,
    ValidationError,
    DimensionError,
    FormulaError,
    ConvergenceError,
    ChunkExecutionError,
    RenderError,
)

__all__ = [
    # Result
    "Result",
    # Configuration
    "DeckConfig",
    # Exceptions
    "LMMDeckError",
    "ValidationError",
    "DimensionError",
    "FormulaError",
    "ConvergenceError",
    "ChunkExecutionError",
    "RenderError",
]
