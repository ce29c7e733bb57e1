"""
Generic result container for all lmmdeck model fits.

The Result class provides a standardized envelope that every fit and model
comparison uses. This gives shared handling of timing, warnings and
reproducibility metadata while each model type defines its own parameters.

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (method, optimizer, converged)
    - timing is optional (don't burden unit tests)
    - provenance for reproducibility (library versions)
    - Immutable (frozen=True) for reproducibility
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


def _default_provenance() -> dict[str, Any]:
    """Generate minimal provenance metadata."""
    import numpy as np
    import statsmodels

    import lmmdeck
    return {
        'lmmdeck_version': lmmdeck.__version__,
        'numpy_version': np.__version__,
        'statsmodels_version': statsmodels.__version__,
    }


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for model fits.

    Type Parameters:
        P: The model-specific parameter payload type

    Attributes:
        params: Model-specific parameters (coefficients, variance components)
        info: Structured metadata (method, optimizer, convergence)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the routine that produced this result
        warnings: Non-fatal issues encountered during computation
        provenance: Library versions used for the computation

    Examples:
        >>> Result(
        ...     params=LinearParams(...),
        ...     info={'method': 'OLS'},
        ...     timing={'total_seconds': 0.01},
        ...     backend_name='statsmodels_ols'
        ... )

        >>> Result(
        ...     params=MixedParams(...),
        ...     info={'method': 'REML', 'optimizer': 'lbfgs', 'converged': True},
        ...     timing={'total_seconds': 0.2, 'fit': 0.18},
        ...     backend_name='statsmodels_mixedlm',
        ...     warnings=('boundary (singular) fit',),
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
    provenance: dict[str, Any] = field(default_factory=_default_provenance)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
