"""
Rendering configuration for the deck.

DeckConfig is a frozen dataclass: build it once (from keyword arguments,
a mapping, or the environment), validate it, and pass it down. Nothing
reads configuration from globals.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from lmmdeck.core.exceptions import ValidationError

SUPPORTED_FORMATS = frozenset({'md', 'html'})
SUPPORTED_FIGURE_FORMATS = frozenset({'png', 'svg'})

# Optimizers accepted by statsmodels MixedLM.fit(method=...)
SUPPORTED_OPTIMIZERS = frozenset({
    'lbfgs', 'bfgs', 'cg', 'powell', 'nm', 'newton',
})

ENV_OUTPUT_DIR = 'LMMDECK_OUTPUT_DIR'
ENV_FIGURE_DPI = 'LMMDECK_FIGURE_DPI'


@dataclass(frozen=True)
class DeckConfig:
    """
    Settings for executing and rendering the deck.

    Attributes:
        output_dir: Directory rendered files are written to
        formats: Output formats, a subset of {'md', 'html'}
        figure_dpi: Resolution of saved raster figures
        figure_format: 'png' or 'svg'
        optimizer: statsmodels MixedLM optimizer used by deck chunks
        singular_tol: Threshold below which a relative random-effect
            standard deviation marks a fit as singular
        title: Deck title override, or None for the deck's own title
    """
    output_dir: Path = Path('build')
    formats: tuple[str, ...] = ('md',)
    figure_dpi: int = 120
    figure_format: str = 'png'
    optimizer: str = 'lbfgs'
    singular_tol: float = 1e-4
    title: str | None = None

    def __post_init__(self):
        object.__setattr__(self, 'output_dir', Path(self.output_dir))
        object.__setattr__(self, 'formats', tuple(self.formats))

        if not self.formats:
            raise ValidationError("formats: at least one output format is required")
        unknown = [f for f in self.formats if f not in SUPPORTED_FORMATS]
        if unknown:
            raise ValidationError(
                f"formats: unsupported {unknown}, expected any of {sorted(SUPPORTED_FORMATS)}"
            )
        if self.figure_format not in SUPPORTED_FIGURE_FORMATS:
            raise ValidationError(
                f"figure_format: got {self.figure_format!r}, "
                f"expected one of {sorted(SUPPORTED_FIGURE_FORMATS)}"
            )
        if not isinstance(self.figure_dpi, int) or self.figure_dpi <= 0:
            raise ValidationError(
                f"figure_dpi: must be a positive integer, got {self.figure_dpi!r}"
            )
        if self.optimizer not in SUPPORTED_OPTIMIZERS:
            raise ValidationError(
                f"optimizer: got {self.optimizer!r}, "
                f"expected one of {sorted(SUPPORTED_OPTIMIZERS)}"
            )
        if not 0.0 < self.singular_tol < 1.0:
            raise ValidationError(
                f"singular_tol: must be in (0, 1), got {self.singular_tol}"
            )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> DeckConfig:
        """
        Build a config from a plain mapping, rejecting unknown keys.

        Raises:
            ValidationError: If the mapping has keys DeckConfig doesn't define
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValidationError(
                f"Unknown config keys {unknown}. Known: {sorted(known)}"
            )
        return cls(**dict(values))

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> DeckConfig:
        """
        Build a config from LMMDECK_* environment variables plus overrides.

        Explicit overrides win over the environment.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        if ENV_OUTPUT_DIR in environ:
            values['output_dir'] = Path(environ[ENV_OUTPUT_DIR])
        if ENV_FIGURE_DPI in environ:
            raw = environ[ENV_FIGURE_DPI]
            try:
                values['figure_dpi'] = int(raw)
            except ValueError as e:
                raise ValidationError(
                    f"{ENV_FIGURE_DPI}: expected an integer, got {raw!r}"
                ) from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_mapping(values)

    def with_overrides(self, **changes: Any) -> DeckConfig:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @property
    def figure_dir(self) -> Path:
        """Directory figures are saved to, inside output_dir."""
        return self.output_dir / 'figures'
