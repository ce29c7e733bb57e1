"""
Figures shown on the slides.

Every function returns a matplotlib Figure and leaves displaying or
saving it to the caller.
"""

from lmmdeck.plots.figures import (
    plot_scatter,
    plot_by_subject,
    plot_shrinkage,
    plot_ranef,
    plot_residuals,
    save_figure,
)

__all__ = [
    "plot_scatter",
    "plot_by_subject",
    "plot_shrinkage",
    "plot_ranef",
    "plot_residuals",
    "save_figure",
]
