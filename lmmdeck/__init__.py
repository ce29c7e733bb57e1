"""
lmmdeck: an executable slide deck on linear mixed-effects models.

The deck follows the sleep-deprivation study (``sleepstudy``) from a pooled
linear regression to random-intercept and random-slope mixed models,
REML vs ML estimation and likelihood-ratio tests. Model fitting is
delegated to statsmodels; lmmdeck provides the lme4-style formula front
end, R-style summaries, the plots and the deck renderer.

Submodules:
    datasets: The sleepstudy reference data and a simulator
    models: lm(), lmer(), anova() and their solution wrappers
    plots: Figures shown on the slides
    slides: Deck content, chunk execution and Markdown/HTML rendering
"""

__version__ = "0.1.0"

from lmmdeck import datasets
from lmmdeck import models
from lmmdeck.datasets import load_sleepstudy
from lmmdeck.models import lm, lmer, anova

__all__ = [
    "__version__",
    "datasets",
    "models",
    "load_sleepstudy",
    "lm",
    "lmer",
    "anova",
]
