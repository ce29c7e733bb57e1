"""
Models shown on the slides: the pooled linear model and linear mixed models.

Public API:
    lm()                  — ordinary least squares
    lmer()                — linear mixed model (REML or ML), lme4 formulas
    anova()               — likelihood-ratio comparison of nested models
    likelihood_ratio_test() — single LRT
    parse_formula()       — lme4 formula → statsmodels arguments
    LinearModelSolution, MixedModelSolution, ComparisonSolution
"""

from lmmdeck.models._formula import ParsedFormula, RandomTerm, parse_formula
from lmmdeck.models.solvers import (
    lm,
    lmer,
    anova,
    likelihood_ratio_test,
    is_singular,
)
from lmmdeck.models.solution import (
    LinearModelSolution,
    MixedModelSolution,
    ComparisonSolution,
)

__all__ = [
    "lm",
    "lmer",
    "anova",
    "likelihood_ratio_test",
    "is_singular",
    "parse_formula",
    "ParsedFormula",
    "RandomTerm",
    "LinearModelSolution",
    "MixedModelSolution",
    "ComparisonSolution",
]
