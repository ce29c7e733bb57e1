"""
Common data types for the deck's models.

Contains the frozen parameter payloads that go inside Result[P] envelopes.
Each payload is a pure data container with no methods.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), 1-48.
"""

from dataclasses import dataclass

import pandas as pd
from numpy.typing import NDArray


@dataclass(frozen=True)
class VarCompSummary:
    """Variance component summary for one random effect term.

    Attributes:
        group: Grouping factor name (e.g. 'Subject').
        name: Term name within the group (e.g. '(Intercept)', 'Days').
        variance: Estimated variance of this component.
        std_dev: Standard deviation (sqrt of variance).
        corr: Correlation with the first term of the same correlated
              block, or None for the first term and for independent
              components.
    """
    group: str
    name: str
    variance: float
    std_dev: float
    corr: float | None = None


@dataclass(frozen=True)
class LinearParams:
    """
    Parameter payload for an ordinary least squares fit.
    """
    coefficients: NDArray              # β̂ (p,)
    coefficient_names: tuple[str, ...]
    se: NDArray                        # standard errors (p,)
    t_values: NDArray                  # β̂ / se (p,)
    p_values: NDArray                  # two-sided, t with df_residual (p,)
    r_squared: float
    adj_r_squared: float
    residual_std: float                # σ̂ (unbiased)
    df_residual: int
    f_statistic: float
    f_p_value: float
    log_likelihood: float              # ML log-likelihood
    n_obs: int
    fitted_values: NDArray
    residuals: NDArray


@dataclass(frozen=True)
class MixedParams:
    """
    Parameter payload for a fitted linear mixed model.

    Contains all estimates needed to reconstruct the model summary,
    compare models and extract conditional modes of random effects.
    """
    # Fixed effects
    coefficients: NDArray              # β̂ (p,)
    coefficient_names: tuple[str, ...]
    se: NDArray                        # standard errors of β̂ (p,)
    z_values: NDArray                  # β̂ / se (p,)
    p_values: NDArray                  # two-sided Wald, normal reference (p,)
    vcov: NDArray                      # covariance of β̂ (p, p)

    # Random effects
    var_components: tuple[VarCompSummary, ...]
    residual_variance: float           # σ²
    residual_std: float                # σ
    n_cov_params: int                  # covariance parameters excluding σ²

    # Model fit
    log_likelihood: float              # REML or ML, matching `reml`
    reml: bool
    n_obs: int
    group: str
    n_groups: int

    # Convergence
    converged: bool

    # Conditional modes (BLUPs): group levels × random terms
    random_effects: pd.DataFrame

    # Predictions
    fitted_values: NDArray             # Xβ̂ + Zb̂ (n,)
    residuals: NDArray                 # y - fitted (n,)


@dataclass(frozen=True)
class ComparisonRow:
    """One model's line in a model comparison table."""
    name: str
    formula: str
    npar: int
    aic: float
    bic: float
    log_likelihood: float
    deviance: float
    chisq: float | None                # None for the first (smallest) model
    df: int | None
    p_value: float | None


@dataclass(frozen=True)
class ComparisonParams:
    """Parameter payload for a likelihood-ratio comparison of nested models."""
    rows: tuple[ComparisonRow, ...]
    response: str
    n_obs: int
    refitted: tuple[str, ...]          # names of models refitted with ML


@dataclass(frozen=True)
class LRTResult:
    """Result of one likelihood-ratio test between nested models.

    Attributes:
        chisq: 2 × (logLik_full − logLik_reduced), clipped at 0.
        df: Difference in number of parameters.
        p_value: Upper tail of χ²(df) at chisq.
    """
    chisq: float
    df: int
    p_value: float
