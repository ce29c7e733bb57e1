"""
Solution wrappers for the deck's models.

LinearModelSolution, MixedModelSolution and ComparisonSolution wrap
Result[LinearParams] / Result[MixedParams] / Result[ComparisonParams]
and provide R-style summary output and property accessors for the
quantities discussed on the slides.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import stats

from lmmdeck.core.exceptions import ValidationError
from lmmdeck.core.result import Result
from lmmdeck.core.validation import (
    check_array,
    check_columns,
    check_dataframe,
    check_finite,
)
from lmmdeck.models._common import (
    ComparisonParams,
    ComparisonRow,
    LinearParams,
    MixedParams,
    VarCompSummary,
)
from lmmdeck.models._formula import INTERCEPT_NAME

if TYPE_CHECKING:
    from lmmdeck.models.design import ModelDesign

SIGNIF_LEGEND = "Signif. codes:  0 '***' 0.001 '**' 0.01 '*' 0.05 '.' 0.1 ' ' 1"

BOUNDARY_NOTE = (
    "Testing whether a variance is zero puts the null value on the boundary "
    "of the parameter space; the chi-square reference distribution is then "
    "conservative (the p-value is too large, roughly by a factor of two)."
)


def _significance_stars(p: float) -> str:
    """Return significance stars like R."""
    if np.isnan(p):
        return ' '
    if p < 0.001:
        return '***'
    elif p < 0.01:
        return '**'
    elif p < 0.05:
        return '*'
    elif p < 0.1:
        return '.'
    else:
        return ' '


def _format_pvalue(p: float) -> str:
    """Format p-value like R."""
    if np.isnan(p):
        return 'NA'
    if p < 2e-16:
        return '< 2e-16'
    elif p < 0.001:
        return f'{p:.3e}'
    else:
        return f'{p:.4f}'


def _coefficient_table(
    names: tuple[str, ...],
    estimates: NDArray,
    se: NDArray,
    stat: NDArray,
    p_values: NDArray,
    stat_label: str,
) -> list[str]:
    width = max(len(n) for n in names)
    p_label = f'Pr(>|{stat_label[0]}|)'
    lines = [
        f"{'':<{width}s} {'Estimate':>10s} {'Std. Error':>10s} "
        f"{stat_label:>8s} {p_label:>10s}"
    ]
    for i, name in enumerate(names):
        lines.append(
            f"{name:<{width}s} {estimates[i]:10.4f} {se[i]:10.4f} "
            f"{stat[i]:8.3f} {_format_pvalue(p_values[i]):>10s} "
            f"{_significance_stars(p_values[i])}"
        )
    return lines


# =====================================================================
# Linear model
# =====================================================================

@dataclass
class LinearModelSolution:
    """
    User-facing results of lm().

    Wraps the Result and the statsmodels fit (kept for predict()).
    """
    _result: Result[LinearParams]
    _design: 'ModelDesign'
    _fitted: Any

    @property
    def params(self) -> LinearParams:
        return self._result.params

    @property
    def formula(self) -> str:
        return self._result.info['formula']

    @property
    def response(self) -> str:
        return self._design.formula.response

    @property
    def coefficients(self) -> NDArray:
        return self.params.coefficients

    @property
    def coef(self) -> dict[str, float]:
        """Coefficients as name → value dict."""
        return dict(zip(self.params.coefficient_names, self.params.coefficients.tolist()))

    @property
    def se(self) -> NDArray:
        return self.params.se

    @property
    def t_values(self) -> NDArray:
        return self.params.t_values

    @property
    def p_values(self) -> NDArray:
        return self.params.p_values

    @property
    def r_squared(self) -> float:
        return self.params.r_squared

    @property
    def adj_r_squared(self) -> float:
        return self.params.adj_r_squared

    @property
    def residual_std_error(self) -> float:
        return self.params.residual_std

    @property
    def df_residual(self) -> int:
        return self.params.df_residual

    @property
    def n_obs(self) -> int:
        return self.params.n_obs

    @property
    def log_likelihood(self) -> float:
        """ML log-likelihood, comparable with ML mixed-model fits."""
        return self.params.log_likelihood

    @property
    def npar(self) -> int:
        """Coefficients plus the residual standard deviation."""
        return len(self.params.coefficients) + 1

    @property
    def aic(self) -> float:
        return -2.0 * self.log_likelihood + 2.0 * self.npar

    @property
    def bic(self) -> float:
        return -2.0 * self.log_likelihood + np.log(self.n_obs) * self.npar

    @property
    def fitted_values(self) -> NDArray:
        return self.params.fitted_values

    @property
    def residuals(self) -> NDArray:
        return self.params.residuals

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def predict(self, newdata: pd.DataFrame) -> NDArray:
        """Predicted response for new rows."""
        check_dataframe(newdata, 'newdata')
        return np.asarray(self._fitted.predict(newdata), dtype=np.float64)

    def summary(self) -> str:
        """R-style summary matching summary(lm(...))."""
        params = self.params
        resid = params.residuals
        q = np.quantile(resid, [0.0, 0.25, 0.5, 0.75, 1.0])
        p = len(params.coefficients)

        lines = [
            "Linear model fit by OLS",
            f"Formula: {self.formula}",
            "",
            "Residuals:",
            f"{'Min':>9s} {'1Q':>9s} {'Median':>9s} {'3Q':>9s} {'Max':>9s}",
            " ".join(f"{v:9.3f}" for v in q),
            "",
            "Coefficients:",
        ]
        lines.extend(_coefficient_table(
            params.coefficient_names, params.coefficients, params.se,
            params.t_values, params.p_values, 't value',
        ))
        lines.append("---")
        lines.append(SIGNIF_LEGEND)
        lines.append("")
        lines.append(
            f"Residual standard error: {params.residual_std:.2f} on "
            f"{params.df_residual} degrees of freedom"
        )
        lines.append(
            f"Multiple R-squared:  {params.r_squared:.4f},\t"
            f"Adjusted R-squared:  {params.adj_r_squared:.4f}"
        )
        if p > 1:
            lines.append(
                f"F-statistic: {params.f_statistic:.2f} on {p - 1} and "
                f"{params.df_residual} DF,  p-value: {_format_pvalue(params.f_p_value)}"
            )
        return '\n'.join(lines)

    def __repr__(self) -> str:
        return (
            f"LinearModelSolution({self.formula!r}, n={self.n_obs}, "
            f"r_squared={self.r_squared:.4f})"
        )


# =====================================================================
# Linear mixed model
# =====================================================================

@dataclass
class MixedModelSolution:
    """Solution wrapper for a fitted linear mixed model.

    Provides lme4-style summary output, property accessors for fixed
    effects, random effects and ICC, and refit() for switching between
    REML and ML.
    """
    _result: Result[MixedParams]
    _design: 'ModelDesign'
    _fitted: Any

    @property
    def params(self) -> MixedParams:
        return self._result.params

    @property
    def formula(self) -> str:
        return self._result.info['formula']

    @property
    def response(self) -> str:
        return self._design.formula.response

    @property
    def group(self) -> str:
        return self.params.group

    @property
    def reml(self) -> bool:
        return self.params.reml

    @property
    def method(self) -> str:
        return 'REML' if self.params.reml else 'ML'

    # --- Fixed effects ---

    @property
    def coefficients(self) -> NDArray:
        """Fixed effect estimates β̂."""
        return self.params.coefficients

    @property
    def fixef(self) -> dict[str, float]:
        """Fixed effects as name → value dict."""
        return dict(zip(self.params.coefficient_names, self.params.coefficients.tolist()))

    @property
    def se(self) -> NDArray:
        """Standard errors of fixed effects."""
        return self.params.se

    @property
    def z_values(self) -> NDArray:
        """Wald z-statistics for fixed effects."""
        return self.params.z_values

    @property
    def p_values(self) -> NDArray:
        """Two-sided Wald p-values for fixed effects."""
        return self.params.p_values

    def confint(self, level: float = 0.95) -> pd.DataFrame:
        """Wald confidence intervals for the fixed effects."""
        if not 0.0 < level < 1.0:
            raise ValidationError(f"level: must be in (0, 1), got {level}")
        alpha = 1.0 - level
        z = stats.norm.ppf(1.0 - alpha / 2.0)
        est = self.params.coefficients
        lower_label = f"{100 * alpha / 2:g} %"
        upper_label = f"{100 * (1 - alpha / 2):g} %"
        return pd.DataFrame(
            {lower_label: est - z * self.se, upper_label: est + z * self.se},
            index=list(self.params.coefficient_names),
        )

    # --- Random effects ---

    @property
    def ranef(self) -> pd.DataFrame:
        """Conditional modes of the random effects: one row per group level."""
        return self.params.random_effects.copy()

    @property
    def coef(self) -> pd.DataFrame:
        """Per-level coefficients: fixed effects plus conditional modes."""
        ranef = self.params.random_effects
        table = pd.DataFrame(
            np.tile(self.params.coefficients, (len(ranef), 1)),
            index=ranef.index,
            columns=list(self.params.coefficient_names),
        )
        for name in ranef.columns:
            if name in table.columns:
                table[name] = table[name] + ranef[name]
        return table

    @property
    def var_components(self) -> tuple[VarCompSummary, ...]:
        """Variance component summaries."""
        return self.params.var_components

    @property
    def residual_variance(self) -> float:
        return self.params.residual_variance

    @property
    def residual_std(self) -> float:
        return self.params.residual_std

    @property
    def icc(self) -> float | None:
        """Intraclass correlation of the random intercept.

        ICC = σ²_intercept / (σ²_intercept + σ²_residual)

        For models with random slopes this is the correlation of two
        observations of the same subject at Days = 0. None if the model
        has no random intercept.
        """
        for vc in self.params.var_components:
            if vc.name == INTERCEPT_NAME:
                return vc.variance / (vc.variance + self.params.residual_variance)
        return None

    # --- Model fit ---

    @property
    def n_obs(self) -> int:
        return self.params.n_obs

    @property
    def n_groups(self) -> int:
        return self.params.n_groups

    @property
    def log_likelihood(self) -> float:
        """REML or ML log-likelihood, matching the estimation method."""
        return self.params.log_likelihood

    @property
    def npar(self) -> int:
        """Fixed effects + covariance parameters + residual variance."""
        return len(self.params.coefficients) + self.params.n_cov_params + 1

    @property
    def aic(self) -> float:
        return -2.0 * self.log_likelihood + 2.0 * self.npar

    @property
    def bic(self) -> float:
        return -2.0 * self.log_likelihood + np.log(self.n_obs) * self.npar

    @property
    def deviance(self) -> float:
        """−2 logLik; the REML criterion when fitted by REML."""
        return -2.0 * self.log_likelihood

    @property
    def fitted_values(self) -> NDArray:
        return self.params.fitted_values

    @property
    def residuals(self) -> NDArray:
        return self.params.residuals

    @property
    def converged(self) -> bool:
        return self.params.converged

    @property
    def is_singular(self) -> bool:
        return bool(self._result.info['singular'])

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def has_warning(self, substring: str) -> bool:
        return self._result.has_warning(substring)

    # --- Refit and prediction ---

    def refit(self, *, reml: bool) -> MixedModelSolution:
        """Fit the same model and data again with REML or ML."""
        if reml == self.reml:
            return self
        from lmmdeck.models.solvers import lmer

        return lmer(
            self.formula,
            self._design.data,
            reml=reml,
            optimizer=self._result.info['optimizer'],
            singular_tol=self._result.info['singular_tol'],
        )

    def predict(self, newdata: pd.DataFrame, *, include_random: bool = True) -> NDArray:
        """Predicted response for new rows.

        Args:
            newdata: Rows with the fixed-effect columns and, when
                include_random is True, the grouping column and slopes.
            include_random: Add the conditional modes of each row's group.
                Levels not seen during fitting get zero random effects,
                i.e. the population-level prediction.
        """
        check_dataframe(newdata, 'newdata')
        fixed = np.asarray(self._fitted.predict(exog=newdata), dtype=np.float64)
        if not include_random:
            return fixed

        ranef = self.params.random_effects
        slopes = [c for c in ranef.columns if c != INTERCEPT_NAME]
        check_columns(newdata, [self.group, *slopes], 'newdata')

        levels = newdata[self.group].astype(str).to_numpy()
        effects = ranef.reindex(levels).fillna(0.0)
        total = fixed.copy()
        for name in ranef.columns:
            values = effects[name].to_numpy(dtype=np.float64)
            if name == INTERCEPT_NAME:
                total += values
            else:
                slope = check_array(newdata[name], name)
                check_finite(slope, name)
                total += values * slope
        return total

    # --- Summary ---

    def summary(self) -> str:
        """lme4-style summary matching summary(lmer(...))."""
        params = self.params

        lines = [
            f"Linear mixed model fit by {self.method}",
            f"Formula: {self.formula}",
            "",
        ]
        if params.reml:
            lines.append(f"REML criterion at convergence: {self.deviance:.1f}")
        else:
            lines.append(
                f"{'AIC':>9s} {'BIC':>9s} {'logLik':>9s} {'deviance':>9s}"
            )
            lines.append(
                f"{self.aic:9.1f} {self.bic:9.1f} {self.log_likelihood:9.1f} "
                f"{self.deviance:9.1f}"
            )
        lines.append("")

        lines.append("Random effects:")
        lines.append(f" {'Groups':<10s} {'Name':<12s} {'Variance':>10s} "
                     f"{'Std.Dev.':>9s} {'Corr':>5s}")
        prev_group = None
        for vc in params.var_components:
            grp_label = vc.group if vc.group != prev_group else ''
            corr_str = f'{vc.corr:5.2f}' if vc.corr is not None else ''
            lines.append(
                f" {grp_label:<10s} {vc.name:<12s} {vc.variance:10.2f} "
                f"{vc.std_dev:9.3f} {corr_str}".rstrip()
            )
            prev_group = vc.group
        lines.append(
            f" {'Residual':<10s} {'':<12s} {params.residual_variance:10.2f} "
            f"{params.residual_std:9.3f}"
        )
        lines.append(
            f"Number of obs: {params.n_obs}, groups:  {params.group}, {params.n_groups}"
        )
        lines.append("")

        lines.append("Fixed effects:")
        lines.extend(_coefficient_table(
            params.coefficient_names, params.coefficients, params.se,
            params.z_values, params.p_values, 'z value',
        ))
        lines.append("---")
        lines.append(SIGNIF_LEGEND)

        if not params.converged:
            lines.append("")
            lines.append("WARNING: Model did not converge")
        if self.is_singular:
            lines.append("")
            lines.append("boundary (singular) fit")

        return '\n'.join(lines)

    def __repr__(self) -> str:
        return (
            f"MixedModelSolution({self.formula!r}, {self.method}, "
            f"n={self.n_obs}, groups={self.n_groups})"
        )


# =====================================================================
# Model comparison
# =====================================================================

@dataclass
class ComparisonSolution:
    """Result of anova(): a table of successive likelihood-ratio tests."""
    _result: Result[ComparisonParams]

    @property
    def params(self) -> ComparisonParams:
        return self._result.params

    @property
    def rows(self) -> tuple[ComparisonRow, ...]:
        return self.params.rows

    @property
    def chisq(self) -> float:
        """χ² statistic of the last comparison in the table."""
        return self.rows[-1].chisq

    @property
    def df(self) -> int:
        return self.rows[-1].df

    @property
    def p_value(self) -> float:
        """p-value of the last comparison in the table."""
        return self.rows[-1].p_value

    @property
    def refitted(self) -> tuple[str, ...]:
        """Names of models refitted with ML before comparing."""
        return self.params.refitted

    @property
    def boundary_note(self) -> str:
        return BOUNDARY_NOTE

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def to_frame(self) -> pd.DataFrame:
        """The comparison table as a DataFrame, lme4 column names."""
        records = [
            {
                'npar': r.npar,
                'AIC': r.aic,
                'BIC': r.bic,
                'logLik': r.log_likelihood,
                'deviance': r.deviance,
                'Chisq': np.nan if r.chisq is None else r.chisq,
                'Df': np.nan if r.df is None else r.df,
                'Pr(>Chisq)': np.nan if r.p_value is None else r.p_value,
            }
            for r in self.rows
        ]
        return pd.DataFrame(records, index=[r.name for r in self.rows])

    def summary(self) -> str:
        """lme4-style anova() table."""
        width = max(len(r.name) for r in self.rows)
        lines = ["Models:"]
        lines.extend(f"{r.name}: {r.formula}" for r in self.rows)
        lines.append(
            f"{'':<{width}s} {'npar':>4s} {'AIC':>8s} {'BIC':>8s} {'logLik':>9s} "
            f"{'deviance':>9s} {'Chisq':>8s} {'Df':>3s} {'Pr(>Chisq)':>11s}"
        )
        for r in self.rows:
            if r.chisq is None:
                tail = f"{'':>8s} {'':>3s} {'':>11s}"
            else:
                tail = (
                    f"{r.chisq:8.3f} {r.df:3d} {_format_pvalue(r.p_value):>11s} "
                    f"{_significance_stars(r.p_value)}"
                )
            lines.append(
                f"{r.name:<{width}s} {r.npar:4d} {r.aic:8.1f} {r.bic:8.1f} "
                f"{r.log_likelihood:9.2f} {r.deviance:9.1f} {tail}".rstrip()
            )
        lines.append("---")
        lines.append(SIGNIF_LEGEND)
        if self.refitted:
            lines.append("")
            lines.append(f"refitted with ML: {', '.join(self.refitted)}")
        return '\n'.join(lines)

    def __repr__(self) -> str:
        names = ', '.join(r.name for r in self.rows)
        return f"ComparisonSolution({names})"
