"""
Model fitting entry points used on the slides.

Public API:
    lm()    — ordinary least squares, the pooled model
    lmer()  — linear mixed model (REML or ML), lme4 formula syntax
    anova() — likelihood-ratio comparison of nested models
    likelihood_ratio_test() — one LRT between a reduced and a full model

All numerical work is done by statsmodels (OLS and MixedLM); these
functions validate inputs, translate formulas, and package the results
into Result envelopes with timing and warnings.
"""

from __future__ import annotations

import warnings
from typing import Sequence

import numpy as np
import pandas as pd
import patsy
import statsmodels.formula.api as smf
from scipy import stats

from lmmdeck.core.config import SUPPORTED_OPTIMIZERS
from lmmdeck.core.exceptions import (
    ConvergenceError,
    DimensionError,
    FormulaError,
    ValidationError,
)
from lmmdeck.core.result import Result
from lmmdeck.core.timing import Timer
from lmmdeck.models._common import (
    ComparisonParams,
    ComparisonRow,
    LinearParams,
    LRTResult,
    MixedParams,
    VarCompSummary,
)
from lmmdeck.models._formula import INTERCEPT_NAME, ParsedFormula, parse_formula
from lmmdeck.models.design import ModelDesign
from lmmdeck.models.solution import (
    ComparisonSolution,
    LinearModelSolution,
    MixedModelSolution,
)

DEFAULT_OPTIMIZER = 'lbfgs'
DEFAULT_SINGULAR_TOL = 1e-4

SINGULAR_WARNING = "boundary (singular) fit"
# statsmodels MixedLM messages that mean the covariance estimate sits on
# the boundary; its optimizer stops short of an exactly zero variance.
BOUNDARY_MESSAGES = (
    "Random effects covariance is singular",
    "The MLE may be on the boundary of the parameter space",
)
REFIT_WARNING = "refitting model(s) with ML (instead of REML)"


def lm(formula: str, data) -> LinearModelSolution:
    """Fit a linear model by ordinary least squares.

    This is the pooled model of the deck: every observation is treated as
    independent, ignoring that each subject contributes ten of them.

    Args:
        formula: Formula without random-effect terms, e.g. 'Reaction ~ Days'.
        data: pandas DataFrame holding every column the formula uses.

    Returns:
        LinearModelSolution with coefficients, standard errors, R², the ML
        log-likelihood (for comparison with mixed models) and summary().

    Raises:
        FormulaError: If the formula is malformed or has random-effect terms.
        ValidationError: If the data doesn't fit the formula.

    Example:
        >>> fit = lm('Reaction ~ Days', load_sleepstudy())
        >>> round(fit.coef['Days'], 3)
        10.467
    """
    timer = Timer()
    timer.start()

    parsed = parse_formula(formula)
    if parsed.is_mixed:
        raise FormulaError(
            f"lm: formula has random-effect terms {[b.to_lme4() for b in parsed.random]}; "
            "use lmer() for mixed models",
            formula=formula,
        )
    design = ModelDesign.validate(parsed, data)

    with timer.section('setup'):
        model = _build_model(smf.ols, parsed, design)

    with timer.section('fit'):
        fitted = model.fit()

    with timer.section('extract'):
        names = tuple(_coef_name(n) for n in fitted.params.index)
        params = LinearParams(
            coefficients=np.asarray(fitted.params, dtype=np.float64),
            coefficient_names=names,
            se=np.asarray(fitted.bse, dtype=np.float64),
            t_values=np.asarray(fitted.tvalues, dtype=np.float64),
            p_values=np.asarray(fitted.pvalues, dtype=np.float64),
            r_squared=float(fitted.rsquared),
            adj_r_squared=float(fitted.rsquared_adj),
            residual_std=float(np.sqrt(fitted.scale)),
            df_residual=int(fitted.df_resid),
            f_statistic=float(fitted.fvalue),
            f_p_value=float(fitted.f_pvalue),
            log_likelihood=float(fitted.llf),
            n_obs=design.n,
            fitted_values=np.asarray(fitted.fittedvalues, dtype=np.float64),
            residuals=np.asarray(fitted.resid, dtype=np.float64),
        )

    timer.stop()

    result = Result(
        params=params,
        info={
            'method': 'OLS',
            'formula': str(parsed),
        },
        timing=timer.result(),
        backend_name='statsmodels_ols',
    )
    return LinearModelSolution(_result=result, _design=design, _fitted=fitted)


def lmer(
    formula: str,
    data,
    *,
    reml: bool = True,
    optimizer: str | None = None,
    singular_tol: float = DEFAULT_SINGULAR_TOL,
) -> MixedModelSolution:
    """Fit a linear mixed model written in lme4 formula syntax.

    Estimates fixed effects β, the variance components of the random
    effects and the residual variance, and the conditional modes (BLUPs)
    of the random effects, using statsmodels MixedLM.

    Args:
        formula: e.g. 'Reaction ~ Days + (Days | Subject)'. See
            lmmdeck.models._formula for the supported random terms.
        data: pandas DataFrame holding every column the formula uses.
        reml: If True (default), use REML estimation. If False, use ML.
            Use ML (reml=False) for likelihood ratio tests between models
            with different fixed effects.
        optimizer: statsmodels optimizer name, one of SUPPORTED_OPTIMIZERS.
            None means 'lbfgs'.
        singular_tol: Relative standard deviation below which a random
            effect is considered estimated on the boundary. statsmodels'
            own boundary warnings also mark the fit as singular.

    Returns:
        MixedModelSolution with fixed effects, variance components,
        conditional modes, fit statistics and lme4-style summary().

    Raises:
        FormulaError: If the formula is malformed, unsupported, or has no
            random-effect term.
        ValidationError: If the data doesn't fit the formula, or the
            optimizer or singular_tol is invalid.
        ConvergenceError: If statsmodels fails to produce a fit at all.

    Examples:
        # Random intercept model
        >>> fm1 = lmer('Reaction ~ Days + (1 | Subject)', sleepstudy)

        # Random intercept + slope, correlated
        >>> fm2 = lmer('Reaction ~ Days + (Days | Subject)', sleepstudy)

        # Uncorrelated intercept and slope, fitted by ML
        >>> fm3 = lmer('Reaction ~ Days + (Days || Subject)', sleepstudy, reml=False)
    """
    timer = Timer()
    timer.start()

    parsed = parse_formula(formula)
    if not parsed.is_mixed:
        raise FormulaError(
            f"lmer: no random-effect terms in {formula!r}; use lm() for "
            "models without random effects",
            formula=formula,
        )
    if optimizer is None:
        optimizer = DEFAULT_OPTIMIZER
    if optimizer not in SUPPORTED_OPTIMIZERS:
        raise ValidationError(
            f"optimizer: got {optimizer!r}, expected one of {sorted(SUPPORTED_OPTIMIZERS)}"
        )
    if not 0.0 < singular_tol < 1.0:
        raise ValidationError(f"singular_tol: must be in (0, 1), got {singular_tol}")
    design = ModelDesign.validate(parsed, data)
    method = 'REML' if reml else 'ML'

    with timer.section('setup'):
        model = _build_model(
            smf.mixedlm, parsed, design,
            groups=parsed.group,
            re_formula=parsed.re_formula,
            vc_formula=parsed.vc_formula,
        )

    with timer.section('fit'):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            try:
                fitted = model.fit(reml=reml, method=optimizer)
            except (np.linalg.LinAlgError, ValueError) as e:
                raise ConvergenceError(
                    f"lmer: statsmodels could not fit {formula!r} by {method} "
                    f"with optimizer {optimizer!r}: {e}",
                    formula=formula,
                    method=method,
                    optimizer=optimizer,
                ) from e
        library_warnings = {str(w.message): w.category for w in caught}

    with timer.section('extract'):
        params = _extract_mixed(fitted, parsed, design, reml)
        singular = (
            is_singular(params.var_components, params.residual_std, singular_tol)
            or any(m.startswith(BOUNDARY_MESSAGES) for m in library_warnings)
        )

    timer.stop()

    warn_list = list(library_warnings)
    for message, category in library_warnings.items():
        warnings.warn(message, category, stacklevel=2)
    if not params.converged:
        message = f"lmer: optimizer {optimizer!r} did not converge for {formula!r}"
        warn_list.append(message)
        warnings.warn(message, RuntimeWarning, stacklevel=2)
    if singular:
        message = (
            f"{SINGULAR_WARNING}: a random-effect variance is estimated at or near "
            "zero, or a correlation at ±1"
        )
        warn_list.append(message)
        warnings.warn(message, UserWarning, stacklevel=2)

    result = Result(
        params=params,
        info={
            'method': method,
            'optimizer': optimizer,
            'converged': params.converged,
            'singular': singular,
            'singular_tol': singular_tol,
            'formula': str(parsed),
        },
        timing=timer.result(),
        backend_name='statsmodels_mixedlm',
        warnings=tuple(warn_list),
    )
    return MixedModelSolution(_result=result, _design=design, _fitted=fitted)


def anova(
    *models: LinearModelSolution | MixedModelSolution,
    names: Sequence[str] | None = None,
    refit: bool = True,
) -> ComparisonSolution:
    """Compare nested models with successive likelihood-ratio tests.

    Models are ordered by number of parameters; each row is tested
    against the row above it. As in lme4, REML fits are refitted by ML
    first (unless refit=False): REML likelihoods of models with different
    fixed effects are not comparable.

    Args:
        *models: Two or more fitted models on the same data and response.
            lm() fits may take part; their ML log-likelihood is used.
        names: Row labels; default 'model1', 'model2', ... in input order.
        refit: Refit REML models by ML before comparing. Default True.

    Returns:
        ComparisonSolution with the lme4 anova() table.

    Raises:
        ValidationError: Fewer than two models, wrong types, mismatched
            names, or different responses.
        DimensionError: Models fitted to different numbers of observations.
    """
    if len(models) < 2:
        raise ValidationError(f"anova: requires at least 2 models, got {len(models)}")
    for i, m in enumerate(models):
        if not isinstance(m, (LinearModelSolution, MixedModelSolution)):
            raise ValidationError(
                f"anova: model {i + 1} is {type(m).__name__}, expected a fit from lm() or lmer()"
            )

    if names is None:
        names = tuple(f"model{i + 1}" for i in range(len(models)))
    else:
        names = tuple(names)
        if len(names) != len(models):
            raise ValidationError(
                f"anova: got {len(names)} names for {len(models)} models"
            )
        if len(set(names)) != len(names):
            raise ValidationError(f"anova: model names must be unique, got {list(names)}")

    responses = {m.response for m in models}
    if len(responses) > 1:
        raise ValidationError(f"anova: models have different responses {sorted(responses)}")
    n_obs = {m.n_obs for m in models}
    if len(n_obs) > 1:
        details = ", ".join(f"{name}={m.n_obs}" for name, m in zip(names, models))
        raise DimensionError(
            f"anova: models were fitted to different numbers of observations: {details}"
        )

    timer = Timer()
    timer.start()

    warn_list: list[str] = []
    refitted: list[str] = []
    prepared = []
    with timer.section('refit'):
        for name, m in zip(names, models):
            if isinstance(m, MixedModelSolution) and m.reml and refit:
                m = m.refit(reml=False)
                refitted.append(name)
            prepared.append((name, m))

    if refitted:
        warn_list.append(REFIT_WARNING)
        warnings.warn(REFIT_WARNING, UserWarning, stacklevel=2)
    elif any(isinstance(m, MixedModelSolution) and m.reml for _, m in prepared):
        message = (
            "anova: comparing REML fits; this is only valid when the fixed "
            "effects of all models are identical"
        )
        warn_list.append(message)
        warnings.warn(message, UserWarning, stacklevel=2)

    # Stable sort keeps input order among models of equal size.
    prepared.sort(key=lambda item: item[1].npar)

    n = next(iter(n_obs))
    rows = []
    previous = None
    for name, m in prepared:
        ll = m.log_likelihood
        chisq = df = p_value = None
        if previous is not None:
            chisq = max(2.0 * (ll - previous.log_likelihood), 0.0)
            df = m.npar - previous.npar
            p_value = float(stats.chi2.sf(chisq, df)) if df > 0 else float('nan')
        rows.append(ComparisonRow(
            name=name,
            formula=m.formula,
            npar=m.npar,
            aic=-2.0 * ll + 2.0 * m.npar,
            bic=-2.0 * ll + np.log(n) * m.npar,
            log_likelihood=ll,
            deviance=-2.0 * ll,
            chisq=chisq,
            df=df,
            p_value=p_value,
        ))
        previous = m

    timer.stop()

    result = Result(
        params=ComparisonParams(
            rows=tuple(rows),
            response=next(iter(responses)),
            n_obs=n,
            refitted=tuple(refitted),
        ),
        info={'method': 'LRT', 'refit': refit},
        timing=timer.result(),
        backend_name='scipy_chi2',
        warnings=tuple(warn_list),
    )
    return ComparisonSolution(_result=result)


def likelihood_ratio_test(
    reduced: LinearModelSolution | MixedModelSolution,
    full: LinearModelSolution | MixedModelSolution,
) -> LRTResult:
    """Likelihood-ratio test of a reduced model against a full model.

    χ² = 2 (logLik_full − logLik_reduced), on npar_full − npar_reduced df.
    Both models should be fit with ML (reml=False) unless they share the
    same fixed effects.

    Raises:
        ValidationError: If the full model doesn't have more parameters.
    """
    df = full.npar - reduced.npar
    if df <= 0:
        raise ValidationError(
            f"likelihood_ratio_test: full model must have more parameters than "
            f"the reduced model (npar {full.npar} vs {reduced.npar})"
        )
    if any(isinstance(m, MixedModelSolution) and m.reml for m in (reduced, full)):
        warnings.warn(
            "Likelihood ratio test requires ML (not REML) fits when fixed "
            "effects differ. Refit with reml=False.",
            UserWarning,
            stacklevel=2,
        )
    chisq = max(2.0 * (full.log_likelihood - reduced.log_likelihood), 0.0)
    return LRTResult(chisq=chisq, df=df, p_value=float(stats.chi2.sf(chisq, df)))


def is_singular(
    var_components: Sequence[VarCompSummary],
    residual_std: float,
    tol: float = DEFAULT_SINGULAR_TOL,
) -> bool:
    """True if the random-effects covariance is on the boundary.

    A fit is singular when a random-effect standard deviation is below
    tol relative to the residual standard deviation, or a correlation
    is within tol of ±1.
    """
    scale = residual_std if residual_std > 0 else 1.0
    for vc in var_components:
        if vc.std_dev / scale < tol:
            return True
        if vc.corr is not None and abs(vc.corr) > 1.0 - tol:
            return True
    return False


# =====================================================================
# Helpers
# =====================================================================

def _build_model(factory, parsed: ParsedFormula, design: ModelDesign, **kwargs):
    """Construct a statsmodels formula model, mapping patsy errors."""
    try:
        return factory(parsed.fixed_formula, design.data, **kwargs)
    except patsy.PatsyError as e:
        raise FormulaError(
            f"formula: cannot build the design matrix for {parsed.formula!r}: {e}",
            formula=parsed.formula,
        ) from e


def _coef_name(name: str) -> str:
    return INTERCEPT_NAME if name == 'Intercept' else name


def _extract_mixed(fitted, parsed: ParsedFormula, design: ModelDesign, reml: bool) -> MixedParams:
    """Pull estimates out of a statsmodels MixedLMResults."""
    fe = fitted.fe_params
    k_fe = len(fe)
    coefficients = np.asarray(fe, dtype=np.float64)
    vcov = np.asarray(fitted.cov_params(), dtype=np.float64)[:k_fe, :k_fe]
    se = np.sqrt(np.maximum(np.diag(vcov), 0.0))
    with np.errstate(divide='ignore', invalid='ignore'):
        z_values = coefficients / se
    p_values = 2.0 * stats.norm.sf(np.abs(z_values))

    var_comps = _extract_var_components(fitted, parsed)
    vc_names = list(fitted.model.exog_vc.names) if fitted.model.k_vc else []
    k_re = fitted.model.k_re

    columns = list(parsed.random[0].names) + vc_names
    blups = np.vstack([
        np.asarray(fitted.random_effects[level], dtype=np.float64)
        for level in design.group_levels
    ])
    random_effects = pd.DataFrame(
        blups, index=pd.Index(design.group_levels, name=parsed.group), columns=columns,
    )

    residual_variance = float(fitted.scale)
    return MixedParams(
        coefficients=coefficients,
        coefficient_names=tuple(_coef_name(n) for n in fe.index),
        se=se,
        z_values=z_values,
        p_values=p_values,
        vcov=vcov,
        var_components=tuple(var_comps),
        residual_variance=residual_variance,
        residual_std=float(np.sqrt(residual_variance)),
        n_cov_params=k_re * (k_re + 1) // 2 + len(vc_names),
        log_likelihood=float(fitted.llf),
        reml=reml,
        n_obs=design.n,
        group=parsed.group,
        n_groups=design.n_groups,
        converged=bool(getattr(fitted, 'converged', True)),
        random_effects=random_effects,
        fitted_values=np.asarray(fitted.fittedvalues, dtype=np.float64),
        residuals=np.asarray(fitted.resid, dtype=np.float64),
    )


def _extract_var_components(fitted, parsed: ParsedFormula) -> list[VarCompSummary]:
    """Variance, std. dev. and correlation for each random term.

    Terms of the correlated block report their correlation with the
    block's first term; independent components have none.
    """
    cov_re = np.atleast_2d(np.asarray(fitted.cov_re, dtype=np.float64))
    group = parsed.group
    var_comps = []

    for i, name in enumerate(parsed.random[0].names):
        var_i = float(cov_re[i, i])
        sd_i = float(np.sqrt(max(var_i, 0.0)))
        corr = None
        if i > 0:
            var_0 = cov_re[0, 0]
            if var_0 > 0 and var_i > 0:
                corr = float(np.clip(cov_re[i, 0] / (np.sqrt(var_0) * sd_i), -1.0, 1.0))
            else:
                corr = float('nan')
        var_comps.append(VarCompSummary(
            group=group, name=name, variance=var_i, std_dev=sd_i, corr=corr,
        ))

    if fitted.model.k_vc:
        vcomp = np.asarray(fitted.vcomp, dtype=np.float64)
        for name, var in zip(fitted.model.exog_vc.names, vcomp):
            var_comps.append(VarCompSummary(
                group=group,
                name=name,
                variance=float(var),
                std_dev=float(np.sqrt(max(var, 0.0))),
            ))

    return var_comps
