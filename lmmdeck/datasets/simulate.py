"""
Simulate sleepstudy-shaped data from the random-slope model.

    Reaction_ij = (β0 + b0_i) + (β1 + b1_i) · Days_ij + ε_ij
    (b0_i, b1_i) ~ N(0, Σ),  ε_ij ~ N(0, σ²)

Defaults are the REML estimates of lme4 for the real data, so simulated
panels look like the real ones. Used on the "what the model assumes"
slide and in tests where the true parameters must be known.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from lmmdeck.core.exceptions import ValidationError


def simulate_sleepstudy(
    rng: np.random.Generator,
    *,
    n_subjects: int = 18,
    n_days: int = 10,
    beta: tuple[float, float] = (251.4, 10.5),
    sd_intercept: float = 24.7,
    sd_slope: float = 5.9,
    corr: float = 0.07,
    sd_resid: float = 25.6,
    center_subjects: bool = False,
) -> pd.DataFrame:
    """Draw one data set from the random intercept + slope model.

    Args:
        rng: numpy Generator, e.g. np.random.default_rng(42).
        n_subjects: Number of subjects (groups). At least 2.
        n_days: Measurements per subject, on days 0..n_days-1. At least 2.
        beta: Population intercept and slope.
        sd_intercept: Between-subject SD of intercepts.
        sd_slope: Between-subject SD of slopes.
        corr: Correlation of intercept and slope deviations.
        sd_resid: Within-subject residual SD.
        center_subjects: Remove each subject's mean deviation from the
            population line, so all subjects share one mean. An intercept
            variance fitted to such data lands on the boundary.

    Returns:
        DataFrame with Reaction, Days, Subject (categorical 'S01', 'S02', ...).
    """
    if n_subjects < 2:
        raise ValidationError(f"n_subjects: requires at least 2, got {n_subjects}")
    if n_days < 2:
        raise ValidationError(f"n_days: requires at least 2, got {n_days}")
    if not -1.0 <= corr <= 1.0:
        raise ValidationError(f"corr: must be in [-1, 1], got {corr}")
    for name, value in (('sd_intercept', sd_intercept), ('sd_slope', sd_slope),
                        ('sd_resid', sd_resid)):
        if value < 0:
            raise ValidationError(f"{name}: must be non-negative, got {value}")

    cov = np.array([
        [sd_intercept**2, corr * sd_intercept * sd_slope],
        [corr * sd_intercept * sd_slope, sd_slope**2],
    ])
    re = rng.multivariate_normal([0.0, 0.0], cov, size=n_subjects)

    codes = np.repeat(np.arange(n_subjects), n_days)
    days = np.tile(np.arange(n_days), n_subjects)
    reaction = (
        beta[0] + re[codes, 0]
        + (beta[1] + re[codes, 1]) * days
        + rng.normal(0.0, sd_resid, size=codes.size)
    )
    if center_subjects:
        deviation = reaction - (beta[0] + beta[1] * days)
        reaction -= np.bincount(codes, weights=deviation)[codes] / n_days

    width = len(str(n_subjects))
    labels = [f"S{i + 1:0{width}d}" for i in range(n_subjects)]
    return pd.DataFrame({
        'Reaction': reaction,
        'Days': days,
        'Subject': pd.Categorical.from_codes(codes, categories=labels),
    })
