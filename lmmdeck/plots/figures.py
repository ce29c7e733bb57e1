"""
matplotlib figures for the sleepstudy deck.

The column names default to the sleepstudy layout (Reaction, Days,
Subject) and can be overridden for other data of the same shape.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.figure import Figure

from lmmdeck.core.exceptions import RenderError, ValidationError
from lmmdeck.core.validation import check_columns, check_dataframe
from lmmdeck.models._formula import INTERCEPT_NAME
from lmmdeck.models.solution import LinearModelSolution, MixedModelSolution

RESPONSE = 'Reaction'
TIME = 'Days'
GROUP = 'Subject'

_POPULATION_COLOR = 'tab:red'
_SUBJECT_COLOR = 'tab:blue'


def plot_scatter(
    data: pd.DataFrame,
    *,
    fit_line: bool = True,
    response: str = RESPONSE,
    x: str = TIME,
) -> Figure:
    """Reaction time against days of deprivation, all subjects pooled.

    With fit_line=True the OLS line of response on x is drawn.
    """
    check_dataframe(data, 'data')
    check_columns(data, [response, x], 'data')

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.scatter(data[x], data[response], s=14, alpha=0.7, color=_SUBJECT_COLOR)
    if fit_line:
        slope, intercept = np.polyfit(
            data[x].to_numpy(dtype=np.float64), data[response].to_numpy(dtype=np.float64), 1,
        )
        grid = np.linspace(data[x].min(), data[x].max(), 50)
        ax.plot(grid, intercept + slope * grid, color=_POPULATION_COLOR, linewidth=2,
                label=f'OLS: {intercept:.1f} + {slope:.2f}·{x}')
        ax.legend(loc='upper left')
    ax.set_xlabel(x)
    ax.set_ylabel(response)
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig


def plot_by_subject(
    data: pd.DataFrame,
    *,
    fits: Mapping[str, LinearModelSolution | MixedModelSolution] | None = None,
    ncols: int = 6,
    response: str = RESPONSE,
    x: str = TIME,
    group: str = GROUP,
) -> Figure:
    """One panel per subject, optionally overlaid with fitted lines.

    Args:
        data: Long-format data.
        fits: Label → fitted model. An lm() fit draws the same pooled line
            in every panel; an lmer() fit draws each subject's own line
            from its per-level coefficients.
        ncols: Panels per row.
    """
    check_dataframe(data, 'data')
    check_columns(data, [response, x, group], 'data')
    if ncols < 1:
        raise ValidationError(f"ncols: must be >= 1, got {ncols}")

    levels = _group_levels(data[group])
    nrows = int(np.ceil(len(levels) / ncols))
    fig, axes = plt.subplots(
        nrows, ncols, figsize=(2.2 * ncols, 2.0 * nrows), sharex=True, sharey=True,
        squeeze=False,
    )
    labels = data[group].astype(str)
    grid = np.linspace(data[x].min(), data[x].max(), 20)
    colors = plt.rcParams['axes.prop_cycle'].by_key()['color']

    lines = {}
    for label, fit in (fits or {}).items():
        lines[label] = _lines_by_level(fit, levels, x)

    for k, level in enumerate(levels):
        ax = axes[k // ncols][k % ncols]
        rows = data[labels == level]
        ax.scatter(rows[x], rows[response], s=10, color='black', alpha=0.7)
        for j, (label, coefs) in enumerate(lines.items()):
            intercept, slope = coefs[level]
            ax.plot(grid, intercept + slope * grid, linewidth=1.2,
                    color=colors[(j + 1) % len(colors)], label=label)
        ax.set_title(level, fontsize=9)
        ax.grid(True, alpha=0.3)

    for k in range(len(levels), nrows * ncols):
        axes[k // ncols][k % ncols].set_visible(False)

    if lines:
        handles, names = axes[0][0].get_legend_handles_labels()
        fig.legend(handles, names, loc='lower center', ncol=len(lines), frameon=False)
    fig.supxlabel(x)
    fig.supylabel(response)
    fig.tight_layout(rect=(0, 0.05 if lines else 0, 1, 1))
    return fig


def plot_shrinkage(
    data: pd.DataFrame,
    model: MixedModelSolution,
    *,
    response: str = RESPONSE,
    x: str = TIME,
    group: str = GROUP,
) -> Figure:
    """Per-subject OLS estimates vs mixed-model conditional estimates.

    Each arrow goes from a subject's separate least-squares (intercept,
    slope) to its estimate under the mixed model; the red cross marks
    the fixed effects.
    """
    _check_mixed(model)
    check_dataframe(data, 'data')
    check_columns(data, [response, x, group], 'data')

    labels = data[group].astype(str)
    mixed = model.coef
    rows = []
    for level in mixed.index:
        sub = data[labels == level]
        if len(sub) < 2:
            continue
        slope, intercept = np.polyfit(
            sub[x].to_numpy(dtype=np.float64), sub[response].to_numpy(dtype=np.float64), 1,
        )
        rows.append((level, intercept, slope))
    if not rows:
        raise ValidationError(f"data: no {group} level of the model has 2 or more rows")

    fixef = model.fixef
    fig, ax = plt.subplots(figsize=(6, 5))
    for level, ols_int, ols_slope in rows:
        mm_int = mixed.loc[level, INTERCEPT_NAME]
        mm_slope = mixed.loc[level, x] if x in mixed.columns else 0.0
        ax.annotate(
            '', xy=(mm_int, mm_slope), xytext=(ols_int, ols_slope),
            arrowprops={'arrowstyle': '->', 'color': 'grey', 'alpha': 0.7},
        )
    ols = np.array([(r[1], r[2]) for r in rows])
    ax.scatter(ols[:, 0], ols[:, 1], s=20, color=_SUBJECT_COLOR, label='within-subject OLS')
    ax.scatter(mixed[INTERCEPT_NAME], mixed[x] if x in mixed.columns else np.zeros(len(mixed)),
               s=20, color='tab:orange', label='mixed model')
    ax.scatter([fixef.get(INTERCEPT_NAME, 0.0)], [fixef.get(x, 0.0)], marker='x', s=80,
               color=_POPULATION_COLOR, label='fixed effects')
    ax.set_xlabel('Intercept')
    ax.set_ylabel(f'Slope ({x})')
    ax.legend(loc='best')
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig


def plot_ranef(model: MixedModelSolution) -> Figure:
    """Caterpillar plot: conditional modes of each random term, sorted."""
    _check_mixed(model)
    ranef = model.ranef
    ncols = len(ranef.columns)
    fig, axes = plt.subplots(
        1, ncols, figsize=(3.2 * ncols, 0.25 * len(ranef) + 1.5), squeeze=False,
    )
    for ax, name in zip(axes[0], ranef.columns):
        values = ranef[name].sort_values()
        positions = np.arange(len(values))
        ax.scatter(values.to_numpy(), positions, s=14, color=_SUBJECT_COLOR)
        ax.axvline(0.0, color='grey', linewidth=1)
        ax.set_yticks(positions)
        ax.set_yticklabels(values.index, fontsize=7)
        ax.set_title(name)
        ax.grid(True, axis='x', alpha=0.3)
    fig.tight_layout()
    return fig


def plot_residuals(model: LinearModelSolution | MixedModelSolution) -> Figure:
    """Residuals against fitted values."""
    if not isinstance(model, (LinearModelSolution, MixedModelSolution)):
        raise ValidationError(
            f"model: expected a fit from lm() or lmer(), got {type(model).__name__}"
        )
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.scatter(model.fitted_values, model.residuals, s=12, alpha=0.7, color=_SUBJECT_COLOR)
    ax.axhline(0.0, color=_POPULATION_COLOR, linewidth=1)
    ax.set_xlabel('Fitted values')
    ax.set_ylabel('Residuals')
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig


def save_figure(fig: Figure, path: str | Path, *, dpi: int = 120) -> Path:
    """Save a figure, creating parent directories. Returns the path.

    Raises:
        RenderError: If the file cannot be written.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, dpi=dpi, bbox_inches='tight')
    except OSError as e:
        raise RenderError(f"cannot write figure {path}: {e}", path=str(path)) from e
    return path


def _check_mixed(model) -> None:
    if not isinstance(model, MixedModelSolution):
        raise ValidationError(
            f"model: expected a fit from lmer(), got {type(model).__name__}"
        )


def _group_levels(column: pd.Series) -> list[str]:
    if isinstance(column.dtype, pd.CategoricalDtype):
        present = set(column.astype(str))
        return [str(c) for c in column.cat.categories if str(c) in present]
    return list(dict.fromkeys(column.astype(str)))


def _lines_by_level(fit, levels: list[str], x: str) -> dict[str, tuple[float, float]]:
    """(intercept, slope) per level for one fitted model."""
    if isinstance(fit, MixedModelSolution):
        table = fit.coef
        out = {}
        for level in levels:
            if level in table.index:
                row = table.loc[level]
            else:
                row = pd.Series(fit.fixef)
            out[level] = (float(row.get(INTERCEPT_NAME, 0.0)), float(row.get(x, 0.0)))
        return out
    if isinstance(fit, LinearModelSolution):
        coef = fit.coef
        line = (coef.get(INTERCEPT_NAME, 0.0), coef.get(x, 0.0))
        return {level: line for level in levels}
    raise ValidationError(
        f"fits: expected fits from lm() or lmer(), got {type(fit).__name__}"
    )
