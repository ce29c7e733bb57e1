"""Tests for the slide figures (Agg backend, set in conftest)."""

import matplotlib.pyplot as plt
import pytest
from matplotlib.figure import Figure

from lmmdeck.core.exceptions import RenderError, ValidationError
from lmmdeck.models import lm, lmer
from lmmdeck.plots import (
    plot_by_subject,
    plot_ranef,
    plot_residuals,
    plot_scatter,
    plot_shrinkage,
    save_figure,
)


@pytest.fixture(scope='module')
def fits():
    from lmmdeck.datasets import load_sleepstudy

    data = load_sleepstudy()
    return {
        'pooled': lm('Reaction ~ Days', data),
        'mixed': lmer('Reaction ~ Days + (Days | Subject)', data),
        'intercept': lmer('Reaction ~ Days + (1 | Subject)', data),
    }


class TestScatter:

    def test_returns_figure_with_line(self, sleepstudy):
        fig = plot_scatter(sleepstudy)
        assert isinstance(fig, Figure)
        ax = fig.axes[0]
        assert len(ax.lines) == 1
        assert ax.get_xlabel() == 'Days'
        assert ax.get_ylabel() == 'Reaction'

    def test_without_line(self, sleepstudy):
        fig = plot_scatter(sleepstudy, fit_line=False)
        assert len(fig.axes[0].lines) == 0

    def test_missing_column(self, sleepstudy):
        with pytest.raises(ValidationError, match="Reaction"):
            plot_scatter(sleepstudy.drop(columns='Reaction'))


class TestBySubject:

    def test_one_panel_per_subject(self, sleepstudy):
        fig = plot_by_subject(sleepstudy)
        visible = [ax for ax in fig.axes if ax.get_visible()]
        assert len(visible) == 18
        assert visible[0].get_title() == '308'

    def test_unused_panels_hidden(self, sleepstudy):
        fig = plot_by_subject(sleepstudy, ncols=5)
        assert len(fig.axes) == 20
        assert sum(ax.get_visible() for ax in fig.axes) == 18

    def test_overlays(self, sleepstudy, fits):
        fig = plot_by_subject(sleepstudy, fits={'pooled': fits['pooled'], 'mixed': fits['mixed']})
        first = fig.axes[0]
        assert len(first.lines) == 2
        pooled_line, mixed_line = first.lines
        # pooled line is the same in every panel, the mixed line is not
        assert (pooled_line.get_ydata() == fig.axes[1].lines[0].get_ydata()).all()
        assert not (mixed_line.get_ydata() == fig.axes[1].lines[1].get_ydata()).all()

    def test_bad_ncols(self, sleepstudy):
        with pytest.raises(ValidationError, match="ncols"):
            plot_by_subject(sleepstudy, ncols=0)

    def test_bad_fit(self, sleepstudy):
        with pytest.raises(ValidationError, match="fits"):
            plot_by_subject(sleepstudy, fits={'x': object()})


class TestModelPlots:

    def test_shrinkage(self, sleepstudy, fits):
        fig = plot_shrinkage(sleepstudy, fits['mixed'])
        ax = fig.axes[0]
        assert len(ax.collections) == 3
        assert ax.get_legend() is not None

    def test_shrinkage_intercept_only_model(self, sleepstudy, fits):
        fig = plot_shrinkage(sleepstudy, fits['intercept'])
        assert isinstance(fig, Figure)

    def test_shrinkage_requires_mixed_model(self, sleepstudy, fits):
        with pytest.raises(ValidationError, match="lmer"):
            plot_shrinkage(sleepstudy, fits['pooled'])

    def test_ranef_panels(self, fits):
        fig = plot_ranef(fits['mixed'])
        assert [ax.get_title() for ax in fig.axes] == ['(Intercept)', 'Days']

    def test_residuals(self, fits):
        for fit in fits.values():
            fig = plot_residuals(fit)
            assert fig.axes[0].get_xlabel() == 'Fitted values'

    def test_residuals_type_check(self):
        with pytest.raises(ValidationError):
            plot_residuals("fm2")


class TestSaveFigure:

    def test_creates_directories(self, tmp_path, sleepstudy):
        fig = plot_scatter(sleepstudy)
        path = save_figure(fig, tmp_path / 'a' / 'b' / 'scatter.png', dpi=50)
        assert path.exists()
        assert path.stat().st_size > 0

    def test_svg(self, tmp_path, sleepstudy):
        path = save_figure(plot_scatter(sleepstudy), tmp_path / 'scatter.svg')
        assert path.read_text().lstrip().startswith('<?xml')

    def test_unwritable(self, tmp_path):
        blocker = tmp_path / 'file'
        blocker.write_text('x')
        fig, _ = plt.subplots()
        with pytest.raises(RenderError):
            save_figure(fig, blocker / 'fig.png')
