"""
Tests for anova() and likelihood_ratio_test().

Reference values: R lme4,
    anova(fm1, fm2)                        Chisq 42.139, Df 2, p 7.072e-10
    anova(fm_null_ml, fm2_ml)  (Days test) Chisq 23.537, Df 1, p 1.226e-06
"""

import numpy as np
import pytest

from lmmdeck.core.exceptions import DimensionError, ValidationError
from lmmdeck.models import ComparisonSolution, anova, likelihood_ratio_test, lm, lmer
from lmmdeck.models._common import VarCompSummary
from lmmdeck.models.solution import BOUNDARY_NOTE
from lmmdeck.models.solvers import REFIT_WARNING, is_singular


# ═══════════════════════════════════════════════════════════════════════
# anova()
# ═══════════════════════════════════════════════════════════════════════


class TestAnovaRandomSlope:

    @pytest.fixture(scope='class')
    def comparison(self, fm1, fm2):
        with pytest.warns(UserWarning, match="refitting"):
            return anova(fm1, fm2, names=['fm1', 'fm2'])

    def test_type(self, comparison):
        assert isinstance(comparison, ComparisonSolution)

    def test_refitted_with_ml(self, comparison):
        assert comparison.refitted == ('fm1', 'fm2')
        assert REFIT_WARNING in comparison.warnings

    def test_rows(self, comparison):
        first, second = comparison.rows
        assert (first.name, second.name) == ('fm1', 'fm2')
        assert (first.npar, second.npar) == (4, 6)
        assert first.chisq is None and first.df is None and first.p_value is None
        assert first.log_likelihood == pytest.approx(-897.04, rel=1e-4)
        assert second.aic == pytest.approx(1763.9, rel=1e-4)

    def test_lrt(self, comparison):
        assert comparison.chisq == pytest.approx(42.139, rel=1e-2)
        assert comparison.df == 2
        assert comparison.p_value == pytest.approx(7.072e-10, rel=0.2)

    def test_to_frame(self, comparison):
        frame = comparison.to_frame()
        assert list(frame.columns) == [
            'npar', 'AIC', 'BIC', 'logLik', 'deviance', 'Chisq', 'Df', 'Pr(>Chisq)',
        ]
        assert list(frame.index) == ['fm1', 'fm2']
        assert np.isnan(frame.loc['fm1', 'Chisq'])
        assert frame.loc['fm2', 'Df'] == 2

    def test_summary(self, comparison):
        text = comparison.summary()
        assert text.startswith('Models:')
        assert 'fm1: Reaction ~ Days + (1 | Subject)' in text
        assert 'Pr(>Chisq)' in text
        assert '***' in text
        assert 'refitted with ML: fm1, fm2' in text

    def test_boundary_note(self, comparison):
        assert comparison.boundary_note == BOUNDARY_NOTE
        assert 'conservative' in comparison.boundary_note


class TestAnovaFixedEffect:

    def test_days_effect(self, fm2_ml):
        null = lmer('Reaction ~ 1 + (Days | Subject)', fm2_ml._design.data, reml=False)
        comparison = anova(null, fm2_ml)
        assert comparison.refitted == ()
        assert comparison.warnings == ()
        assert comparison.chisq == pytest.approx(23.537, rel=1e-2)
        assert comparison.df == 1
        assert comparison.p_value == pytest.approx(1.226e-06, rel=0.2)


class TestAnovaOrdering:

    def test_sorted_by_npar(self, fm1_ml, fm2_ml):
        comparison = anova(fm2_ml, fm1_ml, names=['big', 'small'])
        assert [r.name for r in comparison.rows] == ['small', 'big']
        assert comparison.chisq > 0

    def test_default_names(self, fm1_ml, fm2_ml):
        comparison = anova(fm2_ml, fm1_ml)
        assert [r.name for r in comparison.rows] == ['model2', 'model1']

    def test_with_linear_model(self, sleepstudy, fm1_ml):
        fm0 = lm('Reaction ~ Days', sleepstudy)
        comparison = anova(fm0, fm1_ml)
        assert comparison.rows[0].npar == 3
        assert comparison.df == 1
        expected = 2 * (fm1_ml.log_likelihood - fm0.log_likelihood)
        assert comparison.chisq == pytest.approx(expected)

    def test_equal_npar_gives_nan_p(self, fm2_ml):
        comparison = anova(fm2_ml, fm2_ml.refit(reml=False), names=['a', 'b'])
        assert comparison.df == 0
        assert np.isnan(comparison.p_value)

    def test_no_refit_warns(self, fm1, fm2):
        with pytest.warns(UserWarning, match="comparing REML fits"):
            comparison = anova(fm1, fm2, refit=False)
        assert comparison.refitted == ()


class TestAnovaErrors:

    def test_single_model(self, fm1):
        with pytest.raises(ValidationError, match="at least 2 models"):
            anova(fm1)

    def test_wrong_type(self, fm1):
        with pytest.raises(ValidationError, match="expected a fit"):
            anova(fm1, "fm2")

    def test_name_count(self, fm1_ml, fm2_ml):
        with pytest.raises(ValidationError, match="2 models"):
            anova(fm1_ml, fm2_ml, names=['only'])

    def test_duplicate_names(self, fm1_ml, fm2_ml):
        with pytest.raises(ValidationError, match="unique"):
            anova(fm1_ml, fm2_ml, names=['m', 'm'])

    def test_different_responses(self, sleepstudy, fm1_ml):
        other = lm('Days ~ Reaction', sleepstudy)
        with pytest.raises(ValidationError, match="different responses"):
            anova(other, fm1_ml)

    def test_different_n(self, sleepstudy, fm1_ml):
        partial = lm('Reaction ~ Days', sleepstudy.iloc[:100])
        with pytest.raises(DimensionError, match="numbers of observations"):
            anova(partial, fm1_ml)


# ═══════════════════════════════════════════════════════════════════════
# likelihood_ratio_test()
# ═══════════════════════════════════════════════════════════════════════


class TestLikelihoodRatioTest:

    def test_matches_anova(self, fm1_ml, fm2_ml):
        result = likelihood_ratio_test(fm1_ml, fm2_ml)
        assert result.df == 2
        assert result.chisq == pytest.approx(42.139, rel=1e-2)
        assert 0.0 < result.p_value < 1e-8

    def test_reversed_models_rejected(self, fm1_ml, fm2_ml):
        with pytest.raises(ValidationError, match="more parameters"):
            likelihood_ratio_test(fm2_ml, fm1_ml)

    def test_reml_fits_warn(self, fm1, fm2):
        with pytest.warns(UserWarning, match="ML"):
            likelihood_ratio_test(fm1, fm2)


# ═══════════════════════════════════════════════════════════════════════
# is_singular()
# ═══════════════════════════════════════════════════════════════════════


class TestIsSingular:

    def test_regular(self):
        vcs = [
            VarCompSummary('Subject', '(Intercept)', 612.1, 24.74),
            VarCompSummary('Subject', 'Days', 35.07, 5.92, corr=0.066),
        ]
        assert not is_singular(vcs, residual_std=25.59)

    def test_zero_variance(self):
        vcs = [VarCompSummary('Subject', '(Intercept)', 0.0, 0.0)]
        assert is_singular(vcs, residual_std=25.0)

    def test_perfect_correlation(self):
        vcs = [
            VarCompSummary('Subject', '(Intercept)', 100.0, 10.0),
            VarCompSummary('Subject', 'Days', 4.0, 2.0, corr=-1.0),
        ]
        assert is_singular(vcs, residual_std=25.0)

    def test_tolerance(self):
        vcs = [VarCompSummary('Subject', '(Intercept)', 1.0, 1.0)]
        assert not is_singular(vcs, residual_std=25.0)
        assert is_singular(vcs, residual_std=25.0, tol=0.05)
