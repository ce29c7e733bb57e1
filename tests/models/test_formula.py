"""Tests for lme4 formula parsing."""

import pytest

from lmmdeck.core.exceptions import FormulaError
from lmmdeck.models import parse_formula


# ═══════════════════════════════════════════════════════════════════════
# Supported random-effect structures
# ═══════════════════════════════════════════════════════════════════════


class TestRandomTerms:

    def test_random_intercept(self):
        f = parse_formula('Reaction ~ Days + (1 | Subject)')
        assert f.response == 'Reaction'
        assert f.fixed_terms == ('Days',)
        assert f.fixed_formula == 'Reaction ~ Days'
        assert f.group == 'Subject'
        assert f.re_formula == '1'
        assert f.vc_formula is None
        assert f.random_names == ('(Intercept)',)

    def test_slope_implies_intercept(self):
        f = parse_formula('Reaction ~ Days + (Days | Subject)')
        assert len(f.random) == 1
        assert f.random[0].intercept
        assert f.random[0].terms == ('Days',)
        assert f.re_formula == '1 + Days'
        assert f.random_names == ('(Intercept)', 'Days')

    def test_explicit_intercept(self):
        f = parse_formula('Reaction ~ Days + (1 + Days | Subject)')
        assert f.re_formula == '1 + Days'

    @pytest.mark.parametrize("lhs", ['0 + Days', '-1 + Days', 'Days - 1'])
    def test_slope_without_intercept(self, lhs):
        f = parse_formula(f'Reaction ~ Days + ({lhs} | Subject)')
        assert not f.random[0].intercept
        assert f.re_formula == '0 + Days'

    def test_double_bar_expands(self):
        f = parse_formula('Reaction ~ Days + (Days || Subject)')
        assert len(f.random) == 2
        assert f.re_formula == '1'
        assert f.vc_formula == {'Days': '0 + Days'}
        assert f.random_names == ('(Intercept)', 'Days')

    def test_separate_terms_equivalent_to_double_bar(self):
        a = parse_formula('Reaction ~ Days + (1 | Subject) + (0 + Days | Subject)')
        b = parse_formula('Reaction ~ Days + (Days || Subject)')
        assert a.random == b.random

    def test_slope_block_listed_first_is_reordered(self):
        f = parse_formula('Reaction ~ Days + (0 + Days | Subject) + (1 | Subject)')
        assert f.random[0].intercept
        assert f.vc_formula == {'Days': '0 + Days'}

    def test_intercept_only_fixed_part(self):
        f = parse_formula('Reaction ~ 1 + (Days | Subject)')
        assert f.fixed_formula == 'Reaction ~ 1'

    def test_no_random_terms(self):
        f = parse_formula('Reaction ~ Days')
        assert not f.is_mixed
        assert f.group is None
        assert f.re_formula is None

    def test_variables(self):
        f = parse_formula('Reaction ~ Days + np.log(Dose) + (Days | Subject)')
        assert f.variables == ('Reaction', 'Days', 'Dose', 'Subject')

    def test_str_round_trip(self):
        f = parse_formula('Reaction~Days+(Days||Subject)')
        assert str(f) == 'Reaction ~ Days + (1 | Subject) + (0 + Days | Subject)'


# ═══════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════


class TestFormulaErrors:

    @pytest.mark.parametrize("formula, match", [
        ('', "non-empty"),
        ('Reaction Days', "exactly one '~'"),
        ('y ~ x ~ z', "exactly one '~'"),
        (' ~ Days', "missing response"),
        ('log(y) ~ Days', "response must be a column name"),
        ('Reaction ~ Days + (1 | Subject', "unbalanced '\\('"),
        ('Reaction ~ Days + 1 | Subject)', "unbalanced '\\)'"),
        ('Reaction ~ Days + ', "empty term"),
        ('Reaction ~ Days + 1 | Subject', "enclosed in parentheses"),
        ('Reaction ~ Days + (1 | )', "no grouping factor"),
        ('Reaction ~ Days + ( | Subject)', "no effects"),
        ('Reaction ~ Days + (0 | Subject)', "no effects"),
        ('Reaction ~ Days + (1 | Subject:Night)', "not a plain column name"),
        ('Reaction ~ Days + (log(Days) | Subject)', "must be a column name"),
        ('Reaction ~ Days + (1 - Days | Subject)', "cannot remove"),
    ])
    def test_malformed(self, formula, match):
        with pytest.raises(FormulaError, match=match):
            parse_formula(formula)

    def test_crossed_factors_rejected(self):
        with pytest.raises(FormulaError, match="one grouping factor"):
            parse_formula('y ~ x + (1 | Subject) + (1 | Item)')

    def test_duplicate_intercept_rejected(self):
        with pytest.raises(FormulaError, match="more than one term"):
            parse_formula('y ~ x + (1 | g) + (1 + x | g)')

    def test_second_correlated_block_rejected(self):
        with pytest.raises(FormulaError, match="only one correlated block"):
            parse_formula('y ~ x + (1 + x | g) + (0 + z + w | g)')

    def test_duplicate_slope_rejected(self):
        with pytest.raises(FormulaError, match="appears in more than one term"):
            parse_formula('y ~ x + (x | g) + (0 + x | g)')

    def test_error_carries_formula(self):
        with pytest.raises(FormulaError) as exc:
            parse_formula('y ~ (x')
        assert exc.value.formula == 'y ~ (x'
