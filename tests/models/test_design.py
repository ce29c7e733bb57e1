"""Tests for ModelDesign.validate()."""

import numpy as np
import pandas as pd
import pytest

from lmmdeck.core.exceptions import ValidationError
from lmmdeck.models import parse_formula
from lmmdeck.models.design import ModelDesign


class TestModelDesign:

    def test_keeps_referenced_columns(self, sleepstudy):
        sleepstudy['Extra'] = 1.0
        design = ModelDesign.validate(parse_formula('Reaction ~ Days + (1 | Subject)'), sleepstudy)
        assert list(design.data.columns) == ['Reaction', 'Days', 'Subject']
        assert design.n == 180
        assert design.n_groups == 18

    def test_categorical_order_kept(self, sleepstudy):
        shuffled = sleepstudy.sample(frac=1.0, random_state=0)
        design = ModelDesign.validate(parse_formula('Reaction ~ Days + (1 | Subject)'), shuffled)
        assert design.group_levels[:3] == ('308', '309', '310')

    def test_appearance_order_for_strings(self):
        data = pd.DataFrame({
            'y': [1.0, 2.0, 3.0, 4.0],
            'g': ['b', 'a', 'b', 'a'],
        })
        design = ModelDesign.validate(parse_formula('y ~ 1 + (1 | g)'), data)
        assert design.group_levels == ('b', 'a')

    def test_integer_groups_become_strings(self):
        data = pd.DataFrame({'y': [1.0, 2.0, 3.0, 4.0], 'g': [7, 7, 8, 8]})
        design = ModelDesign.validate(parse_formula('y ~ 1 + (1 | g)'), data)
        assert design.group_levels == ('7', '8')
        assert design.data['g'].tolist() == ['7', '7', '8', '8']

    def test_too_few_rows(self):
        data = pd.DataFrame({'y': [1.0, 2.0], 'x': [0.0, 1.0]})
        with pytest.raises(ValidationError, match="at least 3 observations"):
            ModelDesign.validate(parse_formula('y ~ x'), data)

    def test_infinite_response(self):
        data = pd.DataFrame({'y': [1.0, np.inf, 3.0, 4.0], 'x': [0.0, 1.0, 2.0, 3.0]})
        with pytest.raises(ValidationError, match=r"y: contains non-finite values \(0 NaN, 1 Inf\)"):
            ModelDesign.validate(parse_formula('y ~ x'), data)

    def test_infinite_random_slope(self):
        data = pd.DataFrame({
            'y': [1.0, 2.0, 3.0, 4.0],
            'x': [0.0, 1.0, -np.inf, 1.0],
            'g': ['a', 'a', 'b', 'b'],
        })
        with pytest.raises(ValidationError, match="x: contains non-finite"):
            ModelDesign.validate(parse_formula('y ~ x + (x | g)'), data)

    def test_non_numeric_response(self):
        data = pd.DataFrame({'y': ['a', 'b', 'c'], 'x': [0.0, 1.0, 2.0]})
        with pytest.raises(ValidationError, match="y: non-numeric"):
            ModelDesign.validate(parse_formula('y ~ x'), data)
