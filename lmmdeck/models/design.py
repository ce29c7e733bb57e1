"""
Design validation for the deck's models.

ModelDesign validates and organizes the inputs for lm()/lmer(): the parsed
formula and the columns of the data frame it refers to. Inputs are
validated here once; later code trusts them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pandas as pd

from lmmdeck.core.exceptions import ValidationError
from lmmdeck.core.validation import (
    check_array,
    check_columns,
    check_dataframe,
    check_finite,
    check_min_samples,
    check_no_missing,
    check_numeric_column,
)
from lmmdeck.models._formula import ParsedFormula


@dataclass(frozen=True)
class ModelDesign:
    """Validated design for a linear or linear mixed model.

    Attributes:
        formula: Parsed model formula.
        data: Copy of the referenced columns, index reset; the grouping
            column (if any) holds string labels.
        n: Number of observations.
        group_levels: Grouping factor levels in order of appearance,
            empty for models without random effects.
    """
    formula: ParsedFormula
    data: pd.DataFrame
    n: int
    group_levels: tuple[str, ...]

    @property
    def n_groups(self) -> int:
        return len(self.group_levels)

    @staticmethod
    def validate(formula: ParsedFormula, data: Any) -> ModelDesign:
        """Validate that `data` can be fitted with `formula`.

        Raises:
            ValidationError: If data is not a DataFrame, lacks referenced
                columns, has non-numeric response or random slopes, has
                missing or infinite values, too few observations, or has
                fewer than two groups for a mixed model.
        """
        check_dataframe(data, 'data')
        columns = list(formula.variables)
        check_columns(data, columns, 'data')
        check_numeric_column(data, formula.response)
        for block in formula.random:
            for term in block.terms:
                check_numeric_column(data, term)
        check_no_missing(data, columns)

        frame = data[columns].reset_index(drop=True).copy()
        y = check_array(frame[formula.response], formula.response)
        check_finite(y, formula.response)
        check_min_samples(y, 3, 'data')
        for block in formula.random:
            for term in block.terms:
                check_finite(check_array(frame[term], term), term)
        n = len(frame)

        levels: tuple[str, ...] = ()
        group = formula.group
        if group is not None:
            if isinstance(frame[group].dtype, pd.CategoricalDtype):
                present = set(frame[group].astype(str))
                ordered = [str(c) for c in frame[group].cat.categories]
                levels = tuple(c for c in ordered if c in present)
            else:
                levels = tuple(dict.fromkeys(frame[group].astype(str)))
            frame[group] = frame[group].astype(str)
            if len(levels) < 2:
                raise ValidationError(
                    f"{group}: a grouping factor needs at least 2 levels, got {len(levels)}"
                )

        return ModelDesign(
            formula=formula,
            data=frame,
            n=n,
            group_levels=levels,
        )
