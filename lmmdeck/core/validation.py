"""
Input checks shared by the model, plot and deck code.

Each check raises ValidationError on the first problem, naming the
offending column or argument and the values found. Data frames are
checked for shape and columns first; the numeric checks then run on
the columns a formula actually uses.
"""

from __future__ import annotations

from typing import Any, Iterable, TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from lmmdeck.core.exceptions import ValidationError

if TYPE_CHECKING:
    import pandas as pd


def check_array(
    array: ArrayLike,
    name: str,
) -> NDArray[np.floating[Any]]:
    """
    Convert a column or array-like to a float64 numpy array.

    Raises:
        ValidationError: If the values are not numeric
    """
    try:
        result = np.asarray(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: cannot convert to array: {e}") from e

    if result.dtype == object or not np.issubdtype(result.dtype, np.number):
        raise ValidationError(f"{name}: non-numeric values (dtype {result.dtype})")
    return result.astype(np.float64, copy=False)


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Reject NaN and ±Inf, reporting how many of each were found.
    """
    if not np.all(np.isfinite(array)):
        n_nan = int(np.sum(np.isnan(array)))
        n_inf = int(np.sum(np.isinf(array)))
        raise ValidationError(
            f"{name}: contains non-finite values ({n_nan} NaN, {n_inf} Inf)"
        )


def check_min_samples(array: NDArray[np.floating[Any]], min_samples: int, name: str) -> None:
    """Require at least min_samples observations along the first axis."""
    n = array.shape[0]
    if n < min_samples:
        raise ValidationError(
            f"{name}: requires at least {min_samples} observations, got {n}"
        )


def check_dataframe(data: Any, name: str) -> None:
    """
    Verify input is a pandas DataFrame.

    Raises:
        ValidationError: If data is not a DataFrame
    """
    import pandas as pd

    if not isinstance(data, pd.DataFrame):
        raise ValidationError(
            f"{name}: expected pandas DataFrame, got {type(data).__name__}"
        )


def check_columns(data: 'pd.DataFrame', columns: Iterable[str], name: str) -> None:
    """
    Verify every referenced column exists in the data frame.

    Raises:
        ValidationError: If any column is missing, listing what is available
    """
    missing = [c for c in columns if c not in data.columns]
    if missing:
        available = ", ".join(str(c) for c in data.columns)
        raise ValidationError(
            f"{name}: missing columns {missing}. Available: {available}"
        )


def check_numeric_column(data: 'pd.DataFrame', column: str) -> None:
    """
    Verify a data frame column holds numeric values.

    Raises:
        ValidationError: If the column dtype is not numeric
    """
    import pandas as pd

    if not pd.api.types.is_numeric_dtype(data[column]):
        raise ValidationError(
            f"{column}: non-numeric dtype {data[column].dtype}, expected numeric data"
        )


def check_no_missing(data: 'pd.DataFrame', columns: Iterable[str]) -> None:
    """
    Verify the given columns contain no missing values.

    Raises:
        ValidationError: If any column has missing values, with counts
    """
    counts = {c: int(data[c].isna().sum()) for c in columns}
    bad = {c: n for c, n in counts.items() if n > 0}
    if bad:
        details = ", ".join(f"{c}={n}" for c, n in bad.items())
        raise ValidationError(f"Missing values in columns: {details}")
