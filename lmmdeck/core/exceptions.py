"""
Exception hierarchy for lmmdeck.

All exceptions inherit from LMMDeckError to allow catching any
library-specific error. Errors raised by statsmodels during a fit are
wrapped in the appropriate class here, with the original chained.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class LMMDeckError(Exception):
    """Base exception for all lmmdeck errors."""
    pass


class ValidationError(LMMDeckError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions, or when
    models being compared were fitted to different numbers of observations.
    """
    pass


class FormulaError(ValidationError):
    """
    A model formula could not be parsed or is unsupported.

    Attributes:
        formula: The formula string as given
        position: Character offset of the problem, if known
    """

    def __init__(
        self,
        message: str,
        formula: str | None = None,
        position: int | None = None,
    ):
        super().__init__(message)
        self.formula = formula
        self.position = position


class ConvergenceError(LMMDeckError):
    """
    The model fitting routine failed.

    Raised when statsmodels cannot produce a fit at all (as opposed to
    producing a fit flagged as not converged, which is only a warning).

    Attributes:
        formula: Formula of the model being fitted
        method: Estimation criterion ('REML' or 'ML')
        optimizer: Optimizer name passed to statsmodels
    """

    def __init__(
        self,
        message: str,
        formula: str | None = None,
        method: str | None = None,
        optimizer: str | None = None,
    ):
        super().__init__(message)
        self.formula = formula
        self.method = method
        self.optimizer = optimizer


class ChunkExecutionError(LMMDeckError):
    """
    A code chunk on a slide raised while the deck was being executed.

    Attributes:
        slide_index: Zero-based position of the slide in the deck
        slide_title: Title of the slide
        chunk_index: Zero-based position of the chunk on the slide
        code: Source of the failing chunk
        original: The exception raised by the chunk
    """

    def __init__(
        self,
        message: str,
        slide_index: int,
        slide_title: str,
        chunk_index: int,
        code: str,
        original: BaseException,
    ):
        super().__init__(message)
        self.slide_index = slide_index
        self.slide_title = slide_title
        self.chunk_index = chunk_index
        self.code = code
        self.original = original


class RenderError(LMMDeckError):
    """
    Writing rendered output failed.

    Attributes:
        path: Output path that could not be written
        format: Output format ('md' or 'html')
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        format: str | None = None,
    ):
        super().__init__(message)
        self.path = path
        self.format = format
