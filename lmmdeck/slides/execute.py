"""
Run a deck's code chunks the way a notebook would.

Chunks are executed top to bottom in one shared namespace, so later
slides can use models fitted on earlier ones. For each chunk the
executor captures printed output, warnings, the value of a trailing
expression and any matplotlib figures the chunk opened.
"""

from __future__ import annotations

import ast
import contextlib
import functools
import io
import warnings
from typing import Any, Callable

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.figure import Figure

import lmmdeck
from lmmdeck import plots
from lmmdeck.core.config import DeckConfig
from lmmdeck.core.exceptions import ChunkExecutionError
from lmmdeck.datasets import load_sleepstudy
from lmmdeck.models import anova, likelihood_ratio_test, lm, lmer
from lmmdeck.slides.deck import Chunk, ChunkOutput, Deck, RenderedSlide

ProgressCallback = Callable[[int, str], None]


def default_namespace(config: DeckConfig | None = None) -> dict[str, Any]:
    """Names every chunk can use without importing them.

    With a config, lmer is bound to its optimizer and singular_tol.
    """
    fit_lmer = lmer
    if config is not None:
        fit_lmer = functools.partial(
            lmer, optimizer=config.optimizer, singular_tol=config.singular_tol,
        )
    namespace: dict[str, Any] = {
        '__name__': '__lmmdeck__',
        'np': np,
        'pd': pd,
        'plt': plt,
        'lmmdeck': lmmdeck,
        'lm': lm,
        'lmer': fit_lmer,
        'anova': anova,
        'likelihood_ratio_test': likelihood_ratio_test,
        'load_sleepstudy': load_sleepstudy,
        'sleepstudy': load_sleepstudy(),
    }
    for name in plots.__all__:
        namespace[name] = getattr(plots, name)
    return namespace


def execute_deck(
    deck: Deck,
    *,
    config: DeckConfig | None = None,
    namespace: dict[str, Any] | None = None,
    progress: ProgressCallback | None = None,
) -> list[RenderedSlide]:
    """Execute every chunk of the deck in order.

    Args:
        deck: The deck to run.
        config: Fitting settings for the default namespace. Ignored when
            namespace is given.
        namespace: Starting namespace; default_namespace(config) if None.
            It is mutated by the chunks.
        progress: Called with (slide index, slide title) before each slide.

    Returns:
        One RenderedSlide per slide. Chunks with eval=False get None.

    Raises:
        ChunkExecutionError: If a chunk raises. The original exception is
            chained and kept on the error. Figures captured so far are
            closed first.
    """
    ns = default_namespace(config) if namespace is None else namespace
    rendered = []
    for i, slide in enumerate(deck.slides):
        if progress is not None:
            progress(i, slide.title)
        outputs = []
        for j, chunk in enumerate(slide.chunks):
            if not chunk.eval:
                outputs.append(None)
                continue
            try:
                outputs.append(run_chunk(chunk, ns))
            except Exception as e:
                close_figures(rendered)
                close_figures([RenderedSlide(slide=slide, outputs=tuple(outputs))])
                raise ChunkExecutionError(
                    f"slide {i} ({slide.title!r}), chunk {j}: "
                    f"{type(e).__name__}: {e}",
                    slide_index=i,
                    slide_title=slide.title,
                    chunk_index=j,
                    code=chunk.code,
                    original=e,
                ) from e
        rendered.append(RenderedSlide(slide=slide, outputs=tuple(outputs)))
    return rendered


def run_chunk(chunk: Chunk, namespace: dict[str, Any]) -> ChunkOutput:
    """Execute one chunk in namespace and capture what it produced.

    Figures opened by a chunk that raises are closed before the error
    propagates.
    """
    tree = ast.parse(chunk.code, mode='exec')
    trailing = None
    if tree.body and isinstance(tree.body[-1], ast.Expr):
        trailing = ast.Expression(tree.body.pop().value)

    before = set(plt.get_fignums())
    buffer = io.StringIO()
    value = None
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            with contextlib.redirect_stdout(buffer):
                exec(compile(tree, f'<chunk {chunk.label or ""}>', 'exec'), namespace)
                if trailing is not None:
                    value = eval(compile(trailing, f'<chunk {chunk.label or ""}>', 'eval'), namespace)
    except BaseException:
        for num in plt.get_fignums():
            if num not in before:
                plt.close(num)
        raise

    text = buffer.getvalue()
    for message in dict.fromkeys(str(w.message) for w in caught):
        text += f"Warning: {message}\n"

    figures = tuple(
        plt.figure(num) for num in plt.get_fignums() if num not in before
    )
    value_repr = None
    if value is not None and not isinstance(value, Figure):
        value_repr = repr(value)
    return ChunkOutput(text=text, figures=figures, value_repr=value_repr)


def close_figures(rendered: list[RenderedSlide]) -> None:
    """Close every figure captured in rendered slides."""
    for slide in rendered:
        for output in slide.outputs:
            if output is not None:
                for fig in output.figures:
                    plt.close(fig)
