"""
The deck: slide content, chunk execution and rendering.

Public API:
    build_deck()    — the sleepstudy deck
    execute_deck()  — run every chunk top to bottom
    render_markdown(), render_html() — format an executed deck
    render_deck()   — execute and write all formats of a DeckConfig
"""

from lmmdeck.slides.deck import Chunk, ChunkOutput, Deck, RenderedSlide, Slide
from lmmdeck.slides.content import build_deck
from lmmdeck.slides.execute import default_namespace, execute_deck, run_chunk
from lmmdeck.slides.render import (
    markdown_to_html,
    render_deck,
    render_html,
    render_markdown,
    save_slide_figures,
)

__all__ = [
    "Chunk",
    "ChunkOutput",
    "Deck",
    "RenderedSlide",
    "Slide",
    "build_deck",
    "default_namespace",
    "execute_deck",
    "run_chunk",
    "markdown_to_html",
    "render_deck",
    "render_html",
    "render_markdown",
    "save_slide_figures",
]
