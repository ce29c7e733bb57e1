"""
Data types for a slide deck.

A Deck is an ordered tuple of Slides; each Slide has prose, an optional
display formula and code chunks. Executing a deck produces one
RenderedSlide per slide holding the chunk outputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from lmmdeck.core.exceptions import ValidationError


@dataclass(frozen=True)
class Chunk:
    """A code chunk on a slide.

    Attributes:
        code: Python source.
        echo: Show the code in the rendered slide.
        eval: Run the code when the deck is executed.
        label: Optional identifier, used to name saved figures.
    """
    code: str
    echo: bool = True
    eval: bool = True
    label: str | None = None

    def __post_init__(self):
        if not isinstance(self.code, str) or not self.code.strip():
            raise ValidationError("code: a chunk needs non-empty source")


@dataclass(frozen=True)
class Slide:
    """One slide: title, Markdown body, display formula, code chunks."""
    title: str
    body: str = ''
    formula: str | None = None
    chunks: tuple[Chunk, ...] = ()
    notes: str = ''

    def __post_init__(self):
        if not self.title.strip():
            raise ValidationError("title: a slide needs a title")
        object.__setattr__(self, 'chunks', tuple(self.chunks))


@dataclass(frozen=True)
class Deck:
    """An ordered collection of slides."""
    title: str
    slides: tuple[Slide, ...]
    author: str = ''
    date: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'slides', tuple(self.slides))
        if not self.slides:
            raise ValidationError("slides: a deck needs at least one slide")

    def __len__(self) -> int:
        return len(self.slides)

    def titles(self) -> list[str]:
        return [s.title for s in self.slides]


@dataclass(frozen=True)
class ChunkOutput:
    """What one executed chunk produced.

    Attributes:
        text: Captured standard output.
        figures: matplotlib figures created by the chunk, in order.
        value_repr: repr() of a trailing expression's value, or None.
    """
    text: str = ''
    figures: tuple = ()
    value_repr: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.figures and self.value_repr is None


@dataclass(frozen=True)
class RenderedSlide:
    """A slide with one ChunkOutput per chunk (None where eval=False)."""
    slide: Slide
    outputs: tuple[ChunkOutput | None, ...] = field(default_factory=tuple)
