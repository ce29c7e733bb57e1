"""
Render an executed deck to Markdown or HTML.

Both formats share one layout per slide: title, body, display formula
as $$...$$, then each chunk's code (when echo is set), its text output
and its figures. Figures are written to a directory and referenced by
relative path.
"""

from __future__ import annotations

import html
import re
from pathlib import Path
from typing import Sequence

from jinja2 import Environment, FileSystemLoader

from lmmdeck.core.config import DeckConfig
from lmmdeck.core.exceptions import RenderError, ValidationError
from lmmdeck.plots import save_figure
from lmmdeck.slides.content import build_deck
from lmmdeck.slides.deck import ChunkOutput, Deck, RenderedSlide
from lmmdeck.slides.execute import ProgressCallback, close_figures, execute_deck

_TEMPLATE_DIR = Path(__file__).parent / "templates"

OUTPUT_NAMES = {'md': 'deck.md', 'html': 'deck.html'}

_LIST_ITEM = re.compile(r'^\s*(-|\d+\.)\s+')

_CSS = """
body { font-family: Georgia, serif; max-width: 960px; margin: 0 auto;
       padding: 24px; color: #222; line-height: 1.55; }
header { border-bottom: 2px solid #2166ac; margin-bottom: 32px; }
section.slide { border-bottom: 1px solid #ddd; padding: 24px 0; }
h2 { color: #2166ac; }
pre { padding: 10px; overflow-x: auto; font-size: 13px; }
pre.code { background: #f4f6f8; border-left: 3px solid #2166ac; }
pre.output { background: #fafafa; border-left: 3px solid #aaa; }
figure img { max-width: 100%; }
aside.notes { color: #666; font-style: italic; }
.formula { margin: 16px 0; }
"""


def save_slide_figures(
    rendered: Sequence[RenderedSlide],
    figure_dir: str | Path,
    *,
    figure_format: str = 'png',
    dpi: int = 120,
) -> list[list[list[Path]]]:
    """Write every captured figure; returns paths by slide, chunk, figure.

    Files are named slide<NN>-<chunk label>-<k>.<format>; chunks without
    a label use chunk<index>.
    """
    figure_dir = Path(figure_dir)
    paths = []
    for i, slide in enumerate(rendered):
        slide_paths = []
        for j, (chunk, output) in enumerate(zip(slide.slide.chunks, slide.outputs)):
            chunk_paths = []
            if output is not None:
                stem = chunk.label or f'chunk{j}'
                for k, fig in enumerate(output.figures):
                    path = figure_dir / f"slide{i:02d}-{stem}-{k}.{figure_format}"
                    chunk_paths.append(save_figure(fig, path, dpi=dpi))
            slide_paths.append(chunk_paths)
        paths.append(slide_paths)
    return paths


def render_markdown(
    rendered: Sequence[RenderedSlide],
    deck: Deck,
    figure_dir: str | Path,
    *,
    relative_to: str | Path | None = None,
    figure_format: str = 'png',
    dpi: int = 120,
    figure_paths: list[list[list[Path]]] | None = None,
) -> str:
    """Render the executed deck as Markdown, slides separated by '---'.

    Args:
        rendered: Output of execute_deck().
        deck: The deck, for its title and metadata.
        figure_dir: Where figure files are written.
        relative_to: Directory figure links are relative to; default the
            parent of figure_dir.
        figure_paths: Output of save_slide_figures() when the figures
            are already written; otherwise they are saved here.
    """
    figure_dir = Path(figure_dir)
    base = Path(relative_to) if relative_to is not None else figure_dir.parent
    figures = figure_paths
    if figures is None:
        figures = save_slide_figures(rendered, figure_dir, figure_format=figure_format, dpi=dpi)

    out = [f"# {deck.title}", ""]
    if deck.author or deck.date:
        out.extend([" · ".join(x for x in (deck.author, deck.date) if x), ""])

    for slide_out, slide_figs in zip(rendered, figures):
        slide = slide_out.slide
        out.extend(["---", "", f"## {slide.title}", ""])
        if slide.body:
            out.extend([slide.body, ""])
        if slide.formula:
            out.extend(["$$", slide.formula, "$$", ""])
        for chunk, output, paths in zip(slide.chunks, slide_out.outputs, slide_figs):
            if chunk.echo:
                out.extend(["```python", chunk.code.rstrip(), "```", ""])
            text = _output_text(output)
            if text:
                out.extend(["```", text.rstrip(), "```", ""])
            for path in paths:
                out.extend([f"![{slide.title}]({_relative(path, base)})", ""])
        if slide.notes:
            out.extend([f"> {slide.notes}", ""])
    return "\n".join(out)


def render_html(
    rendered: Sequence[RenderedSlide],
    deck: Deck,
    figure_dir: str | Path,
    *,
    relative_to: str | Path | None = None,
    figure_format: str = 'png',
    dpi: int = 120,
    figure_paths: list[list[list[Path]]] | None = None,
) -> str:
    """Render the executed deck as a standalone HTML page.

    Formulas are left as $$...$$ for MathJax. Arguments as for
    render_markdown().
    """
    figure_dir = Path(figure_dir)
    base = Path(relative_to) if relative_to is not None else figure_dir.parent
    figures = figure_paths
    if figures is None:
        figures = save_slide_figures(rendered, figure_dir, figure_format=figure_format, dpi=dpi)

    slides = []
    for slide_out, slide_figs in zip(rendered, figures):
        slide = slide_out.slide
        chunks = []
        for chunk, output, paths in zip(slide.chunks, slide_out.outputs, slide_figs):
            chunks.append({
                'code': chunk.code.rstrip() if chunk.echo else '',
                'text': _output_text(output).rstrip(),
                'figures': [_relative(p, base) for p in paths],
            })
        slides.append({
            'title': slide.title,
            'body_html': markdown_to_html(slide.body),
            'formula': slide.formula,
            'chunks': chunks,
            'notes': slide.notes,
        })

    env = Environment(loader=FileSystemLoader(str(_TEMPLATE_DIR)), autoescape=False)
    template = env.get_template("deck.html.j2")
    return template.render(deck=deck, slides=slides, css=_CSS)


def render_deck(
    config: DeckConfig,
    *,
    deck: Deck | None = None,
    progress: ProgressCallback | None = None,
) -> dict[str, Path]:
    """Execute the deck and write every configured format.

    Chunks fit with the config's optimizer and singular_tol. Figures are
    written once and shared by all formats, then closed.

    Returns:
        Mapping format → path of the written file.

    Raises:
        ChunkExecutionError: If a chunk fails.
        RenderError: If an output file cannot be written.
    """
    if not isinstance(config, DeckConfig):
        raise ValidationError(f"config: expected DeckConfig, got {type(config).__name__}")
    deck = deck if deck is not None else build_deck(config.title)

    renderers = {'md': render_markdown, 'html': render_html}
    rendered = execute_deck(deck, config=config, progress=progress)
    written = {}
    try:
        figure_paths = save_slide_figures(
            rendered, config.figure_dir,
            figure_format=config.figure_format, dpi=config.figure_dpi,
        )
        for fmt in config.formats:
            text = renderers[fmt](
                rendered, deck, config.figure_dir,
                relative_to=config.output_dir,
                figure_paths=figure_paths,
            )
            path = config.output_dir / OUTPUT_NAMES[fmt]
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(text, encoding='utf-8')
            except OSError as e:
                raise RenderError(
                    f"cannot write {fmt} output to {path}: {e}", path=str(path), format=fmt,
                ) from e
            written[fmt] = path
    finally:
        close_figures(rendered)
    return written


def markdown_to_html(text: str) -> str:
    """Convert the small Markdown subset used in slide bodies.

    Paragraphs, '-' and '1.' lists, **bold**, *italic* and `code`.
    """
    blocks = []
    for block in re.split(r'\n\s*\n', text.strip()):
        if not block:
            continue
        lines = block.splitlines()
        if all(_LIST_ITEM.match(line) for line in lines):
            tag = 'ul' if _LIST_ITEM.match(lines[0]).group(1) == '-' else 'ol'
            items = ''.join(
                f"<li>{_inline(_LIST_ITEM.sub('', line))}</li>" for line in lines
            )
            blocks.append(f"<{tag}>{items}</{tag}>")
        else:
            blocks.append(f"<p>{_inline(' '.join(lines))}</p>")
    return '\n'.join(blocks)


def _inline(text: str) -> str:
    text = html.escape(text, quote=False)
    text = re.sub(r'`([^`]+)`', r'<code>\1</code>', text)
    text = re.sub(r'\*\*([^*]+)\*\*', r'<strong>\1</strong>', text)
    text = re.sub(r'\*([^*]+)\*', r'<em>\1</em>', text)
    return text


def _output_text(output: ChunkOutput | None) -> str:
    if output is None:
        return ''
    text = output.text
    if output.value_repr is not None:
        if text and not text.endswith('\n'):
            text += '\n'
        text += output.value_repr
    return text


def _relative(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()
