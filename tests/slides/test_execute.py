"""Tests for chunk execution."""

import matplotlib.pyplot as plt
import pytest

from lmmdeck.core.config import DeckConfig
from lmmdeck.core.exceptions import ChunkExecutionError
from lmmdeck.models import lmer
from lmmdeck.slides import Chunk, Deck, Slide, build_deck, execute_deck, run_chunk
from lmmdeck.slides.execute import default_namespace


class TestRunChunk:

    def test_captures_stdout(self):
        out = run_chunk(Chunk("print('hello')"), {})
        assert out.text == "hello\n"
        assert out.value_repr is None

    def test_trailing_expression(self):
        ns = {}
        out = run_chunk(Chunk("x = 20\nx + 1"), ns)
        assert out.value_repr == "21"
        assert ns['x'] == 20

    def test_none_value_not_shown(self):
        out = run_chunk(Chunk("print('a')"), {})
        assert out.value_repr is None

    def test_captures_new_figures(self):
        ns = {'plt': plt}
        out = run_chunk(Chunk("fig, ax = plt.subplots()\nax.plot([1, 2])\nfig"), ns)
        assert len(out.figures) == 1
        assert out.value_repr is None

    def test_existing_figures_not_captured(self):
        plt.figure()
        out = run_chunk(Chunk("y = 1"), {})
        assert out.figures == ()

    def test_warnings_in_output(self):
        out = run_chunk(Chunk("import warnings\nwarnings.warn('careful')"), {})
        assert "Warning: careful" in out.text


class TestExecuteDeck:

    def _deck(self, *chunks):
        return Deck(title="t", slides=(Slide(title="s0", chunks=chunks),))

    def test_shared_namespace(self):
        deck = Deck(title="t", slides=(
            Slide(title="a", chunks=(Chunk("value = 41"),)),
            Slide(title="b", chunks=(Chunk("value + 1"),)),
        ))
        rendered = execute_deck(deck, namespace={})
        assert rendered[1].outputs[0].value_repr == "42"

    def test_eval_false_not_run(self):
        rendered = execute_deck(self._deck(Chunk("1 / 0", eval=False)), namespace={})
        assert rendered[0].outputs == (None,)

    def test_error_wrapped(self):
        deck = Deck(title="t", slides=(
            Slide(title="ok", chunks=(Chunk("a = 1"),)),
            Slide(title="broken", chunks=(Chunk("a = 1"), Chunk("undefined_name"))),
        ))
        with pytest.raises(ChunkExecutionError) as exc:
            execute_deck(deck, namespace={})
        err = exc.value
        assert err.slide_index == 1
        assert err.slide_title == "broken"
        assert err.chunk_index == 1
        assert isinstance(err.original, NameError)
        assert err.__cause__ is err.original

    def test_progress_callback(self):
        seen = []
        execute_deck(self._deck(Chunk("1")), namespace={}, progress=lambda i, t: seen.append((i, t)))
        assert seen == [(0, "s0")]

    def test_default_namespace(self):
        ns = default_namespace()
        for name in ('lm', 'lmer', 'anova', 'sleepstudy', 'plot_by_subject', 'np', 'pd'):
            assert name in ns
        assert ns['sleepstudy'].shape == (180, 3)

    def test_namespace_lmer_follows_config(self):
        ns = default_namespace(DeckConfig(optimizer='nm', singular_tol=0.01))
        assert ns['lmer'].func is lmer
        assert ns['lmer'].keywords == {'optimizer': 'nm', 'singular_tol': 0.01}
        assert default_namespace()['lmer'] is lmer

    def test_config_used_by_chunks(self):
        deck = self._deck(Chunk(
            "lmer('Reaction ~ Days + (1 | Subject)', sleepstudy).info['optimizer']"
        ))
        rendered = execute_deck(deck, config=DeckConfig(optimizer='powell'))
        assert rendered[0].outputs[0].value_repr == "'powell'"

    def test_failure_closes_captured_figures(self):
        before = set(plt.get_fignums())
        deck = Deck(title="t", slides=(
            Slide(title="a", chunks=(Chunk("plt.figure()"),)),
            Slide(title="b", chunks=(Chunk("plt.figure()"), Chunk("plt.figure()\nundefined_name"))),
        ))
        with pytest.raises(ChunkExecutionError):
            execute_deck(deck, namespace={'plt': plt})
        assert set(plt.get_fignums()) == before


class TestFullDeck:
    """The whole deck runs top to bottom."""

    @pytest.fixture(scope='class')
    def rendered(self):
        deck = build_deck()
        rendered = execute_deck(deck)
        yield deck, rendered
        plt.close('all')

    def test_every_slide_rendered(self, rendered):
        deck, slides = rendered
        assert len(slides) == len(deck)
        for slide in slides:
            assert len(slide.outputs) == len(slide.slide.chunks)

    def test_pooled_summary_printed(self, rendered):
        _, slides = rendered
        pooled = next(s for s in slides if s.slide.title == "Pooled linear regression")
        assert "Residual standard error" in pooled.outputs[0].text
        assert len(pooled.outputs[1].figures) == 1

    def test_anova_refit_warning_shown(self, rendered):
        _, slides = rendered
        lrt = next(s for s in slides if s.slide.title == "Likelihood-ratio tests")
        assert "refitting model(s) with ML" in lrt.outputs[0].text
        assert "Pr(>Chisq)" in lrt.outputs[0].text

    def test_singular_slide_reports_boundary_fit(self, rendered):
        _, slides = rendered
        singular = next(s for s in slides if s.slide.title == "Singular fits and convergence")
        assert "boundary (singular) fit" in singular.outputs[0].text
