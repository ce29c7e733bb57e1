"""
Command-line interface.

    lmmdeck render [-o DIR] [-f md|html ...] [--dpi N] [--verbose]
    lmmdeck list
    lmmdeck fit FORMULA [--ml]
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from lmmdeck import __version__
from lmmdeck.core.config import SUPPORTED_FORMATS, DeckConfig
from lmmdeck.core.exceptions import LMMDeckError
from lmmdeck.datasets import load_sleepstudy
from lmmdeck.models import lm, lmer, parse_formula
from lmmdeck.slides import build_deck, render_deck


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='lmmdeck',
        description='Execute and render the linear mixed-effects models deck',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    sub = parser.add_subparsers(dest='command', required=True)

    render = sub.add_parser('render', help='Execute the deck and write it out')
    render.add_argument(
        '--output-dir', '-o',
        help='Output directory (default: $LMMDECK_OUTPUT_DIR or ./build)',
    )
    render.add_argument(
        '--format', '-f',
        dest='formats',
        action='append',
        choices=sorted(SUPPORTED_FORMATS),
        help='Output format; repeat for several (default: md)',
    )
    render.add_argument('--dpi', type=int, help='Figure resolution')
    render.add_argument('--title', help='Deck title override')
    render.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Report progress per slide on stderr',
    )

    sub.add_parser('list', help='List the slides')

    fit = sub.add_parser('fit', help='Fit a model to sleepstudy and print its summary')
    fit.add_argument('formula', help="e.g. 'Reaction ~ Days + (Days | Subject)'")
    fit.add_argument('--ml', action='store_true', help='Fit by ML instead of REML')
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == 'render':
            return _render(args)
        if args.command == 'list':
            return _list()
        return _fit(args)
    except LMMDeckError as e:
        print(f"lmmdeck: error: {e}", file=sys.stderr)
        return 1


def _render(args: argparse.Namespace) -> int:
    config = DeckConfig.from_env(
        output_dir=args.output_dir,
        formats=tuple(args.formats) if args.formats else None,
        figure_dpi=args.dpi,
        title=args.title,
    )
    progress = None
    if args.verbose:
        def progress(index: int, title: str) -> None:
            print(f"[{index:2d}] {title}", file=sys.stderr)

    written = render_deck(config, progress=progress)
    for fmt, path in written.items():
        print(f"{fmt}: {path}")
    return 0


def _list() -> int:
    for i, title in enumerate(build_deck().titles()):
        print(f"{i:2d}  {title}")
    return 0


def _fit(args: argparse.Namespace) -> int:
    data = load_sleepstudy()
    if parse_formula(args.formula).is_mixed:
        model = lmer(args.formula, data, reml=not args.ml)
    else:
        model = lm(args.formula, data)
    print(model.summary())
    return 0


if __name__ == '__main__':
    sys.exit(main())
