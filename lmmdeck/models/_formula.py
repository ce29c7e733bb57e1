"""
lme4 formula notation for the deck's models.

The slides write models the way lme4 does:

    Reaction ~ Days + (Days | Subject)       correlated intercept and slope
    Reaction ~ Days + (1 | Subject)          random intercept
    Reaction ~ Days + (Days || Subject)      uncorrelated intercept and slope
    Reaction ~ Days + (1 | Subject) + (0 + Days | Subject)   same as above

statsmodels' MixedLM takes a fixed-effects formula plus separate
``re_formula`` (one correlated block of random effects) and ``vc_formula``
(independent variance components) arguments. This module parses the
lme4 form and produces those arguments.

Restrictions, all reported as FormulaError:
    - one grouping factor per model (no crossed or nested factors)
    - at most one correlated block; further blocks for the same group
      must be single slopes without an intercept, e.g. (0 + Days | Subject)
    - random-effect variables must be plain column names
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from lmmdeck.core.exceptions import FormulaError

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_.]*$')
_NAME_TOKEN = re.compile(r'[A-Za-z_][A-Za-z0-9_.]*')
_INTERCEPT_ON = {"1"}
_INTERCEPT_OFF = {"0", "-1"}

INTERCEPT_NAME = '(Intercept)'


@dataclass(frozen=True)
class RandomTerm:
    """One block of correlated random effects for a grouping factor.

    Attributes:
        group: Grouping factor (column name).
        terms: Random slope variables, excluding the intercept.
        intercept: Whether the block has a random intercept.
    """
    group: str
    terms: tuple[str, ...]
    intercept: bool

    @property
    def names(self) -> tuple[str, ...]:
        """Term names as displayed in summaries."""
        head = (INTERCEPT_NAME,) if self.intercept else ()
        return head + self.terms

    def to_lme4(self) -> str:
        parts = ['1'] if self.intercept else ['0']
        parts.extend(self.terms)
        if self.intercept and self.terms:
            parts = parts[1:]
        return f"({' + '.join(parts)} | {self.group})"


@dataclass(frozen=True)
class ParsedFormula:
    """A parsed lme4-style model formula.

    Attributes:
        formula: The original formula string.
        response: Response variable name.
        fixed_terms: Right-hand side fixed-effect terms, verbatim.
        random: Random-effect blocks; the first holds the intercept if any.
    """
    formula: str
    response: str
    fixed_terms: tuple[str, ...]
    random: tuple[RandomTerm, ...]

    @property
    def is_mixed(self) -> bool:
        return bool(self.random)

    @property
    def fixed_formula(self) -> str:
        """Fixed-effects part in patsy syntax, e.g. 'Reaction ~ Days'."""
        rhs = ' + '.join(self.fixed_terms) if self.fixed_terms else '1'
        return f"{self.response} ~ {rhs}"

    @property
    def group(self) -> str | None:
        return self.random[0].group if self.random else None

    @property
    def re_formula(self) -> str | None:
        """statsmodels re_formula for the correlated block."""
        if not self.random:
            return None
        block = self.random[0]
        if block.intercept and not block.terms:
            return '1'
        head = '1' if block.intercept else '0'
        return ' + '.join((head,) + block.terms)

    @property
    def vc_formula(self) -> dict[str, str] | None:
        """statsmodels vc_formula for independent slope components."""
        if len(self.random) < 2:
            return None
        return {block.terms[0]: f"0 + {block.terms[0]}" for block in self.random[1:]}

    @property
    def random_names(self) -> tuple[str, ...]:
        """All random term names: the correlated block, then components."""
        names: list[str] = []
        for block in self.random:
            names.extend(block.names)
        return tuple(names)

    @property
    def variables(self) -> tuple[str, ...]:
        """Every column name the formula refers to, response first."""
        seen: dict[str, None] = {self.response: None}
        for term in self.fixed_terms:
            for name in _term_variables(term):
                seen.setdefault(name, None)
        for block in self.random:
            for name in block.terms:
                seen.setdefault(name, None)
            seen.setdefault(block.group, None)
        return tuple(seen)

    def __str__(self) -> str:
        rhs = list(self.fixed_terms) or ['1']
        rhs.extend(block.to_lme4() for block in self.random)
        return f"{self.response} ~ {' + '.join(rhs)}"


def parse_formula(formula: str) -> ParsedFormula:
    """Parse an lme4-style formula.

    Args:
        formula: e.g. 'Reaction ~ Days + (Days | Subject)'.

    Returns:
        ParsedFormula with the fixed part and normalised random blocks.
        A double-bar term (x || g) is expanded into one block per term,
        as lme4 does.

    Raises:
        FormulaError: If the formula is malformed or uses an unsupported
            random-effects structure.
    """
    if not isinstance(formula, str) or not formula.strip():
        raise FormulaError("formula: expected a non-empty string", formula=formula)

    if formula.count('~') != 1:
        raise FormulaError(
            f"formula: expected exactly one '~', got {formula.count('~')} in {formula!r}",
            formula=formula,
        )
    lhs, rhs = formula.split('~')
    response = lhs.strip()
    if not response:
        raise FormulaError(f"formula: missing response in {formula!r}", formula=formula)
    if not _IDENTIFIER.match(response):
        raise FormulaError(
            f"formula: response must be a column name, got {response!r}",
            formula=formula,
        )

    fixed_terms: list[str] = []
    blocks: list[RandomTerm] = []
    for term in _split_top_level(rhs, formula):
        if term.startswith('(') and term.endswith(')') and '|' in term:
            blocks.extend(_parse_random(term[1:-1], formula))
        elif '|' in term:
            raise FormulaError(
                f"formula: random term {term!r} must be enclosed in parentheses",
                formula=formula,
            )
        else:
            fixed_terms.append(term)

    random = _normalise_blocks(blocks, formula)
    return ParsedFormula(
        formula=formula,
        response=response,
        fixed_terms=tuple(fixed_terms),
        random=random,
    )


def _split_top_level(rhs: str, formula: str) -> list[str]:
    """Split on '+' outside parentheses; a leading '-' stays with its term."""
    terms: list[str] = []
    depth = 0
    current: list[str] = []
    offset = formula.index('~') + 1

    for i, ch in enumerate(rhs):
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth < 0:
                raise FormulaError(
                    f"formula: unbalanced ')' at position {offset + i}",
                    formula=formula,
                    position=offset + i,
                )
        if ch == '+' and depth == 0:
            terms.append(''.join(current).strip())
            current = []
        else:
            current.append(ch)

    if depth != 0:
        raise FormulaError("formula: unbalanced '('", formula=formula)
    terms.append(''.join(current).strip())

    if any(not t for t in terms):
        raise FormulaError(f"formula: empty term in {formula!r}", formula=formula)
    return terms


def _parse_random(inner: str, formula: str) -> list[RandomTerm]:
    """Parse the inside of '( ... | group)' into one or more blocks."""
    if '||' in inner:
        lhs, group = inner.split('||', 1)
        correlated = False
    else:
        lhs, group = inner.split('|', 1)
        correlated = True

    group = group.strip()
    if not group:
        raise FormulaError(
            f"formula: random term ({inner}) has no grouping factor",
            formula=formula,
        )
    if not _IDENTIFIER.match(group):
        raise FormulaError(
            f"formula: grouping factor {group!r} is not a plain column name; "
            "nested and interaction grouping factors are not supported",
            formula=formula,
        )

    if not lhs.strip():
        raise FormulaError(
            f"formula: random term ({inner}) has no effects", formula=formula,
        )

    intercept = True
    terms: list[str] = []
    for token in _random_tokens(lhs, formula):
        if token in _INTERCEPT_ON:
            intercept = True
        elif token in _INTERCEPT_OFF:
            intercept = False
        elif _IDENTIFIER.match(token):
            terms.append(token)
        else:
            raise FormulaError(
                f"formula: random effect {token!r} must be a column name",
                formula=formula,
            )

    if not intercept and not terms:
        raise FormulaError(
            f"formula: random term ({inner}) has no effects", formula=formula,
        )

    if correlated:
        return [RandomTerm(group=group, terms=tuple(terms), intercept=intercept)]

    blocks = []
    if intercept:
        blocks.append(RandomTerm(group=group, terms=(), intercept=True))
    blocks.extend(RandomTerm(group=group, terms=(t,), intercept=False) for t in terms)
    return blocks


def _random_tokens(lhs: str, formula: str) -> list[str]:
    """Tokenise '1 + Days', '0 + Days', 'Days - 1' style left-hand sides."""
    compact = lhs.replace(' ', '')
    result = []
    for tok in re.findall(r'[+-]?[^+-]+', compact):
        if tok.startswith('+'):
            tok = tok[1:]
        elif tok.startswith('-') and tok != '-1':
            raise FormulaError(
                f"formula: cannot remove {tok[1:]!r} from a random effect",
                formula=formula,
            )
        result.append(tok)
    return result


def _normalise_blocks(blocks: list[RandomTerm], formula: str) -> tuple[RandomTerm, ...]:
    """Check the blocks fit MixedLM and put the correlated block first."""
    if not blocks:
        return ()

    groups = {b.group for b in blocks}
    if len(groups) > 1:
        raise FormulaError(
            f"formula: one grouping factor is supported, got {sorted(groups)}; "
            "crossed random effects cannot be fitted with statsmodels MixedLM",
            formula=formula,
        )

    with_intercept = [b for b in blocks if b.intercept]
    if len(with_intercept) > 1:
        raise FormulaError(
            "formula: the random intercept appears in more than one term",
            formula=formula,
        )

    # Correlated block first: the intercept block, else the widest block.
    if with_intercept:
        first = with_intercept[0]
    else:
        first = max(blocks, key=lambda b: len(b.terms))
    rest = [b for b in blocks if b is not first]

    for b in rest:
        if len(b.terms) != 1:
            raise FormulaError(
                f"formula: only one correlated block per grouping factor is supported; "
                f"{b.to_lme4()} must be a single slope such as (0 + x | {b.group})",
                formula=formula,
            )

    seen = set(first.terms)
    for b in rest:
        if b.terms[0] in seen:
            raise FormulaError(
                f"formula: random slope {b.terms[0]!r} appears in more than one term",
                formula=formula,
            )
        seen.add(b.terms[0])

    return (first, *rest)


def _term_variables(term: str) -> list[str]:
    """Column names used by a fixed-effect term, skipping function calls."""
    names = []
    for match in _NAME_TOKEN.finditer(term):
        end = match.end()
        if end < len(term) and term[end] == '(':
            continue
        names.append(match.group())
    return names
