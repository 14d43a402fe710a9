"""Multi-signal scoring of candidate blocks against the cursor context."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import numpy as np

from ..buffer import Position
from ..config import DEFAULT_TEST_PATTERN, TestCallPattern
from ..utils import HasOffsets, clamp01
from .collector_service import (
    FUNCTION_DECLARATION,
    LEXICAL_DECLARATION,
    TEST_BLOCK,
    VARIABLE_DECLARATION,
    BlockRange,
)
from .source_view import SourceView
from .syntax_service import (
    declared_names,
    free_identifiers,
    is_definition_site,
    nearest_function,
    node_text,
    title_of_test,
    wrap_function_if_argument,
)
from .token_service import cut_tokenize, tokenize

if TYPE_CHECKING:
    from tree_sitter import Node

LEXICAL_HORIZON_LINES = 200
TITLE_FREE_IDENTIFIERS = 5

# lexical, reference, kind, complexity, title
SIGNAL_WEIGHTS = np.array([0.30, 0.35, 0.20, -0.05, 0.20])

# Top-level declarations are collected with the generic "declaration" kind,
# so Tier B scores with DEFAULT_KIND_PRIOR. The lexical and var priors only
# apply to candidates that keep their node kind.
KIND_PRIORS: dict[str, float] = {
    FUNCTION_DECLARATION: 1.0,
    LEXICAL_DECLARATION: 0.9,
    VARIABLE_DECLARATION: 0.8,
    TEST_BLOCK: 0.7,
}
DEFAULT_KIND_PRIOR = 0.6
UNSET_KIND_PRIOR = 0.5


@dataclass(frozen=True, slots=True)
class Signals:
    lexical: float
    reference: float
    kind: float
    complexity: float
    title: float

    def as_dict(self) -> dict[str, float]:
        return {
            "lexical": self.lexical,
            "reference": self.reference,
            "kind": self.kind,
            "complexity": self.complexity,
            "title": self.title,
        }


@dataclass(frozen=True, slots=True)
class RankedBlock:
    block: BlockRange
    size_chars: int
    signals: Signals
    score: float

    @property
    def start_offset(self) -> int:
        return self.block.start_offset

    @property
    def end_offset(self) -> int:
        return self.block.end_offset

    @property
    def node(self) -> "Node":
        return self.block.node

    @property
    def kind(self) -> str:
        return self.block.kind

    def as_dict(self) -> dict[str, object]:
        return {
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "kind": self.kind,
            "size_chars": self.size_chars,
            "signals": self.signals.as_dict(),
            "score": self.score,
        }


def kind_prior(kind: str | None) -> float:
    if not kind:
        return UNSET_KIND_PRIOR
    return KIND_PRIORS.get(kind, DEFAULT_KIND_PRIOR)


def identifiers_in_lines(view: SourceView, span: HasOffsets) -> set[str]:
    """Identifiers read or called on the lines of *span*, definition sites excluded."""

    root = view.root
    if root is None:
        return set()
    start_line, end_line = view.span_lines(span)
    first_row, last_row = start_line - 1, end_line - 1
    names: set[str] = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if node.end_point.row < first_row or node.start_point.row > last_row:
            continue
        if node.type == "identifier" and not is_definition_site(node):
            text = node_text(node, view.source)
            if text:
                names.add(text)
        stack.extend(node.named_children)
    return names


def _title_name_candidates(
    block: BlockRange, source: bytes, pattern: TestCallPattern
) -> list[str]:
    names: list[str]
    if block.kind == TEST_BLOCK:
        names = cut_tokenize(title_of_test(block.node, source, pattern))
    else:
        names = declared_names(block.node, source)
    names.extend(free_identifiers(block.node, source)[:TITLE_FREE_IDENTIFIERS])
    return [name.lower() for name in names]


def title_overlap(names: Sequence[str], title_tokens: Sequence[str]) -> float:
    if not title_tokens:
        return 0.0
    matched = sum(1 for token in title_tokens if any(token in name for name in names))
    return clamp01(matched / max(1, len(title_tokens)))


def score_candidates(
    view: SourceView,
    candidates: Sequence[BlockRange],
    tier_a: HasOffsets,
    cursor_line: int,
    tier_budget: int,
    title_tokens: Sequence[str] = (),
    pattern: TestCallPattern = DEFAULT_TEST_PATTERN,
) -> list[RankedBlock]:
    """Score *candidates* and return them best first, smaller first on ties."""

    if not candidates:
        return []
    used = identifiers_in_lines(view, tier_a)
    rows: list[list[float]] = []
    for block in candidates:
        size = block.size
        start_line = view.line_at_offset(block.start_offset)
        lexical = clamp01(1 - abs(start_line - cursor_line) / LEXICAL_HORIZON_LINES)
        matches = sum(1 for name in declared_names(block.node, view.source) if name in used)
        reference = clamp01(1 - math.exp(-matches))
        complexity = clamp01(size / max(1, tier_budget))
        title = title_overlap(_title_name_candidates(block, view.source, pattern), title_tokens)
        rows.append([lexical, reference, kind_prior(block.kind), complexity, title])

    scores = np.asarray(rows, dtype=float) @ SIGNAL_WEIGHTS
    ranked = [
        RankedBlock(
            block=block,
            size_chars=block.size,
            signals=Signals(*row),
            score=float(score),
        )
        for block, row, score in zip(candidates, rows, scores)
    ]
    ranked.sort(key=lambda item: (-item.score, item.size_chars))
    return ranked


def enclosing_test_call(
    view: SourceView, position: Position, pattern: TestCallPattern = DEFAULT_TEST_PATTERN
) -> "Node | None":
    function = nearest_function(view.node_at(position))
    if function is None:
        return None
    call = wrap_function_if_argument(function)
    return call if title_of_test(call, view.source, pattern) is not None else None


def build_title_tokens(
    view: SourceView, position: Position, pattern: TestCallPattern = DEFAULT_TEST_PATTERN
) -> list[str]:
    """Lowercase words of the enclosing test's title, if the cursor is in one."""

    call = enclosing_test_call(view, position, pattern)
    if call is None:
        return []
    return tokenize(title_of_test(call, view.source, pattern))


def build_query_tokens(
    view: SourceView, position: Position, pattern: TestCallPattern = DEFAULT_TEST_PATTERN
) -> list[str]:
    """Tokens of the cursor line, its leading comment and the enclosing test title."""

    line = view.clamp_line(position.line_number)
    call = enclosing_test_call(view, position, pattern)
    title = title_of_test(call, view.source, pattern) if call is not None else ""
    return [
        *cut_tokenize(view.line_content(line)),
        *cut_tokenize(view.leading_comment_text_at(line)),
        *cut_tokenize(title),
    ]
