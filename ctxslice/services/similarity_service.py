"""Rank top-level blocks by token similarity to the code being edited."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..buffer import Position
from ..config import DEFAULT_TEST_PATTERN, TestCallPattern
from ..utils import OffsetRange, ranges_overlap
from .collector_service import TEST_BLOCK, BlockRange, collect_top_level_blocks
from .source_view import SourceView
from .syntax_service import (
    NodeKind,
    is_declaration,
    is_function_like,
    iter_ancestors,
    kind_of,
    node_text,
    strip_quotes,
    title_of_test,
    unwrap_export,
    walk_named,
)
from .token_service import cut_tokenize, dedupe_tokens, jaccard, split_camel_snake

SAMPLED_IDENTIFIERS = 20


@dataclass(frozen=True, slots=True)
class SimilarBlock:
    block: BlockRange
    score: float

    @property
    def start_offset(self) -> int:
        return self.block.start_offset

    @property
    def end_offset(self) -> int:
        return self.block.end_offset

    def as_dict(self) -> dict[str, object]:
        return {
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "kind": self.block.kind,
            "score": round(self.score, 4),
        }


@dataclass(frozen=True, slots=True)
class EditTokens:
    """Tokens describing the current edit and the range they were taken from."""

    tokens: list[str]
    span: OffsetRange


def _primary_name(view: SourceView, block: BlockRange) -> str:
    target = unwrap_export(block.node)
    if target.type in ("function_declaration", "generator_function_declaration"):
        name = target.child_by_field_name("name")
        return view.text_of(name) if name is not None else ""
    if is_declaration(target):
        for current in walk_named(target):
            if current.type == "identifier":
                return view.text_of(current)
    return ""


def _sample_body_words(view: SourceView, block: BlockRange) -> list[str]:
    words: list[str] = []
    seen = 0
    for current in walk_named(block.node):
        if seen >= SAMPLED_IDENTIFIERS:
            break
        if current.type == "identifier":
            text = view.text_of(current)
            if text:
                words.append(text)
                seen += 1
        elif kind_of(current) is NodeKind.STRING:
            words.extend(split_camel_snake(strip_quotes(node_text(current, view.source))))
    return words


def tokens_for_block(
    view: SourceView, block: BlockRange, pattern: TestCallPattern = DEFAULT_TEST_PATTERN
) -> list[str]:
    """Name, leading comment, sampled body words and test title of a top-level block."""

    comment = view.leading_comment_text_at(block.node.start_point.row + 1)
    tokens = [
        *cut_tokenize(_primary_name(view, block)),
        *cut_tokenize(comment),
        *cut_tokenize(" ".join(_sample_body_words(view, block))),
    ]
    if block.kind == TEST_BLOCK:
        tokens.extend(cut_tokenize(title_of_test(block.node, view.source, pattern)))
    return dedupe_tokens(tokens)


def tokens_for_current_edit(view: SourceView, position: Position) -> EditTokens:
    """Tokens of the enclosing function (with comment), else of the cursor line."""

    if view.root is None:
        return EditTokens([], OffsetRange(0, 0))

    function = next(
        (node for node in iter_ancestors(view.node_at(position)) if is_function_like(node)),
        None,
    )
    if function is not None:
        span = view.expand_with_leading_comments(function)
        comment = view.leading_comment_text_at(function.start_point.row + 1)
        body = view.text_for(span)
        return EditTokens(cut_tokenize(f"{comment} \n {body}"), span)

    line = view.clamp_line(position.line_number)
    comment = view.leading_comment_text_at(line)
    span = view.lines_range(line, line)
    return EditTokens(cut_tokenize(f"{comment} \n {view.line_content(line)}"), span)


def rank_similar_blocks(
    view: SourceView,
    position: Position,
    pattern: TestCallPattern = DEFAULT_TEST_PATTERN,
    blocks: Sequence[BlockRange] | None = None,
) -> tuple[list[SimilarBlock], EditTokens]:
    """Score every top-level block outside the current edit by Jaccard similarity.

    Results are best first; ties go to the block closer to the cursor line.
    """

    edit = tokens_for_current_edit(view, position)
    query = set(edit.tokens)
    candidates = collect_top_level_blocks(view, pattern) if blocks is None else blocks
    scored = [
        SimilarBlock(block, jaccard(query, set(tokens_for_block(view, block, pattern))))
        for block in candidates
        if not ranges_overlap(block, edit.span)
    ]
    cursor_line = position.line_number
    scored.sort(
        key=lambda item: (
            -item.score,
            abs(view.line_at_offset(item.start_offset) - cursor_line),
        )
    )
    return scored, edit
