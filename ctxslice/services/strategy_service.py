"""Pick how much code around the cursor to return, based on where the cursor sits."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..buffer import Position
from ..config import DEFAULT_TEST_PATTERN, ContextOptions, TestCallPattern
from ..utils import OffsetRange, merge_ranges
from .collector_service import collect_whole_blocks_in_window
from .source_view import SourceView
from .syntax_service import (
    container_for,
    elevate_by_levels,
    has_error_in_ancestry,
    is_function_like,
    is_whole_block_candidate,
    iter_ancestors,
    nearest_enclosing_block,
    nearest_function,
    next_named_sibling,
    previous_named_sibling,
    top_level_ancestor,
    wrap_function_if_argument,
)

logger = logging.getLogger(__name__)

ENCLOSING_FUNCTION = "enclosing-function"
FALLBACK_LINES = "fallback-lines"
TOP_LEVEL_WITH_SYNTAX_SANITY = "top-level-with-syntax-sanity"
ENCLOSING_BLOCK_WITH_CONTEXT = "enclosing-block-with-context"

UNFINISHED_LOOKBEHIND = 2
UNFINISHED_LOOKAHEAD = 30

_FUNCTION_HEADER_RE = re.compile(r"\bfunction\b[^{]*$")
_ARROW_OPENER_RE = re.compile(r"=>\s*\{?\s*$")
_BARE_DECLARATION_RE = re.compile(r"^\s*(?:const|let|var)\s+[\w$]+(?:\s*:[^=]*)?\s*$")


@dataclass(frozen=True, slots=True)
class ContextResult:
    """Verbatim buffer slice ``[start_offset, end_offset)`` and the strategy used."""

    text: str
    start_offset: int
    end_offset: int
    strategy: str


def _lines_result(view: SourceView, start_line: int, end_line: int, strategy: str) -> ContextResult:
    span = view.lines_range(start_line, end_line)
    return _range_result(view, span, strategy)


def _range_result(view: SourceView, span: OffsetRange, strategy: str) -> ContextResult:
    return ContextResult(view.text_for(span), span.start_offset, span.end_offset, strategy)


def raw_lines_around(view: SourceView, line: int, before: int, after: int) -> ContextResult:
    """Contiguous full lines around *line*, no syntax involved."""

    return _lines_result(view, line - before, line + after, FALLBACK_LINES)


def _test_opener_re(pattern: TestCallPattern) -> re.Pattern[str]:
    return re.compile(
        rf"\b{re.escape(pattern.object_name)}\s*\.\s*{re.escape(pattern.method_name)}\s*\("
    )


def looks_unfinished(
    view: SourceView, line: int, pattern: TestCallPattern = DEFAULT_TEST_PATTERN
) -> bool:
    """Best-effort text check for code still being typed near *line*.

    Counts ``(``/``{`` against their closers from two lines above to thirty
    lines below, and matches the cursor line against openers that usually
    precede a body. It is not a parser and only selects a fallback.
    """

    first = max(1, line - UNFINISHED_LOOKBEHIND)
    last = min(view.line_count, line + UNFINISHED_LOOKAHEAD)
    paren = brace = 0
    for ch in view.text_for(view.lines_range(first, last)):
        if ch == "(":
            paren += 1
        elif ch == ")":
            paren = max(0, paren - 1)
        elif ch == "{":
            brace += 1
        elif ch == "}":
            brace = max(0, brace - 1)
    if paren > 0 or brace > 0:
        return True

    near = view.line_content(line)
    return bool(
        _test_opener_re(pattern).search(near)
        or _FUNCTION_HEADER_RE.search(near)
        or _ARROW_OPENER_RE.search(near)
        or _BARE_DECLARATION_RE.match(near)
    )


def hybrid_unfinished_around(
    view: SourceView, position: Position, before: int, after: int
) -> ContextResult:
    """Keep the unfinished container raw up to the cursor line, plus whole neighbours."""

    line = view.clamp_line(position.line_number)
    window_start = max(1, line - before)
    window_end = min(view.line_count, line + after)

    container = None
    for current in iter_ancestors(view.node_at(position)):
        if is_function_like(current):
            container = wrap_function_if_argument(current)
            break
        if is_whole_block_candidate(current):
            container = container_for(current)
            break
    if container is None:
        return raw_lines_around(view, line, before, after)

    start = view.expand_with_leading_comments(container).start_offset
    end = max(start, view.line_end_offset(line))
    ranges: list[OffsetRange] = [OffsetRange(start, end)]

    top = top_level_ancestor(container) or container
    for neighbour in (previous_named_sibling(top), next_named_sibling(top)):
        if neighbour is not None:
            ranges.append(view.expand_with_leading_comments(neighbour))
    for block in collect_whole_blocks_in_window(view, window_start, window_end):
        ranges.append(OffsetRange(block.start_offset, block.end_offset))

    merged = merge_ranges(ranges)
    span = OffsetRange(merged[0].start_offset, merged[-1].end_offset)
    return _range_result(view, span, FALLBACK_LINES)


def select_context(
    view: SourceView,
    position: Position,
    options: ContextOptions,
    pattern: TestCallPattern = DEFAULT_TEST_PATTERN,
) -> ContextResult:
    """Return the Tier A slice for the cursor."""

    prefix = options.prefix_lines
    suffix = options.suffix_lines
    line = position.line_number

    if view.root is None:
        logger.debug("No syntax tree; using raw lines around line %d", line)
        return raw_lines_around(view, line, prefix, suffix)
    if options.force_raw_lines_around_cursor:
        return raw_lines_around(view, line, prefix, suffix)

    node = view.node_at(position)
    if (
        node is None
        or has_error_in_ancestry(node, view.root)
        or looks_unfinished(view, line, pattern)
    ):
        logger.debug("Unfinished or unparsable code near line %d; using hybrid slice", line)
        return hybrid_unfinished_around(view, position, prefix, suffix)

    block = nearest_enclosing_block(node)
    if block is None:
        start, end = view.expand_with_syntax_sanity(line - prefix, line + suffix)
        return _lines_result(view, start, end, TOP_LEVEL_WITH_SYNTAX_SANITY)

    strategy = ENCLOSING_BLOCK_WITH_CONTEXT
    if options.safe_nesting_level > 0:
        function = nearest_function(node)
        if function is not None:
            block = container_for(elevate_by_levels(function, options.safe_nesting_level))
            strategy = ENCLOSING_FUNCTION

    block_span = view.expand(block, options.include_leading_comments)
    top = top_level_ancestor(block) or block
    top_start = top.start_point.row + 1
    top_end = top.end_point.row + 1
    prefix_start, _ = view.expand_with_syntax_sanity(top_start - prefix, top_start - 1)
    _, suffix_end = view.expand_with_syntax_sanity(top_end + 1, top_end + suffix)
    block_start, block_end = view.span_lines(block_span)

    logger.debug("Tier A strategy %s for line %d", strategy, line)
    return _lines_result(
        view,
        min(prefix_start, block_start),
        max(suffix_end, block_end),
        strategy,
    )
