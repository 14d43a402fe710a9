"""Collect typed candidate blocks from the top level of a syntax tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..config import DEFAULT_TEST_PATTERN, TestCallPattern
from ..utils import HasOffsets, ranges_overlap
from .source_view import SourceView
from .syntax_service import (
    call_of_statement,
    container_for,
    contains_type,
    declared_names,
    is_declaration,
    is_test_call,
    is_whole_block_candidate,
    title_literal,
    unwrap_export,
)

if TYPE_CHECKING:
    from tree_sitter import Node

FUNCTION_DECLARATION = "function_declaration"
DECLARATION = "declaration"
LEXICAL_DECLARATION = "lexical_declaration"
VARIABLE_DECLARATION = "variable_declaration"
TEST_BLOCK = "pm_test"
ARROW_FUNCTION_DECL = "arrow_function_decl"
FUNCTION_EXPRESSION_DECL = "function_expression_decl"
GENERIC = "generic"

HELPER_KINDS = frozenset({FUNCTION_DECLARATION, ARROW_FUNCTION_DECL, FUNCTION_EXPRESSION_DECL})

_FUNCTION_DECLARATION_TYPES = frozenset(
    {"function_declaration", "generator_function_declaration"}
)
_ARROW_TYPES = frozenset({"arrow_function"})
_FUNCTION_EXPRESSION_TYPES = frozenset(
    {"function_expression", "function", "generator_function"}
)


@dataclass(frozen=True, slots=True)
class BlockRange:
    """A candidate unit of code, full-line aligned, never splitting a node."""

    start_offset: int
    end_offset: int
    node: "Node" = field(compare=False, repr=False)
    kind: str = GENERIC

    @property
    def size(self) -> int:
        return max(0, self.end_offset - self.start_offset)

    @property
    def key(self) -> str:
        return f"{self.start_offset}:{self.end_offset}"


def _block(view: SourceView, node: "Node", kind: str, include_comments: bool = True) -> BlockRange:
    span = view.expand(node, include_comments)
    return BlockRange(span.start_offset, span.end_offset, node, kind)


def _top_level(view: SourceView) -> list["Node"]:
    root = view.root
    if root is None:
        return []
    return list(root.named_children)


def collect_global_declarations(
    view: SourceView, include_comments: bool = True
) -> list[BlockRange]:
    """Top-level function, ``const``/``let`` and ``var`` declarations, exported or not."""

    out: list[BlockRange] = []
    for child in _top_level(view):
        target = unwrap_export(child)
        if target.type in _FUNCTION_DECLARATION_TYPES:
            kind = FUNCTION_DECLARATION
        elif is_declaration(target):
            kind = DECLARATION
        else:
            continue
        container = child if target is not child else container_for(child)
        out.append(_block(view, container, kind, include_comments))
    return out


def collect_test_blocks(
    view: SourceView,
    pattern: TestCallPattern = DEFAULT_TEST_PATTERN,
    exclude: HasOffsets | None = None,
) -> list[BlockRange]:
    """Top-level test calls, minus any overlapping *exclude*."""

    out: list[BlockRange] = []
    for child in _top_level(view):
        call = call_of_statement(child)
        if not is_test_call(call, view.source, pattern):
            continue
        block = _block(view, call, TEST_BLOCK)
        if exclude is not None and ranges_overlap(block, exclude):
            continue
        out.append(block)
    return out


def classify_top_level(
    node: "Node", source: bytes, pattern: TestCallPattern = DEFAULT_TEST_PATTERN
) -> tuple["Node", str] | None:
    """Return ``(node to keep, kind)`` for a root child, or ``None`` if ignored."""

    call = call_of_statement(node)
    if call is not None and is_test_call(call, source, pattern):
        return call, TEST_BLOCK
    target = unwrap_export(node)
    if target.type in _FUNCTION_DECLARATION_TYPES:
        return node, FUNCTION_DECLARATION
    if is_declaration(target):
        if contains_type(target, _ARROW_TYPES):
            return node, ARROW_FUNCTION_DECL
        if contains_type(target, _FUNCTION_EXPRESSION_TYPES):
            return node, FUNCTION_EXPRESSION_DECL
        return node, target.type
    return None


def collect_top_level_blocks(
    view: SourceView, pattern: TestCallPattern = DEFAULT_TEST_PATTERN
) -> list[BlockRange]:
    out: list[BlockRange] = []
    for child in _top_level(view):
        classified = classify_top_level(child, view.source, pattern)
        if classified is None:
            continue
        node, kind = classified
        out.append(_block(view, node, kind))
    out.sort(key=lambda block: block.start_offset)
    return out


def collect_whole_blocks_in_window(
    view: SourceView, start_line: int, end_line: int
) -> list[BlockRange]:
    """Whole top-level blocks whose lines intersect ``[start_line, end_line]``."""

    out: list[BlockRange] = []
    for child in _top_level(view):
        if not is_whole_block_candidate(child):
            continue
        first = child.start_point.row + 1
        last = child.end_point.row + 1
        if last < start_line or first > end_line:
            continue
        container = container_for(child)
        out.append(_block(view, container, GENERIC))
    out.sort(key=lambda block: block.start_offset)
    return out


def build_global_index(view: SourceView) -> dict[str, BlockRange]:
    """Map each top-level declared name to its defining block."""

    index: dict[str, BlockRange] = {}
    for block in collect_global_declarations(view):
        for name in declared_names(block.node, view.source):
            index[name] = block
    return index


def render_test_skeleton(
    node: "Node", source: bytes, pattern: TestCallPattern = DEFAULT_TEST_PATTERN
) -> str:
    literal = title_literal(node, source) or '"test"'
    return f"{pattern.callee}({literal}, function () {{ ... }});"
