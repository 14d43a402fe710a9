"""Line-aligned view of a buffer paired with its current syntax tree."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable

from ..buffer import Position, Range, TextBuffer
from ..utils import HasOffsets, OffsetRange
from .syntax_service import (
    is_whole_block_candidate,
    iter_ancestors,
    leading_comment_start,
    node_text,
)

if TYPE_CHECKING:
    from tree_sitter import Node, Tree

BLOCK_SEPARATOR = "\n\n"

_LINE_COMMENT_RE = re.compile(r"^\s*//")
_COMMENT_PREFIX_RE = re.compile(r"^\s*//\s?")


class SourceView:
    """Answer line, offset and node questions for one frozen buffer state.

    Offsets are character offsets into the buffer; lines are 1-based. Nodes
    come from *tree*, parsed from *source* (the UTF-8 encoded buffer text).
    """

    def __init__(self, buffer: TextBuffer, tree: "Tree | None", source: bytes) -> None:
        self.buffer = buffer
        self.tree = tree
        self.source = source

    @property
    def root(self) -> "Node | None":
        return self.tree.root_node if self.tree is not None else None

    @property
    def line_count(self) -> int:
        return self.buffer.get_line_count()

    @property
    def is_empty(self) -> bool:
        return not self.buffer.get_value()

    def clamp_line(self, line: int) -> int:
        return max(1, min(line, self.line_count))

    def line_content(self, line: int) -> str:
        return self.buffer.get_line_content(self.clamp_line(line))

    # Offsets ------------------------------------------------------------

    def line_start_offset(self, line: int) -> int:
        return self.buffer.get_offset_at(Position(self.clamp_line(line), 1))

    def line_end_offset(self, line: int) -> int:
        line = self.clamp_line(line)
        return self.buffer.get_offset_at(
            Position(line, self.buffer.get_line_max_column(line))
        )

    def line_at_offset(self, offset: int) -> int:
        return self.buffer.get_position_at(offset).line_number

    def lines_range(self, start_line: int, end_line: int) -> OffsetRange:
        """Full-line range covering ``[start_line, end_line]`` clamped to the buffer."""

        start = self.clamp_line(start_line)
        end = max(start, self.clamp_line(end_line))
        return OffsetRange(self.line_start_offset(start), self.line_end_offset(end))

    def span_lines(self, item: HasOffsets) -> tuple[int, int]:
        return self.line_at_offset(item.start_offset), self.line_at_offset(item.end_offset)

    # Nodes --------------------------------------------------------------

    def point_at(self, position: Position) -> tuple[int, int]:
        """Convert a 1-based character position to a ``(row, byte column)`` point."""

        line = self.clamp_line(position.line_number)
        prefix = self.line_content(line)[: max(0, position.column - 1)]
        return (line - 1, len(prefix.encode("utf-8")))

    def is_navigable(self, position: Position) -> bool:
        return (
            self.root is not None
            and not self.is_empty
            and 1 <= position.line_number <= self.line_count
        )

    def node_at(self, position: Position) -> "Node | None":
        """Return the smallest node at *position*, or ``None`` on a navigation miss."""

        if not self.is_navigable(position):
            return None
        point = self.point_at(position)
        return self.root.descendant_for_point_range(point, point)

    def node_at_line_start(self, line: int) -> "Node | None":
        if self.root is None or not 1 <= line <= self.line_count:
            return None
        return self.root.descendant_for_point_range((line - 1, 0), (line - 1, 0))

    def text_of(self, node: "Node") -> str:
        return node_text(node, self.source)

    def expand_to_full_lines(self, node: "Node") -> OffsetRange:
        return self.lines_range(node.start_point.row + 1, node.end_point.row + 1)

    def expand_with_leading_comments(self, node: "Node") -> OffsetRange:
        start = leading_comment_start(node)
        return self.lines_range(start.start_point.row + 1, node.end_point.row + 1)

    def expand(self, node: "Node", include_comments: bool = True) -> OffsetRange:
        if include_comments:
            return self.expand_with_leading_comments(node)
        return self.expand_to_full_lines(node)

    def expand_with_syntax_sanity(self, start_line: int, end_line: int) -> tuple[int, int]:
        """Widen ``[start_line, end_line]`` so neither edge lands inside a whole block.

        Each edge moves out to the outermost block that contains it; the walk
        repeats until neither edge moves.
        """

        total = self.line_count
        start = max(1, start_line)
        end = min(total, end_line)
        if self.root is None:
            return start, end

        while True:
            widened_start = self._widen_start(start)
            widened_end = self._widen_end(end)
            if (widened_start, widened_end) == (start, end):
                break
            start, end = widened_start, widened_end

        return max(1, start), min(total, end)

    def _widen_start(self, start: int) -> int:
        for current in iter_ancestors(self.node_at_line_start(start)):
            if current.parent is None:
                break
            if is_whole_block_candidate(current):
                block_start = current.start_point.row + 1
                if block_start < start <= current.end_point.row + 1:
                    start = block_start
        return start

    def _widen_end(self, end: int) -> int:
        for current in iter_ancestors(self.node_at_line_start(end)):
            if current.parent is None:
                break
            if is_whole_block_candidate(current):
                block_end = current.end_point.row + 1
                if current.start_point.row + 1 <= end < block_end:
                    end = block_end
        return end

    # Text ---------------------------------------------------------------

    def text_for(self, item: HasOffsets) -> str:
        """Full-line text for a range, verbatim from the buffer."""

        if item.end_offset <= item.start_offset:
            return ""
        start_line, end_line = self.span_lines(item)
        return self.buffer.get_value_in_range(
            Range(start_line, 1, end_line, self.buffer.get_line_max_column(end_line))
        )

    def text_from_ranges(self, ranges: Iterable[HasOffsets]) -> str:
        parts = [self.text_for(item) for item in ranges if item.end_offset > item.start_offset]
        return BLOCK_SEPARATOR.join(parts)

    def leading_comment_text_at(self, line: int) -> str:
        """Join the ``//`` comment lines directly above *line* (blank lines skipped)."""

        first = line - 1
        while first >= 1:
            content = self.line_content(first)
            if _LINE_COMMENT_RE.match(content) or not content.strip():
                first -= 1
                continue
            break
        parts: list[str] = []
        for current in range(first + 1, line):
            cleaned = _COMMENT_PREFIX_RE.sub("", self.line_content(current), count=1)
            if cleaned.strip():
                parts.append(cleaned)
        return " ".join(parts)
