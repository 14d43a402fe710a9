"""Incremental tree-sitter parsing over a live text buffer."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..buffer import ContentChangedEvent, TextBuffer, normalize_newlines
from ..config import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES
from ..text import Messages

if TYPE_CHECKING:
    from tree_sitter import Parser, Tree

logger = logging.getLogger(__name__)

Point = tuple[int, int]


class ParserSetupError(RuntimeError):
    """Raised when the tree-sitter parser or grammar cannot be initialized."""


def create_parser(language: str = DEFAULT_LANGUAGE) -> "Parser":
    """Return a configured tree-sitter parser for *language*."""

    normalized = (language or DEFAULT_LANGUAGE).strip().lower()
    if normalized not in SUPPORTED_LANGUAGES:
        raise ParserSetupError(
            Messages.ERROR_LANGUAGE_INVALID.format(
                value=language, allowed=", ".join(SUPPORTED_LANGUAGES)
            )
        )
    try:
        from tree_sitter import Language, Parser
        import tree_sitter_javascript as ts_js
        import tree_sitter_typescript as ts_ts
    except ImportError as exc:
        raise ParserSetupError(Messages.ERROR_GRAMMAR_MISSING) from exc

    try:
        if normalized == "tsx":
            lang = Language(ts_ts.language_tsx())
        elif normalized == "typescript":
            lang = Language(ts_ts.language_typescript())
        else:
            lang = Language(ts_js.language())
        return Parser(lang)
    except (TypeError, ValueError) as exc:
        raise ParserSetupError(
            Messages.ERROR_PARSER_INIT.format(language=normalized, reason=exc)
        ) from exc


@dataclass(frozen=True, slots=True)
class PendingEdit:
    """One queued tree edit, in UTF-8 byte offsets and ``(row, byte column)`` points."""

    start_index: int
    old_end_index: int
    new_end_index: int
    start_point: Point
    old_end_point: Point
    new_end_point: Point


@dataclass(frozen=True, slots=True)
class TreeStatus:
    is_dirty: bool
    has_tree: bool
    pending_edits_count: int
    last_parse_time: float


def advance_point_by_text(start: Point, text: str) -> Point:
    """Return the point reached after inserting *text* at *start*.

    Columns are counted in UTF-8 bytes, matching tree-sitter points.
    """

    fragments = normalize_newlines(text).split("\n")
    row, column = start
    if len(fragments) == 1:
        return (row, column + _byte_len(fragments[0]))
    return (row + len(fragments) - 1, _byte_len(fragments[-1]))


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _point_at(text: str, offset: int) -> Point:
    row = text.count("\n", 0, offset)
    line_start = text.rfind("\n", 0, offset) + 1
    return (row, _byte_len(text[line_start:offset]))


class ParseManager:
    """Own a parser, its current tree and the queue of edits since the last parse.

    ``record_change`` only queues work; ``ensure_current`` applies the queue
    and reparses, reusing the edited tree. A parse failure leaves ``tree`` as
    ``None`` and is logged, never raised.
    """

    def __init__(self, parser: "Parser", buffer: TextBuffer) -> None:
        self._parser = parser
        self._buffer = buffer
        self.tree: "Tree | None" = None
        self.source: bytes = b""
        self._pending: list[PendingEdit] = []
        self._shadow = buffer.get_value()
        self._dirty = True
        self.last_parse_time = 0.0

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def pending_edits(self) -> tuple[PendingEdit, ...]:
        return tuple(self._pending)

    def status(self) -> TreeStatus:
        return TreeStatus(
            is_dirty=self._dirty,
            has_tree=self.tree is not None,
            pending_edits_count=len(self._pending),
            last_parse_time=self.last_parse_time,
        )

    def record_change(self, event: ContentChangedEvent) -> None:
        """Queue one tree edit per change in *event* and mark the tree dirty."""

        shift = 0
        for change in sorted(event.changes, key=lambda c: c.range_offset):
            start = change.range_offset + shift
            old_end = start + change.range_length
            text = change.text
            shadow = self._shadow
            start_index = _byte_len(shadow[:start])
            start_point = _point_at(shadow, start)
            self._pending.append(
                PendingEdit(
                    start_index=start_index,
                    old_end_index=start_index + _byte_len(shadow[start:old_end]),
                    new_end_index=start_index + _byte_len(text),
                    start_point=start_point,
                    old_end_point=_point_at(shadow, old_end),
                    new_end_point=advance_point_by_text(start_point, text),
                )
            )
            self._shadow = shadow[:start] + text + shadow[old_end:]
            shift += len(text) - change.range_length
        self._dirty = True

    def ensure_current(self) -> "Tree | None":
        if not self._dirty:
            return self.tree

        text = self._buffer.get_value()
        source = text.encode("utf-8")
        old_tree = self.tree
        if old_tree is not None and self._shadow != text:
            logger.debug("Edit queue out of sync with buffer; reparsing from scratch")
            old_tree = None
        if old_tree is not None:
            for edit in self._pending:
                old_tree.edit(
                    start_byte=edit.start_index,
                    old_end_byte=edit.old_end_index,
                    new_end_byte=edit.new_end_index,
                    start_point=edit.start_point,
                    old_end_point=edit.old_end_point,
                    new_end_point=edit.new_end_point,
                )

        try:
            if old_tree is None:
                tree = self._parser.parse(source)
            else:
                tree = self._parser.parse(source, old_tree)
        except Exception as exc:
            logger.warning("Parse failed, falling back to raw lines: %s", exc)
            tree = None
        else:
            if tree is None:
                logger.warning("Parser returned no tree; falling back to raw lines")

        self.tree = tree
        self.source = source
        self._shadow = text
        self._pending.clear()
        self._dirty = False
        self.last_parse_time = time.time()
        logger.debug(
            "Parsed %d bytes (%s)",
            len(source),
            "full" if old_tree is None else "incremental",
        )
        return self.tree
