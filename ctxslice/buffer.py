"""Text buffer protocol and an in-memory document for hosting the extractor.

Lines and columns are 1-based, offsets are 0-based character indices. The
document normalizes line endings to ``\\n`` so offsets and positions agree.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence


@dataclass(frozen=True, slots=True)
class Position:
    line_number: int
    column: int


@dataclass(frozen=True, slots=True)
class Range:
    start_line_number: int
    start_column: int
    end_line_number: int
    end_column: int


@dataclass(frozen=True, slots=True)
class ContentChange:
    """One replacement; offsets and range refer to the text before the event."""

    range: Range
    range_offset: int
    range_length: int
    text: str


@dataclass(frozen=True, slots=True)
class ContentChangedEvent:
    changes: tuple[ContentChange, ...]
    version_id: int = 0


class TextBuffer(Protocol):
    """What the extractor needs from a host editor model."""

    def get_value(self) -> str: ...

    def get_value_in_range(self, rng: Range) -> str: ...

    def get_offset_at(self, position: Position) -> int: ...

    def get_position_at(self, offset: int) -> Position: ...

    def get_line_count(self) -> int: ...

    def get_line_max_column(self, line_number: int) -> int: ...

    def get_line_content(self, line_number: int) -> str: ...


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


ChangeListener = Callable[[ContentChangedEvent], None]


class TextDocument:
    """Mutable in-memory buffer implementing :class:`TextBuffer`."""

    def __init__(self, text: str = "") -> None:
        self._text = normalize_newlines(text)
        self._line_starts: list[int] = [0]
        self._listeners: list[ChangeListener] = []
        self.version_id = 1
        self._reindex()

    def _reindex(self) -> None:
        starts = [0]
        index = self._text.find("\n")
        while index != -1:
            starts.append(index + 1)
            index = self._text.find("\n", index + 1)
        self._line_starts = starts

    # Read API -----------------------------------------------------------

    def get_value(self) -> str:
        return self._text

    def get_line_count(self) -> int:
        return len(self._line_starts)

    def get_line_content(self, line_number: int) -> str:
        line = self._clamp_line(line_number)
        start = self._line_starts[line - 1]
        end = self._line_end_offset(line)
        return self._text[start:end]

    def get_line_max_column(self, line_number: int) -> int:
        return len(self.get_line_content(line_number)) + 1

    def get_offset_at(self, position: Position) -> int:
        line = self._clamp_line(position.line_number)
        max_column = self.get_line_max_column(line)
        column = max(1, min(position.column, max_column))
        return self._line_starts[line - 1] + column - 1

    def get_position_at(self, offset: int) -> Position:
        offset = max(0, min(offset, len(self._text)))
        line_index = bisect.bisect_right(self._line_starts, offset) - 1
        return Position(line_index + 1, offset - self._line_starts[line_index] + 1)

    def get_value_in_range(self, rng: Range) -> str:
        start = self.get_offset_at(Position(rng.start_line_number, rng.start_column))
        end = self.get_offset_at(Position(rng.end_line_number, rng.end_column))
        if end <= start:
            return ""
        return self._text[start:end]

    def full_range(self) -> Range:
        last = self.get_line_count()
        return Range(1, 1, last, self.get_line_max_column(last))

    # Write API ----------------------------------------------------------

    def on_did_change_content(self, listener: ChangeListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""

        self._listeners.append(listener)

        def dispose() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return dispose

    def apply_edits(self, edits: Sequence[tuple[Range, str]]) -> ContentChangedEvent:
        """Apply replacements expressed against the current text.

        All ranges refer to the text before this call, so they must not
        overlap. Listeners receive one event describing every change.
        """

        changes: list[ContentChange] = []
        for rng, text in edits:
            start = self.get_offset_at(Position(rng.start_line_number, rng.start_column))
            end = self.get_offset_at(Position(rng.end_line_number, rng.end_column))
            start, end = min(start, end), max(start, end)
            start_pos = self.get_position_at(start)
            end_pos = self.get_position_at(end)
            changes.append(
                ContentChange(
                    range=Range(
                        start_pos.line_number,
                        start_pos.column,
                        end_pos.line_number,
                        end_pos.column,
                    ),
                    range_offset=start,
                    range_length=end - start,
                    text=normalize_newlines(text),
                )
            )

        text = self._text
        for change in sorted(changes, key=lambda c: c.range_offset, reverse=True):
            text = (
                text[: change.range_offset]
                + change.text
                + text[change.range_offset + change.range_length :]
            )
        self._text = text
        self._reindex()
        self.version_id += 1

        event = ContentChangedEvent(changes=tuple(changes), version_id=self.version_id)
        for listener in list(self._listeners):
            listener(event)
        return event

    def insert(self, position: Position, text: str) -> ContentChangedEvent:
        rng = Range(position.line_number, position.column, position.line_number, position.column)
        return self.apply_edits([(rng, text)])

    def set_value(self, text: str) -> ContentChangedEvent:
        return self.apply_edits([(self.full_range(), text)])

    # Internals ----------------------------------------------------------

    def _clamp_line(self, line_number: int) -> int:
        return max(1, min(line_number, self.get_line_count()))

    def _line_end_offset(self, line: int) -> int:
        if line < len(self._line_starts):
            return self._line_starts[line] - 1
        return len(self._text)
