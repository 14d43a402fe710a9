"""Small helpers for offset ranges and numeric clamping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol


class HasOffsets(Protocol):
    start_offset: int
    end_offset: int


@dataclass(frozen=True, slots=True)
class OffsetRange:
    """Half-open character range ``[start_offset, end_offset)`` in a buffer."""

    start_offset: int
    end_offset: int

    @property
    def size(self) -> int:
        return max(0, self.end_offset - self.start_offset)

    @property
    def key(self) -> str:
        return range_key(self)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def range_key(item: HasOffsets) -> str:
    return f"{item.start_offset}:{item.end_offset}"


def ranges_overlap(a: HasOffsets, b: HasOffsets) -> bool:
    return not (a.end_offset <= b.start_offset or a.start_offset >= b.end_offset)


def merge_ranges(ranges: Iterable[HasOffsets]) -> list[OffsetRange]:
    """Merge overlapping ranges into a sorted, disjoint list."""

    ordered = sorted(ranges, key=lambda r: r.start_offset)
    merged: list[OffsetRange] = []
    for item in ordered:
        if merged and item.start_offset < merged[-1].end_offset:
            last = merged[-1]
            merged[-1] = OffsetRange(last.start_offset, max(last.end_offset, item.end_offset))
        else:
            merged.append(OffsetRange(item.start_offset, item.end_offset))
    return merged
