"""Reconcile ranges from every tier so no two emitted spans overlap."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from ..utils import HasOffsets, OffsetRange, range_key, ranges_overlap

TIER_ORDER: tuple[str, ...] = ("A", "B", "C", "D")
TIER_PRIORITY: dict[str, int] = {"A": 4, "B": 3, "C": 2, "D": 1}


@dataclass(frozen=True, slots=True)
class TierRange:
    tier: str
    start_offset: int
    end_offset: int


@dataclass
class DedupeOutcome:
    accepted: dict[str, list[OffsetRange]] = field(
        default_factory=lambda: {tier: [] for tier in TIER_ORDER}
    )
    rejected: list[TierRange] = field(default_factory=list)

    def offsets(self, tier: str) -> list[OffsetRange]:
        return self.accepted.get(tier, [])

    def accepted_keys(self, tier: str) -> set[str]:
        return {item.key for item in self.offsets(tier)}


def dedupe_tiers(ranges_by_tier: Mapping[str, Iterable[HasOffsets]]) -> DedupeOutcome:
    """Accept ranges by tier priority (A > B > C > D), then position.

    A range is dropped when it overlaps any range accepted before it.
    Accepted ranges come back grouped per tier, sorted by position.
    """

    flat: list[TierRange] = [
        TierRange(tier, item.start_offset, item.end_offset)
        for tier, items in ranges_by_tier.items()
        for item in items
    ]
    flat.sort(key=lambda item: (-TIER_PRIORITY.get(item.tier, 0), item.start_offset))

    outcome = DedupeOutcome()
    taken: list[TierRange] = []
    for item in flat:
        if any(ranges_overlap(item, other) for other in taken):
            outcome.rejected.append(item)
            continue
        taken.append(item)
        outcome.accepted.setdefault(item.tier, []).append(
            OffsetRange(item.start_offset, item.end_offset)
        )
    for items in outcome.accepted.values():
        items.sort(key=lambda item: item.start_offset)
    return outcome


def keep_accepted(items: Sequence[HasOffsets], outcome: DedupeOutcome, tier: str) -> list:
    """Filter *items* down to the ones whose exact range survived for *tier*."""

    keys = outcome.accepted_keys(tier)
    return [item for item in items if range_key(item) in keys]
