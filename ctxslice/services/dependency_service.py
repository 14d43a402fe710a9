"""One-hop dependency closure for picked declaration and helper blocks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..utils import HasOffsets, ranges_overlap
from .budget_service import BudgetLedger
from .collector_service import DECLARATION, BlockRange
from .source_view import SourceView
from .syntax_service import free_identifiers

logger = logging.getLogger(__name__)

TIER_B = "B"
TIER_C = "C"


@dataclass(frozen=True, slots=True)
class DependencyAddition:
    name: str
    block: BlockRange
    tier: str

    def as_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "start_offset": self.block.start_offset,
            "end_offset": self.block.end_offset,
            "tier": self.tier,
        }


def tier_for_dependency(block: BlockRange) -> str:
    return TIER_B if block.kind == DECLARATION else TIER_C


def expand_with_dependencies(
    view: SourceView,
    picked: Sequence[BlockRange],
    index: Mapping[str, BlockRange],
    taken: Sequence[HasOffsets],
    ledgers: Mapping[str, BudgetLedger],
) -> list[DependencyAddition]:
    """Pull in the global definitions that *picked* blocks reference.

    A definition is added once, only if it overlaps nothing in *taken* nor a
    previous addition, and only if it fits the ledger of the tier it joins:
    declarations join Tier B, functions join Tier C. Definitions of added
    blocks are not followed further.
    """

    seen = {block.key for block in picked}
    occupied: list[HasOffsets] = list(taken)
    added: list[DependencyAddition] = []
    for block in picked:
        for name in free_identifiers(block.node, view.source):
            dep = index.get(name)
            if dep is None or dep.key in seen or dep.size <= 0:
                continue
            if any(ranges_overlap(dep, other) for other in occupied):
                continue
            tier = tier_for_dependency(dep)
            ledger = ledgers.get(tier)
            if ledger is None or not ledger.take(dep.size):
                logger.debug("Dependency %s does not fit Tier %s", name, tier)
                continue
            seen.add(dep.key)
            occupied.append(dep)
            added.append(DependencyAddition(name=name, block=dep, tier=tier))
    return added
