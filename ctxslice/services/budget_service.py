"""Character budgets per tier and greedy packing that never clips a block."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Sequence, TypeVar

from ..config import DEFAULT_TIER_PERCENTS, TierPercents
from ..utils import HasOffsets
from .source_view import BLOCK_SEPARATOR

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=HasOffsets)

SEPARATOR_CHARS = len(BLOCK_SEPARATOR)


@dataclass(frozen=True, slots=True)
class TierBudgets:
    a: int
    b: int
    c: int
    d: int
    total: int

    def as_dict(self) -> dict[str, int]:
        return {"A": self.a, "B": self.b, "C": self.c, "D": self.d, "total": self.total}


def derive_budgets(total: int, percents: TierPercents = DEFAULT_TIER_PERCENTS) -> TierBudgets:
    """Split *total* characters across tiers, flooring each share."""

    def share(fraction: float) -> int:
        return max(0, math.floor(total * fraction))

    return TierBudgets(
        a=share(percents.a),
        b=share(percents.b),
        c=share(percents.c),
        d=share(percents.d),
        total=total,
    )


class BudgetLedger:
    """Running character count for one tier's joined output.

    Every accepted item after the first also pays for the separator that
    will join it to the previous one.
    """

    def __init__(self, limit: int, separator_chars: int = SEPARATOR_CHARS) -> None:
        self.limit = max(0, limit)
        self.separator_chars = separator_chars
        self.used = 0
        self.count = 0

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def cost_of(self, size: int) -> int:
        return size + (self.separator_chars if self.count else 0)

    def fits(self, size: int) -> bool:
        return size > 0 and self.used + self.cost_of(size) <= self.limit

    def take(self, size: int) -> bool:
        if not self.fits(size):
            return False
        self.used += self.cost_of(size)
        self.count += 1
        return True


def select_within_budget(
    items: Iterable[T],
    budget: int | BudgetLedger,
    separator_chars: int = SEPARATOR_CHARS,
    limit: int | None = None,
) -> list[T]:
    """Greedily keep items in the given order while they fit; too-large ones are skipped.

    With *limit*, selection stops once that many items were kept.
    """

    ledger = budget if isinstance(budget, BudgetLedger) else BudgetLedger(budget, separator_chars)
    picked: list[T] = []
    for item in items:
        if limit is not None and len(picked) >= limit:
            break
        size = item.end_offset - item.start_offset
        if ledger.take(size):
            picked.append(item)
        elif size > 0:
            logger.debug(
                "Skipped %d:%d (%d chars, %d left)",
                item.start_offset,
                item.end_offset,
                size,
                ledger.remaining,
            )
    return picked


def pack_texts(texts: Sequence[str], budget: int, separator: str = "\n") -> list[int]:
    """Greedy packing for synthetic text such as test skeletons; returns kept indexes."""

    ledger = BudgetLedger(budget, len(separator))
    return [index for index, text in enumerate(texts) if ledger.take(len(text))]
