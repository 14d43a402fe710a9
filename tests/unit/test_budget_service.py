from ctxslice.config import TierPercents
from ctxslice.services.budget_service import (
    BudgetLedger,
    derive_budgets,
    pack_texts,
    select_within_budget,
)
from ctxslice.utils import OffsetRange


def test_default_split_of_one_thousand():
    budgets = derive_budgets(1000)

    assert (budgets.a, budgets.b, budgets.c, budgets.d) == (400, 300, 200, 100)
    assert budgets.a + budgets.b + budgets.c + budgets.d == 1000
    assert budgets.as_dict() == {"A": 400, "B": 300, "C": 200, "D": 100, "total": 1000}


def test_shares_are_floored():
    budgets = derive_budgets(999)
    assert (budgets.a, budgets.b, budgets.c, budgets.d) == (399, 299, 199, 99)

    custom = derive_budgets(2000, TierPercents(0.5, 0.25, 0.25, 0.0))
    assert (custom.a, custom.b, custom.c, custom.d) == (1000, 500, 500, 0)


def test_ledger_charges_separators_after_the_first_item():
    ledger = BudgetLedger(20)

    assert ledger.take(10) is True
    assert ledger.take(8) is True
    assert ledger.used == 20
    assert ledger.take(1) is False
    assert ledger.take(0) is False
    assert ledger.remaining == 0


def test_select_within_budget_skips_without_clipping():
    items = [OffsetRange(0, 10), OffsetRange(10, 40), OffsetRange(40, 48)]

    assert select_within_budget(items, 20) == [items[0], items[2]]
    assert select_within_budget(items, 20, limit=1) == [items[0]]
    assert select_within_budget(items, 5) == []


def test_select_within_budget_shares_a_ledger():
    ledger = BudgetLedger(25)
    first = select_within_budget([OffsetRange(0, 10)], ledger)
    second = select_within_budget([OffsetRange(20, 35), OffsetRange(40, 50)], ledger)

    assert first == [OffsetRange(0, 10)]
    assert second == [OffsetRange(40, 50)]
    assert ledger.used == 22


def test_pack_texts_returns_kept_indexes():
    assert pack_texts(["aaaa", "bbbbbb", "cc"], 8) == [0, 2]
    assert pack_texts([], 8) == []
