from __future__ import annotations

import datetime as dt

import pytest

from statement_insights.models import Transaction, TransactionType
from statement_insights.strategy import (
    DEFAULT_INCOME,
    SpendingStats,
    Trend,
    calculate_statistics,
    estimated_income,
    focus_areas,
)


def _tx(day: int, amount: float, category: str, **kw) -> Transaction:
    return Transaction(
        id=f"{category}-{day}-{amount}",
        account_id="acc",
        date=dt.date(2025, 11, day),
        merchant=category,
        amount=amount,
        type=kw.pop("type", TransactionType.EXPENSE),
        category=category,
        description=category,
        **kw,
    )


def _stats(category: str, total: float, count: int = 1) -> SpendingStats:
    return SpendingStats(
        category=category,
        total_spent=total,
        transaction_count=count,
        average_transaction=total / count,
        std_dev=0.0,
        trend=Trend.STABLE,
    )


def test_statistics_per_category() -> None:
    stats = calculate_statistics(
        [
            _tx(1, 100, "Groceries"),
            _tx(2, 300, "Groceries"),
            _tx(3, 50, "Transport"),
            _tx(4, 999, "Salary", type=TransactionType.INCOME),
            _tx(5, 5000, "Internal Transfer", is_transfer=True),
        ]
    )
    assert [s.category for s in stats] == ["Groceries", "Transport"]
    groceries = stats[0]
    assert (groceries.total_spent, groceries.transaction_count) == (400, 2)
    assert groceries.average_transaction == 200
    assert groceries.std_dev == pytest.approx(100)


@pytest.mark.parametrize(
    ("early", "late", "trend"),
    [(100, 200, Trend.INCREASING), (200, 100, Trend.DECREASING), (100, 105, Trend.STABLE)],
)
def test_trend_compares_halves_of_the_period(early: float, late: float, trend: Trend) -> None:
    stats = calculate_statistics([_tx(1, early, "Eating Out"), _tx(29, late, "Eating Out")])
    assert stats[0].trend is trend


def test_trend_with_no_early_spend_is_increasing() -> None:
    stats = calculate_statistics([_tx(1, 10, "Groceries"), _tx(29, 80, "Eating Out")])
    by_category = {s.category: s.trend for s in stats}
    assert by_category == {"Groceries": Trend.DECREASING, "Eating Out": Trend.INCREASING}


def test_no_expenses_no_statistics() -> None:
    assert calculate_statistics([]) == []


def test_estimated_income_defaults_when_absent() -> None:
    assert estimated_income([_tx(1, 10, "Groceries")]) == DEFAULT_INCOME
    income = [
        _tx(1, 60000, "Salary", type=TransactionType.INCOME),
        _tx(2, 9000, "Internal Transfer", type=TransactionType.INCOME, is_transfer=True),
    ]
    assert estimated_income(income) == 60000


def test_focus_areas_flags_impact_frequency_and_mystery() -> None:
    stats = [
        _stats("Rent", 25000),
        _stats("Transport", 2000, count=11),
        _stats("General", 100),
        _stats("Gifts", 500),
    ]
    assert [s.category for s in focus_areas(stats, 100000)] == ["Rent", "Transport", "General"]


def test_focus_areas_fall_back_to_top_spenders() -> None:
    stats = [_stats("A", 10), _stats("B", 30), _stats("C", 20), _stats("D", 5)]
    assert [s.category for s in focus_areas(stats, 100000)] == ["B", "C", "A"]
    assert [s.category for s in focus_areas(stats, 100000, top_n=1)] == ["B"]
