"""Per-category spending statistics and focus-area selection.

Local math only. Transfers are excluded throughout.
"""

from __future__ import annotations

import datetime as dt
import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from .models import Category, Transaction, TransactionType

DEFAULT_INCOME: float = 50000.0

MYSTERY_CATEGORIES: frozenset[str] = frozenset({"Uncategorized", "General"})

_TREND_BAND: float = 0.10
_HIGH_IMPACT_SHARE: float = 0.20
_HIGH_FREQUENCY_COUNT: int = 10


class Trend(StrEnum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True, slots=True)
class SpendingStats:
    category: Category
    total_spent: float
    transaction_count: int
    average_transaction: float
    std_dev: float
    trend: Trend


def _trend(dated: Sequence[tuple[dt.date, float]], start: dt.date, end: dt.date) -> Trend:
    """Compare spend in the second half of ``[start, end]`` with the first half."""

    midpoint = start + (end - start) / 2
    first = sum(a for d, a in dated if d <= midpoint)
    second = sum(a for d, a in dated if d > midpoint)
    if first == 0:
        return Trend.INCREASING if second > 0 else Trend.STABLE
    change = (second - first) / first
    if change > _TREND_BAND:
        return Trend.INCREASING
    if change < -_TREND_BAND:
        return Trend.DECREASING
    return Trend.STABLE


def calculate_statistics(transactions: Iterable[Transaction]) -> list[SpendingStats]:
    """Statistics per expense category, in first-seen order.

    The trend splits the whole period covered by the expenses at its midpoint;
    a change of more than 10% either way counts as a trend.
    """

    by_category: dict[Category, list[tuple[dt.date, float]]] = defaultdict(list)
    for t in transactions:
        if t.type == TransactionType.EXPENSE and not t.is_transfer:
            by_category[t.category].append((t.date, t.amount))
    if not by_category:
        return []

    all_dates = [d for rows in by_category.values() for d, _ in rows]
    start, end = min(all_dates), max(all_dates)

    out: list[SpendingStats] = []
    for category, rows in by_category.items():
        amounts = [a for _, a in rows]
        total = sum(amounts)
        count = len(amounts)
        mean = total / count
        std_dev = math.sqrt(sum((a - mean) ** 2 for a in amounts) / count)
        out.append(
            SpendingStats(
                category=category,
                total_spent=total,
                transaction_count=count,
                average_transaction=mean,
                std_dev=std_dev,
                trend=_trend(rows, start, end),
            )
        )
    return out


def estimated_income(transactions: Iterable[Transaction], default: float = DEFAULT_INCOME) -> float:
    """Total non-transfer income, or ``default`` when there is none."""

    total = sum(
        t.amount for t in transactions if t.type == TransactionType.INCOME and not t.is_transfer
    )
    return total or default


def focus_areas(stats: Sequence[SpendingStats], income: float, *, top_n: int = 3) -> list[SpendingStats]:
    """Categories worth attention.

    High impact (more than 20% of ``income``), high frequency (more than ten
    transactions) or uncategorized spend. When nothing qualifies the
    ``top_n`` categories by total spend are returned instead.
    """

    flagged = [
        s
        for s in stats
        if (income > 0 and s.total_spent / income > _HIGH_IMPACT_SHARE)
        or s.transaction_count > _HIGH_FREQUENCY_COUNT
        or s.category in MYSTERY_CATEGORIES
    ]
    if flagged:
        return flagged
    return sorted(stats, key=lambda s: s.total_spent, reverse=True)[:top_n]


__all__ = [
    "DEFAULT_INCOME",
    "MYSTERY_CATEGORIES",
    "SpendingStats",
    "Trend",
    "calculate_statistics",
    "estimated_income",
    "focus_areas",
]
