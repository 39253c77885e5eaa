"""Budget statistics engine.

Pure functions over transaction snapshots; nothing here is persisted and every
planning session recomputes from scratch. Thresholds come from
:class:`~statement_insights.config.BudgetPolicy`.

Per category the engine builds a per-month spend vector aligned to the most
recent *active* months (months with any non-transfer expense), index 0 being
the most recent, and derives:

- ``average``: vector sum divided by the window length (not rounded);
- ``min``: lowest non-zero month (0 when there is none);
- ``volatility``: population standard deviation over the mean (0 when the mean
  is 0);
- ``frequency``: ``Monthly`` / ``Occasional`` / ``Rare`` by presence ratio.

Suggested limits are rounded half up to whole currency units.
"""

from __future__ import annotations

import calendar
import datetime as dt
import math
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Literal

from .config import BudgetPolicy
from .models import (
    Budget,
    BudgetProposal,
    BudgetStrategy,
    Category,
    CategoryDraft,
    FinancialGoal,
    GoalProjection,
    ImpactAnalysis,
    StrategyOption,
    Transaction,
    TransactionType,
    UserProfile,
)

SAVINGS_CATEGORIES: frozenset[str] = frozenset(
    {
        "Savings",
        "Investments",
        "Emergency Fund",
        "Sacco",
        "Money Market Fund",
        "Pension",
        "Financial Services/Investments",
    }
)

DISCRETIONARY_CATEGORIES: frozenset[str] = frozenset(
    {
        "Eating Out",
        "Entertainment",
        "Shopping",
        "Personal Care",
        "Gifts",
        "Travel",
        "Subscriptions",
        "Alcohol & Bars",
        "Betting",
        "Ride Sharing/Food Delivery",
    }
)

MINOR_GROUP_CATEGORY: str = "Other Minor Expenses"

FREQ_MONTHLY = "Monthly"
FREQ_OCCASIONAL = "Occasional"
FREQ_RARE = "Rare"
FREQ_VARIOUS = "Various"

_GROW_SAVINGS_GOALS = frozenset(
    {
        FinancialGoal.SAVE_EMERGENCY,
        FinancialGoal.INVEST,
        FinancialGoal.BUY_ASSET,
        FinancialGoal.TRAVEL,
    }
)
_AGGRESSIVE_CUT_GOALS = frozenset(
    {FinancialGoal.SAVE_EMERGENCY, FinancialGoal.PAY_DEBT, FinancialGoal.CONTROL_SPEND}
)
_MODERATE_CUT_GOALS = frozenset({FinancialGoal.INVEST, FinancialGoal.BUY_ASSET})

type CategoryClass = Literal["savings", "discretionary", "essential"]


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def _counts(t: Transaction, kind: TransactionType) -> bool:
    return t.type == kind and not t.is_transfer


# ---------------------------------------------------------------------------
# Windows and classification
# ---------------------------------------------------------------------------


def average_monthly_income(transactions: Iterable[Transaction]) -> float:
    """Mean of the months with non-zero non-transfer income; 0 when none."""

    by_month: dict[str, float] = defaultdict(float)
    for t in transactions:
        if _counts(t, TransactionType.INCOME):
            by_month[t.month_key] += t.amount
    non_zero = [v for v in by_month.values() if v > 0]
    return sum(non_zero) / len(non_zero) if non_zero else 0.0


def active_months(transactions: Iterable[Transaction], *, window: int = 12) -> list[str]:
    """Most recent ``window`` distinct ``YYYY-MM`` keys with expense activity, newest first."""

    months = {t.month_key for t in transactions if _counts(t, TransactionType.EXPENSE)}
    return sorted(months, reverse=True)[:window]


def classify(category: Category) -> CategoryClass:
    if category in SAVINGS_CATEGORIES:
        return "savings"
    if category in DISCRETIONARY_CATEGORIES:
        return "discretionary"
    return "essential"


def _frequency(active: int, window: int, policy: BudgetPolicy) -> str:
    ratio = active / window if window else 0.0
    if ratio >= policy.monthly_ratio:
        return FREQ_MONTHLY
    if ratio >= policy.occasional_ratio:
        return FREQ_OCCASIONAL
    return FREQ_RARE


def _suggest(
    average: float,
    kind: CategoryClass,
    profile: UserProfile | None,
    policy: BudgetPolicy,
) -> tuple[float, BudgetStrategy]:
    if profile is not None:
        goal = profile.primary_goal
        if kind == "savings" and goal in _GROW_SAVINGS_GOALS:
            return _round_half_up(average * policy.savings_boost), BudgetStrategy.INCREASE
        if kind == "discretionary":
            if goal in _AGGRESSIVE_CUT_GOALS:
                return _round_half_up(average * policy.aggressive_cut), BudgetStrategy.AGGRESSIVE
            if goal in _MODERATE_CUT_GOALS:
                return _round_half_up(average * policy.moderate_cut), BudgetStrategy.MODERATE
    return _round_half_up(average), BudgetStrategy.MAINTAIN


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


def compute_drafts(
    transactions: Sequence[Transaction],
    existing_budgets: Iterable[Budget] = (),
    user_profile: UserProfile | None = None,
    *,
    policy: BudgetPolicy | None = None,
) -> list[CategoryDraft]:
    """Build one draft per expense category, sorted by average spend (descending).

    A category with an existing budget keeps that budget's limit and strategy
    verbatim; otherwise the suggestion follows the user's primary goal.
    """

    policy = policy or BudgetPolicy()
    months = active_months(transactions, window=policy.window_months)
    if not months:
        return []
    window = len(months)
    month_pos = {m: i for i, m in enumerate(months)}

    vectors: dict[Category, list[float]] = {}
    for t in transactions:
        if not _counts(t, TransactionType.EXPENSE):
            continue
        pos = month_pos.get(t.month_key)
        if pos is None:
            continue
        vec = vectors.setdefault(t.category, [0.0] * window)
        vec[pos] += t.amount

    budgets: Mapping[Category, Budget] = {b.category: b for b in existing_budgets}
    drafts: list[CategoryDraft] = []
    for category, vec in vectors.items():
        total = sum(vec)
        mean = total / window
        non_zero = [v for v in vec if v > 0]
        variance = sum((v - mean) ** 2 for v in vec) / window
        volatility = math.sqrt(variance) / mean if mean > 0 else 0.0
        kind = classify(category)

        existing = budgets.get(category)
        if existing is not None:
            limit, strategy = existing.limit, existing.strategy
        else:
            limit, strategy = _suggest(mean, kind, user_profile, policy)

        drafts.append(
            CategoryDraft(
                category=category,
                average=mean,
                min=min(non_zero) if non_zero else 0.0,
                max=max(vec),
                history=tuple(vec),
                volatility=volatility,
                active_months=len(non_zero),
                frequency=_frequency(len(non_zero), window, policy),
                limit=limit,
                strategy=strategy,
                is_discretionary=kind == "discretionary",
                is_savings=kind == "savings",
            )
        )
    drafts.sort(key=lambda d: d.average, reverse=True)
    return drafts


def apply_limit(
    draft: CategoryDraft, limit: float, strategy: BudgetStrategy = BudgetStrategy.CUSTOM
) -> CategoryDraft:
    if limit < 0:
        raise ValueError("limit must be >= 0")
    return replace(draft, limit=limit, strategy=strategy, is_modified=True)


def accepted_budgets(drafts: Iterable[CategoryDraft]) -> list[BudgetProposal]:
    """Drafts worth saving: user-modified, non-``maintain``, or savings."""

    return [
        BudgetProposal(category=d.category, limit=d.limit, strategy=d.strategy)
        for d in drafts
        if d.is_modified or d.strategy != BudgetStrategy.MAINTAIN or d.is_savings
    ]


# ---------------------------------------------------------------------------
# Impact and projection
# ---------------------------------------------------------------------------


def _is_risky(d: CategoryDraft, policy: BudgetPolicy) -> bool:
    if d.is_savings:
        return False
    if d.limit < d.min and d.volatility < policy.risky_volatility:
        return True
    return d.frequency == FREQ_MONTHLY and d.limit < d.average * policy.deep_cut_ratio


def impact_analysis(
    drafts: Iterable[CategoryDraft],
    avg_monthly_income: float,
    *,
    policy: BudgetPolicy | None = None,
) -> ImpactAnalysis:
    policy = policy or BudgetPolicy()
    drafts = list(drafts)
    current_spend = sum(d.average for d in drafts if not d.is_savings)
    new_total = sum(d.limit for d in drafts if not d.is_savings)
    if avg_monthly_income > 0:
        net = avg_monthly_income - new_total
    else:
        net = current_spend - new_total
    return ImpactAnalysis(
        planned_net_savings=net,
        new_total_budget=new_total,
        risky_cuts=sum(1 for d in drafts if _is_risky(d, policy)),
        freed_up_cash=current_spend - new_total,
    )


def _add_months(day: dt.date, months: int) -> dt.date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(day.day, last))


def goal_projection(
    target_amount: float | None,
    planned_net_savings: float,
    *,
    today: dt.date | None = None,
) -> GoalProjection | None:
    """Months until ``target_amount`` at the planned savings rate.

    ``None`` when there is no target or the plan does not save anything.
    """

    if not target_amount or planned_net_savings <= 0:
        return None
    months = math.ceil(target_amount / planned_net_savings)
    start = today or dt.date.today()
    return GoalProjection(months=months, target_date=_add_months(start, months))


# ---------------------------------------------------------------------------
# View helpers
# ---------------------------------------------------------------------------


def group_minor(drafts: Sequence[CategoryDraft], threshold_pct: float) -> list[CategoryDraft]:
    """Merge small non-savings drafts into one ``Other Minor Expenses`` draft.

    A draft is minor when its average is at most ``threshold_pct`` percent of
    the summed averages. The merged draft sums the numeric fields of its
    members; its history is left empty.
    """

    if threshold_pct <= 0:
        return list(drafts)
    threshold = sum(d.average for d in drafts) * threshold_pct / 100.0
    major = [d for d in drafts if d.is_savings or d.average > threshold]
    minor = [d for d in drafts if not (d.is_savings or d.average > threshold)]
    if not minor:
        return major
    grouped = CategoryDraft(
        category=MINOR_GROUP_CATEGORY,
        average=sum(d.average for d in minor),
        min=sum(d.min for d in minor),
        max=sum(d.max for d in minor),
        history=(),
        volatility=0.0,
        active_months=sum(d.active_months for d in minor),
        frequency=FREQ_VARIOUS,
        limit=sum(d.limit for d in minor),
        strategy=BudgetStrategy.MAINTAIN,
        is_discretionary=True,
        is_savings=False,
    )
    return [*major, grouped]


def strategy_options(
    draft: CategoryDraft, *, policy: BudgetPolicy | None = None
) -> list[StrategyOption]:
    """One-click limit suggestions for a draft; none for the grouped draft."""

    policy = policy or BudgetPolicy()
    if draft.category == MINOR_GROUP_CATEGORY:
        return []
    avg = _round_half_up(draft.average)
    if draft.is_savings:
        return [
            StrategyOption("Maintain", avg, BudgetStrategy.MAINTAIN),
            StrategyOption(
                "Boost 10%",
                _round_half_up(draft.average * policy.savings_boost),
                BudgetStrategy.INCREASE,
            ),
        ]

    options = [StrategyOption("Avg", avg, BudgetStrategy.MAINTAIN)]
    if draft.volatility > policy.volatile_threshold:
        options.append(StrategyOption("Stabilize", avg, BudgetStrategy.CUSTOM))
    elif draft.volatility < policy.stable_threshold and draft.frequency != FREQ_RARE:
        options.append(
            StrategyOption(
                "Challenge",
                _round_half_up(draft.average * policy.moderate_cut),
                BudgetStrategy.AGGRESSIVE,
            )
        )
    else:
        options.append(
            StrategyOption(
                "Target Lows",
                _round_half_up(draft.min * policy.target_lows_margin),
                BudgetStrategy.MODERATE,
            )
        )
    if draft.is_discretionary:
        options.append(
            StrategyOption(
                "Cut 20%",
                _round_half_up(draft.average * policy.aggressive_cut),
                BudgetStrategy.AGGRESSIVE,
            )
        )
    return options


__all__ = [
    "DISCRETIONARY_CATEGORIES",
    "MINOR_GROUP_CATEGORY",
    "SAVINGS_CATEGORIES",
    "accepted_budgets",
    "active_months",
    "apply_limit",
    "average_monthly_income",
    "classify",
    "compute_drafts",
    "goal_projection",
    "group_minor",
    "impact_analysis",
    "strategy_options",
]
