"""Data models for ``statement_insights``.

Domain values are frozen, slotted dataclasses; callers derive modified copies
with :func:`dataclasses.replace`. Anything decoded from the model or read back
from durable storage is a pydantic model so shape errors surface as
``ValidationError`` rather than as attribute errors far from the source.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

# ---------------------------------------------------------------------------
# Well-known labels
# ---------------------------------------------------------------------------

OTHER_CATEGORY: str = "Other"
UNKNOWN_MERCHANT: str = "Unknown"
UNTITLED_MERCHANT: str = "Untitled"
INTERNAL_TRANSFER_CATEGORY: str = "Internal Transfer"

type Category = str
"""Categories are free-form strings; users may add their own."""


class TransactionType(StrEnum):
    EXPENSE = "expense"
    INCOME = "income"


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """A confirmed transaction owned by the persistence layer.

    ``amount`` is a non-negative magnitude; the direction lives in ``type``.
    ``is_transfer`` marks money moved between the user's own accounts, which
    is excluded from income and expense statistics.
    """

    id: str
    account_id: str
    date: dt.date
    merchant: str
    amount: float
    type: TransactionType
    category: Category
    description: str
    logo_url: str | None = None
    is_transfer: bool = False

    @property
    def month_key(self) -> str:
        return f"{self.date.year:04d}-{self.date.month:02d}"


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """An imported statement row, before the user confirms the import."""

    description: str
    amount: float
    type: TransactionType
    date: dt.date
    merchant: str | None = None
    category: Category | None = None
    enriched_info: EnrichedMerchantInfo | None = None


@dataclass(frozen=True, slots=True)
class CategorizationExample:
    """A user-confirmed (description, category) pair used to steer the model."""

    description: str
    category: Category


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class HeuristicResult:
    """Outcome of the local pattern extractor.

    ``cache_key`` equals ``merchant`` when a rule matched, otherwise the full
    trimmed description.
    """

    merchant: str | None
    cache_key: str


class EnrichedMerchantInfo(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    official_name: str
    website: str = ""


class EnrichedData(BaseModel):
    """A resolved (merchant, category) pair as stored in the enrichment cache."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    merchant: str
    category: Category
    enriched_info: EnrichedMerchantInfo | None = None

    @field_validator("merchant", "category")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must be a non-empty string")
        return v


@dataclass(frozen=True, slots=True)
class TransactionToEnrich:
    """One unresolved item of a batched enrichment request.

    ``index`` is the caller's position in its own collection and is echoed
    back on the matching :class:`BatchEnrichmentResult`.
    """

    index: int
    description: str
    cache_key: str
    identified_merchant: str | None = None


@dataclass(frozen=True, slots=True)
class BatchEnrichmentResult:
    index: int
    merchant: str
    category: Category
    enriched_info: EnrichedMerchantInfo | None = None


# ---------------------------------------------------------------------------
# Profile, budgets and planning
# ---------------------------------------------------------------------------


class FinancialGoal(StrEnum):
    SAVE_EMERGENCY = "save_emergency"
    PAY_DEBT = "pay_debt"
    INVEST = "invest"
    BUY_ASSET = "buy_asset"
    TRAVEL = "travel"
    CONTROL_SPEND = "control_spend"


GOAL_LABELS: dict[FinancialGoal, str] = {
    FinancialGoal.SAVE_EMERGENCY: "Build Emergency Fund",
    FinancialGoal.PAY_DEBT: "Pay Off Debt",
    FinancialGoal.INVEST: "Grow Investments",
    FinancialGoal.BUY_ASSET: "Buy Home/Car",
    FinancialGoal.TRAVEL: "Save for Travel",
    FinancialGoal.CONTROL_SPEND: "Control Spending",
}


@dataclass(frozen=True, slots=True)
class UserProfile:
    name: str
    primary_goal: FinancialGoal
    target_amount: float | None = None
    target_date: dt.date | None = None


class BudgetStrategy(StrEnum):
    AGGRESSIVE = "aggressive"
    MODERATE = "moderate"
    MAINTAIN = "maintain"
    INCREASE = "increase"
    CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class Budget:
    id: str
    category: Category
    limit: float
    strategy: BudgetStrategy
    period: str = "monthly"


@dataclass(frozen=True, slots=True)
class BudgetProposal:
    """An accepted draft, ready to be upserted as a :class:`Budget`."""

    category: Category
    limit: float
    strategy: BudgetStrategy
    period: str = "monthly"


@dataclass(frozen=True, slots=True)
class CategoryDraft:
    """Per-category planning state, recomputed on every planning session.

    ``history`` is aligned to the active-months window with index 0 being the
    most recent month. ``min`` is the lowest non-zero month (0 when the
    category has no non-zero month).
    """

    category: Category
    average: float
    min: float
    max: float
    history: tuple[float, ...]
    volatility: float
    active_months: int
    frequency: str
    limit: float
    strategy: BudgetStrategy
    is_discretionary: bool
    is_savings: bool
    is_modified: bool = False


@dataclass(frozen=True, slots=True)
class ImpactAnalysis:
    planned_net_savings: float
    new_total_budget: float
    risky_cuts: int
    freed_up_cash: float


@dataclass(frozen=True, slots=True)
class GoalProjection:
    months: int
    target_date: dt.date


@dataclass(frozen=True, slots=True)
class StrategyOption:
    """A one-click limit suggestion offered for a draft."""

    label: str
    limit: float
    strategy: BudgetStrategy


# ---------------------------------------------------------------------------
# Loyalty cards
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LoyaltyCard:
    id: str
    provider: str
    points: int
    last_updated: dt.date


__all__ = [
    "Budget",
    "BudgetProposal",
    "BudgetStrategy",
    "BatchEnrichmentResult",
    "CategorizationExample",
    "Category",
    "CategoryDraft",
    "EnrichedData",
    "EnrichedMerchantInfo",
    "FinancialGoal",
    "GOAL_LABELS",
    "GoalProjection",
    "HeuristicResult",
    "INTERNAL_TRANSFER_CATEGORY",
    "ImpactAnalysis",
    "LoyaltyCard",
    "OTHER_CATEGORY",
    "ParsedTransaction",
    "StrategyOption",
    "Transaction",
    "TransactionToEnrich",
    "TransactionType",
    "UNKNOWN_MERCHANT",
    "UNTITLED_MERCHANT",
    "UserProfile",
]
