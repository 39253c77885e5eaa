"""Ledger operations over immutable snapshots.

Each function takes the current collection and returns a new one; callers
own persistence.
"""

from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from .heuristics import extract_points
from .logging_setup import get_logger
from .models import (
    INTERNAL_TRANSFER_CATEGORY,
    Budget,
    BudgetProposal,
    CategorizationExample,
    Category,
    LoyaltyCard,
    Transaction,
)

_logger = get_logger("statement_insights.ledger")

type DedupeKey = tuple[dt.date, str, float, str, str]


def _dedupe_key(t: Transaction) -> DedupeKey:
    return (t.date, t.description.strip(), t.amount, str(t.type), t.account_id)


@dataclass(frozen=True, slots=True)
class ImportOutcome:
    transactions: list[Transaction]
    added: list[Transaction]
    skipped: int
    new_categories: list[Category]


def import_transactions(
    existing: Sequence[Transaction],
    imported: Iterable[Transaction],
    *,
    known_categories: Iterable[Category] = (),
) -> ImportOutcome:
    """Append imported rows that are not already in the ledger.

    A row duplicates an existing one when date, trimmed description, amount,
    type and account all match. Rows inside one import are not deduplicated
    against each other. Rows without an id get a fresh one.
    """

    seen = {_dedupe_key(t) for t in existing}
    added: list[Transaction] = []
    skipped = 0
    for t in imported:
        if _dedupe_key(t) in seen:
            skipped += 1
            continue
        added.append(t if t.id else replace(t, id=uuid.uuid4().hex))

    known = set(known_categories) | {t.category for t in existing}
    new_categories = sorted({t.category for t in added} - known)
    _logger.info("ledger:import added=%d skipped=%d", len(added), skipped)
    return ImportOutcome(
        transactions=[*existing, *added],
        added=added,
        skipped=skipped,
        new_categories=new_categories,
    )


def update_category(
    transactions: Sequence[Transaction], tx_id: str, category: Category
) -> list[Transaction]:
    """Recategorize one transaction; ``Internal Transfer`` also marks it a transfer."""

    return [
        replace(t, category=category, is_transfer=category == INTERNAL_TRANSFER_CATEGORY)
        if t.id == tx_id
        else t
        for t in transactions
    ]


def mark_transfers(
    transactions: Sequence[Transaction], pairs: Iterable[Iterable[str]]
) -> list[Transaction]:
    """Flag every transaction in the confirmed pairs as an internal transfer."""

    linked = {tx_id for pair in pairs for tx_id in pair}
    return [
        replace(t, is_transfer=True, category=INTERNAL_TRANSFER_CATEGORY) if t.id in linked else t
        for t in transactions
    ]


def learn_example(
    examples: Sequence[CategorizationExample],
    description: str,
    category: Category,
    *,
    is_logical: bool,
) -> list[CategorizationExample]:
    if not is_logical:
        _logger.info("ledger:example_rejected category=%s", category)
        return list(examples)
    return [*examples, CategorizationExample(description=description, category=category)]


def upsert_budgets(budgets: Sequence[Budget], proposals: Iterable[BudgetProposal]) -> list[Budget]:
    """Replace budgets by category (keeping their id) or insert new ones."""

    out = list(budgets)
    position = {b.category: i for i, b in enumerate(out)}
    for p in proposals:
        idx = position.get(p.category)
        if idx is not None:
            out[idx] = Budget(
                id=out[idx].id,
                category=p.category,
                limit=p.limit,
                strategy=p.strategy,
                period=p.period,
            )
        else:
            position[p.category] = len(out)
            out.append(
                Budget(
                    id=uuid.uuid4().hex,
                    category=p.category,
                    limit=p.limit,
                    strategy=p.strategy,
                    period=p.period,
                )
            )
    return out


def apply_loyalty_points(
    cards: Sequence[LoyaltyCard],
    transaction: Transaction,
    *,
    today: dt.date | None = None,
) -> list[LoyaltyCard] | None:
    """Update the loyalty card of the transaction's merchant from its description.

    Returns the new card list, or ``None`` when the description carries no
    points balance. Providers match the merchant case-insensitively; an
    unknown provider gets a new card.
    """

    points = extract_points(transaction.description)
    if points is None:
        return None
    stamp = today or dt.date.today()
    provider = transaction.merchant
    out = list(cards)
    for i, card in enumerate(out):
        if card.provider.lower() == provider.lower():
            out[i] = replace(card, points=points, last_updated=stamp)
            return out
    out.append(LoyaltyCard(id=uuid.uuid4().hex, provider=provider, points=points, last_updated=stamp))
    return out


__all__ = [
    "ImportOutcome",
    "apply_loyalty_points",
    "import_transactions",
    "learn_example",
    "mark_transfers",
    "update_category",
    "upsert_budgets",
]
