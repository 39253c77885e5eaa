"""Keyword table mapping merchant names to categories.

A fast on-device lookup consulted before the cache and the remote model.
Matching is a case-insensitive substring test; the first rule with a matching
keyword wins, so overlapping keywords resolve by table order. Bank names sit
after the utilities and retail rules because a bill payee such as
"KCB Prepaid" must not be read as a transfer between own accounts.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import INTERNAL_TRANSFER_CATEGORY, Category


@dataclass(frozen=True, slots=True)
class CategoryRule:
    keywords: tuple[str, ...]
    category: Category


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(("naivas", "carrefour", "quickmart", "chandarana", "cleanshelf"), "Groceries"),
    CategoryRule(("kplc", "kenya power", "prepaid", "postpaid"), "Utilities"),
    CategoryRule(("zuku", "safaricom home", "faiba"), "Utilities"),
    CategoryRule(("nairobi water", "nwsc"), "Utilities"),
    CategoryRule(("java", "artcaffe", "kfc", "dominos", "pizza inn", "chicken inn"), "Eating Out"),
    CategoryRule(("little cab",), "Transport"),
    CategoryRule(("total", "shell", "rubis"), "Transport"),
    CategoryRule(
        ("equity", "kcb", "co-op", "coop", "standard chartered", "stanchart", "absa"),
        INTERNAL_TRANSFER_CATEGORY,
    ),
    CategoryRule(("nhif",), "Health"),
    CategoryRule(("gotv", "dstv", "netflix"), "Entertainment"),
    CategoryRule(("jumia", "kilimall"), "Shopping"),
)


def category_for(merchant_name: str) -> Category | None:
    """Return the category of the first rule whose keyword occurs in the name."""

    lowered = merchant_name.lower()
    for rule in CATEGORY_RULES:
        if any(keyword in lowered for keyword in rule.keywords):
            return rule.category
    return None


__all__ = ["CATEGORY_RULES", "CategoryRule", "category_for"]
