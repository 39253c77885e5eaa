from __future__ import annotations

import pytest

from statement_insights.category_rules import CATEGORY_RULES, category_for
from statement_insights.heuristics import extract_merchant


@pytest.mark.parametrize(
    ("merchant", "category"),
    [
        ("NAIVAS SUPERMARKET", "Groceries"),
        ("Carrefour Two Rivers", "Groceries"),
        ("KPLC PREPAID", "Utilities"),
        ("Zuku Fiber", "Utilities"),
        ("JAVA HOUSE", "Eating Out"),
        ("Little Cab", "Transport"),
        ("TOTAL ENERGIES KILIMANI", "Transport"),
        ("Equity Bank", "Internal Transfer"),
        ("NHIF", "Health"),
        ("Netflix.com", "Entertainment"),
        ("JUMIA KENYA", "Shopping"),
    ],
)
def test_keyword_lookup(merchant: str, category: str) -> None:
    assert category_for(merchant) == category


def test_first_rule_wins_on_overlap() -> None:
    # "prepaid" (Utilities) is listed before the bank names.
    assert category_for("KCB Prepaid") == "Utilities"


def test_unknown_merchant_has_no_category() -> None:
    assert category_for("FRANCIS HAIR SALON") is None


def test_ride_hailing_falls_through_to_later_layers() -> None:
    merchant = extract_merchant(
        "DEBIT CARD TXN AT UBER * PENDING AMSTERDAM     17-11-2025 / 08:52:09"
    ).merchant
    assert merchant is not None and "UBER" in merchant
    assert category_for(merchant) is None


def test_keywords_are_lowercase() -> None:
    for rule in CATEGORY_RULES:
        assert all(k == k.lower() for k in rule.keywords)
