from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from statement_insights.cache import EnrichmentCache
from statement_insights.enrich import Enricher, finalize_import
from statement_insights.models import (
    EnrichedData,
    EnrichedMerchantInfo,
    ParsedTransaction,
    TransactionToEnrich,
    TransactionType,
)
from statement_insights.storage import JsonFileStore, MemoryStore
from tests.helpers.fake_client import FakeEnrichmentClient

UBER_DEBIT = (
    "DEBIT CARD TXN AT UBER * PENDING AMSTERDAM     17-11-2025 / 08:52:09 "
    "47-83-9408 16530408 4783940816530408"
)
UBER_KEY = "UBER * PENDING AMSTERDAM"


def _pt(description: str, *, amount: float = 100.0) -> ParsedTransaction:
    return ParsedTransaction(
        description=description,
        amount=amount,
        type=TransactionType.EXPENSE,
        date=dt.date(2025, 11, 17),
    )


def _uber_decider(description: str, hint: str | None) -> EnrichedData | None:
    return EnrichedData(
        merchant="Uber",
        category="Transport",
        enriched_info=EnrichedMerchantInfo(official_name="Uber", website="https://www.uber.com"),
    )


@pytest.fixture
def cache() -> EnrichmentCache:
    return EnrichmentCache(MemoryStore())


# ---- single item --------------------------------------------------------------


def test_rule_hit_skips_cache_and_remote(cache: EnrichmentCache) -> None:
    client = FakeEnrichmentClient(_uber_decider)
    out = Enricher(cache, client).enrich(_pt("Lipa na M-PESA to NAIVAS WESTGATE"))
    assert (out.merchant, out.category) == ("NAIVAS WESTGATE", "Groceries")
    assert client.total_calls == 0
    assert len(cache) == 0


def test_uber_end_to_end_remote_then_cache(cache: EnrichmentCache) -> None:
    client = FakeEnrichmentClient(_uber_decider)
    enricher = Enricher(cache, client)

    first = enricher.enrich(_pt(UBER_DEBIT))
    # The extracted name is preferred over the remote one for display.
    assert first.merchant == UBER_KEY
    assert first.category == "Transport"
    assert client.single_calls == [(UBER_DEBIT, UBER_KEY)]
    assert cache.get(UBER_KEY) is not None

    second = enricher.enrich(_pt(UBER_DEBIT))
    assert (second.merchant, second.category) == (first.merchant, first.category)
    assert second.enriched_info == first.enriched_info
    assert client.total_calls == 1


def test_cache_hit_without_candidate_uses_cached_merchant(cache: EnrichmentCache) -> None:
    cache.set("Funds transfer ref 991", EnrichedData(merchant="Mum", category="Family"))
    client = FakeEnrichmentClient(_uber_decider)
    out = Enricher(cache, client).enrich(_pt("  Funds transfer ref 991 "))
    assert (out.merchant, out.category) == ("Mum", "Family")
    assert client.total_calls == 0


def test_remote_failure_degrades_and_is_not_cached(cache: EnrichmentCache) -> None:
    client = FakeEnrichmentClient(_uber_decider, fail=True)
    enricher = Enricher(cache, client)

    with_candidate = enricher.enrich(_pt(UBER_DEBIT))
    assert (with_candidate.merchant, with_candidate.category) == (UBER_KEY, "Other")

    without = enricher.enrich(_pt("mystery charge"))
    assert (without.merchant, without.category) == ("Unknown", "Other")
    assert len(cache) == 0

    # A later successful pass can still resolve it.
    later = Enricher(cache, FakeEnrichmentClient(_uber_decider)).enrich(_pt(UBER_DEBIT))
    assert later.category == "Transport"


def test_offline_enricher_degrades_without_calls(cache: EnrichmentCache) -> None:
    out = Enricher(cache, None).enrich(_pt("mystery charge"))
    assert (out.merchant, out.category) == ("Unknown", "Other")


def test_enrichment_persists_across_processes() -> None:
    Enricher(EnrichmentCache(JsonFileStore()), FakeEnrichmentClient(_uber_decider)).enrich(
        _pt(UBER_DEBIT)
    )
    client = FakeEnrichmentClient(_uber_decider)
    out = Enricher(EnrichmentCache(JsonFileStore()), client).enrich(_pt(UBER_DEBIT))
    assert out.category == "Transport"
    assert client.total_calls == 0


# ---- batches ------------------------------------------------------------------


def test_batch_preserves_caller_indices_and_input_order(cache: EnrichmentCache) -> None:
    def _decide(description: str, hint: str | None) -> EnrichedData | None:
        if description == "skip me":
            return None
        return EnrichedData(merchant=description.upper(), category="Shopping")

    client = FakeEnrichmentClient(_decide, reverse_batch=True)
    items = [
        TransactionToEnrich(index=10, description="alpha", cache_key="alpha"),
        TransactionToEnrich(index=4, description="skip me", cache_key="skip me"),
        TransactionToEnrich(index=7, description="beta", cache_key="BETA", identified_merchant="BETA"),
    ]
    out = Enricher(cache, client).enrich_batch(items)

    assert [r.index for r in out] == [10, 4, 7]
    assert [(r.merchant, r.category) for r in out] == [
        ("ALPHA", "Shopping"),
        ("Unknown", "Other"),
        ("BETA", "Shopping"),
    ]
    assert len(client.batch_calls) == 1
    assert "skip me" not in cache
    assert "alpha" in cache and "BETA" in cache


def test_batch_failure_falls_back_per_item(cache: EnrichmentCache) -> None:
    client = FakeEnrichmentClient(_uber_decider, fail=True)
    items = [
        TransactionToEnrich(index=0, description="x", cache_key="x"),
        TransactionToEnrich(index=1, description=UBER_DEBIT, cache_key=UBER_KEY, identified_merchant=UBER_KEY),
    ]
    out = Enricher(cache, client).enrich_batch(items)
    assert [(r.index, r.merchant, r.category) for r in out] == [
        (0, "Unknown", "Other"),
        (1, UBER_KEY, "Other"),
    ]
    assert len(cache) == 0


def test_batch_answers_cached_items_locally(cache: EnrichmentCache) -> None:
    cache.set("x", EnrichedData(merchant="X Ltd", category="Rent"))
    client = FakeEnrichmentClient(_uber_decider)
    out = Enricher(cache, client).enrich_batch(
        [TransactionToEnrich(index=5, description="x", cache_key="x")]
    )
    assert [(r.index, r.merchant, r.category) for r in out] == [(5, "X Ltd", "Rent")]
    assert client.total_calls == 0


def test_enrich_all_plans_locally_and_scatters_results(cache: EnrichmentCache) -> None:
    cache.set("Standing order 42", EnrichedData(merchant="Landlord", category="Rent"))
    client = FakeEnrichmentClient(_uber_decider)
    txs = [
        _pt(UBER_DEBIT),
        _pt("Lipa na M-PESA to CARREFOUR JUNCTION"),
        _pt("Standing order 42"),
        _pt("DEBIT CARD TXN AT UBER * TRIP NAIROBI  18-11-2025"),
    ]
    report = Enricher(cache, client).enrich_all(txs, batch_size=1)

    assert [t.category for t in report.transactions] == [
        "Transport",
        "Groceries",
        "Rent",
        "Transport",
    ]
    assert report.transactions[0].merchant == UBER_KEY
    assert report.transactions[3].merchant == "UBER * TRIP NAIROBI"
    assert (report.resolved_locally, report.resolved_remotely, report.fallbacks) == (2, 2, 0)
    assert len(client.batch_calls) == 2
    assert client.single_calls == []


def test_enrich_all_counts_fallbacks(cache: EnrichmentCache) -> None:
    report = Enricher(cache, None).enrich_all([_pt("a"), _pt("Lipa na M-PESA to NAIVAS")])
    assert [t.category for t in report.transactions] == ["Other", "Groceries"]
    assert (report.resolved_locally, report.resolved_remotely, report.fallbacks) == (1, 0, 1)


def test_plan_returns_pending_items_with_positions(cache: EnrichmentCache) -> None:
    resolved, pending = Enricher(cache, None).plan(
        [_pt("Lipa na M-PESA to NAIVAS"), _pt(UBER_DEBIT), _pt(" odd ")]
    )
    assert resolved[0].category == "Groceries"
    assert resolved[1].merchant == UBER_KEY and resolved[1].category is None
    assert [(p.index, p.cache_key, p.identified_merchant) for p in pending] == [
        (1, UBER_KEY, UBER_KEY),
        (2, "odd", None),
    ]


# ---- confirmation -------------------------------------------------------------


def test_finalize_import_applies_defaults() -> None:
    rows = [
        _pt("unknown row"),
        ParsedTransaction(
            description="To savings",
            amount=5000,
            type=TransactionType.EXPENSE,
            date=dt.date(2025, 11, 1),
            merchant="Equity",
            category="Internal Transfer",
        ),
        ParsedTransaction(
            description="Uber",
            amount=800,
            type=TransactionType.EXPENSE,
            date=dt.date(2025, 11, 2),
            merchant="Uber",
            category="Transport",
            enriched_info=EnrichedMerchantInfo(official_name="Uber", website="https://www.uber.com/ke"),
        ),
        ParsedTransaction(
            description="Shop",
            amount=10,
            type=TransactionType.EXPENSE,
            date=dt.date(2025, 11, 3),
            merchant="Shop",
            category="Shopping",
            enriched_info=EnrichedMerchantInfo(official_name="Shop", website="shop.co.ke"),
        ),
    ]
    out = finalize_import(rows, account_id="mpesa")

    assert (out[0].merchant, out[0].category, out[0].is_transfer) == ("Untitled", "Other", False)
    assert out[1].is_transfer is True
    assert out[2].logo_url == "www.uber.com"
    assert out[3].logo_url is None
    assert all(t.account_id == "mpesa" for t in out)
    assert len({t.id for t in out}) == 4


def test_unwritable_data_dir_does_not_lose_remote_result(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "occupied"
    not_a_dir.write_text("x", encoding="utf-8")
    cache = EnrichmentCache(JsonFileStore(not_a_dir))
    client = FakeEnrichmentClient(_uber_decider)
    enricher = Enricher(cache, client)

    out = enricher.enrich(_pt(UBER_DEBIT))
    assert (out.merchant, out.category) == (UBER_KEY, "Transport")

    report = enricher.enrich_all([_pt("DEBIT CARD TXN AT UBER * TRIP NAIROBI  18-11-2025")])
    assert report.transactions[0].category == "Transport"
    assert report.fallbacks == 0
