"""Enrichment orchestrator: the heuristic cascade in front of the remote model.

For each transaction the layers are consulted in order, each only when the
previous one produced no category:

1. pattern extractor (:mod:`statement_insights.heuristics`) for a candidate
   merchant and the cache key;
2. keyword rule table (:mod:`statement_insights.category_rules`) by candidate
   merchant; a hit returns immediately without touching the cache;
3. enrichment cache by cache key;
4. remote client. Successful results are cached under the cache key. A failed
   call yields the degraded ``{merchant: candidate or "Unknown",
   category: "Other"}`` result, which is never cached.

The only side effect is cache mutation (and, through the cache, durable
storage).
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, replace
from urllib.parse import urlparse

from .cache import EnrichmentCache
from .category_rules import category_for
from .errors import RemoteCallError
from .heuristics import extract_merchant
from .logging_setup import get_logger
from .models import (
    INTERNAL_TRANSFER_CATEGORY,
    OTHER_CATEGORY,
    UNKNOWN_MERCHANT,
    UNTITLED_MERCHANT,
    BatchEnrichmentResult,
    CategorizationExample,
    EnrichedData,
    EnrichedMerchantInfo,
    ParsedTransaction,
    Transaction,
    TransactionToEnrich,
)
from .remote import EnrichmentClient

_logger = get_logger("statement_insights.enrich")

DEFAULT_BATCH_SIZE: int = 20


def _fallback(index: int, merchant: str | None) -> BatchEnrichmentResult:
    return BatchEnrichmentResult(
        index=index, merchant=merchant or UNKNOWN_MERCHANT, category=OTHER_CATEGORY
    )


def _degraded(tx: ParsedTransaction, candidate: str | None) -> ParsedTransaction:
    return replace(
        tx, merchant=candidate or UNKNOWN_MERCHANT, category=OTHER_CATEGORY, enriched_info=None
    )


def _merge(
    tx: ParsedTransaction,
    *,
    merchant: str,
    category: str,
    enriched_info: EnrichedMerchantInfo | None,
) -> ParsedTransaction:
    return replace(tx, merchant=merchant, category=category, enriched_info=enriched_info)


@dataclass(frozen=True, slots=True)
class EnrichmentReport:
    """Outcome of :meth:`Enricher.enrich_all`.

    ``transactions`` follows the input order. The counters partition it:
    rule table or cache hits, remote successes, and degraded fallbacks.
    """

    transactions: list[ParsedTransaction]
    resolved_locally: int
    resolved_remotely: int
    fallbacks: int


class Enricher:
    """Runs the cascade against an injected cache and remote client.

    ``client`` may be ``None`` (offline mode); every item that would need the
    remote layer then receives the degraded result.
    """

    def __init__(self, cache: EnrichmentCache, client: EnrichmentClient | None) -> None:
        self._cache = cache
        self._client = client

    # -- single item ---------------------------------------------------------

    def enrich(
        self,
        transaction: ParsedTransaction,
        examples: Sequence[CategorizationExample] = (),
    ) -> ParsedTransaction:
        heuristic = extract_merchant(transaction.description)
        candidate = heuristic.merchant

        if candidate is not None:
            rule_category = category_for(candidate)
            if rule_category is not None:
                _logger.debug("enrich:rule_hit merchant=%s category=%s", candidate, rule_category)
                return _merge(
                    transaction, merchant=candidate, category=rule_category, enriched_info=None
                )

        cached = self._cache.get(heuristic.cache_key)
        if cached is not None:
            _logger.debug("enrich:cache_hit key=%s", heuristic.cache_key)
            return _merge(
                transaction,
                merchant=candidate or cached.merchant,
                category=cached.category,
                enriched_info=cached.enriched_info,
            )

        if self._client is None:
            return _degraded(transaction, candidate)

        try:
            result = self._client.enrich(
                transaction.description, merchant_hint=candidate, examples=examples
            )
        except RemoteCallError as e:
            _logger.warning(
                "enrich:remote_failed key=%s attempts=%d error=%s",
                heuristic.cache_key,
                e.attempts,
                e.__class__.__name__,
            )
            return _degraded(transaction, candidate)

        self._cache.set(heuristic.cache_key, result)
        _logger.info("enrich:remote_done key=%s category=%s", heuristic.cache_key, result.category)
        return _merge(
            transaction,
            merchant=candidate or result.merchant,
            category=result.category,
            enriched_info=result.enriched_info,
        )

    # -- collections ---------------------------------------------------------

    def plan(
        self, transactions: Sequence[ParsedTransaction]
    ) -> tuple[list[ParsedTransaction], list[TransactionToEnrich]]:
        """Resolve what can be resolved locally.

        Returns the transactions with rule table and cache resolutions applied
        (unresolved ones keep their candidate merchant, if any) and the items
        still needing the remote layer. Each item's ``index`` is its position
        in ``transactions``.
        """

        resolved: list[ParsedTransaction] = []
        pending: list[TransactionToEnrich] = []
        for index, tx in enumerate(transactions):
            heuristic = extract_merchant(tx.description)
            candidate = heuristic.merchant
            rule_category = category_for(candidate) if candidate is not None else None
            if rule_category is not None:
                resolved.append(
                    _merge(tx, merchant=candidate or "", category=rule_category, enriched_info=None)
                )
                continue
            cached = self._cache.get(heuristic.cache_key)
            if cached is not None:
                resolved.append(
                    _merge(
                        tx,
                        merchant=candidate or cached.merchant,
                        category=cached.category,
                        enriched_info=cached.enriched_info,
                    )
                )
                continue
            resolved.append(replace(tx, merchant=candidate) if candidate else tx)
            pending.append(
                TransactionToEnrich(
                    index=index,
                    description=tx.description,
                    cache_key=heuristic.cache_key,
                    identified_merchant=candidate,
                )
            )
        return resolved, pending

    def enrich_batch(
        self,
        items: Sequence[TransactionToEnrich],
        examples: Sequence[CategorizationExample] = (),
    ) -> list[BatchEnrichmentResult]:
        """Resolve ``items`` with at most one remote call.

        Cached items are answered locally. Every output carries the caller's
        ``index`` and outputs follow input order. Items the remote call failed
        to answer get the fallback; only remote successes are cached.
        """

        results, _ = self._resolve_batch(items, examples)
        return results

    def _resolve_batch(
        self,
        items: Sequence[TransactionToEnrich],
        examples: Sequence[CategorizationExample],
    ) -> tuple[list[BatchEnrichmentResult], set[int]]:
        answered: dict[int, BatchEnrichmentResult] = {}
        misses: list[TransactionToEnrich] = []
        for item in items:
            cached = self._cache.get(item.cache_key)
            if cached is None:
                misses.append(item)
                continue
            answered[item.index] = BatchEnrichmentResult(
                index=item.index,
                merchant=item.identified_merchant or cached.merchant,
                category=cached.category,
                enriched_info=cached.enriched_info,
            )

        if misses and self._client is not None:
            try:
                remote = self._client.enrich_batch(misses, examples)
            except RemoteCallError as e:
                _logger.warning(
                    "enrich:batch_failed items=%d attempts=%d error=%s",
                    len(misses),
                    e.attempts,
                    e.__class__.__name__,
                )
                remote = []
            by_index = {item.index: item for item in misses}
            for r in remote:
                item = by_index.get(r.index)
                if item is None or r.index in answered:
                    continue
                data = EnrichedData(
                    merchant=r.merchant, category=r.category, enriched_info=r.enriched_info
                )
                self._cache.set(item.cache_key, data)
                answered[r.index] = replace(r, merchant=item.identified_merchant or r.merchant)

        out: list[BatchEnrichmentResult] = []
        fallback_indices: set[int] = set()
        for item in items:
            result = answered.get(item.index)
            if result is None:
                fallback_indices.add(item.index)
                result = _fallback(item.index, item.identified_merchant)
            out.append(result)
        if fallback_indices:
            _logger.info("enrich:batch_fallbacks count=%d", len(fallback_indices))
        return out, fallback_indices

    def enrich_all(
        self,
        transactions: Sequence[ParsedTransaction],
        examples: Sequence[CategorizationExample] = (),
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> EnrichmentReport:
        """Plan locally, enrich the rest in batches and scatter results back."""

        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        resolved, pending = self.plan(transactions)
        out = list(resolved)
        fallbacks = 0
        for start in range(0, len(pending), batch_size):
            chunk = pending[start : start + batch_size]
            _logger.info(
                "enrich:batch start=%d size=%d total_pending=%d", start, len(chunk), len(pending)
            )
            results, failed = self._resolve_batch(chunk, examples)
            fallbacks += len(failed)
            for r in results:
                out[r.index] = _merge(
                    out[r.index],
                    merchant=r.merchant,
                    category=r.category,
                    enriched_info=r.enriched_info,
                )
        return EnrichmentReport(
            transactions=out,
            resolved_locally=len(transactions) - len(pending),
            resolved_remotely=len(pending) - fallbacks,
            fallbacks=fallbacks,
        )


def _logo_host(info: EnrichedMerchantInfo | None) -> str | None:
    website = info.website if info is not None else ""
    if not website.startswith(("http://", "https://")):
        return None
    try:
        return urlparse(website).hostname or None
    except ValueError:
        return None


def finalize_import(
    parsed: Sequence[ParsedTransaction], *, account_id: str
) -> list[Transaction]:
    """Turn confirmed import rows into ledger transactions.

    Missing merchants become ``"Untitled"`` and missing categories ``"Other"``;
    rows categorized as internal transfers are flagged as transfers.
    """

    out: list[Transaction] = []
    for pt in parsed:
        category = pt.category or OTHER_CATEGORY
        out.append(
            Transaction(
                id=uuid.uuid4().hex,
                account_id=account_id,
                date=pt.date,
                merchant=pt.merchant or UNTITLED_MERCHANT,
                amount=pt.amount,
                type=pt.type,
                category=category,
                description=pt.description,
                logo_url=_logo_host(pt.enriched_info),
                is_transfer=category == INTERNAL_TRANSFER_CATEGORY,
            )
        )
    return out


__all__ = ["DEFAULT_BATCH_SIZE", "Enricher", "EnrichmentReport", "finalize_import"]
