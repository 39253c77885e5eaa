"""Remote enrichment and parsing client backed by the OpenAI Responses API.

Public API:
    - :class:`EnrichmentClient` (the collaborator protocol the orchestrator uses)
    - :class:`OpenAIEnrichmentClient`
    - :func:`with_backoff`

No side effects occur at import time: the OpenAI client is created lazily on
the first call, so constructing :class:`OpenAIEnrichmentClient` does not
require ``OPENAI_API_KEY``.
"""

from __future__ import annotations

import datetime as dt
import time
from collections.abc import Callable, Sequence
from typing import Any, Protocol

from openai import OpenAI
from openai.types.responses import ResponseTextConfigParam

from . import prompting
from .config import RetryPolicy, get_model
from .errors import MalformedResponseError, RemoteCallError, StatementParseError
from .logging_setup import get_logger
from .models import (
    OTHER_CATEGORY,
    BatchEnrichmentResult,
    CategorizationExample,
    EnrichedData,
    ParsedTransaction,
    Transaction,
    TransactionToEnrich,
)
from .responses import (
    BasicInfoBody,
    BatchBody,
    EnrichmentBody,
    StatementBody,
    TransferPairsBody,
    ValidationBody,
    first_citation,
    parse_model,
)

_logger = get_logger("statement_insights.remote")

# Categories that never need a logic check.
_ALWAYS_LOGICAL: frozenset[str] = frozenset({OTHER_CATEGORY.lower(), "general"})

_TRANSFER_WINDOW: int = 100


class EnrichmentClient(Protocol):
    def enrich(
        self,
        description: str,
        *,
        merchant_hint: str | None,
        examples: Sequence[CategorizationExample],
    ) -> EnrichedData: ...

    def enrich_batch(
        self,
        items: Sequence[TransactionToEnrich],
        examples: Sequence[CategorizationExample],
    ) -> list[BatchEnrichmentResult]: ...


def with_backoff[T](fn: Callable[[], T], policy: RetryPolicy, *, label: str) -> T:
    """Call ``fn`` up to ``policy.attempts`` times with exponential backoff.

    Every exception counts as a failed attempt, malformed model output
    included. On exhaustion a :class:`RemoteCallError` (or
    :class:`MalformedResponseError` when the last failure was a decode error)
    is raised, chained to the last underlying exception.
    """

    attempt = 1
    while True:
        t0 = time.perf_counter()
        try:
            return fn()
        except Exception as e:  # noqa: BLE001
            dt_ms = (time.perf_counter() - t0) * 1000.0
            if attempt >= policy.attempts:
                _logger.error(
                    "remote:failed_terminal label=%s attempts=%d latency_ms=%.2f error=%s",
                    label,
                    attempt,
                    dt_ms,
                    e.__class__.__name__,
                )
                err_cls = (
                    MalformedResponseError if isinstance(e, MalformedResponseError) else RemoteCallError
                )
                raise err_cls(
                    f"{label} failed after {attempt} attempt(s): {e}", attempts=attempt
                ) from e
            delay = policy.delay_for(attempt)
            _logger.warning(
                "remote:retry label=%s attempt=%d latency_ms=%.2f error=%s delay_s=%.2f",
                label,
                attempt,
                dt_ms,
                e.__class__.__name__,
                delay,
            )
            time.sleep(delay)
            attempt += 1


def _create_client() -> OpenAI:
    return OpenAI()


class OpenAIEnrichmentClient:
    """Concrete :class:`EnrichmentClient` plus the statement-parsing calls."""

    def __init__(
        self,
        *,
        model: str | None = None,
        retry: RetryPolicy | None = None,
        client: Any | None = None,
    ) -> None:
        self._model = model or get_model()
        self._retry = retry or RetryPolicy()
        self._client = client
        self._validation_memo: dict[tuple[str, str], bool] = {}

    @property
    def model(self) -> str:
        return self._model

    def _openai(self) -> Any:
        if self._client is None:
            self._client = _create_client()
        return self._client

    def _create(
        self,
        *,
        instructions: str,
        user_content: str,
        text_format: Any,
        web_search: bool,
    ) -> Any:
        text_cfg: ResponseTextConfigParam = {"format": text_format}
        kwargs: dict[str, Any] = {
            "model": self._model,
            "instructions": instructions,
            "input": user_content,
            "text": text_cfg,
        }
        if web_search:
            kwargs["tools"] = [{"type": "web_search"}]
            kwargs["tool_choice"] = "auto"
        return self._openai().responses.create(**kwargs)

    # -- enrichment ----------------------------------------------------------

    def enrich(
        self,
        description: str,
        *,
        merchant_hint: str | None,
        examples: Sequence[CategorizationExample],
    ) -> EnrichedData:
        user_content = prompting.build_enrich_content(
            description, merchant_hint=merchant_hint, examples=examples
        )

        def _call() -> EnrichedData:
            resp = self._create(
                instructions=prompting.build_enrichment_instructions(),
                user_content=user_content,
                text_format=prompting.enrichment_response_format(),
                web_search=True,
            )
            body = parse_model(resp, EnrichmentBody)
            return EnrichedData(
                merchant=body.merchant,
                category=body.category,
                enriched_info=body.enriched_info or first_citation(resp),
            )

        return with_backoff(_call, self._retry, label="enrich")

    def enrich_batch(
        self,
        items: Sequence[TransactionToEnrich],
        examples: Sequence[CategorizationExample],
    ) -> list[BatchEnrichmentResult]:
        """Enrich many items in one call.

        Returns only the results the model produced for known indices; the
        orchestrator fills in fallbacks for anything missing.
        """

        if not items:
            return []
        payload = [
            {
                "index": it.index,
                "description": it.description,
                "task": prompting.task_for(it.identified_merchant),
                "merchant": it.identified_merchant,
            }
            for it in items
        ]
        user_content = prompting.build_batch_content(payload, examples)
        known = {it.index for it in items}

        def _call() -> list[BatchEnrichmentResult]:
            resp = self._create(
                instructions=prompting.build_enrichment_instructions(),
                user_content=user_content,
                text_format=prompting.batch_response_format(),
                web_search=True,
            )
            body = parse_model(resp, BatchBody)
            out: list[BatchEnrichmentResult] = []
            seen: set[int] = set()
            for r in body.results:
                if r.index not in known or r.index in seen:
                    continue
                seen.add(r.index)
                out.append(
                    BatchEnrichmentResult(
                        index=r.index,
                        merchant=r.merchant,
                        category=r.category,
                        enriched_info=r.enriched_info,
                    )
                )
            return out

        results = with_backoff(_call, self._retry, label="enrich_batch")
        _logger.info("remote:batch_done requested=%d returned=%d", len(items), len(results))
        return results

    # -- parsing -------------------------------------------------------------

    def parse_basic_info(self, text: str) -> ParsedTransaction:
        """Pull amount, description and type out of a free-text notification.

        The date is not part of the answer; the row is stamped with today.
        """

        user_content = prompting.build_basic_info_content(text)

        def _call() -> BasicInfoBody:
            resp = self._create(
                instructions=prompting.build_parsing_instructions(),
                user_content=user_content,
                text_format=prompting.basic_info_response_format(),
                web_search=False,
            )
            return parse_model(resp, BasicInfoBody)

        try:
            body = with_backoff(_call, self._retry, label="parse_basic_info")
        except RemoteCallError as e:
            raise StatementParseError(
                "Could not read the transaction details; please enter them manually"
            ) from e
        return ParsedTransaction(
            description=body.description or text.strip(),
            amount=body.amount,
            type=body.type,
            date=_today(),
        )

    def parse_statement(self, csv_text: str) -> list[ParsedTransaction]:
        user_content = prompting.build_statement_content(csv_text)

        def _call() -> StatementBody:
            resp = self._create(
                instructions=prompting.build_parsing_instructions(),
                user_content=user_content,
                text_format=prompting.statement_response_format(),
                web_search=False,
            )
            return parse_model(resp, StatementBody)

        try:
            body = with_backoff(_call, self._retry, label="parse_statement")
        except RemoteCallError as e:
            raise StatementParseError(
                "Could not parse the statement; please enter the transactions manually"
            ) from e
        return [
            ParsedTransaction(
                description=row.description,
                amount=row.amount,
                type=row.type,
                date=row.date,
            )
            for row in body.transactions
        ]

    # -- reconciliation ------------------------------------------------------

    def suggest_transfer_pairs(self, transactions: Sequence[Transaction]) -> list[list[Transaction]]:
        """Suggest groups of transactions that look like own-account transfers.

        Considers the most recent non-transfer transactions only. Failures are
        logged and yield no suggestions.
        """

        candidates = sorted(
            (t for t in transactions if not t.is_transfer),
            key=lambda t: t.date,
            reverse=True,
        )[:_TRANSFER_WINDOW]
        if len(candidates) < 2:
            return []
        by_id = {t.id: t for t in candidates}
        payload = [
            {
                "id": t.id,
                "date": t.date.isoformat(),
                "amount": t.amount,
                "type": str(t.type),
                "description": t.description,
                "account_id": t.account_id,
            }
            for t in candidates
        ]
        user_content = prompting.build_transfer_pairs_content(payload)

        def _call() -> TransferPairsBody:
            resp = self._create(
                instructions=prompting.build_parsing_instructions(),
                user_content=user_content,
                text_format=prompting.transfer_pairs_response_format(),
                web_search=False,
            )
            return parse_model(resp, TransferPairsBody)

        try:
            body = with_backoff(_call, self._retry, label="suggest_transfer_pairs")
        except RemoteCallError as e:
            _logger.warning("remote:transfer_pairs_failed error=%s", e.__class__.__name__)
            return []

        pairs: list[list[Transaction]] = []
        for pair in body.pairs:
            group = [by_id[i] for i in dict.fromkeys(pair.ids) if i in by_id]
            if len(group) >= 2:
                pairs.append(group)
        return pairs

    def validate_category_mismatch(self, description: str, category: str) -> bool:
        """Return whether ``category`` is a plausible choice for ``description``.

        Makes a single attempt; any failure counts as logical so a user's
        choice is never blocked by an outage.
        """

        if category.strip().lower() in _ALWAYS_LOGICAL:
            return True
        memo_key = (description.strip().lower(), category.strip().lower())
        if memo_key in self._validation_memo:
            return self._validation_memo[memo_key]

        user_content = prompting.build_validation_content(description, category)

        def _call() -> bool:
            resp = self._create(
                instructions=prompting.build_parsing_instructions(),
                user_content=user_content,
                text_format=prompting.validation_response_format(),
                web_search=False,
            )
            return parse_model(resp, ValidationBody).is_logical

        try:
            verdict = with_backoff(_call, RetryPolicy(attempts=1), label="validate_category")
        except RemoteCallError:
            return True
        self._validation_memo[memo_key] = verdict
        return verdict


def _today() -> dt.date:
    return dt.date.today()


__all__ = ["EnrichmentClient", "OpenAIEnrichmentClient", "with_backoff"]
