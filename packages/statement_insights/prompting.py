"""Prompt construction and strict response schemas for remote model calls.

This module builds:
- Deterministic JSON serialization of the items sent to the model, embedded
  between ``BEGIN_ITEMS_JSON`` / ``END_ITEMS_JSON`` markers.
- System instructions and user content per call type.
- The strict ``response_format`` (JSON Schema) objects for the OpenAI
  Responses API.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

from .models import CategorizationExample

BEGIN_MARKER = "BEGIN_ITEMS_JSON"
END_MARKER = "END_ITEMS_JSON"

TASK_CATEGORIZE = "categorize"
TASK_ENRICH = "enrich"


def task_for(merchant_hint: str | None) -> str:
    """``categorize`` when the merchant is already known, else ``enrich``."""

    return TASK_CATEGORIZE if merchant_hint else TASK_ENRICH


def _embed(items: Any) -> str:
    return f"{BEGIN_MARKER}\n{json.dumps(items, ensure_ascii=False)}\n{END_MARKER}"


def _examples_json(examples: Sequence[CategorizationExample]) -> str:
    return json.dumps(
        [{"description": e.description, "category": e.category} for e in examples],
        ensure_ascii=False,
    )


# ---------------------------------------------------------------------------
# Instructions
# ---------------------------------------------------------------------------


def build_enrichment_instructions() -> str:
    return (
        "You identify merchants and assign spending categories to Kenyan bank and "
        "M-PESA transactions. For task 'enrich', infer the merchant name from the "
        "description; for task 'categorize', keep the given merchant. Use web search "
        "to understand the business type when unsure. Prefer categories that appear "
        "in the user's examples. Output JSON only that conforms to the schema."
    )


def build_parsing_instructions() -> str:
    return (
        "You are a parser for Kenyan M-PESA and bank statements. Debit/Withdrawn "
        "amounts are expenses and Credit/Paid In amounts are income. Ignore balance "
        "columns. Dates are YYYY-MM-DD. Amounts are positive numbers. Output JSON "
        "only that conforms to the schema."
    )


# ---------------------------------------------------------------------------
# User content
# ---------------------------------------------------------------------------


def build_enrich_content(
    description: str,
    *,
    merchant_hint: str | None,
    examples: Sequence[CategorizationExample],
) -> str:
    item = {"description": description, "task": task_for(merchant_hint), "merchant": merchant_hint}
    return (
        f"Categorization examples: {_examples_json(examples)}\n"
        "Process this transaction:\n"
        f"{_embed([item])}"
    )


def build_batch_content(
    items: Sequence[Mapping[str, Any]],
    examples: Sequence[CategorizationExample],
) -> str:
    """Embed batch items; each carries the caller ``index`` to echo back."""

    return (
        f"Categorization examples: {_examples_json(examples)}\n"
        "Process every transaction below and return one result per input, "
        "echoing its 'index'.\n"
        f"{_embed(list(items))}"
    )


def build_basic_info_content(text: str) -> str:
    return (
        "Extract the amount, the full original description (for example "
        "'Lipa na M-PESA to Naivas') and the type ('income' or 'expense') from:\n"
        f"{_embed([text])}"
    )


def build_statement_content(csv_text: str) -> str:
    return f"Extract every transaction from this CSV statement:\n{_embed([csv_text])}"


def build_transfer_pairs_content(items: Sequence[Mapping[str, Any]]) -> str:
    return (
        "Find transfers between the user's own accounts: an expense and an income "
        "with the same amount on close dates. Return the ids of each pair.\n"
        f"{_embed(list(items))}"
    )


def build_validation_content(description: str, category: str) -> str:
    return (
        f"A user categorized the transaction below as {json.dumps(category)}. "
        "Is this logical?\n"
        f"{_embed([description])}"
    )


# ---------------------------------------------------------------------------
# Response formats
# ---------------------------------------------------------------------------

_ENRICHED_INFO_SCHEMA: dict[str, Any] = {
    "anyOf": [
        {
            "type": "object",
            "properties": {
                "official_name": {"type": "string"},
                "website": {"type": "string"},
            },
            "required": ["official_name", "website"],
            "additionalProperties": False,
        },
        {"type": "null"},
    ]
}


def _strict(name: str, properties: dict[str, Any]) -> ResponseFormatTextJSONSchemaConfigParam:
    return {
        "type": "json_schema",
        "name": name,
        "schema": {
            "type": "object",
            "properties": properties,
            "required": list(properties),
            "additionalProperties": False,
        },
        "strict": True,
    }


def _object(properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


def enrichment_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    return _strict(
        "merchant_enrichment",
        {
            "merchant": {"type": "string"},
            "category": {"type": "string"},
            "enriched_info": _ENRICHED_INFO_SCHEMA,
        },
    )


def batch_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    item = _object(
        {
            "index": {"type": "integer"},
            "merchant": {"type": "string"},
            "category": {"type": "string"},
            "enriched_info": _ENRICHED_INFO_SCHEMA,
        }
    )
    return _strict("batch_merchant_enrichment", {"results": {"type": "array", "items": item}})


def basic_info_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    return _strict(
        "transaction_basic_info",
        {
            "amount": {"type": "number"},
            "description": {"type": "string"},
            "type": {"type": "string", "enum": ["income", "expense"]},
        },
    )


def statement_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    row = _object(
        {
            "date": {"type": "string", "description": "YYYY-MM-DD"},
            "description": {"type": "string"},
            "amount": {"type": "number"},
            "type": {"type": "string", "enum": ["income", "expense"]},
        }
    )
    return _strict("statement_transactions", {"transactions": {"type": "array", "items": row}})


def transfer_pairs_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    pair = _object({"ids": {"type": "array", "items": {"type": "string"}}})
    return _strict("transfer_pairs", {"pairs": {"type": "array", "items": pair}})


def validation_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    return _strict("category_validation", {"is_logical": {"type": "boolean"}})


__all__ = [
    "BEGIN_MARKER",
    "END_MARKER",
    "TASK_CATEGORIZE",
    "TASK_ENRICH",
    "basic_info_response_format",
    "batch_response_format",
    "build_basic_info_content",
    "build_batch_content",
    "build_enrich_content",
    "build_enrichment_instructions",
    "build_parsing_instructions",
    "build_statement_content",
    "build_transfer_pairs_content",
    "build_validation_content",
    "enrichment_response_format",
    "statement_response_format",
    "task_for",
    "transfer_pairs_response_format",
    "validation_response_format",
]
