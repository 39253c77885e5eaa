"""Decoding and validation of OpenAI Responses results.

Every failure (no text, invalid JSON, wrong shape) is raised as
:class:`~statement_insights.errors.MalformedResponseError` so the remote
client's retry loop treats it like any other failed call.
"""

from __future__ import annotations

import datetime as dt
import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import MalformedResponseError
from .models import EnrichedMerchantInfo, TransactionType

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def extract_text(resp: Any) -> str:
    """Locate the text output of a Responses SDK result.

    Prefers ``resp.output_text``; falls back to ``resp.output[0].content[0].text``
    (or its ``.value`` where the SDK wraps the string).
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        output = getattr(resp, "output", None)
        first = output[0] if output else None
        content = getattr(first, "content", None)
        if content:
            txt_obj = getattr(content[0], "text", None)
            if isinstance(txt_obj, str):
                text = txt_obj
            else:
                maybe_val = getattr(txt_obj, "value", None)
                if isinstance(maybe_val, str):
                    text = maybe_val
    if not text or not isinstance(text, str):
        raise MalformedResponseError("Unexpected Responses API shape; unable to locate text output")
    return text


def _clean_json_text(text: str) -> str:
    """Strip markdown fences and surrounding prose around the JSON value."""

    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i >= 0]
    if not starts:
        return cleaned
    start = min(starts)
    end = cleaned.rfind("}" if cleaned[start] == "{" else "]")
    if end > start:
        return cleaned[start : end + 1]
    return cleaned


def decode_json(resp: Any) -> Any:
    text = extract_text(resp)
    try:
        return json.loads(_clean_json_text(text))
    except json.JSONDecodeError as e:
        raise MalformedResponseError("Model output was not valid JSON") from e


def parse_model[M: BaseModel](resp: Any, model: type[M]) -> M:
    """Decode ``resp`` and validate it against ``model``."""

    body = decode_json(resp)
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Model output did not match {model.__name__}: {e.error_count()} error(s)"
        ) from e


def first_citation(resp: Any) -> EnrichedMerchantInfo | None:
    """Return the first web-search ``url_citation`` annotation, if any.

    Used when the model identified a merchant but left ``enriched_info``
    empty; the search grounding usually points at the merchant's site.
    """

    for item in getattr(resp, "output", None) or ():
        for part in getattr(item, "content", None) or ():
            for ann in getattr(part, "annotations", None) or ():
                if getattr(ann, "type", None) != "url_citation":
                    continue
                url = getattr(ann, "url", None)
                if isinstance(url, str) and url:
                    title = getattr(ann, "title", None) or url
                    return EnrichedMerchantInfo(official_name=str(title), website=url)
    return None


# ---------------------------------------------------------------------------
# Response bodies
# ---------------------------------------------------------------------------


class _Body(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class EnrichmentBody(_Body):
    merchant: str
    category: str
    enriched_info: EnrichedMerchantInfo | None = None

    @field_validator("merchant", "category")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be a non-empty string")
        return v


class BatchItemBody(EnrichmentBody):
    index: int


class BatchBody(_Body):
    results: list[BatchItemBody]


class _TypedAmount(_Body):
    amount: float
    type: TransactionType

    @field_validator("amount")
    @classmethod
    def _magnitude(cls, v: float) -> float:
        return abs(v)


class BasicInfoBody(_TypedAmount):
    description: str


class StatementRowBody(_TypedAmount):
    date: dt.date
    description: str


class StatementBody(_Body):
    transactions: list[StatementRowBody]


class TransferPairBody(_Body):
    ids: list[str]


class TransferPairsBody(_Body):
    pairs: list[TransferPairBody]


class ValidationBody(_Body):
    is_logical: bool


__all__ = [
    "BasicInfoBody",
    "BatchBody",
    "BatchItemBody",
    "EnrichmentBody",
    "StatementBody",
    "StatementRowBody",
    "TransferPairBody",
    "TransferPairsBody",
    "ValidationBody",
    "decode_json",
    "extract_text",
    "first_citation",
    "parse_model",
]
