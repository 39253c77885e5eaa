"""Adapter for the simple statement CSV used by the CLI.

CSV header (case-insensitive, extra columns ignored):
``date, description, amount, type`` and, for categorized exports, ``category``.

- ``date``: ``YYYY-MM-DD``, ``DD/MM/YYYY`` or ``DD-MM-YYYY``.
- ``amount``: a number; thousands separators and a ``KES``/``Ksh`` prefix are
  accepted. The sign is dropped since the direction lives in ``type``.
- ``type``: ``expense``/``debit``/``withdrawn`` or ``income``/``credit``/``paid in``.
"""

from __future__ import annotations

import csv
import datetime as dt
import math
import re
import uuid
from collections.abc import Iterable, Iterator, Mapping
from typing import TextIO

from .errors import StatementParseError
from .models import (
    INTERNAL_TRANSFER_CATEGORY,
    OTHER_CATEGORY,
    UNTITLED_MERCHANT,
    ParsedTransaction,
    Transaction,
    TransactionType,
)

REQUIRED_COLUMNS: tuple[str, ...] = ("date", "description", "amount", "type")

_DATE_FORMATS: tuple[str, ...] = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y")
_CURRENCY_RE = re.compile(r"^(?:kes|ksh\.?)\s*", re.IGNORECASE)
_TYPE_ALIASES: dict[str, TransactionType] = {
    "expense": TransactionType.EXPENSE,
    "debit": TransactionType.EXPENSE,
    "withdrawn": TransactionType.EXPENSE,
    "income": TransactionType.INCOME,
    "credit": TransactionType.INCOME,
    "paid in": TransactionType.INCOME,
}


def _clean_text(value: str | None) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", value).strip()


def _parse_date(value: str, *, row: int) -> dt.date:
    s = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise StatementParseError(f"row {row}: unrecognised date {value!r}")


def _parse_amount(value: str, *, row: int) -> float:
    s = _CURRENCY_RE.sub("", value.strip()).replace(",", "")
    try:
        amount = abs(float(s))
    except ValueError as e:
        raise StatementParseError(f"row {row}: invalid amount {value!r}") from e
    if not math.isfinite(amount):
        raise StatementParseError(f"row {row}: invalid amount {value!r}")
    return amount


def _parse_type(value: str, *, row: int) -> TransactionType:
    kind = _TYPE_ALIASES.get(_clean_text(value).lower())
    if kind is None:
        raise StatementParseError(f"row {row}: unknown transaction type {value!r}")
    return kind


def _lower_keys(row: Mapping[str, str | None]) -> dict[str, str]:
    return {(k or "").strip().lower(): (v or "") for k, v in row.items()}


def read_rows(f: TextIO) -> list[dict[str, str]]:
    """Read the CSV and check its header; raises ``csv.Error`` on a mismatch."""

    reader = csv.DictReader(f)
    if reader.fieldnames is None:
        raise csv.Error("CSV appears to have no header row")
    headers = {h.strip().lower() for h in reader.fieldnames if h}
    missing = [c for c in REQUIRED_COLUMNS if c not in headers]
    if missing:
        raise csv.Error("CSV header mismatch. Missing columns: " + ", ".join(missing))
    return [_lower_keys(r) for r in reader]


def to_parsed(rows: Iterable[Mapping[str, str]]) -> Iterator[ParsedTransaction]:
    """Convert raw rows to :class:`ParsedTransaction` (row numbers start at 2)."""

    for n, row in enumerate(rows, start=2):
        description = _clean_text(row.get("description"))
        if not description:
            raise StatementParseError(f"row {n}: description missing/empty")
        category = _clean_text(row.get("category")) or None
        yield ParsedTransaction(
            description=description,
            amount=_parse_amount(row.get("amount", ""), row=n),
            type=_parse_type(row.get("type", ""), row=n),
            date=_parse_date(row.get("date", ""), row=n),
            merchant=_clean_text(row.get("merchant")) or None,
            category=category,
        )


def to_transactions(rows: Iterable[Mapping[str, str]], *, account_id: str) -> Iterator[Transaction]:
    """Convert categorized rows straight into ledger transactions."""

    for pt in to_parsed(rows):
        category = pt.category or OTHER_CATEGORY
        yield Transaction(
            id=uuid.uuid4().hex,
            account_id=account_id,
            date=pt.date,
            merchant=pt.merchant or UNTITLED_MERCHANT,
            amount=pt.amount,
            type=pt.type,
            category=category,
            description=pt.description,
            is_transfer=category == INTERNAL_TRANSFER_CATEGORY,
        )


__all__ = ["REQUIRED_COLUMNS", "read_rows", "to_parsed", "to_transactions"]
