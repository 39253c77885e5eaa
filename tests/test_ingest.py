from __future__ import annotations

import csv
import datetime as dt
import io

import pytest

from statement_insights.errors import StatementParseError
from statement_insights.ingest import read_rows, to_parsed, to_transactions
from statement_insights.models import TransactionType

HEADER = "Date,Description,Amount,Type,Category\n"


def _rows(body: str, header: str = HEADER) -> list[dict[str, str]]:
    return read_rows(io.StringIO(header + body))


def test_parses_formats_and_aliases() -> None:
    rows = _rows(
        '2025-11-03,"Lipa na M-PESA to  NAIVAS ","KES 1,250.50",Withdrawn,\n'
        "25/10/2025,Salary,-85000,Paid In,Salary\n"
        "01-11-2025,Interest,12,credit,\n"
    )
    parsed = list(to_parsed(rows))
    assert [(p.date, p.amount, p.type) for p in parsed] == [
        (dt.date(2025, 11, 3), 1250.5, TransactionType.EXPENSE),
        (dt.date(2025, 10, 25), 85000.0, TransactionType.INCOME),
        (dt.date(2025, 11, 1), 12.0, TransactionType.INCOME),
    ]
    assert parsed[0].description == "Lipa na M-PESA to NAIVAS"
    assert parsed[0].category is None
    assert parsed[1].category == "Salary"


def test_missing_columns_are_a_csv_error() -> None:
    with pytest.raises(csv.Error, match="amount, type"):
        _rows("2025-11-03,x\n", header="date,description\n")


@pytest.mark.parametrize(
    ("line", "message"),
    [
        ("2025-13-40,x,1,expense,\n", "row 2: unrecognised date"),
        ("2025-11-03,x,lots,expense,\n", "row 2: invalid amount"),
        ("2025-11-03,x,1,refund,\n", "row 2: unknown transaction type"),
        ("2025-11-03,   ,1,expense,\n", "row 2: description missing"),
    ],
)
def test_bad_rows_raise_with_row_number(line: str, message: str) -> None:
    with pytest.raises(StatementParseError, match=message):
        list(to_parsed(_rows(line)))


def test_to_transactions_defaults_and_transfers() -> None:
    rows = _rows(
        "2025-11-03,To Equity,5000,expense,Internal Transfer\n"
        "2025-11-04,Something,10,expense,\n"
    )
    txs = list(to_transactions(rows, account_id="mpesa"))
    assert [(t.category, t.is_transfer, t.merchant) for t in txs] == [
        ("Internal Transfer", True, "Untitled"),
        ("Other", False, "Untitled"),
    ]
    assert all(t.account_id == "mpesa" for t in txs)


@pytest.mark.parametrize("amount", ["nan", "inf", "-inf", "KES Infinity"])
def test_non_finite_amounts_are_rejected(amount: str) -> None:
    with pytest.raises(StatementParseError, match="row 2: invalid amount"):
        list(to_parsed(_rows(f"2025-11-03,x,{amount},expense,\n")))
