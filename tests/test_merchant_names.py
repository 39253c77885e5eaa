from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path

import pytest

import statement_insights.merchant_names as names_mod
from statement_insights.merchant_names import DEFAULT_KEY, MerchantDirectory
from statement_insights.models import Transaction, TransactionType
from statement_insights.storage import JsonFileStore, MemoryStore


@pytest.fixture
def pauses(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(names_mod.time, "sleep", recorded.append)
    return recorded


def _tx(merchant: str) -> Transaction:
    return Transaction(
        id=merchant,
        account_id="acc",
        date=dt.date(2025, 11, 1),
        merchant=merchant,
        amount=1.0,
        type=TransactionType.EXPENSE,
        category="Other",
        description=merchant,
    )


def test_unknown_raw_name_displays_as_itself() -> None:
    directory = MerchantDirectory(MemoryStore())
    assert directory.display_name("NAIVAS WESTGATE") == "NAIVAS WESTGATE"
    assert len(directory) == 0


def test_set_display_name_persists_and_notifies() -> None:
    store = MemoryStore()
    directory = MerchantDirectory(store)
    seen: list[tuple[str, str]] = []
    directory.subscribe(lambda raw, name: seen.append((raw, name)))

    directory.set_display_name("NAIVAS WESTGATE", "  Naivas ")

    assert directory.display_name("NAIVAS WESTGATE") == "Naivas"
    assert seen == [("NAIVAS WESTGATE", "Naivas")]
    assert MerchantDirectory(store).display_name("NAIVAS WESTGATE") == "Naivas"


def test_unsubscribed_listener_is_not_called() -> None:
    directory = MerchantDirectory(MemoryStore())
    seen: list[str] = []
    sub = directory.subscribe(lambda raw, name: seen.append(name))
    sub.unsubscribe()
    sub.unsubscribe()
    directory.set_display_name("a", "A")
    assert seen == []
    assert sub.active is False


def test_empty_display_name_is_rejected() -> None:
    with pytest.raises(ValueError):
        MerchantDirectory(MemoryStore()).set_display_name("a", "   ")


def test_names_survive_a_new_process() -> None:
    MerchantDirectory(JsonFileStore()).set_display_name("JAVA HOUSE KIMATHI", "Java House")
    assert "JAVA HOUSE KIMATHI" in MerchantDirectory(JsonFileStore())


def test_corrupt_blob_is_ignored(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="statement_insights.merchant_names"):
        directory = MerchantDirectory(MemoryStore({DEFAULT_KEY: "{not json"}))
    assert len(directory) == 0
    assert any("merchant_names:load_failed" in r.getMessage() for r in caplog.records)


def test_identify_learns_unknown_merchants_once(pauses: list[float]) -> None:
    directory = MerchantDirectory(MemoryStore())
    directory.set_display_name("KNOWN", "Known")
    asked: list[str] = []

    def _resolve(raw: str) -> str | None:
        asked.append(raw)
        if raw == "BROKEN":
            raise RuntimeError("lookup failed")
        if raw == "NOPE":
            return None
        return raw.title()

    txs = [_tx("KNOWN"), _tx("UBER"), _tx("UBER"), _tx("BROKEN"), _tx("NOPE"), _tx("ZUKU")]
    assert directory.identify(txs, _resolve, batch_size=2) == 2
    assert asked == ["UBER", "BROKEN", "NOPE", "ZUKU"]
    assert pauses == [1.0]
    assert directory.display_name("UBER") == "Uber"
    assert "BROKEN" not in directory


def test_identify_rejects_bad_batch_size() -> None:
    with pytest.raises(ValueError):
        MerchantDirectory(MemoryStore()).identify([], lambda raw: raw, batch_size=0)


def test_undecodable_blob_is_ignored(
    _isolate_data_dir: Path, caplog: pytest.LogCaptureFixture
) -> None:
    (_isolate_data_dir / f"{DEFAULT_KEY}.json").write_bytes(b"\xff\xfe\x00garbage")
    with caplog.at_level(logging.WARNING, logger="statement_insights.merchant_names"):
        directory = MerchantDirectory(JsonFileStore())
    assert len(directory) == 0
    assert any("error=UnicodeDecodeError" in r.getMessage() for r in caplog.records)


def test_identify_pauses_between_batches_only(pauses: list[float]) -> None:
    directory = MerchantDirectory(MemoryStore())
    batches: list[int] = []

    def _resolve(raw: str) -> str:
        batches.append(len(pauses))
        return raw.lower()

    txs = [_tx(f"M{i}") for i in range(5)]
    assert directory.identify(txs, _resolve, batch_size=2, batch_delay=0.25) == 5
    assert pauses == [0.25, 0.25]
    # Lookups in the same batch run back to back.
    assert batches == [0, 0, 1, 1, 2]


def test_identify_without_delay_never_sleeps(pauses: list[float]) -> None:
    directory = MerchantDirectory(MemoryStore())
    txs = [_tx("A"), _tx("B"), _tx("C")]
    assert directory.identify(txs, lambda raw: raw, batch_size=1, batch_delay=0) == 3
    assert pauses == []
