from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from ledger.commit import commit_batch, rebuild_report
from ledger.errors import PersistenceError
from ledger.models import Direction, Report, TransactionCandidate
from ledger.report import read_report
from ledger.store import MAX_BOUND_PARAMETERS, INSERT_COLUMNS, LedgerStore, LedgerUnit
from sqlalchemy import exc as sa_exc

from tests.helpers.db import fetch_all, report_row, transaction_count


def _tx(direction: Direction, amount: str, memo: str = "", *, day: int = 1) -> TransactionCandidate:
    return TransactionCandidate.new(
        date=date(2024, 1, day), direction=direction, amount=Decimal(amount), memo=memo
    )


def _batch_a() -> list[TransactionCandidate]:
    return [
        _tx(Direction.INCOME, "100.50", "consulting"),
        _tx(Direction.EXPENSE, "30.25", "hosting"),
    ]


def test_fresh_ledger_reports_zero(store: LedgerStore) -> None:
    assert read_report(store) == Report.zero()


def test_commit_batch_updates_rows_and_report(store: LedgerStore, db_file: Path) -> None:
    result = commit_batch(store, _batch_a())

    assert result.committed == 2
    assert result.batch_id is not None
    expected = Report(
        gross_revenue=Decimal("100.50"),
        expenses=Decimal("30.25"),
        net_revenue=Decimal("70.25"),
    )
    assert result.report == expected
    assert read_report(store) == expected
    assert report_row(db_file) == ("100.50", "30.25", "70.25")

    rows = fetch_all(db_file, "SELECT batch_id, direction, amount, memo FROM ledger_transactions")
    assert sorted(rows) == sorted(
        [
            (str(result.batch_id), "income", "100.50", "consulting"),
            (str(result.batch_id), "expense", "30.25", "hosting"),
        ]
    )


def test_successive_batches_accumulate(store: LedgerStore) -> None:
    commit_batch(store, _batch_a())
    result = commit_batch(store, [_tx(Direction.EXPENSE, "80.25")])

    assert result.report == Report(
        gross_revenue=Decimal("100.50"),
        expenses=Decimal("110.50"),
        net_revenue=Decimal("-10.00"),
    )


def test_sums_are_exact_at_full_scale(store: LedgerStore) -> None:
    tiny = "0.0000000000000000000000000001"
    commit_batch(store, [_tx(Direction.INCOME, tiny) for _ in range(3)])
    commit_batch(store, [_tx(Direction.INCOME, "9999999999999999999999999999")])

    report = read_report(store)
    assert report.gross_revenue == Decimal("9999999999999999999999999999.0000000000000000000000000003")
    assert report.net_revenue == report.gross_revenue


def test_empty_batch_is_a_no_op(store: LedgerStore, monkeypatch: pytest.MonkeyPatch) -> None:
    def _no_unit(*_a, **_kw):
        raise AssertionError("an empty batch must not open a unit")

    monkeypatch.setattr(store, "write_unit", _no_unit)
    result = commit_batch(store, [])

    assert result.committed == 0
    assert result.batch_id is None
    assert result.report is None


def test_large_batch_is_chunked_in_one_unit(store: LedgerStore, db_file: Path) -> None:
    per_statement = MAX_BOUND_PARAMETERS // len(INSERT_COLUMNS)
    n = per_statement * 3 + 7
    statements: list[int] = []
    original = LedgerUnit.insert_transactions

    def _spy(self, batch_id, candidates):
        real_execute = self.session.execute

        def _count(stmt, *a, **kw):
            statements.append(1)
            return real_execute(stmt, *a, **kw)

        self.session.execute = _count
        try:
            return original(self, batch_id, candidates)
        finally:
            del self.session.execute

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(LedgerUnit, "insert_transactions", _spy)
        result = commit_batch(store, [_tx(Direction.INCOME, "0.01") for _ in range(n)])

    assert len(statements) == 4
    assert result.committed == n
    assert transaction_count(db_file) == n
    assert read_report(store).gross_revenue == Decimal("0.01") * n


def test_storage_failure_rolls_back_everything(
    store: LedgerStore, db_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    commit_batch(store, _batch_a())
    before = report_row(db_file)

    def _boom(self, report):
        raise sa_exc.OperationalError("UPDATE ledger_report", {}, Exception("disk I/O error"))

    monkeypatch.setattr(LedgerUnit, "write_report", _boom)
    with pytest.raises(PersistenceError):
        commit_batch(store, [_tx(Direction.INCOME, "5.00"), _tx(Direction.EXPENSE, "1.00")])

    assert transaction_count(db_file) == 2
    assert report_row(db_file) == before


def test_constraint_violation_in_a_late_chunk_discards_earlier_chunks(
    store: LedgerStore, db_file: Path
) -> None:
    per_statement = MAX_BOUND_PARAMETERS // len(INSERT_COLUMNS)
    batch = [_tx(Direction.INCOME, "1") for _ in range(per_statement * 2)]
    # Same id as the first row; fails only in the last statement.
    batch.append(
        TransactionCandidate(
            id=batch[0].id,
            date=date(2024, 1, 2),
            direction=Direction.EXPENSE,
            amount=Decimal("1"),
            memo="dup",
        )
    )

    with pytest.raises(PersistenceError):
        commit_batch(store, batch)

    assert transaction_count(db_file) == 0
    assert report_row(db_file) == ("0", "0", "0")


def test_programming_errors_roll_back_and_propagate(
    store: LedgerStore, db_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _bug(self, transactions):
        raise RuntimeError("bug")

    monkeypatch.setattr(Report, "apply", _bug)
    with pytest.raises(RuntimeError, match="bug"):
        commit_batch(store, _batch_a())

    assert transaction_count(db_file) == 0


def test_missing_report_row_is_a_persistence_failure(store: LedgerStore, db_file: Path) -> None:
    import sqlite3

    conn = sqlite3.connect(db_file)
    try:
        conn.execute("DELETE FROM ledger_report")
        conn.commit()
    finally:
        conn.close()

    with pytest.raises(PersistenceError):
        commit_batch(store, _batch_a())
    assert transaction_count(db_file) == 0


def test_rebuild_report_recomputes_from_transactions(store: LedgerStore, db_file: Path) -> None:
    commit_batch(store, _batch_a())
    commit_batch(store, [_tx(Direction.INCOME, "0.75", day=2)])

    import sqlite3

    conn = sqlite3.connect(db_file)
    try:
        conn.execute("UPDATE ledger_report SET gross_revenue='1', expenses='2', net_revenue='3'")
        conn.commit()
    finally:
        conn.close()

    rebuilt = rebuild_report(store)
    assert rebuilt == Report(
        gross_revenue=Decimal("101.25"),
        expenses=Decimal("30.25"),
        net_revenue=Decimal("71.00"),
    )
    assert read_report(store) == rebuilt


def test_count_transactions_by_batch(store: LedgerStore) -> None:
    first = commit_batch(store, _batch_a())
    commit_batch(store, [_tx(Direction.INCOME, "1")])

    with store.read_unit() as unit:
        assert unit.count_transactions() == 3
        assert unit.count_transactions(batch_id=first.batch_id) == 2
        assert unit.count_transactions(batch_id=uuid.uuid4()) == 0


@pytest.mark.parametrize("stored", ["NaN", "Infinity", "12,50"])
def test_corrupt_stored_amount_is_refused_on_read(
    store: LedgerStore, db_file: Path, stored: str
) -> None:
    import sqlite3

    conn = sqlite3.connect(db_file)
    try:
        conn.execute("UPDATE ledger_report SET gross_revenue=?", (stored,))
        conn.commit()
    finally:
        conn.close()

    with pytest.raises(ValueError, match="stored amount"):
        read_report(store)
