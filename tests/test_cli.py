from __future__ import annotations

from pathlib import Path

import pytest
from ledger.cli import EXIT_CONGESTED, EXIT_FAILED, app
from typer.testing import CliRunner

from tests.helpers.db import hold_write_lock, report_row, sqlite_url, transaction_count

runner = CliRunner()

BATCH_A = (
    "date,direction,amount,memo\n"
    "2021-07-12,Income,100.50,first\n"
    "2023-08-20,Expense,30.25,second\n"
    "2023-08-21,Expense,oops,third\n"
)


@pytest.fixture
def csv_file(tmp_path: Path) -> Path:
    p = tmp_path / "batch.csv"
    p.write_text(BATCH_A, encoding="utf-8")
    return p


def test_init_db_creates_schema(tmp_path: Path) -> None:
    db_file = tmp_path / "fresh.db"
    result = runner.invoke(app, ["init-db", "--database-url", sqlite_url(db_file)])

    assert result.exit_code == 0, result.output
    assert "0001_ledger_core" in result.output
    assert report_row(db_file) == ("0", "0", "0")

    # Idempotent.
    again = runner.invoke(app, ["init-db", "--database-url", sqlite_url(db_file)])
    assert again.exit_code == 0, again.output


def test_ingest_then_report(ledger_url: str, db_file: Path, csv_file: Path) -> None:
    result = runner.invoke(
        app, ["ingest", "--csv-path", str(csv_file), "--database-url", ledger_url]
    )
    assert result.exit_code == 0, result.output
    assert "Committed" in result.output
    assert "invalid_amount" in result.output
    assert transaction_count(db_file) == 2

    report = runner.invoke(app, ["report", "--database-url", ledger_url])
    assert report.exit_code == 0, report.output
    assert "100.50" in report.output
    assert "70.25" in report.output


def test_ingest_reads_database_url_from_env(
    ledger_url: str, db_file: Path, csv_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("DATABASE_URL", ledger_url)
    result = runner.invoke(app, ["ingest", "--csv-path", str(csv_file)])

    assert result.exit_code == 0, result.output
    assert transaction_count(db_file) == 2


def test_ingest_exit_code_on_congestion(
    ledger_url: str, db_file: Path, csv_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("LEDGER_LOCK_TIMEOUT", "0.2")
    with hold_write_lock(db_file):
        result = runner.invoke(
            app, ["ingest", "--csv-path", str(csv_file), "--database-url", ledger_url]
        )

    assert result.exit_code == EXIT_CONGESTED, result.output
    assert transaction_count(db_file) == 0


def test_ingest_missing_file_fails(ledger_url: str, tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["ingest", "--csv-path", str(tmp_path / "nope.csv"), "--database-url", ledger_url],
    )
    assert result.exit_code == EXIT_FAILED


def test_missing_database_url_fails(csv_file: Path) -> None:
    result = runner.invoke(app, ["ingest", "--csv-path", str(csv_file)])
    assert result.exit_code == EXIT_FAILED
    assert "DATABASE_URL" in result.output


def test_invalid_numeric_setting_fails(
    ledger_url: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("LEDGER_POOL_SIZE", "many")
    result = runner.invoke(app, ["report", "--database-url", ledger_url])
    assert result.exit_code == EXIT_FAILED
    assert "LEDGER_POOL_SIZE" in result.output


def test_rebuild_report(ledger_url: str, db_file: Path, csv_file: Path) -> None:
    runner.invoke(app, ["ingest", "--csv-path", str(csv_file), "--database-url", ledger_url])

    import sqlite3

    conn = sqlite3.connect(db_file)
    try:
        conn.execute("UPDATE ledger_report SET gross_revenue='0', expenses='0', net_revenue='0'")
        conn.commit()
    finally:
        conn.close()

    result = runner.invoke(app, ["rebuild-report", "--database-url", ledger_url])
    assert result.exit_code == 0, result.output
    assert report_row(db_file) == ("100.50", "30.25", "70.25")
    assert "Rebuilt report from 2 transaction(s)" in result.output


def test_unknown_log_level_fails_before_any_command(
    ledger_url: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("LEDGER_LOG_LEVEL", "LOUD")
    result = runner.invoke(app, ["report", "--database-url", ledger_url])
    assert result.exit_code == EXIT_FAILED
    assert "LEDGER_LOG_LEVEL" in result.output


def test_init_db_logs_the_migration(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["init-db", "--database-url", sqlite_url(tmp_path / "logged.db")]
    )
    assert result.exit_code == 0, result.output
    assert "db.migrate INFO Upgrading" in result.output
    assert "alembic.runtime.migration INFO" in result.output
