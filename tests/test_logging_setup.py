from __future__ import annotations

import logging

import pytest
from ledger.logging_setup import ROUTED_LOGGERS, configure_logging, level_from_env


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, logging.INFO),
        ("", logging.INFO),
        ("debug", logging.DEBUG),
        (" WARNING ", logging.WARNING),
        ("15", 15),
    ],
)
def test_level_from_env(monkeypatch: pytest.MonkeyPatch, raw: str | None, expected: int) -> None:
    if raw is not None:
        monkeypatch.setenv("LEDGER_LOG_LEVEL", raw)
    assert level_from_env() == expected


def test_unknown_level_names_the_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEDGER_LOG_LEVEL", "LOUD")
    with pytest.raises(ValueError, match="LEDGER_LOG_LEVEL"):
        level_from_env()
    with pytest.raises(ValueError, match="LEDGER_LOG_LEVEL"):
        configure_logging()


def test_routes_ledger_db_and_alembic_to_one_handler() -> None:
    handler = configure_logging(logging.DEBUG)

    for name in ROUTED_LOGGERS:
        lg = logging.getLogger(name)
        assert lg.handlers == [handler]
        assert lg.level == logging.DEBUG
        assert not lg.propagate


def test_reconfiguring_replaces_the_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    configure_logging(logging.DEBUG)
    monkeypatch.setenv("LEDGER_LOG_LEVEL", "ERROR")
    handler = configure_logging()

    for name in ROUTED_LOGGERS:
        lg = logging.getLogger(name)
        assert lg.handlers == [handler]
        assert lg.level == logging.ERROR


def test_records_go_to_current_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(logging.INFO)
    logging.getLogger("db.migrate").info("Upgrading somewhere")
    logging.getLogger("ledger.commit").debug("not shown")

    err = capsys.readouterr().err
    assert "db.migrate INFO Upgrading somewhere" in err
    assert "not shown" not in err
