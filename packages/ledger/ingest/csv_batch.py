"""Streaming parser for ledger CSV batches.

Row shape (no quoting required, whitespace around fields is trimmed)::

    date,direction,amount,memo
    2021-07-12,Income,87.32,first
    2023-08-20,Expense,12.13,second

Contract
--------
- The input is a binary stream decoded incrementally as UTF-8 (a leading BOM
  is tolerated). Nothing is buffered beyond what ``csv.reader`` needs for the
  current record.
- Blank lines and lines whose first character is ``#`` are skipped.
- The first record is a header, and skipped, when its first cell reads
  ``date`` (any case). Otherwise it is parsed as data.
- Each data record yields exactly one :data:`~ledger.models.ParsedRow`, in
  input order. A bad record never affects its neighbours.
- Checks run in the order field count, date, direction, amount, memo; the
  first failure is reported.

The parser never touches storage.
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterable, Iterator
from datetime import date
from typing import BinaryIO

from .. import money
from ..logging_setup import get_logger
from ..models import (
    Direction,
    ParsedRow,
    RejectionReason,
    RowRejection,
    TransactionCandidate,
)

logger = get_logger("ledger.ingest.csv_batch")

COLUMNS: tuple[str, ...] = ("date", "direction", "amount", "memo")
MAX_MEMO_LENGTH = 100

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_DIRECTIONS = {d.value: d for d in Direction}
# surrogateescape maps each undecodable byte to a lone surrogate in this range.
_UNDECODABLE_RE = re.compile("[\udc80-\udcff]")


def _parse_date(value: str) -> date | None:
    # date.fromisoformat also accepts "20210712" and week dates; be strict.
    if not _DATE_RE.fullmatch(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _validate(fields: list[str], *, row: int, line: int) -> ParsedRow:
    def reject(reason: RejectionReason, detail: str) -> RowRejection:
        return RowRejection(row=row, line=line, reason=reason, detail=detail)

    if len(fields) > len(COLUMNS):
        return reject(
            RejectionReason.MALFORMED_ROW,
            f"expected {len(COLUMNS)} fields, got {len(fields)}",
        )
    if len(fields) < len(COLUMNS):
        missing = ", ".join(COLUMNS[len(fields) :])
        return reject(RejectionReason.MISSING_FIELD, f"missing column(s): {missing}")
    if any(_UNDECODABLE_RE.search(f) for f in fields):
        return reject(RejectionReason.MALFORMED_ROW, "row contains bytes that are not UTF-8")

    date_raw, direction_raw, amount_raw, memo = fields
    for name, value in (("date", date_raw), ("direction", direction_raw), ("amount", amount_raw)):
        if not value:
            return reject(RejectionReason.MISSING_FIELD, f"{name} is empty")

    tx_date = _parse_date(date_raw)
    if tx_date is None:
        return reject(RejectionReason.BAD_DATE, f"expected YYYY-MM-DD, got {date_raw!r}")

    direction = _DIRECTIONS.get(direction_raw.lower())
    if direction is None:
        return reject(
            RejectionReason.BAD_DIRECTION,
            f"expected Income or Expense, got {direction_raw!r}",
        )

    try:
        amount = money.parse_amount(amount_raw)
    except money.InvalidAmount as exc:
        return reject(RejectionReason.INVALID_AMOUNT, str(exc))

    if len(memo) > MAX_MEMO_LENGTH:
        return reject(
            RejectionReason.MEMO_TOO_LONG,
            f"memo has {len(memo)} characters (max {MAX_MEMO_LENGTH})",
        )

    return TransactionCandidate.new(date=tx_date, direction=direction, amount=amount, memo=memo)


def _is_header(fields: list[str]) -> bool:
    return bool(fields) and fields[0].lower() == COLUMNS[0]


def parse_batch(stream: BinaryIO) -> Iterator[ParsedRow]:
    """Yield one :data:`ParsedRow` per data record of ``stream``.

    ``stream`` is read incrementally and is not closed.
    """

    # Undecodable bytes survive decoding as lone surrogates and are rejected
    # per row in _validate; a literal U+FFFD in the input is ordinary text.
    text = io.TextIOWrapper(stream, encoding="utf-8-sig", errors="surrogateescape", newline="")
    try:
        reader = csv.reader(text, skipinitialspace=True, strict=False)
        row = 0
        first = True
        while True:
            try:
                raw = next(reader)
            except StopIteration:
                break
            except csv.Error as exc:
                row += 1
                first = False
                logger.info("CSV row %d (line %d) is malformed: %s", row, reader.line_num, exc)
                yield RowRejection(
                    row=row,
                    line=reader.line_num,
                    reason=RejectionReason.MALFORMED_ROW,
                    detail=str(exc),
                )
                continue

            fields = [f.strip() for f in raw]
            if not fields or (len(fields) == 1 and not fields[0]):
                continue
            if fields[0].startswith("#"):
                continue
            if first:
                first = False
                if _is_header(fields):
                    continue

            row += 1
            parsed = _validate(fields, row=row, line=reader.line_num)
            if isinstance(parsed, RowRejection):
                logger.info(
                    "Rejected CSV row %d (line %d): %s: %s",
                    parsed.row,
                    parsed.line,
                    parsed.reason,
                    parsed.detail,
                )
            yield parsed
    finally:
        # Give the caller its stream back open.
        text.detach()


def parse_batch_bytes(data: bytes) -> list[ParsedRow]:
    """Convenience wrapper over :func:`parse_batch` for in-memory input."""

    return list(parse_batch(io.BytesIO(data)))


def partition(
    rows: Iterable[ParsedRow],
) -> tuple[list[TransactionCandidate], list[RowRejection]]:
    """Split parsed rows into the valid batch and the rejections, keeping order."""

    candidates: list[TransactionCandidate] = []
    rejections: list[RowRejection] = []
    for parsed in rows:
        if isinstance(parsed, RowRejection):
            rejections.append(parsed)
        else:
            candidates.append(parsed)
    return candidates, rejections


__all__ = [
    "COLUMNS",
    "MAX_MEMO_LENGTH",
    "parse_batch",
    "parse_batch_bytes",
    "partition",
]
