"""Exact monetary arithmetic.

Every amount in the ledger is a :class:`decimal.Decimal` parsed from plain
decimal text. Arithmetic runs under :data:`MONEY_CONTEXT`, whose precision is
far above anything :func:`parse_amount` admits and which traps ``Inexact``:
a sum that would need rounding raises :class:`PrecisionLoss` instead of
quietly dropping digits.
"""

from __future__ import annotations

import re
from decimal import (
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)

# Bounds on a single parsed amount (the same envelope as a 96-bit decimal).
MAX_SIGNIFICANT_DIGITS = 28
MAX_SCALE = 28

# Working precision for sums; far larger than any admissible total.
ARITHMETIC_PRECISION = 100

MONEY_CONTEXT = Context(
    prec=ARITHMETIC_PRECISION,
    traps=[Inexact, InvalidOperation, Overflow, DivisionByZero],
)

ZERO = Decimal("0")

# Plain notation only: optional "+", ASCII digits with an optional fraction.
_AMOUNT_RE = re.compile(r"\+?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


class InvalidAmount(ValueError):
    """Raised when text is not an admissible monetary amount."""


class PrecisionLoss(ArithmeticError):
    """Raised when a monetary operation would have to round."""


def parse_amount(text: str) -> Decimal:
    """Parse ``text`` into an exact, non-negative :class:`Decimal`.

    Trailing zeros are kept (``"100.50"`` stays ``Decimal("100.50")``).
    Exponent notation, signs other than ``+``, NaN/Infinity, grouping
    separators and values beyond :data:`MAX_SIGNIFICANT_DIGITS` /
    :data:`MAX_SCALE` are rejected with :class:`InvalidAmount`.
    """

    s = text.strip()
    if not s:
        raise InvalidAmount("amount is empty")
    if not _AMOUNT_RE.fullmatch(s):
        raise InvalidAmount(f"not a plain non-negative decimal: {s!r}")

    value = Decimal(s.lstrip("+"))
    _sign, digits, exponent = value.as_tuple()
    if not isinstance(exponent, int):
        raise InvalidAmount(f"not a finite decimal: {s!r}")
    scale = -exponent if exponent < 0 else 0
    if scale > MAX_SCALE:
        raise InvalidAmount(f"more than {MAX_SCALE} fractional digits: {s!r}")
    # Leading zeros are not significant; Decimal already dropped them.
    significant = len(digits) if any(digits) else 1
    if significant > MAX_SIGNIFICANT_DIGITS:
        raise InvalidAmount(f"more than {MAX_SIGNIFICANT_DIGITS} significant digits: {s!r}")
    return value


def _require_decimal(value: object) -> Decimal:
    if isinstance(value, float):
        raise TypeError("binary floats are not accepted as monetary values")
    if not isinstance(value, Decimal):
        raise TypeError(f"expected Decimal, got {type(value).__name__}")
    return value


def add(*values: Decimal) -> Decimal:
    """Exact sum of ``values`` (``0`` for no values)."""

    total = ZERO
    try:
        with localcontext(MONEY_CONTEXT):
            for v in values:
                total = total + _require_decimal(v)
    except Inexact as exc:
        raise PrecisionLoss("sum exceeds the exact arithmetic precision") from exc
    return total


def subtract(minuend: Decimal, subtrahend: Decimal) -> Decimal:
    """Exact ``minuend - subtrahend``."""

    a = _require_decimal(minuend)
    b = _require_decimal(subtrahend)
    try:
        with localcontext(MONEY_CONTEXT):
            return a - b
    except Inexact as exc:
        raise PrecisionLoss("difference exceeds the exact arithmetic precision") from exc


def to_text(value: Decimal) -> str:
    """Canonical plain-notation text (never ``1E-7`` style)."""

    return format(_require_decimal(value), "f")


def from_text(text: str) -> Decimal:
    """Inverse of :func:`to_text` for values read back from storage or JSON."""

    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise InvalidAmount(f"stored amount is not a decimal: {text!r}") from exc
    if not value.is_finite():
        raise InvalidAmount(f"stored amount is not finite: {text!r}")
    return value


__all__ = [
    "ARITHMETIC_PRECISION",
    "MAX_SCALE",
    "MAX_SIGNIFICANT_DIGITS",
    "MONEY_CONTEXT",
    "ZERO",
    "InvalidAmount",
    "PrecisionLoss",
    "add",
    "from_text",
    "parse_amount",
    "subtract",
    "to_text",
]
