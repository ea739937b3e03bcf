"""Currency helpers shared by the ledger, matchers and reports.

Every amount is a `Decimal` with two-digit precision. Nothing here uses binary
floating point: sharing runs many rounds of additions and subtractions and the
totals have to balance to the cent.
"""

from __future__ import annotations

import re
from decimal import ROUND_DOWN, Decimal, InvalidOperation

ZERO = Decimal("0.00")
PENNY = Decimal("0.01")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize to cents, truncating extra digits (the way spreadsheet strings are read)."""

    return Decimal(value).quantize(PENNY, rounding=ROUND_DOWN)


def split_evenly(amount: Decimal, parts: int) -> Decimal:
    """Divide `amount` among `parts`, truncated toward zero at 2 decimals."""

    if parts <= 0:
        raise ValueError("parts must be > 0")
    return (amount / Decimal(parts)).quantize(PENNY, rounding=ROUND_DOWN)


def fmt(amount: Decimal) -> str:
    """Render like `$#,##0.00` (negatives as `-$1.00`)."""

    q = Decimal(amount).quantize(PENNY)
    sign = "-" if q < 0 else ""
    return f"{sign}${abs(q):,.2f}"


def parse_money(value: str | None) -> Decimal | None:
    """Parse common accounting strings into Decimal.

    Handles:
    - commas
    - parentheses for negatives
    - currency symbols
    - blanks
    """

    if value is None:
        return None

    s = str(value).strip()
    if s == "" or s.lower() in {"-", "n/a", "na"}:
        return None

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1].strip()

    s = re.sub(r"[^0-9.\-]", "", s)
    if s == "":
        return None

    try:
        amount = Decimal(s)
    except InvalidOperation:
        return None

    return -amount if negative else amount
