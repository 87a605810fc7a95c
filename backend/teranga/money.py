# Overview: Pure money and quantity helpers shared by every financial computation.

"""
Money/Quantity Arithmetic

All amounts are Decimal with 2 fractional digits. None of these helpers
raise: malformed input degrades to None (coerce_*) or 0 (clamp/round) so a
single bad field cannot abort recomputation of a whole order.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")

DEFAULT_CURRENCY = "XOF"
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def coerce_amount(value: Any) -> Decimal | None:
    """Parse a numeric-like value into a finite Decimal, or None."""
    if value is None or isinstance(value, bool):
        return None

    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        elif isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            amount = Decimal(stripped)
        else:
            return None
    except (InvalidOperation, ValueError):
        return None

    if not amount.is_finite():
        return None
    return amount


def clamp_non_negative(value: Any) -> Decimal:
    """max(0, value); non-numeric input counts as 0."""
    amount = coerce_amount(value)
    if amount is None or amount < ZERO:
        return ZERO
    return amount


def round2(value: Any) -> Decimal:
    """Round half-up to 2 decimals; non-numeric input counts as 0."""
    amount = coerce_amount(value)
    if amount is None:
        return ZERO.quantize(TWO_PLACES)
    try:
        return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Beyond the decimal context precision
        return ZERO.quantize(TWO_PLACES)


def to_safe_int(value: Any) -> int | None:
    """Integer view of a numeric-like value (truncated), or None."""
    amount = coerce_amount(value)
    if amount is None:
        return None
    return int(amount)


def to_trim_or_null(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def compute_line_total(quantity: Any, unit_price: Any) -> Decimal:
    """line_total = round2(max(quantity, 0) * max(unit_price, 0))."""
    return round2(clamp_non_negative(quantity) * clamp_non_negative(unit_price))


def normalize_currency(value: Any, fallback: str = DEFAULT_CURRENCY) -> str:
    """3-letter uppercase currency code, or the fallback."""
    code = to_trim_or_null(value)
    if code is None:
        return fallback
    code = code.upper()
    if not _CURRENCY_RE.match(code):
        return fallback
    return code


def to_json_amount(value: Any) -> float:
    """JSON-friendly number for a stored amount."""
    return float(round2(value))
