"""Currency amount recognition in free-form component values.

Pure Python, exact Decimal arithmetic. Recognizes values such as
"49.90 EUR", "€ 1.234,56", "EUR 12" or a bare "120,00". Amounts below
MIN_AMOUNT are ignored: they are usually quantities, not prices.
"""

from __future__ import annotations

import re
from decimal import ROUND_DOWN, Decimal, InvalidOperation

MIN_AMOUNT = Decimal("10")
CURRENCY_PREFIX = "EUR"

# Grouped thousands ("1.234,56", "1,234.56") first, then plain ("49.90", "120").
_NUMBER_RE = re.compile(r"\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?(?!\d)|\d+(?:[.,]\d+)?")
_CURRENCY_MARKERS = ("EUR", "€")


def _has_currency_marker(text: str) -> bool:
    upper = text.upper()
    return any(marker in upper for marker in _CURRENCY_MARKERS)


def _normalize_number(token: str) -> Decimal | None:
    """Turn a matched number token into a Decimal, resolving separators."""
    if "." in token and "," in token:
        # The right-most separator is the decimal mark.
        decimal_mark = "." if token.rfind(".") > token.rfind(",") else ","
        group_mark = "," if decimal_mark == "." else "."
        token = token.replace(group_mark, "").replace(decimal_mark, ".")
    elif token.count(",") + token.count(".") > 1:
        token = token.replace(",", "").replace(".", "")
    elif "," in token or "." in token:
        mark = "," if "," in token else "."
        head, tail = token.split(mark)
        if len(tail) == 3 and head != "0":
            token = head + tail  # thousands grouping, e.g. "1.500"
        else:
            token = f"{head}.{tail}"
    try:
        return Decimal(token)
    except InvalidOperation:
        return None


def parse_amount(text: str) -> Decimal | None:
    """Extract a currency amount ≥ MIN_AMOUNT from a component value.

    A value marked with EUR/€ yields its first number. An unmarked value
    counts only when the whole value is a number.

    Args:
        text: Raw component value.

    Returns:
        The amount in major units, or None.
    """
    stripped = text.strip()
    if not stripped:
        return None

    amount: Decimal | None = None
    if _has_currency_marker(stripped):
        match = _NUMBER_RE.search(stripped)
        if match:
            amount = _normalize_number(match.group(0))
    elif _NUMBER_RE.fullmatch(stripped):
        amount = _normalize_number(stripped)

    if amount is None or amount < MIN_AMOUNT:
        return None
    return amount


def to_minor_units(amount: Decimal) -> int:
    """Convert major units to integer cents (fractions of a cent are dropped)."""
    return int((amount * 100).to_integral_value(rounding=ROUND_DOWN))


def format_amount_token(minor_units: int) -> str:
    """Filename token for an amount, e.g. 4990 -> "EUR4990"."""
    return f"{CURRENCY_PREFIX}{minor_units}"


def amount_token(text: str) -> str | None:
    """Filename token for a component value, or None if it is not an amount."""
    amount = parse_amount(text)
    if amount is None:
        return None
    return format_amount_token(to_minor_units(amount))
