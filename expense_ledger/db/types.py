"""
Module: expense_ledger.db.types
Responsibility: Column widths and decimal helpers shared by models,
    domain and services, so that every layer uses the same precision.
Architecture position: Ledger > DB.  May be imported by every other layer;
    MUST NOT import from any of them.

Invariants enforced:
    - No floats for money or rates.  ``to_decimal`` converts floats through
      ``str`` so binary artefacts (0.1 + 0.2) never enter a Decimal.
    - Currency codes are opaque short strings; they are normalised (trimmed,
      upper-cased) but never checked against a registry.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

# Column widths shared by models and validation
MAX_CURRENCY_LENGTH = 10
MAX_SHORT_CODE_LENGTH = 50
MAX_TEXT_LENGTH = 4000


def to_decimal(value: Any) -> Decimal | None:
    """
    Convert ``value`` to a finite Decimal, or return None if it is not one.

    Accepts Decimal, int, float and numeric strings.  Booleans are rejected
    even though they are ints.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def format_decimal(value: Decimal) -> str:
    """
    Render a Decimal without exponent and without trailing zeros.

    Used for JSON payloads; the value itself is not rounded.
    """
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text


def normalize_currency(currency: Any) -> str | None:
    """Trim and upper-case a currency code; None if empty or too long."""
    if not isinstance(currency, str):
        return None
    normalized = currency.strip().upper()
    if not normalized or len(normalized) > MAX_CURRENCY_LENGTH:
        return None
    return normalized
