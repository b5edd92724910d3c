"""
Application number format.

An application number is ``<prefix><YYMMDD><seq>`` where ``seq`` is the
per-day counter, zero-padded to three digits (``F251018001``).  Past 999 the
counter simply widens (``F2510181000``) so a busy day never fails.
"""

from datetime import date

SEQUENCE_NAME_PREFIX = "expense_application"
SEQUENCE_WIDTH = 3


def sequence_name(prefix: str, business_date: date) -> str:
    """Counter name for one prefix and business day."""
    return f"{SEQUENCE_NAME_PREFIX}:{prefix}{business_date:%y%m%d}"


def format_application_number(prefix: str, business_date: date, sequence: int) -> str:
    if sequence < 1:
        raise ValueError(f"Sequence must be positive, got {sequence}")
    return f"{prefix}{business_date:%y%m%d}{sequence:0{SEQUENCE_WIDTH}d}"
