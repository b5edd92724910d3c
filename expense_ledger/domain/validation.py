"""
Validation -- request checks that run before any row is touched.

Responsibility:
    Pure checks shared by the ledger facade (before an application number is
    allocated) and the services (so they stay safe when called directly).

Architecture position:
    Ledger > Domain -- pure, zero I/O.

Failure modes:
    - EmptyBatchError / BatchTooLargeError for the batch size.
    - MissingDueDateError / DueDateInPastError for the due date.
    - InvalidCostFieldError for dates that cannot be parsed.
"""

from datetime import date, datetime
from typing import Any, Iterable
from uuid import UUID

from expense_ledger.exceptions import (
    BatchTooLargeError,
    DueDateInPastError,
    EmptyBatchError,
    InvalidCostFieldError,
    MissingDueDateError,
)


def normalize_cost_ids(
    cost_ids: Iterable[UUID | str] | None,
    action: str,
    max_batch_size: int,
) -> list[str]:
    """
    Deduplicate a batch of ids and check its size.

    Ids are returned as stripped strings in canonical (sorted) order; they
    are not parsed here, so an unknown or malformed id surfaces later as
    CostNotFoundError.
    """
    ids = sorted({str(cid).strip() for cid in (cost_ids or []) if str(cid).strip()})
    if not ids:
        raise EmptyBatchError(action)
    if len(ids) > max_batch_size:
        raise BatchTooLargeError(len(ids), max_batch_size)
    return ids


def parse_date(value: Any, field: str) -> date | None:
    """Accept a date, a datetime or an ISO string; None stays None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        # Full ISO timestamps keep the calendar date they were written in
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            raise InvalidCostFieldError(field, f"not a valid date: {value!r}") from None
    raise InvalidCostFieldError(field, f"not a valid date: {value!r}")


def validate_due_date(due_date: Any, today: date) -> date:
    """The due date is required and may not lie before ``today``."""
    parsed = parse_date(due_date, "due_date")
    if parsed is None:
        raise MissingDueDateError()
    if parsed < today:
        raise DueDateInPastError(parsed.isoformat(), today.isoformat())
    return parsed


def clean_remarks(remarks: str | None) -> str | None:
    """Blank remarks are stored as NULL."""
    if remarks is None:
        return None
    text = str(remarks).strip()
    return text or None
