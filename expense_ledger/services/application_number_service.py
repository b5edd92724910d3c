"""
ApplicationNumberGenerator -- hand out application numbers in short transactions.

Responsibility:
    Allocate ``<prefix><YYMMDD><seq>`` numbers from a per-day counter row.
    Each call commits its own transaction immediately, so the counter row
    is held for one increment only and never for the length of an apply.

Architecture position:
    Ledger > Services.  Called by ExpenseLedger before the apply
    transaction opens.

Invariants enforced:
    - Unique across concurrent callers (locked counter row, plus the unique
      constraint on expense_applications.application_number).
    - A failed apply leaves a gap; numbers are unique, not contiguous.

Failure modes:
    - SequenceAllocationError if the counter cannot be incremented
      (store unavailable, lock wait exceeded).
"""

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from expense_ledger.db.engine import session_scope
from expense_ledger.domain.application_number import (
    format_application_number,
    sequence_name,
)
from expense_ledger.domain.clock import Clock, SystemClock
from expense_ledger.exceptions import SequenceAllocationError
from expense_ledger.logging_config import get_logger
from expense_ledger.services.sequence_service import SequenceService

logger = get_logger("services.application_number")


class ApplicationNumberGenerator:
    """Allocates application numbers, one committed transaction per number."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        *,
        prefix: str = "F",
        business_timezone: str = "UTC",
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._prefix = prefix
        self._business_timezone = business_timezone

    def next(self) -> str:
        day = self._clock.business_date(self._business_timezone)
        name = sequence_name(self._prefix, day)
        try:
            with session_scope(self._session_factory) as session:
                value = SequenceService(session).next_value(name)
        except DBAPIError as exc:
            raise SequenceAllocationError(name, str(exc.orig or exc)) from exc

        number = format_application_number(self._prefix, day, value)
        logger.info(
            "application_number_allocated",
            extra={"sequence_name": name, "application_number": number},
        )
        return number
