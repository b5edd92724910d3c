"""
SequenceService -- unique sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing integers per named sequence.  Uses a
    dedicated counter table with row-level locking (``SELECT ... FOR
    UPDATE``) so concurrent callers never receive the same value.

Architecture position:
    Ledger > Services -- imperative shell infrastructure.
    Called by ApplicationNumberGenerator, which wraps each allocation in its
    own short transaction.

Invariants enforced:
    - The counter row is the sole source of truth for the next value.  The
      aggregate-max-plus-one pattern over existing applications is never
      used, so two readers can never compute the same number.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
    - SequenceAllocationError if the counter row cannot be read back after
      the race retry.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from expense_ledger.exceptions import SequenceAllocationError
from expense_ledger.logging_config import get_logger
from expense_ledger.models.sequence_counter import SequenceCounter
from expense_ledger.services.base import BaseService

logger = get_logger("services.sequence")


class SequenceService(BaseService):
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly increasing
        integer value.  The increment is committed with the caller's
        transaction.

    Guarantees:
        - ``SELECT ... FOR UPDATE`` serializes concurrent allocations for
          the same sequence (``BEGIN IMMEDIATE`` does the same on SQLite).
        - A new sequence starts at 1.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session_scope() as session:
            seq = SequenceService(session).next_value("expense_application:F251018")
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self.session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Preconditions:
            - ``sequence_name`` is a non-empty string.
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0 that is strictly greater than any
              previously committed value for this sequence name.
            - The counter row is locked until the transaction completes.
        """
        if not sequence_name:
            raise SequenceAllocationError(sequence_name, "sequence name is empty")

        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use of this sequence; another transaction may be
            # creating the same row, so insert inside a savepoint
            savepoint = self.session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self.session.add(counter)
                self.session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                self.session.expire_all()
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise SequenceAllocationError(
                        sequence_name, "counter row vanished after creation race"
                    )

        counter.current_value += 1
        self.session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value
