"""
SettlementService -- settle applied costs, and undo a settlement.

Responsibility:
    ``settle`` moves a batch of applied costs to ``settled``;
    ``cancel_settlement`` moves a batch of settled costs back to ``applied``
    without touching their application grouping.

Architecture position:
    Ledger > Services.  Flush-only; ExpenseLedger owns the transaction.

Invariants enforced:
    - All-or-nothing over the batch: a single member in the wrong status
      aborts the whole action before any field is written.
    - Partial settlement of an application is allowed; the unsettled
      members keep their status and application number.

Failure modes:
    - EmptyBatchError, BatchTooLargeError, InvalidCostFieldError (bad date).
    - CostNotFoundError.
    - CostStatusConflictError.
"""

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from expense_ledger.domain.clock import Clock, SystemClock
from expense_ledger.domain.dtos import CancelResult, CostRecordInfo, SettleResult
from expense_ledger.domain.lifecycle import CostAction, source_status
from expense_ledger.domain.validation import clean_remarks, normalize_cost_ids, parse_date
from expense_ledger.exceptions import CostStatusConflictError
from expense_ledger.logging_config import get_logger
from expense_ledger.models.cost_record import CostRecord
from expense_ledger.services.base import BaseService
from expense_ledger.services.locking import lock_costs

logger = get_logger("services.settlement")


class SettlementService(BaseService):
    """
    Settlement engine.

    Guarantees:
        - settle then cancel_settlement restores ``applied`` with
          settlement_date and settlement_remarks cleared and the
          application fields untouched.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        max_batch_size: int = 50,
        business_timezone: str = "UTC",
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._max_batch_size = max_batch_size
        self._business_timezone = business_timezone

    def _lock_batch(self, cost_ids: list[UUID | str], action: CostAction) -> list[CostRecord]:
        ids = normalize_cost_ids(cost_ids, action.value, self._max_batch_size)
        costs = lock_costs(self.session, ids)
        expected = source_status(action).value
        blocked = [str(c.id) for c in costs if c.status != expected]
        if blocked:
            raise CostStatusConflictError(action.value, expected, blocked)
        return costs

    def settle(
        self,
        cost_ids: list[UUID | str],
        settlement_date: date | str | None = None,
        remarks: str | None = None,
    ) -> SettleResult:
        """
        Settle a batch of applied costs.

        ``settlement_date`` defaults to the current business date.
        """
        when = parse_date(settlement_date, "settlement_date")
        if when is None:
            when = self._clock.business_date(self._business_timezone)
        note = clean_remarks(remarks)

        costs = self._lock_batch(cost_ids, CostAction.SETTLE)
        for cost in costs:
            cost.mark_settled(when, note)
        self.session.flush()

        logger.info(
            "costs_settled",
            extra={
                "cost_count": len(costs),
                "settlement_date": when.isoformat(),
                "application_numbers": sorted({c.application_number for c in costs}),
            },
        )
        return SettleResult(
            settlement_date=when,
            costs=tuple(CostRecordInfo.from_model(c) for c in costs),
        )

    def cancel_settlement(self, cost_ids: list[UUID | str]) -> CancelResult:
        """Return a batch of settled costs to ``applied``."""
        costs = self._lock_batch(cost_ids, CostAction.CANCEL_SETTLEMENT)
        for cost in costs:
            cost.mark_settlement_cancelled()
        self.session.flush()

        logger.info(
            "settlement_cancelled",
            extra={"cost_count": len(costs)},
        )
        return CancelResult(
            action=CostAction.CANCEL_SETTLEMENT.value,
            cost_ids=tuple(c.id for c in costs),
        )
