"""
ApplicationService -- group unapplied costs into one application, and undo it.

Responsibility:
    ``apply`` moves a batch of unapplied costs to ``applied`` under one
    application number and records the ExpenseApplication aggregate.
    ``cancel_application`` returns every member to ``unapplied`` and marks
    the aggregate canceled.

Architecture position:
    Ledger > Services.  Flush-only; ExpenseLedger opens the transaction and
    allocates the application number before calling ``apply``.

Invariants enforced:
    - All-or-nothing: every check runs against rows locked in id order
      before the first field is written, and any failure aborts the
      caller's transaction.
    - One type and one currency per application.
    - Cancel is refused while any member is settled; no member is touched.
    - Status edges come from ``domain.lifecycle`` via the model's mark_*
      methods.

Failure modes:
    - EmptyBatchError, BatchTooLargeError, MissingDueDateError,
      DueDateInPastError, MixedCostTypesError, MixedCurrenciesError.
    - CostNotFoundError, ApplicationNotFoundError.
    - CostStatusConflictError, ApplicationAlreadyCanceledError,
      ApplicationHasSettledCostsError.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from expense_ledger.domain.clock import Clock, SystemClock
from expense_ledger.domain.dtos import ApplyResult, CancelResult, CostRecordInfo
from expense_ledger.domain.lifecycle import CostAction, CostStatus
from expense_ledger.domain.validation import (
    clean_remarks,
    normalize_cost_ids,
    validate_due_date,
)
from expense_ledger.exceptions import (
    ApplicationAlreadyCanceledError,
    ApplicationHasSettledCostsError,
    ApplicationNotFoundError,
    CostStatusConflictError,
    MissingApplicationNumberError,
    MixedCostTypesError,
    MixedCurrenciesError,
)
from expense_ledger.logging_config import get_logger
from expense_ledger.models.expense_application import ExpenseApplication
from expense_ledger.services.base import BaseService
from expense_ledger.services.locking import lock_application_costs, lock_costs

logger = get_logger("services.application")


class ApplicationService(BaseService):
    """
    Application engine.

    Contract:
        ``apply`` receives an already-allocated application number; a
        failure leaves that number unused (a gap), never reused.

    Guarantees:
        - Re-applying the same ids fails with CostStatusConflictError and
          creates no second application.
        - Cancel restores application_number, application_date, due_date
          and application_remarks to NULL on every member.
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

    def apply(
        self,
        cost_ids: list[UUID | str],
        application_number: str,
        due_date: date | str | None,
        remarks: str | None = None,
    ) -> ApplyResult:
        """
        Apply a batch of unapplied costs under ``application_number``.

        Preconditions:
            - ``application_number`` was allocated for this call.
        Postconditions:
            - Every cost is ``applied`` with the same number, the current
              time as application date, ``due_date`` and ``remarks``.
            - One active ExpenseApplication row exists for the number.
        """
        ids = normalize_cost_ids(cost_ids, CostAction.APPLY.value, self._max_batch_size)
        today = self._clock.business_date(self._business_timezone)
        due = validate_due_date(due_date, today)
        note = clean_remarks(remarks)

        costs = lock_costs(self.session, ids)

        blocked = [str(c.id) for c in costs if c.status != CostStatus.UNAPPLIED.value]
        if blocked:
            raise CostStatusConflictError(
                CostAction.APPLY.value, CostStatus.UNAPPLIED.value, blocked
            )

        types = sorted({c.type for c in costs})
        if len(types) != 1:
            raise MixedCostTypesError(types)
        currencies = sorted({c.currency for c in costs})
        if len(currencies) != 1:
            raise MixedCurrenciesError(currencies)

        now = self._clock.now_utc()
        for cost in costs:
            cost.mark_applied(application_number, now, due, note)

        application = ExpenseApplication(
            application_number=application_number,
            type=types[0],
            currency=currencies[0],
            total_amount=sum((c.amount for c in costs), Decimal(0)),
            cost_count=len(costs),
            application_date=now,
            due_date=due,
            remarks=note,
            created_at=now,
            updated_at=now,
        )
        self.session.add(application)
        self.session.flush()

        logger.info(
            "application_created",
            extra={
                "application_number": application_number,
                "cost_count": len(costs),
                "cost_type": types[0],
                "currency": currencies[0],
                "total_amount": str(application.total_amount),
                "due_date": due.isoformat(),
            },
        )
        return ApplyResult(
            application_number=application_number,
            type=types[0],
            currency=currencies[0],
            due_date=due,
            costs=tuple(CostRecordInfo.from_model(c) for c in costs),
        )

    def _lock_application(self, application_number: str) -> ExpenseApplication:
        application = self.session.execute(
            select(ExpenseApplication)
            .where(ExpenseApplication.application_number == application_number)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if application is None:
            raise ApplicationNotFoundError(application_number)
        return application

    def cancel_application(self, application_number: str) -> CancelResult:
        """
        Return every member of an application to ``unapplied``.

        The aggregate row is locked first, then its costs in id order.
        """
        number = (application_number or "").strip()
        if not number:
            raise MissingApplicationNumberError()

        application = self._lock_application(number)
        if not application.is_active:
            raise ApplicationAlreadyCanceledError(number)

        costs = lock_application_costs(self.session, number)
        if not costs:
            raise ApplicationNotFoundError(number)

        settled = [str(c.id) for c in costs if c.status == CostStatus.SETTLED.value]
        if settled:
            raise ApplicationHasSettledCostsError(number, settled)

        for cost in costs:
            cost.mark_application_cancelled()
        application.cancel(self._clock.now_utc())
        self.session.flush()

        logger.info(
            "application_cancelled",
            extra={"application_number": number, "cost_count": len(costs)},
        )
        return CancelResult(
            action=CostAction.CANCEL_APPLICATION.value,
            cost_ids=tuple(c.id for c in costs),
            application_number=number,
        )
