"""
LedgerIntegrityService -- detect cost lines that break lifecycle invariants.

Responsibility:
    ``check()`` reports cost lines whose lifecycle fields disagree with their
    status, lines with invalid financial fields, lines pointing at an
    application that does not exist or is canceled, and active applications
    with no members.  ``refresh_application_totals()`` recomputes
    ``total_amount`` and ``cost_count`` of every active application from its
    members.

Architecture position:
    Ledger > Services.  Flush-only; run through ExpenseLedger.cleanup().

Invariants enforced:
    - Never changes a cost's status or deletes rows; repair of reported
      lines is a human decision.
    - Canceled applications keep their recorded totals for history.
"""

from collections import defaultdict
from decimal import Decimal

from sqlalchemy import select

from expense_ledger.domain.dtos import IntegrityReport, IntegrityViolation
from expense_ledger.domain.lifecycle import CostStatus
from expense_ledger.logging_config import get_logger
from expense_ledger.models.cost_record import CostRecord
from expense_ledger.models.expense_application import (
    ApplicationStatus,
    ExpenseApplication,
)
from expense_ledger.services.base import BaseService

logger = get_logger("services.integrity")


def _cost_violations(cost: CostRecord) -> list[IntegrityViolation]:
    found: list[IntegrityViolation] = []

    def add(rule: str, detail: str) -> None:
        found.append(IntegrityViolation("CostRecord", str(cost.id), rule, detail))

    try:
        status = CostStatus(cost.status)
    except ValueError:
        add("unknown_status", f"status '{cost.status}' is not a lifecycle status")
        return found

    grouped = status in (CostStatus.APPLIED, CostStatus.SETTLED)
    for name in ("application_number", "application_date", "due_date"):
        if (getattr(cost, name) is not None) != grouped:
            add(
                "application_fields",
                f"'{name}' is {'missing' if grouped else 'set'} in status '{status.value}'",
            )
    if (cost.settlement_date is not None) != (status is CostStatus.SETTLED):
        add(
            "settlement_fields",
            f"'settlement_date' is "
            f"{'missing' if status is CostStatus.SETTLED else 'set'} "
            f"in status '{status.value}'",
        )

    if cost.amount is None or cost.amount <= 0:
        add("invalid_amount", f"amount {cost.amount} is not positive")
    if not cost.currency:
        add("missing_field", "currency is empty")
    if not cost.description:
        add("missing_field", "description is empty")
    if not cost.settlement_unit_id:
        add("missing_field", "settlement_unit_id is empty")
    return found


class LedgerIntegrityService(BaseService):
    """Read-mostly consistency checks over the whole ledger."""

    def check(self) -> IntegrityReport:
        costs = list(self.session.execute(select(CostRecord).order_by(CostRecord.id)).scalars())
        apps = {
            a.application_number: a
            for a in self.session.execute(select(ExpenseApplication)).scalars()
        }

        violations: list[IntegrityViolation] = []
        members: dict[str, int] = defaultdict(int)
        for cost in costs:
            violations.extend(_cost_violations(cost))
            number = cost.application_number
            if number is None:
                continue
            members[number] += 1
            app = apps.get(number)
            if app is None:
                violations.append(
                    IntegrityViolation(
                        "CostRecord",
                        str(cost.id),
                        "orphan_application_number",
                        f"application {number} does not exist",
                    )
                )
            elif not app.is_active:
                violations.append(
                    IntegrityViolation(
                        "CostRecord",
                        str(cost.id),
                        "canceled_application_number",
                        f"application {number} is canceled",
                    )
                )

        for number in sorted(apps):
            if apps[number].is_active and members[number] == 0:
                violations.append(
                    IntegrityViolation(
                        "ExpenseApplication",
                        str(apps[number].id),
                        "empty_application",
                        f"active application {number} has no costs",
                    )
                )

        report = IntegrityReport(violations=tuple(violations))
        log = logger.warning if violations else logger.info
        log(
            "integrity_check_completed",
            extra={
                "cost_count": len(costs),
                "application_count": len(apps),
                "violation_count": len(violations),
            },
        )
        return report

    def refresh_application_totals(self) -> int:
        """Recompute totals of active applications; returns how many changed."""
        apps = list(
            self.session.execute(
                select(ExpenseApplication)
                .where(ExpenseApplication.status == ApplicationStatus.ACTIVE.value)
                .order_by(ExpenseApplication.application_number)
                .with_for_update()
            ).scalars()
        )

        updated = 0
        for app in apps:
            amounts = list(
                self.session.execute(
                    select(CostRecord.amount).where(
                        CostRecord.application_number == app.application_number
                    )
                ).scalars()
            )
            total = sum(amounts, Decimal(0))
            if app.total_amount != total or app.cost_count != len(amounts):
                app.total_amount = total
                app.cost_count = len(amounts)
                updated += 1
        self.session.flush()

        logger.info(
            "application_totals_refreshed",
            extra={"application_count": len(apps), "updated_applications": updated},
        )
        return updated

    def run(self) -> IntegrityReport:
        """Refresh totals, then check."""
        updated = self.refresh_application_totals()
        report = self.check()
        return IntegrityReport(violations=report.violations, updated_applications=updated)
