"""
Tests for applying costs and canceling applications.

Verifies:
- Apply assigns one application number, date, due date and remarks to
  every member and records the application aggregate
- All-or-nothing: any rejected member leaves every cost untouched
- Numbering is per business day and gaps are tolerated
- Cancel returns members to unapplied unless any member is settled
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from expense_ledger.exceptions import (
    ApplicationAlreadyCanceledError,
    ApplicationHasSettledCostsError,
    ApplicationNotFoundError,
    BatchTooLargeError,
    CostNotFoundError,
    CostStatusConflictError,
    DueDateInPastError,
    EmptyBatchError,
    MissingApplicationNumberError,
    MissingDueDateError,
    MixedCostTypesError,
    MixedCurrenciesError,
)
from expense_ledger.selectors.cost_selector import ApplicationFilters
from expense_ledger.services.ledger_orchestrator import ExpenseLedger
from expense_ledger.models.sequence_counter import SequenceCounter

DUE_DATE = date(2025, 10, 31)


def _statuses(ledger, ids):
    return {ledger.get_cost(cid).status for cid in ids}


class TestApply:
    def test_apply_sets_application_fields(self, ledger, make_cost, deterministic_clock):
        costs = [make_cost(), make_cost()]
        result = ledger.apply([c.id for c in costs], DUE_DATE, "  October freight ")

        assert result.application_number == "F251018001"
        assert result.applied_count == 2
        assert (result.type, result.currency) == ("AP", "THB")
        for cost in result.costs:
            assert cost.status == "applied"
            assert cost.application_number == "F251018001"
            assert cost.due_date == DUE_DATE
            assert cost.application_remarks == "October freight"
            assert cost.application_date == deterministic_clock.now_utc()

    def test_summary_totals(self, applied):
        summary = applied.summary
        assert summary.total_amount == Decimal("1500")
        assert summary.total_vat == Decimal("70")
        assert summary.total_wht == Decimal("30")
        assert summary.net_total == Decimal("1540")

    def test_application_record_created(self, ledger, applied):
        page = ledger.list_applications()
        assert page.total == 1
        app = page.applications[0]
        assert app.application_number == applied.application_number
        assert app.status == "active"
        assert app.total_amount == Decimal("1500")
        assert app.cost_count == 2

    def test_numbers_increase_within_a_day(self, ledger, make_cost):
        first = ledger.apply([make_cost().id], DUE_DATE)
        second = ledger.apply([make_cost().id], DUE_DATE)
        assert (first.application_number, second.application_number) == (
            "F251018001",
            "F251018002",
        )

    def test_numbering_restarts_on_new_business_day(self, ledger, make_cost, deterministic_clock):
        ledger.apply([make_cost().id], DUE_DATE)
        # 17:30 UTC is 00:30 on the 19th in Bangkok
        deterministic_clock.set_time(datetime(2025, 10, 18, 17, 30, tzinfo=timezone.utc))
        result = ledger.apply([make_cost().id], DUE_DATE)
        assert result.application_number == "F251019001"

    def test_duplicate_ids_are_applied_once(self, ledger, make_cost):
        cost = make_cost()
        result = ledger.apply([cost.id, str(cost.id)], DUE_DATE)
        assert result.applied_count == 1

    def test_due_date_string(self, ledger, make_cost):
        result = ledger.apply([make_cost().id], "2025-10-18")
        assert result.due_date == date(2025, 10, 18)

    def test_custom_prefix(self, session_factory, settings, deterministic_clock, make_cost):
        from dataclasses import replace

        ledger = ExpenseLedger(
            session_factory, replace(settings, application_number_prefix="AP"), deterministic_clock
        )
        assert ledger.apply([make_cost().id], DUE_DATE).application_number == "AP251018001"


class TestApplyRejections:
    def test_empty_batch(self, ledger):
        with pytest.raises(EmptyBatchError):
            ledger.apply([], DUE_DATE)

    def test_batch_too_large(self, session_factory, settings, deterministic_clock, make_cost):
        from dataclasses import replace

        ledger = ExpenseLedger(
            session_factory, replace(settings, max_batch_size=2), deterministic_clock
        )
        ids = [make_cost().id for _ in range(3)]
        with pytest.raises(BatchTooLargeError):
            ledger.apply(ids, DUE_DATE)

    def test_missing_due_date(self, ledger, make_cost):
        with pytest.raises(MissingDueDateError):
            ledger.apply([make_cost().id], None)

    def test_due_date_in_past(self, ledger, make_cost):
        with pytest.raises(DueDateInPastError):
            ledger.apply([make_cost().id], date(2025, 10, 17))

    def test_validation_failure_consumes_no_number(self, ledger, make_cost, session):
        with pytest.raises(MissingDueDateError):
            ledger.apply([make_cost().id], None)
        counter = session.scalar(
            select(SequenceCounter).where(SequenceCounter.name == "expense_application:F251018")
        )
        assert counter is None

    def test_mixed_types(self, ledger, make_cost):
        ids = [make_cost().id, make_cost(type="AR").id]
        with pytest.raises(MixedCostTypesError) as exc_info:
            ledger.apply(ids, DUE_DATE)
        assert exc_info.value.types == ["AP", "AR"]
        assert _statuses(ledger, ids) == {"unapplied"}

    def test_mixed_currencies(self, ledger, make_cost):
        ids = [make_cost(currency="THB").id, make_cost(currency="USD").id]
        with pytest.raises(MixedCurrenciesError):
            ledger.apply(ids, DUE_DATE)
        assert _statuses(ledger, ids) == {"unapplied"}

    def test_one_applied_member_rejects_whole_batch(self, ledger, applied, make_cost):
        fresh = make_cost()
        taken = applied.costs[0].id
        with pytest.raises(CostStatusConflictError) as exc_info:
            ledger.apply([fresh.id, taken], DUE_DATE)
        assert exc_info.value.cost_ids == [str(taken)]
        assert ledger.get_cost(fresh.id).status == "unapplied"
        assert ledger.get_cost(taken).application_number == applied.application_number

    def test_reapply_creates_no_second_application(self, ledger, applied):
        with pytest.raises(CostStatusConflictError):
            ledger.apply([c.id for c in applied.costs], DUE_DATE)
        assert ledger.list_applications().total == 1

    def test_unknown_id(self, ledger, make_cost):
        missing = uuid4()
        with pytest.raises(CostNotFoundError) as exc_info:
            ledger.apply([make_cost().id, missing], DUE_DATE)
        assert exc_info.value.cost_ids == [str(missing)]

    def test_failed_apply_leaves_a_gap(self, ledger, make_cost):
        with pytest.raises(CostNotFoundError):
            ledger.apply([uuid4()], DUE_DATE)
        result = ledger.apply([make_cost().id], DUE_DATE)
        assert result.application_number == "F251018002"

    def test_conflicting_reapply_uses_up_a_number(self, ledger, applied, make_cost):
        with pytest.raises(CostStatusConflictError):
            ledger.apply([c.id for c in applied.costs], DUE_DATE)
        result = ledger.apply([make_cost().id], DUE_DATE)
        assert result.application_number == "F251018003"


class TestCancelApplication:
    def test_cancel_restores_unapplied(self, ledger, applied):
        result = ledger.cancel_application(applied.application_number)
        assert result.affected_count == 2
        assert result.application_number == applied.application_number
        for cost_id in result.cost_ids:
            cost = ledger.get_cost(cost_id)
            assert cost.status == "unapplied"
            assert cost.application_number is None
            assert cost.application_date is None
            assert cost.due_date is None
            assert cost.application_remarks is None

    def test_cancel_marks_application_canceled(self, ledger, applied, deterministic_clock):
        ledger.cancel_application(applied.application_number)
        app = ledger.list_applications(ApplicationFilters(status="canceled")).applications[0]
        assert app.canceled_at == deterministic_clock.now_utc()
        # Totals are kept for history
        assert app.total_amount == Decimal("1500")

    def test_apply_then_cancel_then_apply_again(self, ledger, applied):
        ids = [c.id for c in applied.costs]
        ledger.cancel_application(applied.application_number)
        again = ledger.apply(ids, DUE_DATE)
        assert again.application_number == "F251018002"

    def test_cancel_twice(self, ledger, applied):
        ledger.cancel_application(applied.application_number)
        with pytest.raises(ApplicationAlreadyCanceledError):
            ledger.cancel_application(applied.application_number)

    def test_cancel_blocked_by_settled_member(self, ledger, applied):
        settled_id = applied.costs[0].id
        ledger.settle([settled_id])
        with pytest.raises(ApplicationHasSettledCostsError) as exc_info:
            ledger.cancel_application(applied.application_number)
        assert exc_info.value.settled_cost_ids == [str(settled_id)]
        other = applied.costs[1].id
        assert ledger.get_cost(other).status == "applied"
        assert ledger.get_cost(settled_id).status == "settled"

    def test_unknown_application(self, ledger):
        with pytest.raises(ApplicationNotFoundError):
            ledger.cancel_application("F999999001")

    @pytest.mark.parametrize("number", ["", "   ", None])
    def test_missing_number(self, ledger, number):
        with pytest.raises(MissingApplicationNumberError):
            ledger.cancel_application(number)
