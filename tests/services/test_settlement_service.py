"""
Tests for settling costs and canceling settlements.

Verifies:
- settle moves applied costs to settled with a date and remarks
- Partial settlement of an application leaves the rest applied
- cancel_settlement restores applied with the application fields untouched
- Any member in the wrong status rejects the whole batch
"""

from datetime import date

import pytest

from expense_ledger.exceptions import (
    CostStatusConflictError,
    EmptyBatchError,
    InvalidCostFieldError,
)

DUE_DATE = date(2025, 10, 31)


class TestSettle:
    def test_settle_with_explicit_date(self, ledger, applied):
        ids = [c.id for c in applied.costs]
        result = ledger.settle(ids, "2025-10-20", "paid")
        assert result.settled_count == 2
        assert result.settlement_date == date(2025, 10, 20)
        for cost in result.costs:
            assert cost.status == "settled"
            assert cost.settlement_date == date(2025, 10, 20)
            assert cost.settlement_remarks == "paid"
            assert cost.application_number == applied.application_number

    def test_settlement_date_defaults_to_business_date(self, ledger, applied):
        result = ledger.settle([applied.costs[0].id])
        assert result.settlement_date == date(2025, 10, 18)

    def test_partial_settlement(self, ledger, applied):
        first, second = applied.costs
        ledger.settle([first.id])
        assert ledger.get_cost(first.id).status == "settled"
        untouched = ledger.get_cost(second.id)
        assert untouched.status == "applied"
        assert untouched.application_number == applied.application_number

    def test_settle_unapplied_rejected(self, ledger, make_cost):
        cost = make_cost()
        with pytest.raises(CostStatusConflictError) as exc_info:
            ledger.settle([cost.id])
        assert exc_info.value.expected_status == "applied"
        assert ledger.get_cost(cost.id).status == "unapplied"

    def test_mixed_batch_rejected_atomically(self, ledger, applied, make_cost):
        stray = make_cost()
        ids = [applied.costs[0].id, stray.id]
        with pytest.raises(CostStatusConflictError) as exc_info:
            ledger.settle(ids)
        assert exc_info.value.cost_ids == [str(stray.id)]
        assert ledger.get_cost(applied.costs[0].id).status == "applied"

    def test_settle_twice_rejected(self, ledger, applied):
        cost_id = applied.costs[0].id
        ledger.settle([cost_id])
        with pytest.raises(CostStatusConflictError):
            ledger.settle([cost_id])

    def test_empty_batch(self, ledger):
        with pytest.raises(EmptyBatchError):
            ledger.settle([])

    def test_bad_settlement_date(self, ledger, applied):
        with pytest.raises(InvalidCostFieldError):
            ledger.settle([applied.costs[0].id], "20/10/2025")

    def test_settlements_span_applications(self, ledger, make_cost):
        a = ledger.apply([make_cost().id], DUE_DATE)
        b = ledger.apply([make_cost().id], DUE_DATE)
        result = ledger.settle([a.costs[0].id, b.costs[0].id])
        assert {c.application_number for c in result.costs} == {
            a.application_number,
            b.application_number,
        }


class TestCancelSettlement:
    def test_round_trip_restores_applied(self, ledger, applied):
        before = ledger.get_cost(applied.costs[0].id)
        ledger.settle([before.id], "2025-10-20", "paid")
        result = ledger.cancel_settlement([before.id])
        assert result.affected_count == 1

        after = ledger.get_cost(before.id)
        assert after.status == "applied"
        assert after.settlement_date is None
        assert after.settlement_remarks is None
        assert after.application_number == before.application_number
        assert after.application_date == before.application_date
        assert after.due_date == before.due_date
        assert after.application_remarks == before.application_remarks

    def test_cancel_settlement_of_applied_rejected(self, ledger, applied):
        with pytest.raises(CostStatusConflictError) as exc_info:
            ledger.cancel_settlement([applied.costs[0].id])
        assert exc_info.value.expected_status == "settled"

    def test_strict_batch(self, ledger, applied):
        settled, still_applied = applied.costs
        ledger.settle([settled.id])
        with pytest.raises(CostStatusConflictError):
            ledger.cancel_settlement([settled.id, still_applied.id])
        assert ledger.get_cost(settled.id).status == "settled"

    def test_cancel_application_after_cancel_settlement(self, ledger, applied):
        ids = [c.id for c in applied.costs]
        ledger.settle(ids)
        ledger.cancel_settlement(ids)
        ledger.cancel_application(applied.application_number)
        assert {ledger.get_cost(cid).status for cid in ids} == {"unapplied"}
