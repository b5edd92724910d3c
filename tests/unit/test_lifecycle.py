"""
Unit tests for the cost status state machine.

Verifies:
- The four legal edges and nothing else
- Every illegal (status, action) pair is rejected with the current status
"""

import pytest

from expense_ledger.domain.lifecycle import (
    COUNTERPARTY_FOR_TYPE,
    CostAction,
    CostStatus,
    CostType,
    SettlementUnitType,
    is_editable,
    is_legal_edge,
    source_status,
    transition,
)
from expense_ledger.exceptions import ConflictError, InvalidStatusTransitionError

LEGAL = {
    (CostStatus.UNAPPLIED, CostAction.APPLY): CostStatus.APPLIED,
    (CostStatus.APPLIED, CostAction.SETTLE): CostStatus.SETTLED,
    (CostStatus.APPLIED, CostAction.CANCEL_APPLICATION): CostStatus.UNAPPLIED,
    (CostStatus.SETTLED, CostAction.CANCEL_SETTLEMENT): CostStatus.APPLIED,
}


class TestTransition:
    @pytest.mark.parametrize("pair,target", LEGAL.items())
    def test_legal_transitions(self, pair, target):
        status, action = pair
        assert transition(status, action) is target

    @pytest.mark.parametrize(
        "status,action",
        [
            (s, a)
            for s in CostStatus
            for a in CostAction
            if (s, a) not in LEGAL
        ],
    )
    def test_illegal_transitions_rejected(self, status, action):
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            transition(status, action)
        assert exc_info.value.current_status == status.value
        assert exc_info.value.action == action.value

    def test_accepts_plain_strings(self):
        assert transition("unapplied", "apply") is CostStatus.APPLIED

    def test_unknown_status_rejected(self):
        with pytest.raises(InvalidStatusTransitionError):
            transition("archived", CostAction.APPLY)

    def test_transition_error_is_a_conflict(self):
        assert issubclass(InvalidStatusTransitionError, ConflictError)


class TestEdges:
    def test_no_direct_unapplied_to_settled(self):
        assert not is_legal_edge(CostStatus.UNAPPLIED, CostStatus.SETTLED)
        assert not is_legal_edge(CostStatus.SETTLED, CostStatus.UNAPPLIED)

    def test_reversal_edges_are_legal(self):
        assert is_legal_edge("applied", "unapplied")
        assert is_legal_edge("settled", "applied")

    def test_unknown_status_is_not_an_edge(self):
        assert not is_legal_edge("applied", "void")

    def test_source_status(self):
        assert source_status(CostAction.SETTLE) is CostStatus.APPLIED
        assert source_status(CostAction.CANCEL_SETTLEMENT) is CostStatus.SETTLED

    def test_only_unapplied_is_editable(self):
        assert is_editable("unapplied")
        assert not is_editable("applied")
        assert not is_editable(CostStatus.SETTLED)


def test_counterparty_for_type():
    assert COUNTERPARTY_FOR_TYPE[CostType.AR] is SettlementUnitType.CUSTOMER
    assert COUNTERPARTY_FOR_TYPE[CostType.AP] is SettlementUnitType.SUPPLIER
