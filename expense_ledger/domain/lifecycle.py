"""
Lifecycle -- the closed cost status state machine.

Responsibility:
    Single source of truth for which (status, action) pairs are legal and
    which status each action produces.  Engines ask ``transition()`` instead
    of comparing status strings at each call site; the ORM listener in
    ``db/immutability.py`` re-checks persisted status edges against the same
    table.

Architecture position:
    Ledger > Domain -- pure, zero I/O.

Invariants enforced:
    - Legal edges: unapplied -> applied -> settled, plus the two reversals
      applied -> unapplied and settled -> applied.  Nothing else.
    - Each action maps to exactly one edge.

Failure modes:
    - InvalidStatusTransitionError for any pair not in the table.
"""

from enum import Enum

from expense_ledger.exceptions import InvalidStatusTransitionError


class CostType(str, Enum):
    """Receivable (AR) or payable (AP)."""

    AR = "AR"
    AP = "AP"


class SettlementUnitType(str, Enum):
    """Kind of counterparty a cost settles with."""

    CUSTOMER = "customer"
    SUPPLIER = "supplier"


# AR costs are billed to customers, AP costs are owed to suppliers
COUNTERPARTY_FOR_TYPE: dict[CostType, SettlementUnitType] = {
    CostType.AR: SettlementUnitType.CUSTOMER,
    CostType.AP: SettlementUnitType.SUPPLIER,
}


class CostStatus(str, Enum):
    UNAPPLIED = "unapplied"
    APPLIED = "applied"
    SETTLED = "settled"


class CostAction(str, Enum):
    APPLY = "apply"
    SETTLE = "settle"
    CANCEL_APPLICATION = "cancel_application"
    CANCEL_SETTLEMENT = "cancel_settlement"


# action -> (source, target)
TRANSITIONS: dict[CostAction, tuple[CostStatus, CostStatus]] = {
    CostAction.APPLY: (CostStatus.UNAPPLIED, CostStatus.APPLIED),
    CostAction.SETTLE: (CostStatus.APPLIED, CostStatus.SETTLED),
    CostAction.CANCEL_APPLICATION: (CostStatus.APPLIED, CostStatus.UNAPPLIED),
    CostAction.CANCEL_SETTLEMENT: (CostStatus.SETTLED, CostStatus.APPLIED),
}

LEGAL_EDGES: frozenset[tuple[CostStatus, CostStatus]] = frozenset(
    TRANSITIONS.values()
)


def source_status(action: CostAction) -> CostStatus:
    """Status a cost must be in for ``action`` to apply."""
    return TRANSITIONS[CostAction(action)][0]


def transition(status: CostStatus | str, action: CostAction | str) -> CostStatus:
    """
    Return the status produced by applying ``action`` to ``status``.

    Raises:
        InvalidStatusTransitionError: if the action is not legal from
            ``status`` (or either value is not a known member).
    """
    try:
        current = CostStatus(status)
        act = CostAction(action)
    except ValueError:
        raise InvalidStatusTransitionError(str(status), str(action)) from None

    source, target = TRANSITIONS[act]
    if current is not source:
        raise InvalidStatusTransitionError(current.value, act.value)
    return target


def is_legal_edge(old: CostStatus | str, new: CostStatus | str) -> bool:
    """True if moving from ``old`` to ``new`` is one of the four edges."""
    try:
        return (CostStatus(old), CostStatus(new)) in LEGAL_EDGES
    except ValueError:
        return False


def is_editable(status: CostStatus | str) -> bool:
    """Financial fields may only change while a cost is unapplied."""
    return CostStatus(status) is CostStatus.UNAPPLIED
