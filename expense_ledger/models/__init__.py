"""ORM models for the expense ledger."""

from expense_ledger.models.cost_record import CostRecord
from expense_ledger.models.expense_application import (
    ApplicationStatus,
    ExpenseApplication,
)
from expense_ledger.models.sequence_counter import SequenceCounter

__all__ = [
    "CostRecord",
    "ExpenseApplication",
    "ApplicationStatus",
    "SequenceCounter",
]
