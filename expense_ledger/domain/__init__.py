"""Pure domain layer: lifecycle, tax, numbering, validation and DTOs."""

from expense_ledger.domain.clock import Clock, DeterministicClock, SystemClock
from expense_ledger.domain.lifecycle import (
    CostAction,
    CostStatus,
    CostType,
    SettlementUnitType,
    transition,
)
from expense_ledger.domain.tax import TaxBreakdown, TaxSummary, calculate, summarize

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "CostAction",
    "CostStatus",
    "CostType",
    "SettlementUnitType",
    "transition",
    "TaxBreakdown",
    "TaxSummary",
    "calculate",
    "summarize",
]
