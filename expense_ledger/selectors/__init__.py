"""Read-only query selectors."""

from expense_ledger.selectors.cost_selector import (
    ApplicationFilters,
    CostFilters,
    CostSelector,
)
from expense_ledger.selectors.reference_directory import (
    InMemoryReferenceDirectory,
    ReferenceDirectory,
    ShipmentInfo,
)

__all__ = [
    "ApplicationFilters",
    "CostFilters",
    "CostSelector",
    "InMemoryReferenceDirectory",
    "ReferenceDirectory",
    "ShipmentInfo",
]
