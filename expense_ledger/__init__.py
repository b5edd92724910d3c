"""
Expense Ledger - cost application & settlement

Moves shipment cost lines (AR receivables, AP payables) through
grouped application, settlement and reversible cancellation with:
- All-or-nothing batch transitions
- Row-locked, conflict-reporting concurrency
- Collision-free application numbers
- VAT / WHT derivation from stored rates
"""

__version__ = "0.1.0"
