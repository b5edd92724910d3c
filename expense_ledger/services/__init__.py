"""Write-side services for the expense ledger."""

from expense_ledger.services.application_number_service import (
    ApplicationNumberGenerator,
)
from expense_ledger.services.application_service import ApplicationService
from expense_ledger.services.cost_record_service import CostRecordService
from expense_ledger.services.integrity_service import LedgerIntegrityService
from expense_ledger.services.ledger_orchestrator import ExpenseLedger
from expense_ledger.services.sequence_service import SequenceService
from expense_ledger.services.settlement_service import SettlementService

__all__ = [
    "ApplicationNumberGenerator",
    "ApplicationService",
    "CostRecordService",
    "ExpenseLedger",
    "LedgerIntegrityService",
    "SequenceService",
    "SettlementService",
]
