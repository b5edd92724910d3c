"""FastAPI dependencies."""

from fastapi import Request

from expense_ledger.services.ledger_orchestrator import ExpenseLedger


def get_ledger(request: Request) -> ExpenseLedger:
    return request.app.state.ledger
