"""Expense lifecycle routes mounted at /expenses.

Handlers are plain ``def`` functions: the ledger is blocking SQLAlchemy code,
so FastAPI runs each request in its worker thread pool with its own session.
"""

from fastapi import APIRouter, Depends, Query

from expense_api.deps import get_ledger
from expense_api.schemas import (
    ApplyRequest,
    CancelApplicationRequest,
    CancelSettlementRequest,
    SettleRequest,
    application_json,
    apply_json,
    cancel_json,
    cost_json,
    integrity_json,
    settle_json,
)
from expense_ledger.domain.validation import parse_date
from expense_ledger.selectors.cost_selector import ApplicationFilters, CostFilters
from expense_ledger.services.ledger_orchestrator import ExpenseLedger

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("")
def list_expenses(
    type: str | None = None,
    status: str | None = None,
    application_number: str | None = Query(None, alias="applicationNumber"),
    financial_subject_id: int | None = Query(None, alias="financialSubjectId"),
    currency: str | None = None,
    settlement_unit: str | None = Query(None, alias="settlementUnit"),
    settlement_unit_name: str | None = Query(None, alias="settlementUnitName"),
    shipment_code: str | None = Query(None, alias="shipmentCode"),
    bl_number: str | None = Query(None, alias="blNumber"),
    date_from: str | None = Query(None, alias="dateFrom"),
    date_to: str | None = Query(None, alias="dateTo"),
    page: int = 1,
    page_size: int = Query(50, alias="pageSize"),
    ledger: ExpenseLedger = Depends(get_ledger),
):
    filters = CostFilters(
        type=type or None,
        status=status or None,
        application_number=application_number or None,
        financial_subject_id=financial_subject_id,
        currency=currency or None,
        settlement_unit=settlement_unit or None,
        settlement_unit_name=settlement_unit_name or None,
        shipment_code=shipment_code or None,
        bl_number=bl_number or None,
        date_from=parse_date(date_from, "dateFrom"),
        date_to=parse_date(date_to, "dateTo"),
    )
    result = ledger.list_costs(filters, page, page_size)
    return {
        "costs": [cost_json(c) for c in result.costs],
        "page": result.page,
        "pageSize": result.page_size,
        "total": result.total,
    }


@router.get("/applications")
def list_applications(
    type: str | None = None,
    status: str | None = None,
    date_from: str | None = Query(None, alias="dateFrom"),
    date_to: str | None = Query(None, alias="dateTo"),
    page: int = 1,
    page_size: int = Query(50, alias="pageSize"),
    ledger: ExpenseLedger = Depends(get_ledger),
):
    filters = ApplicationFilters(
        type=type or None,
        status=status or None,
        date_from=parse_date(date_from, "dateFrom"),
        date_to=parse_date(date_to, "dateTo"),
    )
    result = ledger.list_applications(filters, page, page_size)
    return {
        "applications": [application_json(a) for a in result.applications],
        "page": result.page,
        "pageSize": result.page_size,
        "total": result.total,
    }


@router.get("/applications/{application_number}")
def get_application(application_number: str, ledger: ExpenseLedger = Depends(get_ledger)):
    application = ledger.get_application(application_number)
    costs = ledger.costs_for_application(application_number)
    return {
        "application": application_json(application),
        "costs": [cost_json(c) for c in costs],
    }


@router.post("/apply")
def apply_costs(body: ApplyRequest, ledger: ExpenseLedger = Depends(get_ledger)):
    result = ledger.apply(body.cost_ids, body.due_date, body.remarks)
    return apply_json(result)


@router.post("/settle")
def settle_costs(body: SettleRequest, ledger: ExpenseLedger = Depends(get_ledger)):
    result = ledger.settle(body.cost_ids, body.settlement_date, body.remarks)
    return settle_json(result)


@router.post("/cancel-application")
def cancel_application(
    body: CancelApplicationRequest, ledger: ExpenseLedger = Depends(get_ledger)
):
    result = ledger.cancel_application(body.application_number or "")
    return cancel_json(
        result, "Application canceled; costs returned to unapplied"
    )


@router.post("/cancel-settlement")
def cancel_settlement(
    body: CancelSettlementRequest, ledger: ExpenseLedger = Depends(get_ledger)
):
    result = ledger.cancel_settlement(body.cost_ids)
    return cancel_json(result, "Settlement canceled; costs returned to applied")


@router.post("/cleanup")
def cleanup(ledger: ExpenseLedger = Depends(get_ledger)):
    return integrity_json(ledger.cleanup())
