"""Request models and JSON renderers for the expense routes.

Request bodies use camelCase keys.  Dates and amounts arrive as strings and
are validated by the ledger, so every malformed value produces the same
typed error as a direct ledger call.  Decimals leave as plain strings
(``"1040"``, ``"12.5"``) to avoid float rounding in clients.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from expense_ledger.db.types import format_decimal
from expense_ledger.domain.dtos import (
    ApplicationInfo,
    ApplyResult,
    CancelResult,
    CostRecordInfo,
    IntegrityReport,
    SettleResult,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ApplyRequest(CamelModel):
    cost_ids: list[str] = Field(default_factory=list)
    due_date: str | None = None
    remarks: str | None = None


class SettleRequest(CamelModel):
    cost_ids: list[str] = Field(default_factory=list)
    settlement_date: str | None = None
    remarks: str | None = None


class CancelApplicationRequest(CamelModel):
    application_number: str | None = None


class CancelSettlementRequest(CamelModel):
    cost_ids: list[str] = Field(default_factory=list)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def cost_json(cost: CostRecordInfo) -> dict[str, Any]:
    return {
        "id": str(cost.id),
        "type": cost.type,
        "status": cost.status,
        "amount": format_decimal(cost.amount),
        "currency": cost.currency,
        "vatRate": format_decimal(cost.vat_rate),
        "whtRate": format_decimal(cost.wht_rate),
        "vat": format_decimal(cost.vat),
        "wht": format_decimal(cost.wht),
        "total": format_decimal(cost.total),
        "settlementUnitType": cost.settlement_unit_type,
        "settlementUnitId": cost.settlement_unit_id,
        "settlementUnitName": cost.settlement_unit_name,
        "financialSubjectId": cost.financial_subject_id,
        "shipmentId": cost.shipment_id,
        "shipmentCode": cost.shipment_code,
        "blNumber": cost.bl_number,
        "description": cost.description,
        "remarks": cost.remarks,
        "applicationNumber": cost.application_number,
        "applicationDate": _iso(cost.application_date),
        "dueDate": _iso(cost.due_date),
        "applicationRemarks": cost.application_remarks,
        "settlementDate": _iso(cost.settlement_date),
        "settlementRemarks": cost.settlement_remarks,
        "version": cost.version,
        "createdAt": _iso(cost.created_at),
        "updatedAt": _iso(cost.updated_at),
    }


def application_json(app: ApplicationInfo) -> dict[str, Any]:
    return {
        "id": str(app.id),
        "applicationNumber": app.application_number,
        "type": app.type,
        "currency": app.currency,
        "totalAmount": format_decimal(app.total_amount),
        "costCount": app.cost_count,
        "applicationDate": _iso(app.application_date),
        "dueDate": _iso(app.due_date),
        "remarks": app.remarks,
        "status": app.status,
        "canceledAt": _iso(app.canceled_at),
        "createdAt": _iso(app.created_at),
        "updatedAt": _iso(app.updated_at),
    }


def apply_json(result: ApplyResult) -> dict[str, Any]:
    summary = result.summary
    return {
        "success": True,
        "applicationNumber": result.application_number,
        "appliedCosts": result.applied_count,
        "totalAmount": format_decimal(summary.total_amount),
        "totalVat": format_decimal(summary.total_vat),
        "totalWht": format_decimal(summary.total_wht),
        "netTotal": format_decimal(summary.net_total),
        "currency": result.currency,
        "dueDate": result.due_date.isoformat(),
        "costs": [cost_json(c) for c in result.costs],
    }


def settle_json(result: SettleResult) -> dict[str, Any]:
    return {
        "success": True,
        "message": f"Settled {result.settled_count} cost(s)",
        "settledCount": result.settled_count,
        "settlementDate": result.settlement_date.isoformat(),
        "costs": [cost_json(c) for c in result.costs],
    }


def cancel_json(result: CancelResult, message: str) -> dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "affectedCosts": result.affected_count,
    }


def integrity_json(report: IntegrityReport) -> dict[str, Any]:
    return {
        "success": True,
        "violations": [
            {
                "entityType": v.entity_type,
                "entityId": v.entity_id,
                "rule": v.rule,
                "detail": v.detail,
            }
            for v in report.violations
        ],
        "updatedApplications": report.updated_applications,
    }
