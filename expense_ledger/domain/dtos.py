"""
DTOs -- immutable results handed out of the ledger.

Responsibility:
    Frozen data structures returned by services and selectors so that
    callers (the HTTP layer, tests) never hold live ORM entities after the
    transaction closes.

Architecture position:
    Ledger > Domain.  ``from_model()`` class methods are boundary converters
    invoked from services and selectors only, inside the open session.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from expense_ledger.domain.tax import TaxBreakdown, TaxSummary, summarize

if TYPE_CHECKING:
    from expense_ledger.models.cost_record import CostRecord
    from expense_ledger.models.expense_application import ExpenseApplication


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class CostRecordInfo:
    """Snapshot of one cost line, with derived tax and display fields."""

    id: UUID
    type: str
    status: str
    amount: Decimal
    currency: str
    vat_rate: Decimal
    wht_rate: Decimal
    vat: Decimal
    wht: Decimal
    total: Decimal
    settlement_unit_type: str
    settlement_unit_id: str
    financial_subject_id: int
    shipment_id: str | None
    description: str
    remarks: str | None
    application_number: str | None
    application_date: datetime | None
    due_date: date | None
    application_remarks: str | None
    settlement_date: date | None
    settlement_remarks: str | None
    version: int
    created_at: datetime | None
    updated_at: datetime | None
    settlement_unit_name: str = ""
    shipment_code: str = ""
    bl_number: str = ""

    @classmethod
    def from_model(cls, cost: CostRecord) -> CostRecordInfo:
        tax = cost.tax()
        return cls(
            id=cost.id,
            type=cost.type,
            status=cost.status,
            amount=tax.amount,
            currency=cost.currency,
            vat_rate=cost.vat_rate,
            wht_rate=cost.wht_rate,
            vat=tax.vat,
            wht=tax.wht,
            total=tax.total,
            settlement_unit_type=cost.settlement_unit_type,
            settlement_unit_id=cost.settlement_unit_id,
            financial_subject_id=cost.financial_subject_id,
            shipment_id=cost.shipment_id,
            description=cost.description,
            remarks=cost.remarks,
            application_number=cost.application_number,
            application_date=as_utc(cost.application_date),
            due_date=cost.due_date,
            application_remarks=cost.application_remarks,
            settlement_date=cost.settlement_date,
            settlement_remarks=cost.settlement_remarks,
            version=cost.version,
            created_at=as_utc(cost.created_at),
            updated_at=as_utc(cost.updated_at),
        )

    def with_references(
        self,
        settlement_unit_name: str,
        shipment_code: str,
        bl_number: str,
    ) -> CostRecordInfo:
        return replace(
            self,
            settlement_unit_name=settlement_unit_name,
            shipment_code=shipment_code,
            bl_number=bl_number,
        )


def _summary_of(costs: tuple[CostRecordInfo, ...]) -> TaxSummary:
    return summarize(
        TaxBreakdown(amount=c.amount, vat=c.vat, wht=c.wht, total=c.total)
        for c in costs
    )


@dataclass(frozen=True)
class ApplyResult:
    application_number: str
    type: str
    currency: str
    due_date: date
    costs: tuple[CostRecordInfo, ...]

    @property
    def applied_count(self) -> int:
        return len(self.costs)

    @property
    def summary(self) -> TaxSummary:
        return _summary_of(self.costs)


@dataclass(frozen=True)
class SettleResult:
    settlement_date: date
    costs: tuple[CostRecordInfo, ...]

    @property
    def settled_count(self) -> int:
        return len(self.costs)


@dataclass(frozen=True)
class CancelResult:
    """Outcome of cancel-application or cancel-settlement."""

    action: str
    cost_ids: tuple[UUID, ...]
    application_number: str | None = None

    @property
    def affected_count(self) -> int:
        return len(self.cost_ids)


@dataclass(frozen=True)
class ApplicationInfo:
    id: UUID
    application_number: str
    type: str
    currency: str
    total_amount: Decimal
    cost_count: int
    application_date: datetime | None
    due_date: date
    remarks: str | None
    status: str
    canceled_at: datetime | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_model(cls, app: ExpenseApplication) -> ApplicationInfo:
        return cls(
            id=app.id,
            application_number=app.application_number,
            type=app.type,
            currency=app.currency,
            total_amount=app.total_amount,
            cost_count=app.cost_count,
            application_date=as_utc(app.application_date),
            due_date=app.due_date,
            remarks=app.remarks,
            status=app.status,
            canceled_at=as_utc(app.canceled_at),
            created_at=as_utc(app.created_at),
            updated_at=as_utc(app.updated_at),
        )


@dataclass(frozen=True)
class CostPage:
    costs: tuple[CostRecordInfo, ...]
    page: int
    page_size: int
    total: int


@dataclass(frozen=True)
class ApplicationPage:
    applications: tuple[ApplicationInfo, ...]
    page: int
    page_size: int
    total: int


@dataclass(frozen=True)
class IntegrityViolation:
    """One record that breaks a lifecycle invariant."""

    entity_type: str
    entity_id: str
    rule: str
    detail: str


@dataclass(frozen=True)
class IntegrityReport:
    violations: tuple[IntegrityViolation, ...] = field(default_factory=tuple)
    updated_applications: int = 0

    @property
    def is_clean(self) -> bool:
        return not self.violations
