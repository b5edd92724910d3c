"""
Module: expense_ledger.models.cost_record
Responsibility: ORM persistence for a single shipment cost line (receivable or
    payable) and the field changes of its four lifecycle transitions.
Architecture position: Ledger > Models.  May import from db/ and domain/.

Invariants enforced:
    - Status changes go through ``domain.lifecycle.transition``; the mark_*
      methods are the only code that writes lifecycle fields.
    - application_number, application_date, due_date are set iff status is
      applied or settled; settlement_date is set iff status is settled.
    - Every UPDATE is a compare-and-swap on ``version`` (mapper
      version_id_col); a concurrent writer gets StaleDataError at flush.

Failure modes:
    - InvalidStatusTransitionError from the mark_* methods on an illegal edge.
    - ImmutabilityViolationError at flush (db/immutability.py) when a locked
      field is edited.
"""

from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from expense_ledger.db.base import TrackedBase
from expense_ledger.db.types import (
    MAX_CURRENCY_LENGTH,
    MAX_SHORT_CODE_LENGTH,
    MAX_TEXT_LENGTH,
)
from expense_ledger.domain.lifecycle import CostAction, CostStatus, transition
from expense_ledger.domain.tax import TaxBreakdown, calculate

# Fields that only the lifecycle transitions may write
LIFECYCLE_FIELDS = frozenset({
    "status",
    "application_number",
    "application_date",
    "due_date",
    "application_remarks",
    "settlement_date",
    "settlement_remarks",
})

# Fields that never change after creation
IMMUTABLE_FIELDS = frozenset({
    "id",
    "type",
    "settlement_unit_type",
    "settlement_unit_id",
    "created_at",
})

# Fields that may change in any status
ALWAYS_MUTABLE_FIELDS = frozenset({"remarks", "updated_at", "version"})


class CostRecord(TrackedBase):
    """
    One receivable (AR) or payable (AP) cost line tied to a shipment.

    Contract:
        Created ``unapplied``; moved between statuses only by the
        application and settlement services through the mark_* methods.

    Guarantees:
        - amount is positive and rates are non-negative (service layer and
          check constraints).
        - Reversals restore the exact prior values: cancel-application nulls
          every application field, cancel-settlement nulls every settlement
          field and leaves the application fields untouched.

    Non-goals:
        - Counterparty and shipment existence are not verified here; they
          belong to external registries.
    """

    __tablename__ = "shipment_costs"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_cost_amount_positive"),
        CheckConstraint("vat_rate >= 0", name="ck_cost_vat_rate_non_negative"),
        CheckConstraint("wht_rate >= 0", name="ck_cost_wht_rate_non_negative"),
        Index("idx_cost_application_number", "application_number"),
        Index("idx_cost_status", "status"),
        Index("idx_cost_type_status", "type", "status"),
        Index("idx_cost_shipment", "shipment_id"),
        Index("idx_cost_settlement_unit", "settlement_unit_type", "settlement_unit_id"),
    )

    # AR / AP
    type: Mapped[str] = mapped_column(String(2), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=CostStatus.UNAPPLIED.value,
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(MAX_CURRENCY_LENGTH), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    wht_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    # Counterparty: customer for AR, supplier for AP
    settlement_unit_type: Mapped[str] = mapped_column(String(20), nullable=False)
    settlement_unit_id: Mapped[str] = mapped_column(
        String(MAX_SHORT_CODE_LENGTH), nullable=False
    )

    # Cost category (financial subject master record)
    financial_subject_id: Mapped[int] = mapped_column(nullable=False)

    shipment_id: Mapped[str | None] = mapped_column(
        String(MAX_SHORT_CODE_LENGTH), nullable=True
    )
    description: Mapped[str] = mapped_column(String(MAX_TEXT_LENGTH), nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(MAX_TEXT_LENGTH), nullable=True)

    # Application fields
    application_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    application_date: Mapped[datetime | None] = mapped_column(nullable=True)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    application_remarks: Mapped[str | None] = mapped_column(
        String(MAX_TEXT_LENGTH), nullable=True
    )

    # Settlement fields
    settlement_date: Mapped[date | None] = mapped_column(nullable=True)
    settlement_remarks: Mapped[str | None] = mapped_column(
        String(MAX_TEXT_LENGTH), nullable=True
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    def __repr__(self) -> str:
        return f"<CostRecord {self.id} {self.type} {self.status}>"

    def tax(self) -> TaxBreakdown:
        """VAT / WHT / net total derived from the stored rates."""
        return calculate(self.amount, self.vat_rate, self.wht_rate)

    def mark_applied(
        self,
        application_number: str,
        application_date: datetime,
        due_date: date,
        remarks: str | None,
    ) -> None:
        self.status = transition(self.status, CostAction.APPLY).value
        self.application_number = application_number
        self.application_date = application_date
        self.due_date = due_date
        self.application_remarks = remarks

    def mark_application_cancelled(self) -> None:
        self.status = transition(self.status, CostAction.CANCEL_APPLICATION).value
        self.application_number = None
        self.application_date = None
        self.due_date = None
        self.application_remarks = None

    def mark_settled(self, settlement_date: date, remarks: str | None) -> None:
        self.status = transition(self.status, CostAction.SETTLE).value
        self.settlement_date = settlement_date
        self.settlement_remarks = remarks

    def mark_settlement_cancelled(self) -> None:
        self.status = transition(self.status, CostAction.CANCEL_SETTLEMENT).value
        self.settlement_date = None
        self.settlement_remarks = None
