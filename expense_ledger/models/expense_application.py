"""
Module: expense_ledger.models.expense_application
Responsibility: ORM persistence for the application aggregate -- the group of
    cost lines created by one apply action, keyed by its application number.
Architecture position: Ledger > Models.  May import from db/ only.

Invariants enforced:
    - application_number is unique (uq_expense_application_number); this is
      the final guard against a duplicated number.
    - Canceled applications are kept for history with zero members.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from expense_ledger.db.base import TrackedBase
from expense_ledger.db.types import MAX_CURRENCY_LENGTH, MAX_TEXT_LENGTH


class ApplicationStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"


class ExpenseApplication(TrackedBase):
    """
    One apply action's worth of cost lines.

    Guarantees:
        - type and currency are shared by every member line.
        - total_amount and cost_count reflect the members at apply time and
          are refreshed by the integrity service.

    Non-goals:
        - Member lines are found by application_number on shipment_costs;
          there is no foreign key, so canceled numbers can stay on record.
    """

    __tablename__ = "expense_applications"

    __table_args__ = (
        UniqueConstraint("application_number", name="uq_expense_application_number"),
        Index("idx_expense_application_status", "status"),
    )

    application_number: Mapped[str] = mapped_column(String(32), nullable=False)
    type: Mapped[str] = mapped_column(String(2), nullable=False)
    currency: Mapped[str] = mapped_column(String(MAX_CURRENCY_LENGTH), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    cost_count: Mapped[int] = mapped_column(Integer, nullable=False)
    application_date: Mapped[datetime] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(MAX_TEXT_LENGTH), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ApplicationStatus.ACTIVE.value,
        nullable=False,
    )

    canceled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self) -> str:
        return f"<ExpenseApplication {self.application_number}: {self.status}>"

    @property
    def is_active(self) -> bool:
        return self.status == ApplicationStatus.ACTIVE.value

    def cancel(self, canceled_at: datetime) -> None:
        self.status = ApplicationStatus.CANCELED.value
        self.canceled_at = canceled_at
