"""
CostRecordService -- create, edit and delete individual cost lines.

Responsibility:
    Field-level validation and persistence for single cost lines.  Lines are
    created ``unapplied``; financial fields may be edited and the line may be
    deleted only while it is still unapplied.

Architecture position:
    Ledger > Services.  Flush-only; the caller owns the transaction.

Invariants enforced:
    - amount > 0; VAT and WHT rates are non-negative numbers.
    - AR lines settle with a customer, AP lines with a supplier.
    - type and counterparty never change after creation.
    - ``remarks`` may change in any status.

Failure modes:
    - InvalidAmountError, InvalidRateError, InvalidCurrencyCodeError,
      InvalidCostFieldError, InvalidCounterpartyError on bad input.
    - ImmutabilityViolationError when editing/deleting a locked line.
    - CostNotFoundError for unknown ids.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from expense_ledger.db.types import MAX_TEXT_LENGTH, normalize_currency
from expense_ledger.domain.clock import Clock, SystemClock
from expense_ledger.domain.dtos import CostRecordInfo
from expense_ledger.domain.lifecycle import (
    COUNTERPARTY_FOR_TYPE,
    CostStatus,
    CostType,
    SettlementUnitType,
    is_editable,
)
from expense_ledger.domain.tax import validate_amount, validate_rate
from expense_ledger.exceptions import (
    ImmutabilityViolationError,
    InvalidCostFieldError,
    InvalidCounterpartyError,
    InvalidCurrencyCodeError,
)
from expense_ledger.logging_config import get_logger
from expense_ledger.models.cost_record import CostRecord
from expense_ledger.services.base import BaseService
from expense_ledger.services.locking import fetch_costs, lock_costs

logger = get_logger("services.cost_record")

EDITABLE_FIELDS = frozenset({
    "amount",
    "currency",
    "vat_rate",
    "wht_rate",
    "financial_subject_id",
    "shipment_id",
    "description",
})

_COUNTERPARTY_FIELDS = frozenset({"type", "settlement_unit_type", "settlement_unit_id"})


def _require_text(field: str, value: Any) -> str:
    if value is None or not str(value).strip():
        raise InvalidCostFieldError(field, "is required")
    text = str(value).strip()
    if len(text) > MAX_TEXT_LENGTH:
        raise InvalidCostFieldError(field, f"longer than {MAX_TEXT_LENGTH} characters")
    return text


def _validate_subject_id(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidCostFieldError("financial_subject_id", "must be a positive integer")
    try:
        subject_id = int(value)
    except (TypeError, ValueError):
        raise InvalidCostFieldError(
            "financial_subject_id", "must be a positive integer"
        ) from None
    if subject_id <= 0:
        raise InvalidCostFieldError("financial_subject_id", "must be a positive integer")
    return subject_id


def _validate_currency(value: Any) -> str:
    currency = normalize_currency(value)
    if currency is None:
        raise InvalidCurrencyCodeError(str(value))
    return currency


def _validate_counterparty(cost_type: Any, unit_type: Any) -> tuple[CostType, SettlementUnitType]:
    try:
        ctype = CostType(str(cost_type).upper())
    except ValueError:
        raise InvalidCostFieldError("type", f"must be AR or AP, got {cost_type!r}") from None
    expected = COUNTERPARTY_FOR_TYPE[ctype]
    if str(unit_type).lower() != expected.value:
        raise InvalidCounterpartyError(ctype.value, str(unit_type), expected.value)
    return ctype, expected


class CostRecordService(BaseService):
    """
    Write-side operations on single cost lines.

    Contract:
        Every method flushes; none commits.  Returned values are
        CostRecordInfo snapshots, never live ORM objects.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create_cost(
        self,
        *,
        type: str,
        amount: Any,
        currency: str,
        settlement_unit_type: str,
        settlement_unit_id: str,
        financial_subject_id: Any,
        description: str,
        vat_rate: Any = 0,
        wht_rate: Any = 0,
        shipment_id: str | None = None,
        remarks: str | None = None,
    ) -> CostRecordInfo:
        """Validate and persist a new unapplied cost line."""
        ctype, unit_type = _validate_counterparty(type, settlement_unit_type)
        now = self._clock.now_utc()

        cost = CostRecord(
            type=ctype.value,
            status=CostStatus.UNAPPLIED.value,
            amount=validate_amount(amount),
            currency=_validate_currency(currency),
            vat_rate=validate_rate("vat_rate", vat_rate),
            wht_rate=validate_rate("wht_rate", wht_rate),
            settlement_unit_type=unit_type.value,
            settlement_unit_id=_require_text("settlement_unit_id", settlement_unit_id),
            financial_subject_id=_validate_subject_id(financial_subject_id),
            shipment_id=str(shipment_id).strip() if shipment_id else None,
            description=_require_text("description", description),
            remarks=remarks,
            created_at=now,
            updated_at=now,
        )
        self.session.add(cost)
        self.session.flush()

        logger.info(
            "cost_created",
            extra={
                "cost_id": str(cost.id),
                "cost_type": cost.type,
                "amount": str(cost.amount),
                "currency": cost.currency,
            },
        )
        return CostRecordInfo.from_model(cost)

    def get_cost(self, cost_id: UUID | str) -> CostRecordInfo:
        """Raises CostNotFoundError when absent."""
        (cost,) = fetch_costs(self.session, [cost_id])
        return CostRecordInfo.from_model(cost)

    def update_cost(self, cost_id: UUID | str, **changes: Any) -> CostRecordInfo:
        """
        Edit a cost line.

        Financial fields require ``unapplied`` status; ``remarks`` may be
        edited in any status.
        """
        unknown = sorted(set(changes) - EDITABLE_FIELDS - _COUNTERPARTY_FIELDS - {"remarks"})
        if unknown:
            raise InvalidCostFieldError(unknown[0], "is not an editable cost field")

        (cost,) = lock_costs(self.session, [cost_id])

        locked = sorted(set(changes) & _COUNTERPARTY_FIELDS)
        if locked:
            raise ImmutabilityViolationError(
                "CostRecord", str(cost.id), f"'{locked[0]}' cannot be modified"
            )

        financial = sorted(set(changes) & EDITABLE_FIELDS)
        if financial and not is_editable(cost.status):
            raise ImmutabilityViolationError(
                "CostRecord",
                str(cost.id),
                f"'{financial[0]}' cannot be modified once the cost is {cost.status}",
            )

        for name, value in changes.items():
            if name == "amount":
                cost.amount = validate_amount(value)
            elif name in ("vat_rate", "wht_rate"):
                setattr(cost, name, validate_rate(name, value))
            elif name == "currency":
                cost.currency = _validate_currency(value)
            elif name == "financial_subject_id":
                cost.financial_subject_id = _validate_subject_id(value)
            elif name == "description":
                cost.description = _require_text("description", value)
            elif name == "shipment_id":
                cost.shipment_id = str(value).strip() if value else None
            else:
                cost.remarks = value
        self.session.flush()

        logger.info(
            "cost_updated",
            extra={"cost_id": str(cost.id), "fields": sorted(changes)},
        )
        return CostRecordInfo.from_model(cost)

    def delete_cost(self, cost_id: UUID | str) -> None:
        """Delete an unapplied cost line."""
        (cost,) = lock_costs(self.session, [cost_id])
        if not is_editable(cost.status):
            raise ImmutabilityViolationError(
                "CostRecord", str(cost.id), f"cannot delete a cost that is {cost.status}"
            )
        self.session.delete(cost)
        self.session.flush()
        logger.info("cost_deleted", extra={"cost_id": str(cost.id)})

