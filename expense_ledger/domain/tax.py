"""
Tax -- VAT / withholding-tax derivation for a single cost line.

Responsibility:
    Pure calculation of VAT, WHT and the net total from a cost's amount and
    its stored percentage rates, plus a batch summary used by apply and
    listing responses.

Architecture position:
    Ledger > Domain -- pure, zero I/O.

Invariants enforced:
    - vat = amount * vat_rate / 100
    - wht = amount * wht_rate / 100
    - total = amount + vat - wht
    - A rate of 0 yields 0 for that component; it is never "unset".
    - Decimal arithmetic only, computed with enough working precision that
      Numeric(38, 9) operands are never rounded or truncated.

Failure modes:
    - InvalidAmountError for non-numeric or non-positive amounts.
    - InvalidRateError for non-numeric, non-finite or negative rates.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import Any, Iterable

from expense_ledger.db.types import to_decimal
from expense_ledger.exceptions import InvalidAmountError, InvalidRateError

HUNDRED = Decimal(100)
ZERO = Decimal(0)

# Two Numeric(38, 9) operands multiply into at most 76 significant digits
_WORKING_PRECISION = 80


@dataclass(frozen=True)
class TaxBreakdown:
    amount: Decimal
    vat: Decimal
    wht: Decimal
    total: Decimal


@dataclass(frozen=True)
class TaxSummary:
    """Sums of a batch of breakdowns."""

    total_amount: Decimal
    total_vat: Decimal
    total_wht: Decimal
    net_total: Decimal
    count: int


def validate_amount(value: Any) -> Decimal:
    """Return ``value`` as a positive Decimal or raise InvalidAmountError."""
    amount = to_decimal(value)
    if amount is None:
        raise InvalidAmountError(str(value), "must be a number")
    if amount <= ZERO:
        raise InvalidAmountError(str(value))
    return amount


def validate_rate(name: str, value: Any) -> Decimal:
    """Return ``value`` as a non-negative Decimal or raise InvalidRateError."""
    rate = to_decimal(value)
    if rate is None or rate < ZERO:
        raise InvalidRateError(name, str(value))
    return rate


def calculate(amount: Any, vat_rate: Any, wht_rate: Any) -> TaxBreakdown:
    """
    Derive VAT, WHT and net total for one cost.

    >>> calculate(1000, 7, 3)
    TaxBreakdown(amount=Decimal('1000'), vat=Decimal('70'), wht=Decimal('30'), total=Decimal('1040'))
    """
    amt = validate_amount(amount)
    vat_pct = validate_rate("vat_rate", vat_rate)
    wht_pct = validate_rate("wht_rate", wht_rate)

    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        vat = amt * vat_pct / HUNDRED
        wht = amt * wht_pct / HUNDRED
        total = amt + vat - wht

    return TaxBreakdown(amount=amt, vat=vat, wht=wht, total=total)


def summarize(items: Iterable[TaxBreakdown]) -> TaxSummary:
    """Sum a batch of breakdowns.  An empty batch sums to zero."""
    total_amount = total_vat = total_wht = net_total = ZERO
    count = 0
    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        for item in items:
            total_amount += item.amount
            total_vat += item.vat
            total_wht += item.wht
            net_total += item.total
            count += 1
    return TaxSummary(
        total_amount=total_amount,
        total_vat=total_vat,
        total_wht=total_wht,
        net_total=net_total,
        count=count,
    )
