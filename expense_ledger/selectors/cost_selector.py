"""
Module: expense_ledger.selectors.cost_selector
Responsibility: Read-only listings of cost lines and applications, with the
    filters and paging the expense screens use, enriched with counterparty
    and shipment display fields from a ReferenceDirectory.
Architecture position: Ledger > Selectors.

Invariants enforced:
    - page >= 1 and 1 <= page_size <= MAX_PAGE_SIZE.
    - Date filters select on creation time, interpreted as whole days in the
      business timezone; ``date_to`` is inclusive.
    - Costs are ordered by application number (unapplied last), then newest
      first.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from expense_ledger.domain.dtos import (
    ApplicationInfo,
    ApplicationPage,
    CostPage,
    CostRecordInfo,
)
from expense_ledger.models.cost_record import CostRecord
from expense_ledger.models.expense_application import ExpenseApplication
from expense_ledger.selectors.base import BaseSelector
from expense_ledger.selectors.reference_directory import (
    InMemoryReferenceDirectory,
    ReferenceDirectory,
)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@dataclass(frozen=True)
class CostFilters:
    type: str | None = None
    status: str | None = None
    application_number: str | None = None
    financial_subject_id: int | None = None
    currency: str | None = None
    settlement_unit: str | None = None
    settlement_unit_name: str | None = None
    shipment_code: str | None = None
    bl_number: str | None = None
    date_from: date | None = None
    date_to: date | None = None


@dataclass(frozen=True)
class ApplicationFilters:
    type: str | None = None
    status: str | None = None
    date_from: date | None = None
    date_to: date | None = None


def clamp_paging(page: int | None, page_size: int | None) -> tuple[int, int]:
    page = max(page or 1, 1)
    size = DEFAULT_PAGE_SIZE if page_size is None else page_size
    return page, min(max(size, 1), MAX_PAGE_SIZE)


class CostSelector(BaseSelector):
    """
    Cost and application listings.

    Non-goals:
        - No aggregation or reporting beyond per-row tax figures.
    """

    def __init__(
        self,
        session: Session,
        directory: ReferenceDirectory | None = None,
        business_timezone: str = "UTC",
    ):
        super().__init__(session)
        self._directory = directory or InMemoryReferenceDirectory()
        self._tz = ZoneInfo(business_timezone)

    def _day_start_utc(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self._tz).astimezone(timezone.utc)

    def _created_between(self, column, date_from: date | None, date_to: date | None):
        conditions = []
        if date_from is not None:
            conditions.append(column >= self._day_start_utc(date_from))
        if date_to is not None:
            conditions.append(column < self._day_start_utc(date_to + timedelta(days=1)))
        return conditions

    def _enrich(self, cost: CostRecord) -> CostRecordInfo:
        info = CostRecordInfo.from_model(cost)
        shipment = (
            self._directory.shipment_info(cost.shipment_id) if cost.shipment_id else None
        )
        return info.with_references(
            settlement_unit_name=self._directory.counterparty_name(
                cost.settlement_unit_type, cost.settlement_unit_id
            ),
            shipment_code=shipment.code if shipment else "",
            bl_number=shipment.bl_number if shipment else "",
        )

    def list_costs(
        self,
        filters: CostFilters | None = None,
        page: int | None = 1,
        page_size: int | None = DEFAULT_PAGE_SIZE,
    ) -> CostPage:
        filters = filters or CostFilters()
        page, page_size = clamp_paging(page, page_size)
        empty = CostPage(costs=(), page=page, page_size=page_size, total=0)

        conditions = []
        if filters.type:
            conditions.append(CostRecord.type == filters.type)
        if filters.status:
            conditions.append(CostRecord.status == filters.status)
        if filters.application_number:
            conditions.append(
                CostRecord.application_number.contains(filters.application_number)
            )
        if filters.financial_subject_id is not None:
            conditions.append(
                CostRecord.financial_subject_id == filters.financial_subject_id
            )
        if filters.currency:
            conditions.append(CostRecord.currency == filters.currency)
        if filters.settlement_unit:
            conditions.append(CostRecord.settlement_unit_id == filters.settlement_unit)

        if filters.settlement_unit_name:
            parties = self._directory.find_counterparties(filters.settlement_unit_name)
            if not parties:
                return empty
            conditions.append(
                or_(
                    *(
                        and_(
                            CostRecord.settlement_unit_type == unit_type,
                            CostRecord.settlement_unit_id == unit_id,
                        )
                        for unit_type, unit_id in sorted(parties)
                    )
                )
            )

        if filters.shipment_code or filters.bl_number:
            shipment_ids = self._directory.find_shipments(
                code=filters.shipment_code, bl_number=filters.bl_number
            )
            if not shipment_ids:
                return empty
            conditions.append(CostRecord.shipment_id.in_(sorted(shipment_ids)))

        conditions.extend(
            self._created_between(CostRecord.created_at, filters.date_from, filters.date_to)
        )

        total = self.session.execute(
            select(func.count()).select_from(CostRecord).where(*conditions)
        ).scalar_one()

        costs = self.session.execute(
            select(CostRecord)
            .where(*conditions)
            .order_by(
                CostRecord.application_number.asc().nulls_last(),
                CostRecord.created_at.desc(),
                CostRecord.id,
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars()

        return CostPage(
            costs=tuple(self._enrich(c) for c in costs),
            page=page,
            page_size=page_size,
            total=total,
        )

    def costs_for_application(self, application_number: str) -> tuple[CostRecordInfo, ...]:
        costs = self.session.execute(
            select(CostRecord)
            .where(CostRecord.application_number == application_number)
            .order_by(CostRecord.id)
        ).scalars()
        return tuple(self._enrich(c) for c in costs)

    def get_application(self, application_number: str) -> ApplicationInfo | None:
        app = self.session.execute(
            select(ExpenseApplication).where(
                ExpenseApplication.application_number == application_number
            )
        ).scalar_one_or_none()
        return ApplicationInfo.from_model(app) if app else None

    def list_applications(
        self,
        filters: ApplicationFilters | None = None,
        page: int | None = 1,
        page_size: int | None = DEFAULT_PAGE_SIZE,
    ) -> ApplicationPage:
        filters = filters or ApplicationFilters()
        page, page_size = clamp_paging(page, page_size)

        conditions = []
        if filters.type:
            conditions.append(ExpenseApplication.type == filters.type)
        if filters.status:
            conditions.append(ExpenseApplication.status == filters.status)
        conditions.extend(
            self._created_between(
                ExpenseApplication.created_at, filters.date_from, filters.date_to
            )
        )

        total = self.session.execute(
            select(func.count()).select_from(ExpenseApplication).where(*conditions)
        ).scalar_one()

        apps = self.session.execute(
            select(ExpenseApplication)
            .where(*conditions)
            .order_by(
                ExpenseApplication.created_at.desc(),
                ExpenseApplication.application_number.desc(),
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars()

        return ApplicationPage(
            applications=tuple(ApplicationInfo.from_model(a) for a in apps),
            page=page,
            page_size=page_size,
            total=total,
        )
