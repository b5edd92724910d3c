"""
expense_ledger.services.ledger_orchestrator -- transaction owner for every ledger action.

Responsibility:
    ``ExpenseLedger`` is the single entry point used by the HTTP layer and
    scripts.  For each action it validates the request, allocates an
    application number when needed, opens exactly one transaction with
    ``session_scope()``, runs the engine inside it and translates database
    failures into ledger exceptions.

Architecture position:
    Services -- top of the ledger.  Constructs the flush-only services per
    transaction; no service constructs another.

Invariants enforced:
    - One action, one transaction: commit on success, rollback on any
      exception, so a batch is never partially committed.
    - Apply checks batch size and due date before allocating; the number is
      allocated in its own short committed transaction before the apply
      transaction opens.  Conflicts and unknown ids surface inside that
      transaction, so such a rejected apply still uses up its number.
    - No automatic retries.

Failure modes:
    - Every ExpenseLedgerError raised by the engines propagates unchanged.
    - StaleDataError -> OptimisticLockError.
    - Lock timeouts, deadlocks, SQLite "database is locked" -> LockTimeoutError.
    - Any other database error -> InternalLedgerError.

Usage:
    ledger = ExpenseLedger.from_settings(load_settings())
    result = ledger.apply(cost_ids, due_date=date(2025, 10, 31))
    ledger.settle([result.costs[0].id])
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from expense_ledger.config import LedgerSettings
from expense_ledger.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from expense_ledger.db.immutability import register_immutability_listeners
from expense_ledger.domain.clock import Clock, SystemClock
from expense_ledger.domain.dtos import (
    ApplicationInfo,
    ApplicationPage,
    ApplyResult,
    CancelResult,
    CostPage,
    CostRecordInfo,
    IntegrityReport,
    SettleResult,
)
from expense_ledger.domain.lifecycle import CostAction
from expense_ledger.domain.validation import normalize_cost_ids, validate_due_date
from expense_ledger.exceptions import (
    ApplicationNotFoundError,
    InternalLedgerError,
    LockTimeoutError,
    OptimisticLockError,
)
from expense_ledger.logging_config import LogContext, get_logger
from expense_ledger.selectors.cost_selector import (
    ApplicationFilters,
    CostFilters,
    CostSelector,
)
from expense_ledger.selectors.reference_directory import (
    InMemoryReferenceDirectory,
    ReferenceDirectory,
)
from expense_ledger.services.application_number_service import (
    ApplicationNumberGenerator,
)
from expense_ledger.services.application_service import ApplicationService
from expense_ledger.services.cost_record_service import CostRecordService
from expense_ledger.services.integrity_service import LedgerIntegrityService
from expense_ledger.services.locking import is_lock_failure
from expense_ledger.services.settlement_service import SettlementService

logger = get_logger("services.ledger")

T = TypeVar("T")


class ExpenseLedger:
    """
    Facade over the application, settlement and cost record services.

    Contract:
        Thread-safe: holds only a session factory and immutable settings;
        every call opens its own session.  Concurrent request handlers may
        share one instance.

    Guarantees:
        - Two concurrent actions on the same cost: one succeeds, the other
          raises a ConflictError subclass.
        - Returned values are DTO snapshots taken inside the transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        directory: ReferenceDirectory | None = None,
    ):
        register_immutability_listeners()
        self._session_factory = session_factory
        self._settings = settings or LedgerSettings()
        self._clock = clock or SystemClock()
        self._directory = directory or InMemoryReferenceDirectory()
        self._numbers = ApplicationNumberGenerator(
            session_factory,
            self._clock,
            prefix=self._settings.application_number_prefix,
            business_timezone=self._settings.business_timezone,
        )

    @classmethod
    def from_settings(
        cls,
        settings: LedgerSettings,
        clock: Clock | None = None,
        directory: ReferenceDirectory | None = None,
    ) -> ExpenseLedger:
        """Initialize the engine from ``settings``, create tables, build the ledger."""
        init_engine_from_url(
            settings.database_url,
            echo=settings.echo_sql,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            lock_timeout_seconds=settings.lock_timeout_seconds,
        )
        create_tables()
        return cls(get_session_factory(), settings, clock, directory)

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    @property
    def directory(self) -> ReferenceDirectory:
        return self._directory

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _run(self, action: str, work: Callable[[Session], T]) -> T:
        """Run ``work`` in one transaction and translate store failures."""
        try:
            with session_scope(self._session_factory) as session:
                return work(session)
        except StaleDataError as exc:
            logger.warning("optimistic_lock_conflict", extra={"detail": str(exc)})
            raise OptimisticLockError("CostRecord", action) from exc
        except DBAPIError as exc:
            if is_lock_failure(exc):
                logger.warning("lock_timeout", extra={"detail": str(exc.orig)})
                raise LockTimeoutError(action, str(exc.orig)) from exc
            logger.error("store_failure", exc_info=True)
            raise InternalLedgerError(f"{action} failed: database error") from exc

    def _service_kwargs(self) -> dict[str, Any]:
        return {
            "max_batch_size": self._settings.max_batch_size,
            "business_timezone": self._settings.business_timezone,
        }

    def _enrich(self, costs: tuple[CostRecordInfo, ...]) -> tuple[CostRecordInfo, ...]:
        enriched = []
        for cost in costs:
            shipment = (
                self._directory.shipment_info(cost.shipment_id)
                if cost.shipment_id
                else None
            )
            enriched.append(
                cost.with_references(
                    settlement_unit_name=self._directory.counterparty_name(
                        cost.settlement_unit_type, cost.settlement_unit_id
                    ),
                    shipment_code=shipment.code if shipment else "",
                    bl_number=shipment.bl_number if shipment else "",
                )
            )
        return tuple(enriched)

    # ------------------------------------------------------------------
    # Lifecycle actions
    # ------------------------------------------------------------------

    def apply(
        self,
        cost_ids: list[UUID | str],
        due_date: date | str | None,
        remarks: str | None = None,
    ) -> ApplyResult:
        """Group unapplied costs into a new application."""
        action = CostAction.APPLY.value
        with LogContext.bind(action=action):
            ids = normalize_cost_ids(cost_ids, action, self._settings.max_batch_size)
            today = self._clock.business_date(self._settings.business_timezone)
            due = validate_due_date(due_date, today)

            number = self._numbers.next()
            with LogContext.bind(application_number=number):
                result = self._run(
                    action,
                    lambda session: ApplicationService(
                        session, self._clock, **self._service_kwargs()
                    ).apply(ids, number, due, remarks),
                )
                return ApplyResult(
                    application_number=result.application_number,
                    type=result.type,
                    currency=result.currency,
                    due_date=result.due_date,
                    costs=self._enrich(result.costs),
                )

    def cancel_application(self, application_number: str) -> CancelResult:
        """Return every cost of an application to unapplied."""
        action = CostAction.CANCEL_APPLICATION.value
        with LogContext.bind(action=action, application_number=application_number or None):
            return self._run(
                action,
                lambda session: ApplicationService(
                    session, self._clock, **self._service_kwargs()
                ).cancel_application(application_number),
            )

    def settle(
        self,
        cost_ids: list[UUID | str],
        settlement_date: date | str | None = None,
        remarks: str | None = None,
    ) -> SettleResult:
        """Settle applied costs."""
        action = CostAction.SETTLE.value
        with LogContext.bind(action=action):
            result = self._run(
                action,
                lambda session: SettlementService(
                    session, self._clock, **self._service_kwargs()
                ).settle(cost_ids, settlement_date, remarks),
            )
            return SettleResult(
                settlement_date=result.settlement_date,
                costs=self._enrich(result.costs),
            )

    def cancel_settlement(self, cost_ids: list[UUID | str]) -> CancelResult:
        """Return settled costs to applied."""
        action = CostAction.CANCEL_SETTLEMENT.value
        with LogContext.bind(action=action):
            return self._run(
                action,
                lambda session: SettlementService(
                    session, self._clock, **self._service_kwargs()
                ).cancel_settlement(cost_ids),
            )

    # ------------------------------------------------------------------
    # Cost record store
    # ------------------------------------------------------------------

    def create_cost(self, **fields: Any) -> CostRecordInfo:
        with LogContext.bind(action="create_cost"):
            return self._run(
                "create_cost",
                lambda session: CostRecordService(session, self._clock).create_cost(**fields),
            )

    def update_cost(self, cost_id: UUID | str, **changes: Any) -> CostRecordInfo:
        with LogContext.bind(action="update_cost"):
            return self._run(
                "update_cost",
                lambda session: CostRecordService(session, self._clock).update_cost(
                    cost_id, **changes
                ),
            )

    def delete_cost(self, cost_id: UUID | str) -> None:
        with LogContext.bind(action="delete_cost"):
            self._run(
                "delete_cost",
                lambda session: CostRecordService(session, self._clock).delete_cost(cost_id),
            )

    def get_cost(self, cost_id: UUID | str) -> CostRecordInfo:
        cost = self._run(
            "get_cost",
            lambda session: CostRecordService(session, self._clock).get_cost(cost_id),
        )
        return self._enrich((cost,))[0]

    # ------------------------------------------------------------------
    # Read side and maintenance
    # ------------------------------------------------------------------

    def _selector(self, session: Session) -> CostSelector:
        return CostSelector(session, self._directory, self._settings.business_timezone)

    def list_costs(
        self,
        filters: CostFilters | None = None,
        page: int | None = 1,
        page_size: int | None = None,
    ) -> CostPage:
        return self._run(
            "list_costs",
            lambda session: self._selector(session).list_costs(filters, page, page_size),
        )

    def list_applications(
        self,
        filters: ApplicationFilters | None = None,
        page: int | None = 1,
        page_size: int | None = None,
    ) -> ApplicationPage:
        return self._run(
            "list_applications",
            lambda session: self._selector(session).list_applications(
                filters, page, page_size
            ),
        )

    def get_application(self, application_number: str) -> ApplicationInfo:
        """Raises ApplicationNotFoundError for an unknown number."""
        app = self._run(
            "get_application",
            lambda session: self._selector(session).get_application(application_number),
        )
        if app is None:
            raise ApplicationNotFoundError(application_number)
        return app

    def costs_for_application(self, application_number: str) -> tuple[CostRecordInfo, ...]:
        return self._run(
            "costs_for_application",
            lambda session: self._selector(session).costs_for_application(
                application_number
            ),
        )

    def cleanup(self) -> IntegrityReport:
        """Refresh application totals and report invariant violations."""
        with LogContext.bind(action="cleanup"):
            return self._run(
                "cleanup",
                lambda session: LedgerIntegrityService(session).run(),
            )
