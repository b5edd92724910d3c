"""
Locking -- canonical-order row locks for a batch of cost records.

Responsibility:
    Load every cost of a batch with ``SELECT ... FOR UPDATE`` ordered by id,
    report missing ids, and classify database errors that mean "another
    transaction holds the lock".

Architecture position:
    Ledger > Services.  Shared by the application and settlement services.

Invariants enforced:
    - Ids are locked in one canonical (sorted) order, so two batches with
      overlapping ids in different request order cannot wait on each other
      in a cycle.
    - ``populate_existing`` refreshes any identity-map copy with the values
      read under the lock; status checks always see committed state.

Failure modes:
    - CostNotFoundError naming every id that does not exist (malformed ids
      cannot exist and are reported the same way).
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from expense_ledger.exceptions import CostNotFoundError
from expense_ledger.models.cost_record import CostRecord

# PostgreSQL: lock_not_available, deadlock_detected, serialization_failure
_PG_LOCK_CODES = frozenset({"55P03", "40P01", "40001"})
_SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked")


def _parse_ids(cost_ids: Iterable[UUID | str]) -> tuple[list[UUID], list[str]]:
    parsed: list[UUID] = []
    malformed: list[str] = []
    for cid in cost_ids:
        if isinstance(cid, UUID):
            parsed.append(cid)
            continue
        try:
            parsed.append(UUID(str(cid)))
        except ValueError:
            malformed.append(str(cid))
    return parsed, malformed


def _load_costs(
    session: Session, cost_ids: Iterable[UUID | str], for_update: bool
) -> list[CostRecord]:
    parsed, malformed = _parse_ids(cost_ids)
    costs: list[CostRecord] = []
    if parsed:
        stmt = select(CostRecord).where(CostRecord.id.in_(parsed)).order_by(CostRecord.id)
        if for_update:
            stmt = stmt.with_for_update()
        costs = list(
            session.execute(
                stmt.execution_options(populate_existing=True)
            ).scalars()
        )

    found = {c.id for c in costs}
    missing = sorted(malformed + [str(cid) for cid in parsed if cid not in found])
    if missing:
        raise CostNotFoundError(missing)
    return costs


def lock_costs(session: Session, cost_ids: Iterable[UUID | str]) -> list[CostRecord]:
    """
    Lock and return the costs for ``cost_ids``, ordered by id.

    Raises:
        CostNotFoundError: if any id does not exist.
    """
    return _load_costs(session, cost_ids, for_update=True)


def fetch_costs(session: Session, cost_ids: Iterable[UUID | str]) -> list[CostRecord]:
    """Same as lock_costs without the row lock, for reads."""
    return _load_costs(session, cost_ids, for_update=False)


def lock_application_costs(session: Session, application_number: str) -> list[CostRecord]:
    """Lock every cost carrying ``application_number``, ordered by id."""
    return list(
        session.execute(
            select(CostRecord)
            .where(CostRecord.application_number == application_number)
            .order_by(CostRecord.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars()
    )


def is_lock_failure(exc: DBAPIError) -> bool:
    """True if ``exc`` is a lock timeout, deadlock or serialization abort."""
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None)
    if pgcode in _PG_LOCK_CODES:
        return True
    message = str(orig or exc).lower()
    return any(text in message for text in _SQLITE_LOCK_MESSAGES)
