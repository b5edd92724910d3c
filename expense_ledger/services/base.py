"""
BaseService -- abstract base for all ledger write services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Ledger > Services.  The ledger facade (``ledger_orchestrator``) and the
    test harness own commit/rollback through ``db.engine.session_scope``.

Failure modes:
    - A subclass that commits on its own breaks batch atomicity: a failure
      later in the same action could no longer roll back earlier rows.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for ledger services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only methods -- those belong in
          ``expense_ledger/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
