"""Database layer - engine, base classes and column helpers."""

from expense_ledger.db.base import UUID, Base, TrackedBase, UUIDString
from expense_ledger.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from expense_ledger.db.types import format_decimal, normalize_currency, to_decimal

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "to_decimal",
    "format_decimal",
    "normalize_currency",
]
