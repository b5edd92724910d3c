"""
Module: expense_ledger.models.sequence_counter
Responsibility: Named counter rows backing SequenceService.
Architecture position: Ledger > Models.  May import from db/ only.

Invariants enforced:
    - name is unique; one row per sequence (per business day for
      application numbers).
    - current_value is the last value handed out, never recomputed from
      existing data.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from expense_ledger.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures uniqueness under concurrency.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g. "expense_application:F251018")
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
