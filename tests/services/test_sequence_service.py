"""Tests for counter-row sequence allocation and application numbers."""

import pytest
from sqlalchemy import select

from expense_ledger.exceptions import SequenceAllocationError
from expense_ledger.models.sequence_counter import SequenceCounter
from expense_ledger.services.application_number_service import (
    ApplicationNumberGenerator,
)
from expense_ledger.services.sequence_service import SequenceService


class TestSequenceService:
    def test_new_sequence_starts_at_one(self, session):
        assert SequenceService(session).next_value("test:a") == 1

    def test_strictly_increasing(self, session):
        service = SequenceService(session)
        values = [service.next_value("test:a") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_sequences_are_independent(self, session):
        service = SequenceService(session)
        service.next_value("test:a")
        service.next_value("test:a")
        assert service.next_value("test:b") == 1

    def test_rollback_returns_the_value(self, session):
        service = SequenceService(session)
        service.next_value("test:a")
        session.commit()
        service.next_value("test:a")
        session.rollback()
        assert service.next_value("test:a") == 2

    def test_empty_name_rejected(self, session):
        with pytest.raises(SequenceAllocationError):
            SequenceService(session).next_value("")


class TestApplicationNumberGenerator:
    def test_each_number_is_committed(self, session_factory, deterministic_clock, session):
        generator = ApplicationNumberGenerator(
            session_factory, deterministic_clock, prefix="F", business_timezone="Asia/Bangkok"
        )
        assert generator.next() == "F251018001"
        assert generator.next() == "F251018002"
        counter = session.scalar(
            select(SequenceCounter).where(SequenceCounter.name == "expense_application:F251018")
        )
        assert counter.current_value == 2

    def test_prefix_has_its_own_counter(self, session_factory, deterministic_clock):
        f = ApplicationNumberGenerator(session_factory, deterministic_clock, prefix="F")
        g = ApplicationNumberGenerator(session_factory, deterministic_clock, prefix="G")
        f.next()
        assert g.next() == "G251018001"

    def test_logs_allocation(self, session_factory, deterministic_clock, captured_logs):
        ApplicationNumberGenerator(session_factory, deterministic_clock).next()
        records = [r for r in captured_logs() if r["message"] == "application_number_allocated"]
        assert records[0]["application_number"] == "F251018001"
        assert records[0]["sequence_name"] == "expense_application:F251018"
