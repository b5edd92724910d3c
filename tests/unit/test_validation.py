"""Unit tests for request validation helpers."""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from expense_ledger.domain.validation import (
    clean_remarks,
    normalize_cost_ids,
    parse_date,
    validate_due_date,
)
from expense_ledger.exceptions import (
    BatchTooLargeError,
    DueDateInPastError,
    EmptyBatchError,
    InvalidCostFieldError,
    MissingDueDateError,
    ValidationError,
)

TODAY = date(2025, 10, 18)


class TestNormalizeCostIds:
    def test_dedupes_and_sorts(self):
        a, b = str(uuid4()), str(uuid4())
        assert normalize_cost_ids([b, a, b], "apply", 50) == sorted([a, b])

    def test_accepts_uuid_objects(self):
        cid = uuid4()
        assert normalize_cost_ids([cid], "settle", 50) == [str(cid)]

    @pytest.mark.parametrize("ids", [[], None, ["", "  "]])
    def test_empty_batch(self, ids):
        with pytest.raises(EmptyBatchError) as exc_info:
            normalize_cost_ids(ids, "apply", 50)
        assert exc_info.value.action == "apply"

    def test_limit_is_inclusive(self):
        ids = [str(uuid4()) for _ in range(3)]
        assert len(normalize_cost_ids(ids, "apply", 3)) == 3

    def test_over_limit(self):
        ids = [str(uuid4()) for _ in range(4)]
        with pytest.raises(BatchTooLargeError) as exc_info:
            normalize_cost_ids(ids, "apply", 3)
        assert (exc_info.value.size, exc_info.value.limit) == (4, 3)


class TestDueDate:
    def test_today_is_allowed(self):
        assert validate_due_date("2025-10-18", TODAY) == TODAY

    def test_future_date(self):
        assert validate_due_date(date(2025, 11, 30), TODAY) == date(2025, 11, 30)

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing(self, value):
        with pytest.raises(MissingDueDateError):
            validate_due_date(value, TODAY)

    def test_past(self):
        with pytest.raises(DueDateInPastError) as exc_info:
            validate_due_date("2025-10-17", TODAY)
        assert exc_info.value.due_date == "2025-10-17"

    def test_garbage(self):
        with pytest.raises(InvalidCostFieldError):
            validate_due_date("next friday", TODAY)

    @pytest.mark.parametrize(
        "value", ["2025-10-31garbage", "2025-10-31 extra", "2025-10-31T25:00"]
    )
    def test_trailing_text_is_rejected(self, value):
        with pytest.raises(InvalidCostFieldError):
            validate_due_date(value, TODAY)

    def test_errors_are_validation_errors(self):
        for cls in (MissingDueDateError, DueDateInPastError, EmptyBatchError):
            assert issubclass(cls, ValidationError)


class TestParseDate:
    def test_iso_datetime_string_uses_date_part(self):
        assert parse_date("2025-10-20T09:30:00+07:00", "settlement_date") == date(2025, 10, 20)

    def test_datetime(self):
        value = datetime(2025, 10, 20, 23, 0, tzinfo=timezone.utc)
        assert parse_date(value, "x") == date(2025, 10, 20)

    def test_wrong_type(self):
        with pytest.raises(InvalidCostFieldError) as exc_info:
            parse_date(20251020, "settlement_date")
        assert exc_info.value.field == "settlement_date"


@pytest.mark.parametrize("value,expected", [(None, None), ("  ", None), (" ok ", "ok")])
def test_clean_remarks(value, expected):
    assert clean_remarks(value) == expected
