"""
Tests for cost and application listings.

Verifies:
- Each filter narrows the result set
- Name and shipment filters resolve through the reference directory
- Date filters are whole business days, inclusive of date_to
- Paging is clamped and ordering is stable
"""

from datetime import date, datetime, timezone

import pytest

from expense_ledger.selectors.cost_selector import (
    MAX_PAGE_SIZE,
    ApplicationFilters,
    CostFilters,
    clamp_paging,
)

DUE_DATE = date(2025, 10, 31)


@pytest.fixture
def mixed_costs(ledger, make_cost):
    """AP/THB x2 applied, AR/THB unapplied, AP/USD on SUP-2 unapplied."""
    ap1 = make_cost(description="Ocean freight")
    ap2 = make_cost(description="Customs clearance", shipment_id="SHP-2")
    ar = make_cost(type="AR", financial_subject_id=7)
    usd = make_cost(currency="USD", settlement_unit_id="SUP-2", shipment_id=None)
    result = ledger.apply([ap1.id, ap2.id], DUE_DATE)
    return {"ap1": ap1, "ap2": ap2, "ar": ar, "usd": usd, "applied": result}


def _ids(page):
    return {c.id for c in page.costs}


class TestListCosts:
    def test_no_filters(self, ledger, mixed_costs):
        page = ledger.list_costs()
        assert page.total == 4
        assert (page.page, page.page_size) == (1, 50)

    def test_filter_by_type_and_status(self, ledger, mixed_costs):
        page = ledger.list_costs(CostFilters(type="AP", status="unapplied"))
        assert _ids(page) == {mixed_costs["usd"].id}

    def test_filter_by_application_number_substring(self, ledger, mixed_costs):
        page = ledger.list_costs(CostFilters(application_number="251018"))
        assert _ids(page) == {mixed_costs["ap1"].id, mixed_costs["ap2"].id}

    def test_filter_by_currency_and_subject(self, ledger, mixed_costs):
        assert _ids(ledger.list_costs(CostFilters(currency="USD"))) == {mixed_costs["usd"].id}
        assert _ids(ledger.list_costs(CostFilters(financial_subject_id=7))) == {
            mixed_costs["ar"].id
        }

    def test_filter_by_settlement_unit(self, ledger, mixed_costs):
        page = ledger.list_costs(CostFilters(settlement_unit="SUP-2"))
        assert _ids(page) == {mixed_costs["usd"].id}

    def test_filter_by_counterparty_name(self, ledger, mixed_costs):
        page = ledger.list_costs(CostFilters(settlement_unit_name="ocean"))
        assert _ids(page) == {mixed_costs["ap1"].id, mixed_costs["ap2"].id}

    def test_counterparty_name_matches_full_name(self, ledger, mixed_costs):
        page = ledger.list_costs(CostFilters(settlement_unit_name="Co., Ltd"))
        assert page.total == 2

    def test_unknown_counterparty_name(self, ledger, mixed_costs):
        assert ledger.list_costs(CostFilters(settlement_unit_name="nobody")).total == 0

    def test_filter_by_shipment_code_and_bl(self, ledger, mixed_costs):
        assert _ids(ledger.list_costs(CostFilters(shipment_code="2510-002"))) == {
            mixed_costs["ap2"].id
        }
        assert _ids(ledger.list_costs(CostFilters(bl_number="BL-7788"))) == {
            mixed_costs["ap1"].id,
            mixed_costs["ar"].id,
        }
        assert ledger.list_costs(CostFilters(shipment_code="002", bl_number="7788")).total == 0

    def test_display_fields(self, ledger, mixed_costs):
        cost = ledger.get_cost(mixed_costs["ap1"].id)
        assert cost.settlement_unit_name == "Blue Ocean Logistics"
        assert cost.shipment_code == "SH2510-001"
        assert cost.bl_number == "BL-778899"
        usd = ledger.get_cost(mixed_costs["usd"].id)
        assert (usd.settlement_unit_name, usd.shipment_code) == ("Harbor Trucking", "")

    def test_applied_costs_sort_first(self, ledger, mixed_costs):
        statuses = [c.status for c in ledger.list_costs().costs]
        assert statuses == ["applied", "applied", "unapplied", "unapplied"]

    def test_paging(self, ledger, mixed_costs):
        first = ledger.list_costs(page=1, page_size=3)
        second = ledger.list_costs(page=2, page_size=3)
        assert (len(first.costs), len(second.costs)) == (3, 1)
        assert first.total == second.total == 4
        assert _ids(first).isdisjoint(_ids(second))


class TestDateFilters:
    def test_business_day_bounds(self, ledger, make_cost, deterministic_clock):
        # 16:59 UTC on the 17th is 23:59 on the 17th in Bangkok
        deterministic_clock.set_time(datetime(2025, 10, 17, 16, 59, tzinfo=timezone.utc))
        late_17th = make_cost()
        # 17:00 UTC on the 17th is midnight on the 18th in Bangkok
        deterministic_clock.set_time(datetime(2025, 10, 17, 17, 0, tzinfo=timezone.utc))
        early_18th = make_cost()

        page = ledger.list_costs(CostFilters(date_from=date(2025, 10, 18)))
        assert _ids(page) == {early_18th.id}
        page = ledger.list_costs(CostFilters(date_to=date(2025, 10, 17)))
        assert _ids(page) == {late_17th.id}
        page = ledger.list_costs(
            CostFilters(date_from=date(2025, 10, 17), date_to=date(2025, 10, 18))
        )
        assert page.total == 2


class TestApplications:
    def test_costs_for_application(self, ledger, mixed_costs):
        number = mixed_costs["applied"].application_number
        costs = ledger.costs_for_application(number)
        assert {c.id for c in costs} == {mixed_costs["ap1"].id, mixed_costs["ap2"].id}

    def test_filter_applications_by_status(self, ledger, mixed_costs, make_cost):
        other = ledger.apply([make_cost().id], DUE_DATE)
        ledger.cancel_application(other.application_number)
        active = ledger.list_applications(ApplicationFilters(status="active"))
        assert [a.application_number for a in active.applications] == [
            mixed_costs["applied"].application_number
        ]
        assert ledger.list_applications(ApplicationFilters(type="AR")).total == 0


@pytest.mark.parametrize("page,size,expected", [
    (None, None, (1, 50)),
    (0, 10, (1, 10)),
    (-3, 0, (1, 1)),
    (2, 10_000, (2, MAX_PAGE_SIZE)),
])
def test_clamp_paging(page, size, expected):
    assert clamp_paging(page, size) == expected
