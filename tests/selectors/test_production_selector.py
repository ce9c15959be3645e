"""
Tests for ProductionSelector.

Covers:
- Listing order and pagination
- Filters (machine, date range, unit scoping)
- Statistics window, machine counts and today's entries
- Reports built from stored entries
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from mill_kernel.exceptions import EntryNotFoundError, InvalidFieldError, InvalidUnitError
from mill_kernel.selectors.production_selector import ProductionSelector


@pytest.fixture
def selector(session, deterministic_clock):
    return ProductionSelector(session, deterministic_clock)


@pytest.fixture
def seeded(create_machine, recorder, machine_service, session):
    """
    Unit 1: machines 1 and 2 rated 400, machine 3 unrated and archived.
    Unit 2: machine 1 rated 500.
    """
    create_machine(machine_number=1, yarn_type="PC Melange")
    create_machine(machine_number=2, yarn_type="CVC")
    third = create_machine(machine_number=3, yarn_type="Cotton", rated=None)
    create_machine(unit=2, machine_number=1, rated=500)

    recorder.record_paired(1, 1, "2024-01-10", day={"actual_production": "350"},
                           night={"actual_production": "380"})
    recorder.record_paired(1, 2, "2024-01-10", day={"actual_production": "300"})
    recorder.record_paired(1, 2, "2024-01-15", night={"actual_production": "320"})
    recorder.record_paired(1, 3, "2024-01-12", day={"actual_production": "200"})
    recorder.record_paired(1, 1, "2023-11-01", day={"actual_production": "100"})
    recorder.record_paired(2, 1, "2024-01-15", day={"actual_production": "450"})

    machine_service.deactivate_machine(third.id)
    session.commit()


class TestListEntries:
    """Paginated listing."""

    def test_ordering(self, selector, seeded):
        page = selector.list_entries(1)
        keys = [(e.entry_date, e.machine_number, e.shift) for e in page.items]
        assert keys == [
            (date(2024, 1, 15), 2, "night"),
            (date(2024, 1, 12), 3, "day"),
            (date(2024, 1, 10), 1, "day"),
            (date(2024, 1, 10), 1, "night"),
            (date(2024, 1, 10), 2, "day"),
            (date(2023, 11, 1), 1, "day"),
        ]
        assert page.total == 6
        assert page.total_pages == 1

    def test_pagination(self, selector, seeded):
        page = selector.list_entries(1, page=2, limit=4)
        assert page.total == 6
        assert page.total_pages == 2
        assert page.page == 2
        assert len(page.items) == 2

    def test_page_past_end_is_empty(self, selector, seeded):
        page = selector.list_entries(1, page=9, limit=4)
        assert page.items == ()
        assert page.total == 6

    def test_limit_capped(self, session, deterministic_clock, seeded):
        selector = ProductionSelector(session, deterministic_clock, max_page_size=3)
        page = selector.list_entries(1, limit=100)
        assert page.limit == 3
        assert len(page.items) == 3

    @pytest.mark.parametrize("page, limit", [(0, 10), (1, 0)])
    def test_bad_paging(self, selector, page, limit, db_engine):
        with pytest.raises(InvalidFieldError):
            selector.list_entries(1, page=page, limit=limit)

    def test_filters(self, selector, seeded):
        page = selector.list_entries(1, machine_number=1, date_from="2024-01-01", date_to="2024-01-31")
        assert [(e.machine_number, e.shift) for e in page.items] == [(1, "day"), (1, "night")]

    def test_unit_scoping(self, selector, seeded):
        page = selector.list_entries(2)
        assert [(e.unit, e.actual_production) for e in page.items] == [(2, Decimal("450"))]

    def test_bad_unit(self, selector, db_engine):
        with pytest.raises(InvalidUnitError):
            selector.list_entries(7)

    def test_empty_unit(self, selector, db_engine):
        page = selector.list_entries(1)
        assert page.items == ()
        assert page.total == 0
        assert page.total_pages == 0


class TestGetEntry:
    def test_found(self, selector, seeded):
        first = selector.list_entries(1).items[0]
        assert selector.get_entry(first.id) == first

    def test_missing(self, selector, db_engine):
        with pytest.raises(EntryNotFoundError):
            selector.get_entry(uuid4())


class TestStats:
    """Dashboard statistics; today is 2024-01-15."""

    def test_default_window(self, selector, seeded):
        stats = selector.get_stats(1)

        assert stats.date_from == date(2023, 12, 16)
        assert stats.date_to == date(2024, 1, 15)
        # The 2023-11-01 entry is outside the window
        assert stats.total_entries == 5
        assert stats.total_actual == Decimal("1550")
        assert stats.total_theoretical == Decimal("1600")
        assert stats.overall_efficiency == Decimal("84.375")
        assert stats.total_machines == 3
        assert stats.active_machines == 2
        assert stats.today_entries == 1
        assert stats.top_performer.machine_number == 1

    def test_explicit_range_and_machine(self, selector, seeded):
        stats = selector.get_stats(1, machine_number=2, date_from="2024-01-01", date_to="2024-01-31")
        assert stats.total_entries == 2
        assert stats.total_actual == Decimal("620")
        assert stats.total_machines == 1

    def test_empty(self, selector, db_engine):
        stats = selector.get_stats(1)
        assert stats.total_entries == 0
        assert stats.overall_efficiency == Decimal("0")
        assert stats.top_performer is None


class TestReports:
    """Reports over stored entries."""

    def test_daily_report(self, selector, seeded):
        report = selector.daily_yarn_report(1, "2024-01-10", "2024-01-15")

        assert [p.period_start for p in report.periods] == [
            date(2024, 1, 15),
            date(2024, 1, 12),
            date(2024, 1, 10),
        ]
        jan_10 = report.periods[2]
        assert jan_10.total_production == Decimal("1030")
        assert jan_10.production_for("pc melange") == Decimal("730")
        assert jan_10.production_for("cvc") == Decimal("300")
        assert report.grand_total == Decimal("1550")

    def test_report_uses_recorded_yarn(self, selector, seeded, machine_service):
        machine = machine_service.get_by_number(1, 1)
        machine_service.update_machine(machine.id, yarn_type="Viscose")

        report = selector.daily_yarn_report(1, "2024-01-10", "2024-01-10")
        assert report.periods[0].production_for("PC Melange") == Decimal("730")
        assert report.periods[0].production_for("viscose") == Decimal("0")

    def test_weekly_report(self, selector, seeded):
        report = selector.weekly_yarn_report(1, "2024-01-01", "2024-01-31")
        assert [p.period_start for p in report.periods] == [date(2024, 1, 15), date(2024, 1, 8)]
        assert report.periods[1].total_production == Decimal("1230")

    def test_machine_performance(self, selector, seeded):
        rows = selector.machine_performance(1, "2024-01-01", "2024-01-31")
        assert [r.machine_number for r in rows] == [1, 2, 3]

    def test_last_entry_date(self, selector, seeded):
        assert selector.last_entry_date(1) == date(2024, 1, 15)

    def test_last_entry_date_empty(self, selector, db_engine):
        assert selector.last_entry_date(1) is None
