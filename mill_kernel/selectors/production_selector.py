"""
Module: mill_kernel.selectors.production_selector
Responsibility: Read side of the production entry store.  Paginated entry
    listings, date-range reads for aggregation, and dashboard statistics.
Architecture position: Kernel > Selectors.  Reads committed rows and hands
    them to the pure aggregation engines in mill_engines.

Invariants enforced:
    - Listings are ordered entry_date DESC, machine_number ASC, shift ASC.
    - Page size is capped at ``max_page_size``.
    - "Today" and the default statistics window come from the injected Clock.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mill_engines.aggregation import (
    MachinePerformance,
    ProductionStats,
    YarnSummaryReport,
    daily_yarn_summary,
    machine_summary,
    production_stats,
    weekly_yarn_summary,
)
from mill_kernel.domain.clock import Clock, SystemClock
from mill_kernel.domain.dtos import EntryPage, EntryRecord
from mill_kernel.domain.parsing import (
    DEFAULT_UNITS,
    parse_entry_date,
    parse_machine_number,
    parse_unit,
)
from mill_kernel.domain.yarn_types import DEFAULT_ABBREVIATIONS
from mill_kernel.exceptions import EntryNotFoundError, InvalidFieldError
from mill_kernel.models.machine import Machine
from mill_kernel.models.production_entry import ProductionEntry
from mill_kernel.selectors.base import BaseSelector


class ProductionSelector(BaseSelector[ProductionEntry]):
    """Read-only queries over production entries of a unit."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        units: tuple[int, ...] = DEFAULT_UNITS,
        default_page_size: int = 50,
        max_page_size: int = 500,
        stats_window_days: int = 30,
        abbreviations: frozenset[str] = DEFAULT_ABBREVIATIONS,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._units = units
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._stats_window_days = stats_window_days
        self._abbreviations = abbreviations

    def _filtered(
        self,
        stmt,
        unit: Any,
        machine_number: Any = None,
        date_from: Any = None,
        date_to: Any = None,
    ):
        stmt = stmt.where(ProductionEntry.unit == parse_unit(unit, self._units))
        if machine_number is not None:
            stmt = stmt.where(
                ProductionEntry.machine_number == parse_machine_number(machine_number)
            )
        if date_from is not None:
            stmt = stmt.where(
                ProductionEntry.entry_date >= parse_entry_date(date_from, "date_from")
            )
        if date_to is not None:
            stmt = stmt.where(
                ProductionEntry.entry_date <= parse_entry_date(date_to, "date_to")
            )
        return stmt

    @staticmethod
    def _ordered(stmt):
        return stmt.order_by(
            ProductionEntry.entry_date.desc(),
            ProductionEntry.machine_number.asc(),
            ProductionEntry.shift.asc(),
        )

    def get_entry(self, entry_id: UUID) -> EntryRecord:
        """
        Raises:
            EntryNotFoundError: No entry with that id.
        """
        entry = self.session.get(ProductionEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return EntryRecord.from_model(entry)

    def list_entries(
        self,
        unit: Any,
        machine_number: Any = None,
        date_from: Any = None,
        date_to: Any = None,
        page: int = 1,
        limit: int | None = None,
    ) -> EntryPage:
        """One page of entries; an empty page is a valid result."""
        if page < 1:
            raise InvalidFieldError("page", page, "must be at least 1")
        limit = self._default_page_size if limit is None else limit
        if limit < 1:
            raise InvalidFieldError("limit", limit, "must be at least 1")
        limit = min(limit, self._max_page_size)

        count_stmt = self._filtered(
            select(func.count()).select_from(ProductionEntry),
            unit, machine_number, date_from, date_to,
        )
        total = self.session.execute(count_stmt).scalar_one()

        stmt = self._ordered(
            self._filtered(select(ProductionEntry), unit, machine_number, date_from, date_to)
        ).offset((page - 1) * limit).limit(limit)
        items = tuple(
            EntryRecord.from_model(e) for e in self.session.execute(stmt).scalars().all()
        )
        return EntryPage(items=items, total=total, page=page, limit=limit)

    def entries_in_range(
        self,
        unit: Any,
        machine_number: Any = None,
        date_from: Any = None,
        date_to: Any = None,
    ) -> list[EntryRecord]:
        """All matching entries, in listing order."""
        stmt = self._ordered(
            self._filtered(select(ProductionEntry), unit, machine_number, date_from, date_to)
        )
        return [EntryRecord.from_model(e) for e in self.session.execute(stmt).scalars().all()]

    def get_stats(
        self,
        unit: Any,
        machine_number: Any = None,
        date_from: Any = None,
        date_to: Any = None,
    ) -> ProductionStats:
        """
        Totals, weighted efficiency and top performer for a unit.

        With no dates, the window is the last ``stats_window_days`` days up
        to today.
        """
        today = self._clock.today()
        if date_from is None and date_to is None:
            date_from = today - timedelta(days=self._stats_window_days)
            date_to = today
        start = parse_entry_date(date_from, "date_from") if date_from is not None else None
        end = parse_entry_date(date_to, "date_to") if date_to is not None else None

        readings = self.entries_in_range(unit, machine_number, start, end)

        unit_value = parse_unit(unit, self._units)
        machines = select(Machine).where(Machine.unit == unit_value)
        if machine_number is not None:
            machines = machines.where(
                Machine.machine_number == parse_machine_number(machine_number)
            )
        total_machines = self.session.execute(
            select(func.count()).select_from(machines.subquery())
        ).scalar_one()
        active_machines = self.session.execute(
            select(func.count()).select_from(
                machines.where(Machine.is_active.is_(True)).subquery()
            )
        ).scalar_one()
        today_entries = self.session.execute(
            self._filtered(
                select(func.count()).select_from(ProductionEntry),
                unit, machine_number, today, today,
            )
        ).scalar_one()

        stats = production_stats(
            readings,
            date_from=start,
            date_to=end,
            total_machines=total_machines,
            active_machines=active_machines,
        )
        return replace(stats, today_entries=today_entries)

    def daily_yarn_report(
        self,
        unit: Any,
        date_from: Any = None,
        date_to: Any = None,
    ) -> YarnSummaryReport:
        """Per-date, per-yarn-type production for a unit."""
        return daily_yarn_summary(
            self.entries_in_range(unit, None, date_from, date_to),
            self._abbreviations,
        )

    def weekly_yarn_report(
        self,
        unit: Any,
        date_from: Any = None,
        date_to: Any = None,
    ) -> YarnSummaryReport:
        return weekly_yarn_summary(
            self.entries_in_range(unit, None, date_from, date_to),
            self._abbreviations,
        )

    def machine_performance(
        self,
        unit: Any,
        date_from: Any = None,
        date_to: Any = None,
    ) -> tuple[MachinePerformance, ...]:
        return machine_summary(self.entries_in_range(unit, None, date_from, date_to))

    def last_entry_date(self, unit: Any) -> date | None:
        """Most recent date with any production recorded in the unit."""
        stmt = select(func.max(ProductionEntry.entry_date)).where(
            ProductionEntry.unit == parse_unit(unit, self._units)
        )
        return self.session.execute(stmt).scalar_one_or_none()
