"""
Module: mill_engines.aggregation
Responsibility:
    Build dashboard summaries from committed production entries: daily and
    weekly totals per yarn type, per-machine performance, the top
    performer, and overall production statistics.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import mill_kernel.domain (efficiency, yarn types) and
    mill_kernel.logging_config.

Invariants enforced:
    - Grouping uses the yarn type *recorded on the entry*, normalized;
      never the machine's current yarn type.
    - Average efficiency is production-weighted:
      sum(eff * actual) / sum(actual) over entries with an efficiency and
      positive production.  Fallback: plain mean of available
      efficiencies.  Floor: 0.
    - Grand totals equal the sum of group totals.
    - Purity: no clock access; "today" and window bounds are parameters.

Usage:
    from mill_engines.aggregation import daily_yarn_summary, weighted_average_efficiency

    report = daily_yarn_summary(entries)
    report.grand_total  # Decimal
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Protocol

from mill_engines.tracer import traced_engine
from mill_kernel.domain.yarn_types import (
    DEFAULT_ABBREVIATIONS,
    format_yarn_type_display,
    normalize_yarn_type,
)
from mill_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class ProductionReading(Protocol):
    """Anything shaped like a stored production entry (EntryRecord, ORM row)."""

    entry_date: date
    machine_number: int
    shift: str
    yarn_type: str
    actual_production: Decimal
    theoretical_production: Decimal | None
    efficiency: Decimal | None


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class YarnTypeTotal:
    """Production of one yarn type inside a group."""

    yarn_type: str
    display_name: str
    total_production: Decimal
    entry_count: int
    machine_count: int
    average_efficiency: Decimal


@dataclass(frozen=True)
class PeriodSummary:
    """
    Production for one period (a date, or a week starting on Monday).

    ``yarn_totals`` is ordered by production descending, then key.
    """

    period_start: date
    period_end: date
    yarn_totals: tuple[YarnTypeTotal, ...]
    total_production: Decimal
    machine_count: int
    shift_count: int
    entry_count: int
    average_efficiency: Decimal

    def production_for(self, yarn_type: str) -> Decimal:
        key = normalize_yarn_type(yarn_type)
        for total in self.yarn_totals:
            if total.yarn_type == key:
                return total.total_production
        return ZERO


@dataclass(frozen=True)
class YarnSummaryReport:
    """Periods newest first plus grand totals across all of them."""

    periods: tuple[PeriodSummary, ...]
    grand_totals: tuple[YarnTypeTotal, ...]
    grand_total: Decimal
    average_efficiency: Decimal

    @property
    def is_empty(self) -> bool:
        return not self.periods


@dataclass(frozen=True)
class MachinePerformance:
    """Aggregated performance of one machine over a set of entries."""

    machine_number: int
    entry_count: int
    total_actual: Decimal
    total_theoretical: Decimal
    average_efficiency: Decimal
    rated_entry_count: int


@dataclass(frozen=True)
class ProductionStats:
    """Headline numbers for a unit (optionally one machine) over a window."""

    date_from: date | None
    date_to: date | None
    total_entries: int
    total_actual: Decimal
    total_theoretical: Decimal
    overall_efficiency: Decimal
    average_efficiency: Decimal
    top_performer: MachinePerformance | None
    total_machines: int = 0
    active_machines: int = 0
    today_entries: int = 0


# ---------------------------------------------------------------------------
# Core calculations
# ---------------------------------------------------------------------------


def weighted_average_efficiency(readings: Iterable[ProductionReading]) -> Decimal:
    """
    Production-weighted average efficiency.

    Example:
        actual=100 @ 80% and actual=300 @ 90% -> 87.5 (not the naive 85).
    """
    weighted_sum = ZERO
    weight = ZERO
    available: list[Decimal] = []
    for r in readings:
        if r.efficiency is None:
            continue
        available.append(r.efficiency)
        if r.actual_production is not None and r.actual_production > 0:
            weighted_sum += r.efficiency * r.actual_production
            weight += r.actual_production

    if weight > 0:
        return weighted_sum / weight
    if available:
        return sum(available, ZERO) / len(available)
    return ZERO


def _sum_actual(readings: Sequence[ProductionReading]) -> Decimal:
    return sum((r.actual_production for r in readings), ZERO)


def _yarn_totals(
    readings: Sequence[ProductionReading],
    abbreviations: frozenset[str],
) -> tuple[YarnTypeTotal, ...]:
    by_yarn: dict[str, list[ProductionReading]] = defaultdict(list)
    for r in readings:
        by_yarn[normalize_yarn_type(r.yarn_type)].append(r)

    totals = [
        YarnTypeTotal(
            yarn_type=key,
            display_name=format_yarn_type_display(key, abbreviations),
            total_production=_sum_actual(group),
            entry_count=len(group),
            machine_count=len({r.machine_number for r in group}),
            average_efficiency=weighted_average_efficiency(group),
        )
        for key, group in by_yarn.items()
    ]
    totals.sort(key=lambda t: (-t.total_production, t.yarn_type))
    return tuple(totals)


def _summarize_periods(
    readings: Sequence[ProductionReading],
    period_of: Callable[[date], tuple[date, date]],
    abbreviations: frozenset[str],
) -> YarnSummaryReport:
    by_period: dict[tuple[date, date], list[ProductionReading]] = defaultdict(list)
    for r in readings:
        by_period[period_of(r.entry_date)].append(r)

    periods = []
    for (start, end), group in sorted(by_period.items(), reverse=True):
        periods.append(
            PeriodSummary(
                period_start=start,
                period_end=end,
                yarn_totals=_yarn_totals(group, abbreviations),
                total_production=_sum_actual(group),
                machine_count=len({r.machine_number for r in group}),
                shift_count=len({str(getattr(r.shift, "value", r.shift)) for r in group}),
                entry_count=len(group),
                average_efficiency=weighted_average_efficiency(group),
            )
        )

    grand_totals = _yarn_totals(readings, abbreviations)
    grand_total = sum((p.total_production for p in periods), ZERO)

    logger.debug(
        "yarn_summary_built",
        extra={
            "period_count": len(periods),
            "entry_count": len(readings),
            "grand_total": grand_total,
        },
    )

    return YarnSummaryReport(
        periods=tuple(periods),
        grand_totals=grand_totals,
        grand_total=grand_total,
        average_efficiency=weighted_average_efficiency(readings),
    )


def _day_period(d: date) -> tuple[date, date]:
    return d, d


def week_start(d: date) -> date:
    """Monday of the week containing ``d``."""
    return d - timedelta(days=d.weekday())


def _week_period(d: date) -> tuple[date, date]:
    start = week_start(d)
    return start, start + timedelta(days=6)


@traced_engine("aggregation.daily_yarn_summary", "1.0", fingerprint_fields=("readings",))
def daily_yarn_summary(
    readings: Sequence[ProductionReading],
    abbreviations: frozenset[str] = DEFAULT_ABBREVIATIONS,
) -> YarnSummaryReport:
    """Totals per date (newest first) and per recorded yarn type."""
    return _summarize_periods(list(readings), _day_period, abbreviations)


@traced_engine("aggregation.weekly_yarn_summary", "1.0", fingerprint_fields=("readings",))
def weekly_yarn_summary(
    readings: Sequence[ProductionReading],
    abbreviations: frozenset[str] = DEFAULT_ABBREVIATIONS,
) -> YarnSummaryReport:
    """Totals per Monday-starting week (newest first) and per yarn type."""
    return _summarize_periods(list(readings), _week_period, abbreviations)


@traced_engine("aggregation.machine_summary", "1.0", fingerprint_fields=("readings",))
def machine_summary(
    readings: Sequence[ProductionReading],
) -> tuple[MachinePerformance, ...]:
    """
    Per-machine totals ordered by weighted efficiency (desc), then number.
    """
    by_machine: dict[int, list[ProductionReading]] = defaultdict(list)
    for r in readings:
        by_machine[r.machine_number].append(r)

    rows = [
        MachinePerformance(
            machine_number=number,
            entry_count=len(group),
            total_actual=_sum_actual(group),
            total_theoretical=sum(
                (r.theoretical_production for r in group
                 if r.theoretical_production is not None),
                ZERO,
            ),
            average_efficiency=weighted_average_efficiency(group),
            rated_entry_count=sum(1 for r in group if r.efficiency is not None),
        )
        for number, group in by_machine.items()
    ]
    rows.sort(key=lambda m: (-m.average_efficiency, m.machine_number))
    return tuple(rows)


def top_performer(
    readings: Sequence[ProductionReading],
) -> MachinePerformance | None:
    """Machine with the highest weighted efficiency among rated machines."""
    rated = [m for m in machine_summary(readings) if m.rated_entry_count > 0]
    return rated[0] if rated else None


@traced_engine(
    "aggregation.production_stats",
    "1.0",
    fingerprint_fields=("readings", "date_from", "date_to", "today"),
)
def production_stats(
    readings: Sequence[ProductionReading],
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    today: date | None = None,
    total_machines: int = 0,
    active_machines: int = 0,
) -> ProductionStats:
    """
    Headline statistics.

    ``overall_efficiency`` is sum(actual) / sum(theoretical) * 100 over
    entries that have a positive theoretical production; 0 when none do.
    """
    readings = list(readings)
    rated = [
        r for r in readings
        if r.theoretical_production is not None and r.theoretical_production > 0
    ]
    rated_actual = _sum_actual(rated)
    total_theoretical = sum((r.theoretical_production for r in rated), ZERO)
    overall = rated_actual / total_theoretical * HUNDRED if total_theoretical > 0 else ZERO

    return ProductionStats(
        date_from=date_from,
        date_to=date_to,
        total_entries=len(readings),
        total_actual=_sum_actual(readings),
        total_theoretical=total_theoretical,
        overall_efficiency=overall,
        average_efficiency=weighted_average_efficiency(readings),
        top_performer=top_performer(readings),
        total_machines=total_machines,
        active_machines=active_machines,
        today_entries=(
            sum(1 for r in readings if r.entry_date == today) if today is not None else 0
        ),
    )
