"""
Module: mill_engines
Responsibility:
    Package entrypoint re-exporting the pure aggregation engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import mill_kernel.domain and mill_kernel.logging_config.
    MUST NOT import mill_kernel services, selectors or models.

Invariants enforced:
    - Purity: engines never read the clock; dates are parameters.
    - Decimal-only arithmetic for production figures.
"""

from mill_engines.aggregation import (
    MachinePerformance,
    PeriodSummary,
    ProductionReading,
    ProductionStats,
    YarnSummaryReport,
    YarnTypeTotal,
    daily_yarn_summary,
    machine_summary,
    production_stats,
    top_performer,
    week_start,
    weekly_yarn_summary,
    weighted_average_efficiency,
)
from mill_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "MachinePerformance",
    "PeriodSummary",
    "ProductionReading",
    "ProductionStats",
    "YarnSummaryReport",
    "YarnTypeTotal",
    "daily_yarn_summary",
    "machine_summary",
    "production_stats",
    "top_performer",
    "week_start",
    "weekly_yarn_summary",
    "weighted_average_efficiency",
    "compute_input_fingerprint",
    "traced_engine",
]
