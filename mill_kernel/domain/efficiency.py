"""
Module: mill_kernel.domain.efficiency
Responsibility:
    Shift efficiency as a percentage of theoretical (100%) production.

Architecture position:
    Kernel > Domain -- pure calculation, zero I/O.  Used by the entry
    service at write time and by mill_engines.aggregation.

Invariants enforced:
    - efficiency = actual / theoretical * 100 whenever theoretical > 0.
    - No theoretical, or theoretical <= 0, yields None ("unrated"), never
      zero and never a fallback constant.
    - Results are not clamped; over-rated shifts report more than 100.
    - Stored values are unrounded.  ``present_efficiency`` rounds to two
      decimals for display only.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

HUNDRED = Decimal("100")
PRESENTATION_QUANTUM = Decimal("0.01")


def compute_efficiency(
    actual: Decimal | None,
    theoretical: Decimal | None,
) -> Decimal | None:
    """
    Efficiency percentage of ``actual`` against ``theoretical``.

    Examples:
        compute_efficiency(Decimal("350"), Decimal("400"))  # Decimal("87.5")
        compute_efficiency(Decimal("350"), None)            # None
    """
    if theoretical is None or theoretical <= 0:
        return None
    if actual is None:
        actual = Decimal("0")
    return actual / theoretical * HUNDRED


def present_efficiency(value: Decimal | None) -> Decimal | None:
    """Round an efficiency to two decimals (half up) for presentation."""
    if value is None:
        return None
    return value.quantize(PRESENTATION_QUANTUM, rounding=ROUND_HALF_UP)
