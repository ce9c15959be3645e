"""
Module: mill_kernel.models.production_entry
Responsibility: ORM persistence for shift production figures.  One row per
    (unit, machine_number, entry_date, shift).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Slot uniqueness via uq_production_entry_slot.  The service layer checks
      first for a friendly error; the constraint closes the race between
      concurrent writers.
    - actual_production >= 0 (ck_entry_actual_nonneg).
    - efficiency is derived from actual / theoretical and stored unrounded.
      NULL when the entry has no positive theoretical production.

Failure modes:
    - IntegrityError on uq_production_entry_slot (translated to
      DuplicateEntryError by ProductionEntryService).
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Date, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mill_kernel.db.base import TrackedBase

SLOT_CONSTRAINT_NAME = "uq_production_entry_slot"


class Shift(str, Enum):
    """Production shift. Ordering day < night is used for listings."""

    DAY = "day"
    NIGHT = "night"


class ProductionEntry(TrackedBase):
    """Recorded production of one machine for one shift on one date."""

    __tablename__ = "production_entries"

    __table_args__ = (
        UniqueConstraint(
            "unit", "machine_number", "entry_date", "shift",
            name=SLOT_CONSTRAINT_NAME,
        ),
        CheckConstraint("actual_production >= 0", name="ck_entry_actual_nonneg"),
        CheckConstraint("shift IN ('day', 'night')", name="ck_entry_shift"),
        Index("idx_entry_unit_date", "unit", "entry_date"),
        Index("idx_entry_unit_machine", "unit", "machine_number"),
    )

    unit: Mapped[int] = mapped_column(nullable=False)

    machine_number: Mapped[int] = mapped_column(nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    shift: Mapped[Shift] = mapped_column(String(10), nullable=False)

    actual_production: Mapped[Decimal] = mapped_column(nullable=False)

    # Basis for efficiency; defaults to the machine rating at write time
    theoretical_production: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Machine rating as it was when the entry was written
    rated_production_100: Mapped[Decimal | None] = mapped_column(nullable=True)

    efficiency: Mapped[Decimal | None] = mapped_column(
        Numeric(24, 12),
        nullable=True,
    )

    yarn_type: Mapped[str] = mapped_column(String(100), nullable=False)

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    worker_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    mains_reading: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ProductionEntry unit={self.unit} #{self.machine_number} "
            f"{self.entry_date} {self.shift}>"
        )
