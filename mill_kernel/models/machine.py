"""
Module: mill_kernel.models.machine
Responsibility: ORM persistence for spinning machines in the ASU production
    units.  A machine row carries the *live* configuration (yarn type,
    spindle count, speed, rated production) used when shift production is
    recorded against it.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (unit, machine_number) is unique (uq_machine_unit_number).
    - rated_production_100, when present, is strictly positive
      (ck_machine_rating_positive).  Absent means "unrated": entries recorded
      against an unrated machine have no efficiency.

Failure modes:
    - IntegrityError on duplicate (unit, machine_number).
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mill_kernel.db.base import TrackedBase


class Machine(TrackedBase):
    """
    A spinning machine within a production unit.

    Guarantees:
        - machine_number is positive and unique within its unit.
        - Configuration fields are mutable; every tracked change is mirrored
          into the append-only configuration history by the service layer.
    """

    __tablename__ = "machines"

    __table_args__ = (
        UniqueConstraint("unit", "machine_number", name="uq_machine_unit_number"),
        CheckConstraint("machine_number > 0", name="ck_machine_number_positive"),
        CheckConstraint(
            "rated_production_100 IS NULL OR rated_production_100 > 0",
            name="ck_machine_rating_positive",
        ),
        CheckConstraint("spindle_count >= 0", name="ck_machine_spindles_nonneg"),
        CheckConstraint("speed >= 0", name="ck_machine_speed_nonneg"),
        Index("idx_machine_unit_active", "unit", "is_active"),
    )

    unit: Mapped[int] = mapped_column(nullable=False)

    machine_number: Mapped[int] = mapped_column(nullable=False)

    machine_name: Mapped[str] = mapped_column(String(100), nullable=False)

    yarn_type: Mapped[str] = mapped_column(String(100), nullable=False)

    # Yarn count (Ne); informational, copied into snapshots
    yarn_count: Mapped[Decimal | None] = mapped_column(nullable=True)

    spindle_count: Mapped[int] = mapped_column(nullable=False, default=0)

    speed: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Expected output at 100% efficiency for one shift
    rated_production_100: Mapped[Decimal | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Machine unit={self.unit} #{self.machine_number}: {self.machine_name}>"
