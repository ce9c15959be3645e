"""
Module: mill_kernel.models.configuration_snapshot
Responsibility: Append-only history of machine configurations.  A snapshot
    freezes the tracked configuration of a machine at a point in time so
    that historical production can be read against the setup it ran on.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Snapshots are never updated or deleted (ORM listeners in
      db/immutability.py raise ImmutabilityViolationError).
    - sequence is strictly increasing per machine and orders snapshots that
      share a captured_at timestamp.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mill_kernel.db.base import Base, UUIDString


class SnapshotReason(str, Enum):
    """Why a snapshot was appended."""

    BEFORE_CHANGE = "before_change"
    AFTER_CHANGE = "after_change"
    PRODUCTION_CAPTURE = "production_capture"


class ConfigurationSnapshot(Base):
    """Immutable copy of a machine's tracked configuration."""

    __tablename__ = "configuration_snapshots"

    __table_args__ = (
        UniqueConstraint("machine_id", "sequence", name="uq_snapshot_machine_sequence"),
        Index("idx_snapshot_unit_machine", "unit", "machine_number"),
    )

    machine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("machines.id"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(nullable=False)

    unit: Mapped[int] = mapped_column(nullable=False)

    machine_number: Mapped[int] = mapped_column(nullable=False)

    machine_name: Mapped[str] = mapped_column(String(100), nullable=False)

    yarn_type: Mapped[str] = mapped_column(String(100), nullable=False)

    yarn_count: Mapped[Decimal | None] = mapped_column(nullable=True)

    spindle_count: Mapped[int] = mapped_column(nullable=False)

    speed: Mapped[Decimal] = mapped_column(nullable=False)

    rated_production_100: Mapped[Decimal | None] = mapped_column(nullable=True)

    captured_at: Mapped[datetime] = mapped_column(nullable=False)

    reason: Mapped[SnapshotReason] = mapped_column(String(30), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ConfigurationSnapshot machine={self.machine_id} "
            f"seq={self.sequence} {self.reason}>"
        )
