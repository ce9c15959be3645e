"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable structures that cross the service/selector boundary:
    MachineInfo, SnapshotRecord, EntryRecord (persistence output),
    ShiftReading (paired-write input), EntryPage (paginated listing).

Architecture position:
    Kernel > Domain -- zero I/O.  from_model() class methods are boundary
    converters invoked only from services and selectors.

Invariants enforced:
    - Services and selectors return DTOs, never ORM entities.
    - Quantities are Decimal, never float.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from mill_kernel.domain.yarn_types import normalize_yarn_type

if TYPE_CHECKING:
    from mill_kernel.models.configuration_snapshot import ConfigurationSnapshot
    from mill_kernel.models.machine import Machine
    from mill_kernel.models.production_entry import ProductionEntry


@dataclass(frozen=True)
class MachineInfo:
    """Immutable view of a machine and its live configuration."""

    id: UUID
    unit: int
    machine_number: int
    machine_name: str
    yarn_type: str
    yarn_count: Decimal | None
    spindle_count: int
    speed: Decimal
    rated_production_100: Decimal | None
    is_active: bool

    @property
    def is_rated(self) -> bool:
        return self.rated_production_100 is not None

    @classmethod
    def from_model(cls, model: Machine) -> MachineInfo:
        return cls(
            id=model.id,
            unit=model.unit,
            machine_number=model.machine_number,
            machine_name=model.machine_name,
            yarn_type=model.yarn_type,
            yarn_count=model.yarn_count,
            spindle_count=model.spindle_count,
            speed=model.speed,
            rated_production_100=model.rated_production_100,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class SnapshotRecord:
    """
    A configuration history record.

    ``is_current`` marks a synthesized record describing the live machine
    state when it differs from the newest stored snapshot.  Such records
    have no id and were never persisted.
    """

    machine_id: UUID
    unit: int
    machine_number: int
    machine_name: str
    yarn_type: str
    yarn_count: Decimal | None
    spindle_count: int
    speed: Decimal
    rated_production_100: Decimal | None
    captured_at: datetime | None
    reason: str
    id: UUID | None = None
    sequence: int | None = None
    is_current: bool = False

    @classmethod
    def from_model(cls, model: ConfigurationSnapshot) -> SnapshotRecord:
        return cls(
            id=model.id,
            sequence=model.sequence,
            machine_id=model.machine_id,
            unit=model.unit,
            machine_number=model.machine_number,
            machine_name=model.machine_name,
            yarn_type=model.yarn_type,
            yarn_count=model.yarn_count,
            spindle_count=model.spindle_count,
            speed=model.speed,
            rated_production_100=model.rated_production_100,
            captured_at=model.captured_at,
            reason=str(getattr(model.reason, "value", model.reason)),
        )


@dataclass(frozen=True)
class EntryRecord:
    """Immutable view of one stored production entry."""

    id: UUID
    unit: int
    machine_number: int
    entry_date: date
    shift: str
    actual_production: Decimal
    theoretical_production: Decimal | None
    rated_production_100: Decimal | None
    efficiency: Decimal | None
    yarn_type: str
    remarks: str | None = None
    worker_name: str | None = None
    mains_reading: Decimal | None = None

    @classmethod
    def from_model(cls, model: ProductionEntry) -> EntryRecord:
        return cls(
            id=model.id,
            unit=model.unit,
            machine_number=model.machine_number,
            entry_date=model.entry_date,
            shift=str(getattr(model.shift, "value", model.shift)),
            actual_production=model.actual_production,
            theoretical_production=model.theoretical_production,
            rated_production_100=model.rated_production_100,
            efficiency=model.efficiency,
            yarn_type=model.yarn_type,
            remarks=model.remarks,
            worker_name=model.worker_name,
            mains_reading=model.mains_reading,
        )


@dataclass(frozen=True)
class ShiftReading:
    """
    Raw operator input for one shift of a paired or batch write.

    Values are left as supplied; the service parses them at the boundary.
    """

    actual_production: Any = None
    theoretical_production: Any = None
    remarks: str | None = None
    worker_name: str | None = None
    mains_reading: Any = None
    yarn_type: str | None = None

    @classmethod
    def coerce(cls, value: ShiftReading | Mapping[str, Any] | None) -> ShiftReading | None:
        """Accept a ShiftReading, a plain mapping, or None."""
        if value is None or isinstance(value, ShiftReading):
            return value
        known = {k: value[k] for k in cls.__dataclass_fields__ if k in value}
        return cls(**known)


@dataclass(frozen=True)
class EntryPage:
    """One page of a production entry listing."""

    items: tuple[EntryRecord, ...]
    total: int
    page: int
    limit: int
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        pages = (self.total + self.limit - 1) // self.limit if self.limit > 0 else 0
        object.__setattr__(self, "total_pages", pages)


_CONFIG_QUANTUM = Decimal("0.00001")


def _normalize_number(value: Decimal | int | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(value).quantize(_CONFIG_QUANTUM)


@dataclass(frozen=True)
class MachineConfig:
    """
    The tracked configuration of a machine.

    Two configs are "the same" when every tracked field matches after
    normalization: numbers to five decimal places, yarn type compared
    trimmed and case-insensitively, display name compared exactly after
    trimming.  ``yarn_count`` rides along
    into snapshots but never triggers one.
    """

    machine_number: int
    machine_name: str
    yarn_type: str
    spindle_count: int
    speed: Decimal
    rated_production_100: Decimal | None
    yarn_count: Decimal | None = None

    @classmethod
    def from_source(cls, source: Any) -> MachineConfig:
        """Build from anything carrying the config attributes (Machine, snapshot, DTO)."""
        return cls(
            machine_number=source.machine_number,
            machine_name=source.machine_name,
            yarn_type=source.yarn_type,
            spindle_count=source.spindle_count,
            speed=source.speed,
            rated_production_100=source.rated_production_100,
            yarn_count=source.yarn_count,
        )

    def tracked_key(self) -> tuple:
        return (
            int(self.machine_number),
            self.machine_name.strip(),
            normalize_yarn_type(self.yarn_type),
            int(self.spindle_count),
            _normalize_number(self.speed),
            _normalize_number(self.rated_production_100),
        )

    def differs_from(self, other: MachineConfig | None) -> bool:
        if other is None:
            return True
        return self.tracked_key() != other.tracked_key()
