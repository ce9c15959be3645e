"""
ProductionEntryService -- write side of the production entry store.

Responsibility:
    Records shift production against machines: single creates, atomic
    day+night pairs, batch upserts, updates and deletes.  Efficiency is
    derived at write time and recomputed on every update.

Architecture position:
    Kernel > Services.  Flush-only; ProductionRecorder (or
    ``session_scope``) owns the transaction, so a paired write either
    lands completely or not at all.

Invariants enforced:
    - One entry per (unit, machine_number, entry_date, shift).  Checked up
      front for a friendly DuplicateEntryError; the unique constraint
      closes the race, and its IntegrityError is translated to the same
      error.
    - Input is parsed once at the boundary (domain/parsing.py); nothing is
      coerced to zero.
    - Unrated machines yield a NULL efficiency, never a fabricated one.
    - Positive production captures the machine's live configuration in
      history when it differs from the latest snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mill_kernel.domain.clock import Clock
from mill_kernel.domain.dtos import EntryRecord, ShiftReading
from mill_kernel.domain.efficiency import compute_efficiency
from mill_kernel.domain.parsing import (
    DEFAULT_UNITS,
    parse_entry_date,
    parse_machine_number,
    parse_quantity,
    parse_shift,
    parse_text,
    parse_unit,
)
from mill_kernel.exceptions import (
    DuplicateEntryError,
    EmptySubmissionError,
    EntryNotFoundError,
    InvalidFieldError,
    MachineNotFoundError,
)
from mill_kernel.logging_config import get_logger
from mill_kernel.models.machine import Machine
from mill_kernel.models.production_entry import (
    SLOT_CONSTRAINT_NAME,
    ProductionEntry,
    Shift,
)
from mill_kernel.services.base import BaseService
from mill_kernel.services.configuration_history_service import (
    ConfigurationHistoryService,
)

logger = get_logger("services.production_entry")

_UPDATABLE_FIELDS = frozenset({
    "actual_production",
    "theoretical_production",
    "remarks",
    "worker_name",
    "mains_reading",
    "yarn_type",
    "entry_date",
})

ShiftInput = ShiftReading | Mapping[str, Any] | None


@dataclass(frozen=True)
class ShiftWrite:
    """What a batch upsert did for one shift."""

    shift: Shift
    action: str  # "created", "updated" or "skipped"
    entry: EntryRecord | None = None


def _is_slot_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return (
        SLOT_CONSTRAINT_NAME in message
        or "UNIQUE constraint failed: production_entries." in message
    )


class ProductionEntryService(BaseService[ProductionEntry]):
    """
    Service for recording shift production.

    All public methods return EntryRecord DTOs, not ORM entities.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        units: tuple[int, ...] = DEFAULT_UNITS,
        history: ConfigurationHistoryService | None = None,
    ):
        super().__init__(session)
        self._units = units
        self._history = history or ConfigurationHistoryService(session, clock)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_machine(self, unit: int, machine_number: int) -> Machine:
        stmt = select(Machine).where(
            Machine.unit == unit,
            Machine.machine_number == machine_number,
        )
        machine = self.session.execute(stmt).scalar_one_or_none()
        if machine is None:
            raise MachineNotFoundError(unit=unit, machine_number=machine_number)
        return machine

    def _find_slot(
        self,
        unit: int,
        machine_number: int,
        entry_date: date,
        shift: Shift,
    ) -> ProductionEntry | None:
        stmt = select(ProductionEntry).where(
            ProductionEntry.unit == unit,
            ProductionEntry.machine_number == machine_number,
            ProductionEntry.entry_date == entry_date,
            ProductionEntry.shift == shift.value,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _get_entry(self, entry_id: UUID) -> ProductionEntry:
        entry = self.session.get(ProductionEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def _reject_duplicate(
        self, unit: int, machine_number: int, entry_date: date, shift: Shift
    ) -> DuplicateEntryError:
        logger.warning(
            "entry_duplicate_rejected",
            extra={
                "unit": unit,
                "machine_number": machine_number,
                "entry_date": entry_date,
                "shift": shift.value,
            },
        )
        return DuplicateEntryError(unit, machine_number, entry_date, shift.value)

    def _flush_slot(self, entry: ProductionEntry) -> None:
        """Flush, translating a slot-constraint violation to DuplicateEntryError."""
        try:
            self.session.flush()
        except IntegrityError as exc:
            if _is_slot_violation(exc):
                raise self._reject_duplicate(
                    entry.unit, entry.machine_number, entry.entry_date, Shift(entry.shift)
                ) from exc
            raise

    def _insert(
        self,
        machine: Machine,
        entry_date: date,
        shift: Shift,
        actual: Decimal,
        theoretical: Decimal | None = None,
        yarn_type: str | None = None,
        remarks: str | None = None,
        worker_name: str | None = None,
        mains_reading: Decimal | None = None,
        actor_id: UUID | None = None,
    ) -> ProductionEntry:
        basis = theoretical if theoretical is not None else machine.rated_production_100
        entry = ProductionEntry(
            unit=machine.unit,
            machine_number=machine.machine_number,
            entry_date=entry_date,
            shift=shift.value,
            actual_production=actual,
            theoretical_production=basis,
            rated_production_100=machine.rated_production_100,
            efficiency=compute_efficiency(actual, basis),
            yarn_type=yarn_type or machine.yarn_type,
            remarks=remarks,
            worker_name=worker_name,
            mains_reading=mains_reading,
            created_by_id=actor_id,
        )
        self.session.add(entry)
        self._flush_slot(entry)

        logger.info(
            "entry_created",
            extra={
                "entry_id": str(entry.id),
                "unit": entry.unit,
                "machine_number": entry.machine_number,
                "entry_date": entry_date,
                "shift": shift.value,
                "actual_production": actual,
                "efficiency": entry.efficiency,
            },
        )
        return entry

    def _apply_update(
        self,
        entry: ProductionEntry,
        fields: Mapping[str, Any],
        actor_id: UUID | None,
    ) -> None:
        """Parse and apply ``fields`` to ``entry``, then re-derive efficiency."""
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            name = sorted(unknown)[0]
            raise InvalidFieldError(name, fields[name], "not an updatable entry field")

        if "actual_production" in fields:
            entry.actual_production = parse_quantity(
                fields["actual_production"], "actual_production", required=True
            )
        if "theoretical_production" in fields:
            entry.theoretical_production = parse_quantity(
                fields["theoretical_production"], "theoretical_production"
            )
        if "mains_reading" in fields:
            entry.mains_reading = parse_quantity(fields["mains_reading"], "mains_reading")
        if "remarks" in fields:
            entry.remarks = parse_text(fields["remarks"], "remarks", max_length=2000)
        if "worker_name" in fields:
            entry.worker_name = parse_text(fields["worker_name"], "worker_name")
        if "yarn_type" in fields:
            entry.yarn_type = parse_text(fields["yarn_type"], "yarn_type") or entry.yarn_type
        if "entry_date" in fields:
            new_date = parse_entry_date(fields["entry_date"])
            if new_date != entry.entry_date:
                shift = Shift(entry.shift)
                other = self._find_slot(entry.unit, entry.machine_number, new_date, shift)
                if other is not None and other.id != entry.id:
                    raise self._reject_duplicate(
                        entry.unit, entry.machine_number, new_date, shift
                    )
                entry.entry_date = new_date

        if entry.theoretical_production is None:
            # Backfill once from the machine's current rating
            stmt = select(Machine.rated_production_100).where(
                Machine.unit == entry.unit,
                Machine.machine_number == entry.machine_number,
            )
            rating = self.session.execute(stmt).scalar_one_or_none()
            if rating is not None:
                entry.theoretical_production = rating
                entry.rated_production_100 = rating

        entry.efficiency = compute_efficiency(
            entry.actual_production, entry.theoretical_production
        )
        entry.updated_by_id = actor_id

    @staticmethod
    def _reading_fields(reading: ShiftReading) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for name in (
            "actual_production",
            "theoretical_production",
            "remarks",
            "worker_name",
            "mains_reading",
            "yarn_type",
        ):
            value = getattr(reading, name)
            if value is not None:
                fields[name] = value
        return fields

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_entry(
        self,
        unit: Any,
        machine_number: Any,
        entry_date: Any,
        shift: Any,
        actual_production: Any,
        theoretical_production: Any = None,
        yarn_type: Any = None,
        remarks: Any = None,
        worker_name: Any = None,
        mains_reading: Any = None,
        actor_id: UUID | None = None,
    ) -> EntryRecord:
        """
        Record production for one machine, date and shift.

        Args:
            theoretical_production: Overrides the machine rating as the
                efficiency basis for this entry.
            yarn_type: Overrides the machine's current yarn type.

        Raises:
            MachineNotFoundError: No machine with that number in the unit.
            DuplicateEntryError: The slot already has an entry.
            ValidationError: On malformed input.
        """
        unit = parse_unit(unit, self._units)
        number = parse_machine_number(machine_number)
        day = parse_entry_date(entry_date)
        shift = parse_shift(shift)
        actual = parse_quantity(actual_production, "actual_production", required=True)
        theoretical = parse_quantity(theoretical_production, "theoretical_production")
        mains = parse_quantity(mains_reading, "mains_reading")

        machine = self._get_machine(unit, number)
        if self._find_slot(unit, number, day, shift) is not None:
            raise self._reject_duplicate(unit, number, day, shift)

        entry = self._insert(
            machine,
            day,
            shift,
            actual,
            theoretical=theoretical,
            yarn_type=parse_text(yarn_type, "yarn_type"),
            remarks=parse_text(remarks, "remarks", max_length=2000),
            worker_name=parse_text(worker_name, "worker_name"),
            mains_reading=mains,
            actor_id=actor_id,
        )
        if actual > 0:
            self._history.capture_current(machine)
        return EntryRecord.from_model(entry)

    def create_paired_entry(
        self,
        unit: Any,
        machine_number: Any,
        entry_date: Any,
        day: ShiftInput = None,
        night: ShiftInput = None,
        actor_id: UUID | None = None,
    ) -> tuple[EntryRecord, ...]:
        """
        Record the day and night shifts of one machine and date together.

        Shifts without positive production are skipped.  If either
        submitted shift already has an entry, nothing is written.

        Raises:
            EmptySubmissionError: Neither shift has production > 0.
            DuplicateEntryError: A submitted shift already exists.
            MachineNotFoundError: No machine with that number in the unit.
        """
        unit = parse_unit(unit, self._units)
        number = parse_machine_number(machine_number)
        when = parse_entry_date(entry_date)

        pending: list[tuple[Shift, ShiftReading, Decimal]] = []
        for shift, raw in ((Shift.DAY, day), (Shift.NIGHT, night)):
            reading = ShiftReading.coerce(raw)
            if reading is None:
                continue
            actual = parse_quantity(reading.actual_production, f"{shift.value}.actual_production")
            if actual is not None and actual > 0:
                pending.append((shift, reading, actual))

        if not pending:
            raise EmptySubmissionError(unit, number, when)

        machine = self._get_machine(unit, number)
        for shift, _, _ in pending:
            if self._find_slot(unit, number, when, shift) is not None:
                raise self._reject_duplicate(unit, number, when, shift)

        created = []
        for shift, reading, actual in pending:
            created.append(
                self._insert(
                    machine,
                    when,
                    shift,
                    actual,
                    theoretical=parse_quantity(
                        reading.theoretical_production, f"{shift.value}.theoretical_production"
                    ),
                    yarn_type=parse_text(reading.yarn_type, "yarn_type"),
                    remarks=parse_text(reading.remarks, "remarks", max_length=2000),
                    worker_name=parse_text(reading.worker_name, "worker_name"),
                    mains_reading=parse_quantity(
                        reading.mains_reading, f"{shift.value}.mains_reading"
                    ),
                    actor_id=actor_id,
                )
            )

        self._history.capture_current(machine)
        return tuple(EntryRecord.from_model(e) for e in created)

    def update_entry(
        self,
        entry_id: UUID,
        actor_id: UUID | None = None,
        **fields: Any,
    ) -> EntryRecord:
        """
        Change an entry and recompute its efficiency.

        An entry recorded without a theoretical basis picks up the
        machine's current rating on its first update.

        Raises:
            EntryNotFoundError: No entry with that id.
            DuplicateEntryError: ``entry_date`` moves onto an occupied slot.
        """
        entry = self._get_entry(entry_id)
        self._apply_update(entry, fields, actor_id)
        self._flush_slot(entry)

        logger.info(
            "entry_updated",
            extra={
                "entry_id": str(entry.id),
                "fields": sorted(fields),
                "efficiency": entry.efficiency,
            },
        )
        return EntryRecord.from_model(entry)

    def batch_upsert_shift_pair(
        self,
        unit: Any,
        machine_number: Any,
        entry_date: Any,
        day: ShiftInput = None,
        night: ShiftInput = None,
        actor_id: UUID | None = None,
    ) -> tuple[ShiftWrite, ShiftWrite]:
        """
        Update whichever shifts exist and create the missing ones.

        A missing shift is created only when its production is positive.
        Existing shifts never raise DuplicateEntryError here.
        """
        unit = parse_unit(unit, self._units)
        number = parse_machine_number(machine_number)
        when = parse_entry_date(entry_date)

        machine: Machine | None = None
        writes: list[ShiftWrite] = []
        captured = False
        for shift, raw in ((Shift.DAY, day), (Shift.NIGHT, night)):
            reading = ShiftReading.coerce(raw)
            if reading is None:
                writes.append(ShiftWrite(shift, "skipped"))
                continue

            existing = self._find_slot(unit, number, when, shift)
            if existing is not None:
                self._apply_update(existing, self._reading_fields(reading), actor_id)
                self._flush_slot(existing)
                logger.info(
                    "entry_updated",
                    extra={"entry_id": str(existing.id), "shift": shift.value},
                )
                writes.append(ShiftWrite(shift, "updated", EntryRecord.from_model(existing)))
                continue

            actual = parse_quantity(reading.actual_production, f"{shift.value}.actual_production")
            if actual is None or actual <= 0:
                writes.append(ShiftWrite(shift, "skipped"))
                continue

            if machine is None:
                machine = self._get_machine(unit, number)
            entry = self._insert(
                machine,
                when,
                shift,
                actual,
                theoretical=parse_quantity(
                    reading.theoretical_production, f"{shift.value}.theoretical_production"
                ),
                yarn_type=parse_text(reading.yarn_type, "yarn_type"),
                remarks=parse_text(reading.remarks, "remarks", max_length=2000),
                worker_name=parse_text(reading.worker_name, "worker_name"),
                mains_reading=parse_quantity(reading.mains_reading, f"{shift.value}.mains_reading"),
                actor_id=actor_id,
            )
            writes.append(ShiftWrite(shift, "created", EntryRecord.from_model(entry)))
            captured = True

        if captured and machine is not None:
            self._history.capture_current(machine)
        return writes[0], writes[1]

    def delete_entry(self, entry_id: UUID) -> None:
        """
        Delete one entry. Nothing cascades.

        Raises:
            EntryNotFoundError: No entry with that id.
        """
        entry = self._get_entry(entry_id)
        self.session.delete(entry)
        self.session.flush()
        logger.info(
            "entry_deleted",
            extra={
                "entry_id": str(entry_id),
                "unit": entry.unit,
                "machine_number": entry.machine_number,
                "entry_date": entry.entry_date,
                "shift": entry.shift,
            },
        )

    def delete_shift_pair(
        self,
        unit: Any,
        machine_number: Any,
        entry_date: Any,
    ) -> int:
        """Delete both shifts of a machine and date; returns how many existed."""
        unit = parse_unit(unit, self._units)
        number = parse_machine_number(machine_number)
        when = parse_entry_date(entry_date)

        deleted = 0
        for shift in (Shift.DAY, Shift.NIGHT):
            entry = self._find_slot(unit, number, when, shift)
            if entry is not None:
                self.session.delete(entry)
                deleted += 1
        self.session.flush()
        logger.info(
            "shift_pair_deleted",
            extra={
                "unit": unit,
                "machine_number": number,
                "entry_date": when,
                "deleted": deleted,
            },
        )
        return deleted
