"""
Service layer for the machine registry.

Machines are created by operator action, keep a live configuration that
can be edited at any time, and are archived (deactivated) rather than
deleted once production has been recorded against them.  Every edit to a
tracked configuration field is routed through ConfigurationHistoryService
in the same transaction.

Returns MachineInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mill_kernel.domain.clock import Clock
from mill_kernel.domain.dtos import MachineConfig, MachineInfo
from mill_kernel.domain.parsing import (
    DEFAULT_UNITS,
    parse_count,
    parse_machine_number,
    parse_quantity,
    parse_text,
    parse_unit,
)
from mill_kernel.exceptions import (
    DuplicateMachineError,
    InvalidFieldError,
    MachineNotFoundError,
    MachineReferencedError,
    MissingFieldError,
)
from mill_kernel.logging_config import get_logger
from mill_kernel.models.configuration_snapshot import ConfigurationSnapshot
from mill_kernel.models.machine import Machine
from mill_kernel.models.production_entry import ProductionEntry
from mill_kernel.services.base import BaseService
from mill_kernel.services.configuration_history_service import (
    ConfigurationHistoryService,
)

logger = get_logger("services.machine")

_CONFIG_FIELDS = frozenset({
    "machine_number",
    "machine_name",
    "yarn_type",
    "yarn_count",
    "spindle_count",
    "speed",
    "rated_production_100",
})
_UPDATABLE_FIELDS = _CONFIG_FIELDS | {"is_active"}


class MachineService(BaseService[Machine]):
    """
    Service for managing machines within production units.

    All public methods return MachineInfo DTOs, not ORM Machine entities.
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

    def _to_dto(self, machine: Machine) -> MachineInfo:
        return MachineInfo.from_model(machine)

    def _get_by_id(self, machine_id: UUID) -> Machine:
        """Get machine by ID, raising if not found."""
        machine = self.session.get(Machine, machine_id)
        if machine is None:
            raise MachineNotFoundError(machine_id=str(machine_id))
        return machine

    def _find_by_number(self, unit: int, machine_number: int) -> Machine | None:
        stmt = select(Machine).where(
            Machine.unit == unit,
            Machine.machine_number == machine_number,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    @contextmanager
    def _number_clash_as_duplicate(self, unit: int, machine_number: int) -> Iterator[None]:
        """Translate a unit/number unique-constraint hit into DuplicateMachineError."""
        try:
            yield
        except IntegrityError as exc:
            message = str(exc.orig)
            if (
                "uq_machine_unit_number" in message
                or "UNIQUE constraint failed: machines." in message
            ):
                raise DuplicateMachineError(unit, machine_number) from exc
            raise

    def _flush(self, unit: int, machine_number: int) -> None:
        with self._number_clash_as_duplicate(unit, machine_number):
            self.session.flush()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_machine(self, machine_id: UUID) -> MachineInfo:
        """
        Get machine by ID.

        Raises:
            MachineNotFoundError: If the machine doesn't exist.
        """
        return self._to_dto(self._get_by_id(machine_id))

    def get_by_number(self, unit: Any, machine_number: Any) -> MachineInfo:
        """
        Get machine by its number within a unit.

        Raises:
            MachineNotFoundError: If no such machine exists in the unit.
        """
        unit = parse_unit(unit, self._units)
        number = parse_machine_number(machine_number)
        machine = self._find_by_number(unit, number)
        if machine is None:
            raise MachineNotFoundError(unit=unit, machine_number=number)
        return self._to_dto(machine)

    def list_machines(self, unit: Any, active_only: bool = True) -> list[MachineInfo]:
        """Machines of a unit ordered by machine number."""
        unit = parse_unit(unit, self._units)
        stmt = select(Machine).where(Machine.unit == unit)
        if active_only:
            stmt = stmt.where(Machine.is_active.is_(True))
        stmt = stmt.order_by(Machine.machine_number)
        return [self._to_dto(m) for m in self.session.execute(stmt).scalars().all()]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_machine(
        self,
        unit: Any,
        machine_number: Any,
        yarn_type: Any,
        machine_name: Any = None,
        spindle_count: Any = 0,
        speed: Any = 0,
        rated_production_100: Any = None,
        yarn_count: Any = None,
        is_active: bool = True,
        actor_id: UUID | None = None,
    ) -> MachineInfo:
        """
        Register a machine in a unit.

        Args:
            unit: Production unit (one of the configured units).
            machine_number: Positive number, unique within the unit.
            yarn_type: Yarn currently spun on the machine.
            machine_name: Display name; defaults to "Machine <n>".
            rated_production_100: Expected output per shift at 100%;
                None leaves the machine unrated.

        Raises:
            DuplicateMachineError: If the number is taken in the unit.
            ValidationError: On malformed input.
        """
        unit = parse_unit(unit, self._units)
        number = parse_machine_number(machine_number)
        yarn = parse_text(yarn_type, "yarn_type")
        if yarn is None:
            raise MissingFieldError("yarn_type")

        if self._find_by_number(unit, number) is not None:
            raise DuplicateMachineError(unit, number)

        machine = Machine(
            unit=unit,
            machine_number=number,
            machine_name=parse_text(machine_name, "machine_name") or f"Machine {number}",
            yarn_type=yarn,
            yarn_count=parse_quantity(yarn_count, "yarn_count"),
            spindle_count=parse_count(spindle_count, "spindle_count") or 0,
            speed=parse_quantity(speed, "speed") or Decimal("0"),
            rated_production_100=parse_quantity(
                rated_production_100, "rated_production_100", positive=True
            ),
            is_active=bool(is_active),
            created_by_id=actor_id,
        )
        self.session.add(machine)
        self._flush(unit, number)

        logger.info(
            "machine_created",
            extra={
                "machine_id": str(machine.id),
                "unit": unit,
                "machine_number": number,
                "rated": machine.rated_production_100 is not None,
            },
        )
        return self._to_dto(machine)

    def update_machine(
        self,
        machine_id: UUID,
        actor_id: UUID | None = None,
        **fields: Any,
    ) -> MachineInfo:
        """
        Edit a machine's configuration and/or active flag.

        Tracked configuration changes are snapshotted into history in the
        same transaction.  Passing ``rated_production_100=None`` explicitly
        clears the rating.

        Raises:
            MachineNotFoundError: If the machine doesn't exist.
            DuplicateMachineError: If renumbering onto an occupied number.
            InvalidFieldError: On an unknown field name.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            name = sorted(unknown)[0]
            raise InvalidFieldError(name, fields[name], "not an updatable machine field")

        machine = self._get_by_id(machine_id)
        current = MachineConfig.from_source(machine)

        number = current.machine_number
        if "machine_number" in fields:
            number = parse_machine_number(fields["machine_number"])
            if number != machine.machine_number:
                clash = self._find_by_number(machine.unit, number)
                if clash is not None:
                    raise DuplicateMachineError(machine.unit, number)

        name = current.machine_name
        if "machine_name" in fields:
            name = parse_text(fields["machine_name"], "machine_name") or f"Machine {number}"

        yarn = current.yarn_type
        if "yarn_type" in fields:
            yarn = parse_text(fields["yarn_type"], "yarn_type")
            if yarn is None:
                raise MissingFieldError("yarn_type")

        proposed = MachineConfig(
            machine_number=number,
            machine_name=name,
            yarn_type=yarn,
            spindle_count=(
                parse_count(fields["spindle_count"], "spindle_count", required=True)
                if "spindle_count" in fields else current.spindle_count
            ),
            speed=(
                parse_quantity(fields["speed"], "speed", required=True)
                if "speed" in fields else current.speed
            ),
            rated_production_100=(
                parse_quantity(fields["rated_production_100"], "rated_production_100", positive=True)
                if "rated_production_100" in fields else current.rated_production_100
            ),
            yarn_count=(
                parse_quantity(fields["yarn_count"], "yarn_count")
                if "yarn_count" in fields else current.yarn_count
            ),
        )

        with self._number_clash_as_duplicate(machine.unit, number):
            snapshot = self._history.record_if_changed(machine, proposed)

        if "is_active" in fields:
            machine.is_active = bool(fields["is_active"])
        machine.updated_by_id = actor_id
        self._flush(machine.unit, number)

        logger.info(
            "machine_updated",
            extra={
                "machine_id": str(machine.id),
                "fields": sorted(fields),
                "snapshot_appended": snapshot is not None,
            },
        )
        return self._to_dto(machine)

    def deactivate_machine(self, machine_id: UUID, actor_id: UUID | None = None) -> MachineInfo:
        """Archive a machine. History and entries are kept."""
        machine = self._get_by_id(machine_id)
        machine.is_active = False
        machine.updated_by_id = actor_id
        self.session.flush()
        logger.info("machine_deactivated", extra={"machine_id": str(machine.id)})
        return self._to_dto(machine)

    def reactivate_machine(self, machine_id: UUID, actor_id: UUID | None = None) -> MachineInfo:
        machine = self._get_by_id(machine_id)
        machine.is_active = True
        machine.updated_by_id = actor_id
        self.session.flush()
        logger.info("machine_reactivated", extra={"machine_id": str(machine.id)})
        return self._to_dto(machine)

    def delete_machine(self, machine_id: UUID) -> None:
        """
        Physically delete a machine that has never produced.

        Raises:
            MachineNotFoundError: If the machine doesn't exist.
            MachineReferencedError: If production entries or configuration
                snapshots reference it; archive it instead.
        """
        machine = self._get_by_id(machine_id)

        entry_count = self.session.execute(
            select(func.count()).select_from(ProductionEntry).where(
                ProductionEntry.unit == machine.unit,
                ProductionEntry.machine_number == machine.machine_number,
            )
        ).scalar_one()
        snapshot_count = self.session.execute(
            select(func.count()).select_from(ConfigurationSnapshot).where(
                ConfigurationSnapshot.machine_id == machine.id
            )
        ).scalar_one()
        if entry_count or snapshot_count:
            raise MachineReferencedError(str(machine.id), entry_count + snapshot_count)

        self.session.delete(machine)
        self.session.flush()
        logger.info(
            "machine_deleted",
            extra={"machine_id": str(machine_id), "unit": machine.unit},
        )
