"""
ConfigurationHistoryService -- append-only machine configuration history.

Responsibility:
    Keeps a server-side, transactional record of every configuration a
    machine has run with.  A snapshot is appended only when a tracked field
    (machine number, display name, yarn type, spindle count, speed, rated
    production) differs from the machine's most recent snapshot.

Architecture position:
    Kernel > Services.  Flush-only; runs inside the caller's transaction so
    the snapshot and the live-row update commit or roll back together.

Invariants enforced:
    - Snapshots are never updated or deleted (db/immutability.py).
    - Per-machine ``sequence`` strictly increases.
    - No duplicate consecutive snapshots over the tracked field set.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mill_kernel.domain.clock import Clock, SystemClock
from mill_kernel.domain.dtos import MachineConfig, SnapshotRecord
from mill_kernel.logging_config import get_logger
from mill_kernel.models.configuration_snapshot import (
    ConfigurationSnapshot,
    SnapshotReason,
)
from mill_kernel.models.machine import Machine
from mill_kernel.services.base import BaseService

logger = get_logger("services.configuration_history")


class ConfigurationHistoryService(BaseService[ConfigurationSnapshot]):
    """Reads and appends configuration snapshots for machines."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _latest(self, machine_id: UUID) -> ConfigurationSnapshot | None:
        stmt = (
            select(ConfigurationSnapshot)
            .where(ConfigurationSnapshot.machine_id == machine_id)
            .order_by(ConfigurationSnapshot.sequence.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _next_sequence(self, machine_id: UUID) -> int:
        stmt = select(func.max(ConfigurationSnapshot.sequence)).where(
            ConfigurationSnapshot.machine_id == machine_id
        )
        current = self.session.execute(stmt).scalar_one_or_none()
        return (current or 0) + 1

    def _append(self, machine: Machine, reason: SnapshotReason) -> SnapshotRecord:
        snapshot = ConfigurationSnapshot(
            machine_id=machine.id,
            sequence=self._next_sequence(machine.id),
            unit=machine.unit,
            machine_number=machine.machine_number,
            machine_name=machine.machine_name,
            yarn_type=machine.yarn_type,
            yarn_count=machine.yarn_count,
            spindle_count=machine.spindle_count,
            speed=machine.speed,
            rated_production_100=machine.rated_production_100,
            captured_at=self._clock.now(),
            reason=reason.value,
        )
        self.session.add(snapshot)
        self.session.flush()

        logger.info(
            "snapshot_appended",
            extra={
                "machine_id": str(machine.id),
                "unit": machine.unit,
                "machine_number": machine.machine_number,
                "sequence": snapshot.sequence,
                "reason": reason.value,
            },
        )
        return SnapshotRecord.from_model(snapshot)

    @staticmethod
    def _apply(machine: Machine, config: MachineConfig) -> None:
        machine.machine_number = config.machine_number
        machine.machine_name = config.machine_name
        machine.yarn_type = config.yarn_type
        machine.spindle_count = config.spindle_count
        machine.speed = config.speed
        machine.rated_production_100 = config.rated_production_100
        machine.yarn_count = config.yarn_count

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record_if_changed(
        self,
        machine: Machine,
        proposed: MachineConfig,
    ) -> SnapshotRecord | None:
        """
        Apply ``proposed`` to the live machine, snapshotting around the change.

        The proposal is compared with the most recent snapshot, or with the
        live row when the machine has no history yet.  When nothing tracked
        differs, no snapshot is written.  Otherwise a ``before_change``
        snapshot of the live state is appended (unless history already
        holds it), the live row is updated, and an ``after_change`` snapshot
        is appended when the new state differs from the old one.

        Returns:
            The newest snapshot appended, or None.
        """
        live = MachineConfig.from_source(machine)
        latest = self._latest(machine.id)
        baseline = MachineConfig.from_source(latest) if latest is not None else live

        if not proposed.differs_from(baseline):
            self._apply(machine, proposed)
            self.session.flush()
            logger.debug(
                "configuration_unchanged",
                extra={"machine_id": str(machine.id)},
            )
            return None

        appended: SnapshotRecord | None = None
        if latest is None or live.differs_from(MachineConfig.from_source(latest)):
            appended = self._append(machine, SnapshotReason.BEFORE_CHANGE)

        self._apply(machine, proposed)
        self.session.flush()

        if proposed.differs_from(live):
            appended = self._append(machine, SnapshotReason.AFTER_CHANGE)

        return appended

    def capture_current(self, machine: Machine) -> SnapshotRecord | None:
        """
        Snapshot the live configuration if history does not already hold it.

        Called when production is recorded so every production figure can
        be read against the setup it was produced on.
        """
        latest = self._latest(machine.id)
        live = MachineConfig.from_source(machine)
        if latest is not None and not live.differs_from(MachineConfig.from_source(latest)):
            return None
        return self._append(machine, SnapshotReason.PRODUCTION_CAPTURE)

    def list_history(self, machine_id: UUID) -> list[SnapshotRecord]:
        """
        Snapshots newest first.

        When the live configuration differs from the newest stored snapshot
        (or nothing is stored yet), a synthesized ``is_current`` record for
        the live state is placed first.  Unknown machines yield [].
        """
        machine = self.session.get(Machine, machine_id)
        if machine is None:
            return []

        stmt = (
            select(ConfigurationSnapshot)
            .where(ConfigurationSnapshot.machine_id == machine_id)
            .order_by(ConfigurationSnapshot.sequence.desc())
        )
        history = [
            SnapshotRecord.from_model(s)
            for s in self.session.execute(stmt).scalars().all()
        ]

        live = MachineConfig.from_source(machine)
        newest = MachineConfig.from_source(history[0]) if history else None
        if live.differs_from(newest):
            current = SnapshotRecord(
                machine_id=machine.id,
                unit=machine.unit,
                machine_number=machine.machine_number,
                machine_name=machine.machine_name,
                yarn_type=machine.yarn_type,
                yarn_count=machine.yarn_count,
                spindle_count=machine.spindle_count,
                speed=machine.speed,
                rated_production_100=machine.rated_production_100,
                captured_at=self._clock.now(),
                reason="current",
                is_current=True,
            )
            history.insert(0, current)

        return history
