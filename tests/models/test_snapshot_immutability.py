"""
Configuration snapshots are append-only at the ORM level.

Covers:
- UPDATE of a flushed snapshot is blocked
- DELETE of a flushed snapshot is blocked
- Listener registration is idempotent
- create_tables alone switches on the listeners and the append-only triggers
"""

from decimal import Decimal

import pytest
from sqlalchemy import event, select, text
from sqlalchemy.exc import DatabaseError

from mill_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from mill_kernel.db.immutability import (
    _check_snapshot_delete,
    _check_snapshot_immutability,
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from mill_kernel.db.triggers import triggers_installed
from mill_kernel.domain.clock import DeterministicClock
from mill_kernel.exceptions import ImmutabilityViolationError
from mill_kernel.models.configuration_snapshot import ConfigurationSnapshot
from mill_kernel.services.machine_service import MachineService


@pytest.fixture
def snapshot(create_machine, machine_service, session):
    machine = create_machine(rated=400)
    machine_service.update_machine(machine.id, rated_production_100="450")
    session.commit()
    return session.execute(
        select(ConfigurationSnapshot)
        .where(ConfigurationSnapshot.machine_id == machine.id)
        .order_by(ConfigurationSnapshot.sequence)
        .limit(1)
    ).scalar_one()


class TestSnapshotImmutability:

    def test_update_blocked(self, snapshot, session):
        snapshot.rated_production_100 = Decimal("999")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "ConfigurationSnapshot"
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        session.rollback()

    def test_delete_blocked(self, snapshot, session):
        session.delete(snapshot)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_violation_is_logged(self, snapshot, session, captured_logs):
        snapshot.machine_name = "renamed"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked and blocked[0]["operation"] == "UPDATE"

    def test_register_twice(self, db_engine):
        register_immutability_listeners()
        register_immutability_listeners()
        assert event.contains(ConfigurationSnapshot, "before_update", _check_snapshot_immutability)


@pytest.fixture
def standalone_db(tmp_path):
    """A database set up the way the CLI sets one up, without db_engine."""
    unregister_immutability_listeners()
    init_engine_from_url(f"sqlite:///{tmp_path / 'standalone.db'}")
    create_tables()
    s = get_session()
    service = MachineService(s, DeterministicClock())
    machine = service.create_machine(1, 5, "pc melange", rated_production_100="400")
    s.commit()
    service.update_machine(machine.id, yarn_type="CVC")
    s.commit()
    yield s
    s.rollback()
    s.close()
    unregister_immutability_listeners()
    reset_engine()


class TestCreateTablesEnforcesImmutability:

    def test_listeners_registered(self, standalone_db):
        assert event.contains(ConfigurationSnapshot, "before_update", _check_snapshot_immutability)
        assert event.contains(ConfigurationSnapshot, "before_delete", _check_snapshot_delete)

    def test_orm_edit_rejected(self, standalone_db):
        snapshot = standalone_db.execute(select(ConfigurationSnapshot).limit(1)).scalar_one()
        snapshot.yarn_type = "TAMPERED"
        with pytest.raises(ImmutabilityViolationError):
            standalone_db.commit()
        standalone_db.rollback()

    def test_orm_delete_rejected(self, standalone_db):
        snapshot = standalone_db.execute(select(ConfigurationSnapshot).limit(1)).scalar_one()
        standalone_db.delete(snapshot)
        with pytest.raises(ImmutabilityViolationError):
            standalone_db.commit()
        standalone_db.rollback()

    def test_triggers_installed(self, standalone_db):
        assert triggers_installed(get_engine())

    def test_raw_update_rejected_by_database(self, standalone_db):
        unregister_immutability_listeners()
        with pytest.raises(DatabaseError):
            standalone_db.execute(text("UPDATE configuration_snapshots SET yarn_type = 'TAMPERED'"))
        standalone_db.rollback()

        yarn_types = standalone_db.execute(
            text("SELECT DISTINCT yarn_type FROM configuration_snapshots")
        ).scalars().all()
        assert "TAMPERED" not in yarn_types

    def test_raw_delete_rejected_by_database(self, standalone_db):
        unregister_immutability_listeners()
        with pytest.raises(DatabaseError):
            standalone_db.execute(text("DELETE FROM configuration_snapshots"))
        standalone_db.rollback()

        remaining = standalone_db.execute(
            text("SELECT COUNT(*) FROM configuration_snapshots")
        ).scalar_one()
        assert remaining > 0
