"""
Tests for ProductionRecorder.

The recorder owns the transaction: success commits, any failure rolls
back so nothing is partially applied, and domain failures come back as a
typed status instead of an exception.

Covers:
- The day/night scenario on a 400-rated machine
- Duplicate resubmission leaves the stored figure untouched
- Update recomputes efficiency and the daily total
- Rollback of a batch upsert that fails half way
- Status mapping and structured logs
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from mill_kernel.db.engine import get_session
from mill_kernel.selectors.production_selector import ProductionSelector
from mill_kernel.services.production_recorder import (
    EntryResult,
    EntryStatus,
    ProductionRecorder,
)


@pytest.fixture
def machine(create_machine):
    """Machine 5 of unit 1, rated 400."""
    return create_machine(unit=1, machine_number=5, rated=400)


def committed_entries(unit=1, machine_number=5):
    """Read entries through a fresh session so only committed rows are seen."""
    fresh = get_session()
    try:
        return ProductionSelector(fresh).entries_in_range(unit, machine_number)
    finally:
        fresh.close()


class TestPairedShiftScenario:
    """Machine 5, unit 1, rated 400, day 350 and night 380 on 2024-01-10."""

    def test_paired_create(self, recorder, machine, session, test_actor_id):
        result = recorder.record_paired(
            1, 5, "2024-01-10",
            day={"actual_production": "350"},
            night={"actual_production": "380"},
            actor_id=test_actor_id,
        )

        assert result.is_success
        assert result.status == EntryStatus.CREATED
        assert [e.efficiency for e in result.entries] == [Decimal("87.5"), Decimal("95.0")]

        report = ProductionSelector(session).daily_yarn_report(1, "2024-01-10", "2024-01-10")
        assert report.grand_total == Decimal("730")
        assert round(report.average_efficiency, 2) == Decimal("91.40")

    def test_resubmit_is_duplicate_and_keeps_original(self, recorder, machine):
        recorder.record_paired(
            1, 5, "2024-01-10",
            day={"actual_production": "350"},
            night={"actual_production": "380"},
        )

        result = recorder.record_entry(1, 5, "2024-01-10", "day", "300")

        assert not result.is_success
        assert result.status == EntryStatus.DUPLICATE
        assert result.error_code == "DUPLICATE_ENTRY"
        assert result.entry is None
        day = [e for e in committed_entries() if e.shift == "day"]
        assert [e.actual_production for e in day] == [Decimal("350")]

    def test_update_recomputes_and_moves_total(self, recorder, machine, session):
        created = recorder.record_paired(
            1, 5, "2024-01-10",
            day={"actual_production": "350"},
            night={"actual_production": "380"},
        )
        day_id = created.entries[0].id

        result = recorder.update_entry(day_id, actual_production="360")

        assert result.status == EntryStatus.UPDATED
        assert result.entry.efficiency == Decimal("90")
        report = ProductionSelector(session).daily_yarn_report(1, "2024-01-10", "2024-01-10")
        assert report.grand_total == Decimal("740")


class TestAtomicity:
    """Nothing is committed when an operation fails."""

    def test_paired_with_existing_shift_writes_neither(self, recorder, machine):
        recorder.record_entry(1, 5, "2024-01-10", "night", "380")

        result = recorder.record_paired(
            1, 5, "2024-01-10",
            day={"actual_production": "350"},
            night={"actual_production": "390"},
        )

        assert result.status == EntryStatus.DUPLICATE
        assert [(e.shift, e.actual_production) for e in committed_entries()] == [
            ("night", Decimal("380")),
        ]

    def test_failed_upsert_rolls_back_earlier_shift(self, recorder, machine):
        recorder.record_entry(1, 5, "2024-01-10", "day", "350")

        result = recorder.upsert_shift_pair(
            1, 5, "2024-01-10",
            day={"actual_production": "360"},
            night={"actual_production": "not a number"},
        )

        assert result.status == EntryStatus.VALIDATION_FAILED
        assert result.error_code == "INVALID_QUANTITY"
        assert [(e.shift, e.actual_production) for e in committed_entries()] == [
            ("day", Decimal("350")),
        ]

    def test_session_usable_after_failure(self, recorder, machine):
        recorder.record_entry(1, 5, "2024-01-10", "day", "350")
        assert recorder.record_entry(1, 5, "2024-01-10", "day", "1").status == EntryStatus.DUPLICATE
        assert recorder.record_entry(1, 5, "2024-01-10", "night", "380").status == EntryStatus.CREATED


class TestStatusMapping:
    """Typed outcomes."""

    def test_machine_not_found(self, recorder):
        result = recorder.record_entry(1, 42, "2024-01-10", "day", "350")
        assert result.status == EntryStatus.MACHINE_NOT_FOUND
        assert result.error_code == "MACHINE_NOT_FOUND"

    def test_entry_not_found(self, recorder):
        result = recorder.update_entry(uuid4(), actual_production="1")
        assert result.status == EntryStatus.ENTRY_NOT_FOUND

    def test_empty_submission(self, recorder, machine):
        result = recorder.record_paired(1, 5, "2024-01-10", day={"actual_production": "0"})
        assert result.status == EntryStatus.EMPTY_SUBMISSION
        assert result.message.startswith("At least one shift must have production greater than 0")

    def test_validation_failed(self, recorder, machine):
        result = recorder.record_entry(1, 5, "2024-01-10", "evening", "350")
        assert result.status == EntryStatus.VALIDATION_FAILED
        assert result.error_code == "INVALID_SHIFT"

    def test_upsert_status(self, recorder, machine):
        created = recorder.upsert_shift_pair(1, 5, "2024-01-10", day={"actual_production": "350"})
        updated = recorder.upsert_shift_pair(1, 5, "2024-01-10", day={"actual_production": "355"})

        assert created.status == EntryStatus.CREATED
        assert [w.action for w in created.writes] == ["created", "skipped"]
        assert updated.status == EntryStatus.UPDATED
        assert updated.entry.actual_production == Decimal("355")

    def test_delete_entry(self, recorder, machine):
        created = recorder.record_entry(1, 5, "2024-01-10", "day", "350")
        result = recorder.delete_entry(created.entry.id)
        assert result.status == EntryStatus.DELETED
        assert result.deleted_count == 1
        assert committed_entries() == []

    def test_delete_shift_pair(self, recorder, machine):
        recorder.record_paired(
            1, 5, date(2024, 1, 10),
            day={"actual_production": "350"},
            night={"actual_production": "380"},
        )
        result = recorder.delete_shift_pair(1, 5, date(2024, 1, 10))
        assert result.status == EntryStatus.DELETED
        assert result.deleted_count == 2

    def test_result_defaults(self):
        result = EntryResult(status=EntryStatus.FAILED)
        assert not result.is_success
        assert result.entry is None


class TestRecorderLogging:
    """Operations are bracketed by structured log records."""

    def test_started_and_completed(self, recorder, machine, captured_logs):
        recorder.record_entry(1, 5, "2024-01-10", "day", "350")

        logs = captured_logs()
        started = [r for r in logs if r["message"] == "entry_operation_started"]
        completed = [r for r in logs if r["message"] == "entry_operation_completed"]
        assert len(started) == 1
        assert len(completed) == 1
        assert completed[0]["status"] == "created"
        assert completed[0]["operation"] == "record_entry"
        assert "duration_ms" in completed[0]
        assert completed[0]["correlation_id"] == started[0]["correlation_id"]
        assert completed[0]["unit"] == "1"

    def test_correlation_id_on_inner_records(self, recorder, machine, captured_logs):
        recorder.record_entry(1, 5, "2024-01-10", "day", "350")

        created = [r for r in captured_logs() if r["message"] == "entry_created"]
        assert created and "correlation_id" in created[0]

    def test_manual_commit_mode(self, session, deterministic_clock, machine):
        recorder = ProductionRecorder(session, deterministic_clock, auto_commit=False)
        result = recorder.record_entry(1, 5, "2024-01-10", "day", "350")
        assert result.is_success
        assert committed_entries() == []
        session.commit()
        assert len(committed_entries()) == 1
