"""
Concurrent creates against the same production slot.

Two operators submit the same machine, date and shift at the same moment.
Both pass the up-front existence check; the unique constraint on
(unit, machine_number, entry_date, shift) must let exactly one insert
through and the other must come back as DUPLICATE, never as a generic
failure and never as a second row.
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest
from sqlalchemy import func, select

from mill_kernel.domain.clock import DeterministicClock
from mill_kernel.models.production_entry import ProductionEntry
from mill_kernel.services.production_recorder import EntryStatus, ProductionRecorder

pytestmark = [pytest.mark.slow_locks]


def _count_slot(session_factory, shift: str) -> int:
    session = session_factory()
    try:
        return session.execute(
            select(func.count()).select_from(ProductionEntry).where(
                ProductionEntry.unit == 1,
                ProductionEntry.machine_number == 5,
                ProductionEntry.shift == shift,
            )
        ).scalar_one()
    finally:
        session.close()


class TestSlotRace:
    """Exactly one of two simultaneous creators wins."""

    def test_two_single_creates(self, create_machine, session_factory):
        create_machine(unit=1, machine_number=5, rated=400)
        barrier = Barrier(2)

        def submit(actual: str):
            session = session_factory()
            try:
                recorder = ProductionRecorder(session, DeterministicClock())
                barrier.wait()
                return recorder.record_entry(1, 5, "2024-01-10", "day", actual)
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(submit, ["350", "300"]))

        statuses = sorted(r.status.value for r in results)
        assert statuses == [EntryStatus.CREATED.value, EntryStatus.DUPLICATE.value]
        assert _count_slot(session_factory, "day") == 1

        winner = next(r for r in results if r.status == EntryStatus.CREATED)
        loser = next(r for r in results if r.status == EntryStatus.DUPLICATE)
        assert loser.error_code == "DUPLICATE_ENTRY"
        assert winner.entry.actual_production in (Decimal("350"), Decimal("300"))

    def test_paired_against_single(self, create_machine, session_factory):
        create_machine(unit=1, machine_number=5, rated=400)
        barrier = Barrier(2)

        def paired():
            session = session_factory()
            try:
                recorder = ProductionRecorder(session, DeterministicClock())
                barrier.wait()
                return recorder.record_paired(
                    1, 5, "2024-01-10",
                    day={"actual_production": "350"},
                    night={"actual_production": "380"},
                )
            finally:
                session.close()

        def single():
            session = session_factory()
            try:
                recorder = ProductionRecorder(session, DeterministicClock())
                barrier.wait()
                return recorder.record_entry(1, 5, "2024-01-10", "night", "390")
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            paired_future = pool.submit(paired)
            single_future = pool.submit(single)
            paired_result = paired_future.result()
            single_result = single_future.result()

        assert {paired_result.status, single_result.status} == {
            EntryStatus.CREATED,
            EntryStatus.DUPLICATE,
        }
        assert _count_slot(session_factory, "night") == 1
        # The paired write is all or nothing
        expected_day = 1 if paired_result.status == EntryStatus.CREATED else 0
        assert _count_slot(session_factory, "day") == expected_day
