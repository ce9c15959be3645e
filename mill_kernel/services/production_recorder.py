"""
Production Recorder - transaction boundary for production entry writes.

Ties together:
- ProductionEntryService: parsing, uniqueness, efficiency, persistence
- ConfigurationHistoryService: configuration capture on production

Every operation defines its own transaction: commit on success, rollback on
any failure, so a paired or batch write is never partially applied.
Domain failures come back as a typed EntryResult instead of an exception,
letting callers tell "slot taken, offer an edit" apart from "machine not
found" and from a generic storage failure.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID
from uuid import uuid4 as _uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mill_kernel.domain.clock import Clock, SystemClock
from mill_kernel.domain.dtos import EntryRecord
from mill_kernel.domain.parsing import DEFAULT_UNITS
from mill_kernel.exceptions import (
    DuplicateEntryError,
    EmptySubmissionError,
    EntryNotFoundError,
    MachineNotFoundError,
    MillKernelError,
    ValidationError,
)
from mill_kernel.logging_config import LogContext, get_logger
from mill_kernel.services.configuration_history_service import (
    ConfigurationHistoryService,
)
from mill_kernel.services.production_entry_service import (
    ProductionEntryService,
    ShiftInput,
    ShiftWrite,
)

logger = get_logger("services.production_recorder")


class EntryStatus(str, Enum):
    """Outcome of a production entry operation."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    DUPLICATE = "duplicate"
    MACHINE_NOT_FOUND = "machine_not_found"
    ENTRY_NOT_FOUND = "entry_not_found"
    EMPTY_SUBMISSION = "empty_submission"
    VALIDATION_FAILED = "validation_failed"
    FAILED = "failed"


_SUCCESS = frozenset({EntryStatus.CREATED, EntryStatus.UPDATED, EntryStatus.DELETED})

# Most specific first
_STATUS_BY_ERROR: tuple[tuple[type[MillKernelError], EntryStatus], ...] = (
    (DuplicateEntryError, EntryStatus.DUPLICATE),
    (MachineNotFoundError, EntryStatus.MACHINE_NOT_FOUND),
    (EntryNotFoundError, EntryStatus.ENTRY_NOT_FOUND),
    (EmptySubmissionError, EntryStatus.EMPTY_SUBMISSION),
    (ValidationError, EntryStatus.VALIDATION_FAILED),
)


@dataclass(frozen=True)
class EntryResult:
    """Result of a production entry operation."""

    status: EntryStatus
    entries: tuple[EntryRecord, ...] = ()
    writes: tuple[ShiftWrite, ...] = ()
    deleted_count: int = 0
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status in _SUCCESS

    @property
    def entry(self) -> EntryRecord | None:
        """The single entry of a one-record operation."""
        return self.entries[0] if self.entries else None


class ProductionRecorder:
    """
    Runs production entry operations inside their own transaction.

    Set auto_commit=False to delegate commit/rollback to the caller (for
    composing with other work in one transaction, or for tests).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        units: tuple[int, ...] = DEFAULT_UNITS,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._history = ConfigurationHistoryService(session, self._clock)
        self._entries = ProductionEntryService(
            session, self._clock, units=units, history=self._history
        )

    def _run(
        self,
        operation: str,
        action: Callable[[], EntryResult],
        actor_id: UUID | None = None,
        **context: Any,
    ) -> EntryResult:
        correlation_id = str(_uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=actor_id,
            unit=context.get("unit"),
            machine_number=context.get("machine_number"),
            entry_id=context.get("entry_id"),
        ):
            logger.info("entry_operation_started", extra={"operation": operation})
            t0 = time.monotonic()
            try:
                result = action()
                if self._auto_commit:
                    self._session.commit()
            except MillKernelError as exc:
                if self._auto_commit:
                    self._session.rollback()
                status = next(
                    (s for err, s in _STATUS_BY_ERROR if isinstance(exc, err)),
                    EntryStatus.FAILED,
                )
                result = EntryResult(status=status, error_code=exc.code, message=str(exc))
            except SQLAlchemyError as exc:
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    "entry_operation_storage_failure",
                    extra={"operation": operation},
                    exc_info=True,
                )
                result = EntryResult(
                    status=EntryStatus.FAILED,
                    error_code="STORAGE_FAILURE",
                    message=str(exc.__class__.__name__),
                )
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.error("entry_operation_failed", extra={"operation": operation}, exc_info=True)
                raise

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(
                "entry_operation_completed",
                extra={
                    "operation": operation,
                    "status": result.status.value,
                    "duration_ms": duration_ms,
                    "entry_count": len(result.entries),
                },
            )
            return result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def record_entry(
        self,
        unit: Any,
        machine_number: Any,
        entry_date: Any,
        shift: Any,
        actual_production: Any,
        actor_id: UUID | None = None,
        **metadata: Any,
    ) -> EntryResult:
        """Create a single shift entry. See ProductionEntryService.create_entry."""

        def action() -> EntryResult:
            record = self._entries.create_entry(
                unit, machine_number, entry_date, shift, actual_production,
                actor_id=actor_id, **metadata,
            )
            return EntryResult(status=EntryStatus.CREATED, entries=(record,))

        return self._run(
            "record_entry", action, actor_id,
            unit=unit, machine_number=machine_number,
        )

    def record_paired(
        self,
        unit: Any,
        machine_number: Any,
        entry_date: Any,
        day: ShiftInput = None,
        night: ShiftInput = None,
        actor_id: UUID | None = None,
    ) -> EntryResult:
        """Create day and night entries atomically."""

        def action() -> EntryResult:
            records = self._entries.create_paired_entry(
                unit, machine_number, entry_date, day=day, night=night, actor_id=actor_id,
            )
            return EntryResult(status=EntryStatus.CREATED, entries=records)

        return self._run(
            "record_paired", action, actor_id,
            unit=unit, machine_number=machine_number,
        )

    def upsert_shift_pair(
        self,
        unit: Any,
        machine_number: Any,
        entry_date: Any,
        day: ShiftInput = None,
        night: ShiftInput = None,
        actor_id: UUID | None = None,
    ) -> EntryResult:
        """Update existing shifts and create missing positive ones atomically."""

        def action() -> EntryResult:
            writes = self._entries.batch_upsert_shift_pair(
                unit, machine_number, entry_date, day=day, night=night, actor_id=actor_id,
            )
            records = tuple(w.entry for w in writes if w.entry is not None)
            status = (
                EntryStatus.CREATED
                if any(w.action == "created" for w in writes)
                else EntryStatus.UPDATED
            )
            return EntryResult(status=status, entries=records, writes=writes)

        return self._run(
            "upsert_shift_pair", action, actor_id,
            unit=unit, machine_number=machine_number,
        )

    def update_entry(
        self,
        entry_id: UUID,
        actor_id: UUID | None = None,
        **fields: Any,
    ) -> EntryResult:
        """Change an entry and recompute its efficiency."""

        def action() -> EntryResult:
            record = self._entries.update_entry(entry_id, actor_id=actor_id, **fields)
            return EntryResult(status=EntryStatus.UPDATED, entries=(record,))

        return self._run("update_entry", action, actor_id, entry_id=entry_id)

    def delete_entry(self, entry_id: UUID, actor_id: UUID | None = None) -> EntryResult:
        def action() -> EntryResult:
            self._entries.delete_entry(entry_id)
            return EntryResult(status=EntryStatus.DELETED, deleted_count=1)

        return self._run("delete_entry", action, actor_id, entry_id=entry_id)

    def delete_shift_pair(
        self,
        unit: Any,
        machine_number: Any,
        entry_date: Any,
        actor_id: UUID | None = None,
    ) -> EntryResult:
        def action() -> EntryResult:
            count = self._entries.delete_shift_pair(unit, machine_number, entry_date)
            return EntryResult(status=EntryStatus.DELETED, deleted_count=count)

        return self._run(
            "delete_shift_pair", action, actor_id,
            unit=unit, machine_number=machine_number,
        )
