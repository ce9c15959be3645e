"""
Typed exception hierarchy for the mill production kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Shift production is entered by operators from the floor. The callers (an
HTTP layer, a CLI, a batch import) must tell apart "this slot already has a
figure, offer an edit instead" from "that machine does not exist" from
"the number you typed is not a number". Parsing error messages for that
is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (unit, machine_number, shift, ...)

Example:
    try:
        service.create_entry(unit=1, machine_number=5, ...)
    except DuplicateEntryError as e:
        api_response(code=e.code, shift=e.shift, entry_date=e.entry_date)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MillKernelError (base)
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- InvalidFieldError
    |   +-- InvalidQuantityError
    |   +-- InvalidShiftError
    |   +-- InvalidUnitError
    |   +-- EmptySubmissionError
    |
    +-- ConflictError
    |   +-- DuplicateEntryError
    |   +-- DuplicateMachineError
    |   +-- MachineReferencedError
    |
    +-- NotFoundError
    |   +-- MachineNotFoundError
    |   +-- EntryNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                    | When Raised
----------------|-------------------------|---------------------------------------
Validation      | MISSING_FIELD           | Required input absent
                | INVALID_FIELD           | Input present but malformed
                | INVALID_QUANTITY        | Non-numeric / negative / NaN figure
                | INVALID_SHIFT           | Shift not "day" or "night"
                | INVALID_UNIT            | Unit not a configured production unit
                | EMPTY_SUBMISSION        | Paired write with no positive shift
----------------|-------------------------|---------------------------------------
Conflict        | DUPLICATE_ENTRY         | (unit, machine, date, shift) occupied
                | DUPLICATE_MACHINE       | (unit, machine_number) occupied
                | MACHINE_REFERENCED      | Machine has entries, cannot delete
----------------|-------------------------|---------------------------------------
Not found       | MACHINE_NOT_FOUND       | No machine for unit/number or id
                | ENTRY_NOT_FOUND         | No production entry with that id
----------------|-------------------------|---------------------------------------
Immutability    | IMMUTABILITY_VIOLATION  | Update/delete of a config snapshot
"""

from datetime import date


class MillKernelError(Exception):
    """
    Base exception for all mill kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MILL_KERNEL_ERROR"


# Validation exceptions


class ValidationError(MillKernelError):
    """Base exception for rejected input. Nothing is written."""

    code: str = "VALIDATION_ERROR"


class MissingFieldError(ValidationError):
    """A required field was not supplied."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}")


class InvalidFieldError(ValidationError):
    """A field was supplied but could not be interpreted."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {value!r} ({reason})")


class InvalidQuantityError(ValidationError):
    """
    A numeric production / configuration figure was unparseable.

    Unparseable input is never coerced to zero.
    """

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid quantity for {field}: {value!r} ({reason})")


class InvalidShiftError(ValidationError):
    """Shift must be one of day / night."""

    code: str = "INVALID_SHIFT"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid shift: {value!r} (expected 'day' or 'night')")


class InvalidUnitError(ValidationError):
    """Unit is not one of the configured production units."""

    code: str = "INVALID_UNIT"

    def __init__(self, value: object, allowed: tuple[int, ...] = ()):
        self.value = value
        self.allowed = allowed
        super().__init__(f"Invalid unit: {value!r} (allowed: {list(allowed)})")


class EmptySubmissionError(ValidationError):
    """A paired submission had no shift with production greater than zero."""

    code: str = "EMPTY_SUBMISSION"

    def __init__(self, unit: int, machine_number: int, entry_date: date):
        self.unit = unit
        self.machine_number = machine_number
        self.entry_date = entry_date
        super().__init__(
            f"At least one shift must have production greater than 0 "
            f"(unit {unit}, machine {machine_number}, {entry_date})"
        )


# Conflict exceptions


class ConflictError(MillKernelError):
    """Base exception for writes that clash with existing data."""

    code: str = "CONFLICT"


class DuplicateEntryError(ConflictError):
    """
    A production entry already exists for the slot.

    Callers are expected to offer "edit existing" instead of retrying.
    """

    code: str = "DUPLICATE_ENTRY"

    def __init__(
        self,
        unit: int,
        machine_number: int,
        entry_date: date,
        shift: str,
    ):
        self.unit = unit
        self.machine_number = machine_number
        self.entry_date = entry_date
        self.shift = shift
        super().__init__(
            f"Production entry already exists for unit {unit}, "
            f"machine {machine_number}, {entry_date}, {shift} shift"
        )


class DuplicateMachineError(ConflictError):
    """Machine number is already in use within the unit."""

    code: str = "DUPLICATE_MACHINE"

    def __init__(self, unit: int, machine_number: int):
        self.unit = unit
        self.machine_number = machine_number
        super().__init__(
            f"Machine {machine_number} already exists in unit {unit}"
        )


class MachineReferencedError(ConflictError):
    """Machine cannot be deleted while production entries reference it."""

    code: str = "MACHINE_REFERENCED"

    def __init__(self, machine_id: str, entry_count: int):
        self.machine_id = machine_id
        self.entry_count = entry_count
        super().__init__(
            f"Machine {machine_id} cannot be deleted: "
            f"referenced by {entry_count} production record(s)"
        )


# Not-found exceptions


class NotFoundError(MillKernelError):
    """Base exception for missing records. Never creates placeholders."""

    code: str = "NOT_FOUND"


class MachineNotFoundError(NotFoundError):
    """No machine for the given id, or (unit, machine_number)."""

    code: str = "MACHINE_NOT_FOUND"

    def __init__(
        self,
        unit: int | None = None,
        machine_number: int | None = None,
        machine_id: str | None = None,
    ):
        self.unit = unit
        self.machine_number = machine_number
        self.machine_id = machine_id
        if machine_id is not None:
            msg = f"Machine not found: {machine_id}"
        else:
            msg = f"Machine {machine_number} not found in unit {unit}"
        super().__init__(msg)


class EntryNotFoundError(NotFoundError):
    """Production entry with the given id does not exist."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Production entry not found: {entry_id}")


# Immutability exceptions


class ImmutabilityError(MillKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Configuration snapshots are append-only once written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
