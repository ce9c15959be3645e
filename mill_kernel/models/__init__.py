"""SQLAlchemy ORM models for the mill kernel."""

from mill_kernel.models.configuration_snapshot import ConfigurationSnapshot, SnapshotReason
from mill_kernel.models.machine import Machine
from mill_kernel.models.production_entry import (
    SLOT_CONSTRAINT_NAME,
    ProductionEntry,
    Shift,
)

__all__ = [
    "Machine",
    "ConfigurationSnapshot",
    "SnapshotReason",
    "ProductionEntry",
    "Shift",
    "SLOT_CONSTRAINT_NAME",
]
