"""Kernel services (write side). Flush-only except ProductionRecorder."""

from mill_kernel.services.configuration_history_service import ConfigurationHistoryService
from mill_kernel.services.machine_service import MachineService
from mill_kernel.services.production_entry_service import ProductionEntryService, ShiftWrite
from mill_kernel.services.production_recorder import (
    EntryResult,
    EntryStatus,
    ProductionRecorder,
)

__all__ = [
    "ConfigurationHistoryService",
    "MachineService",
    "ProductionEntryService",
    "ShiftWrite",
    "ProductionRecorder",
    "EntryResult",
    "EntryStatus",
]
