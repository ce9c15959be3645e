"""
Mill Kernel - shift production tracking for ASU spinning units.

- Machine registry with live configuration per unit
- Append-only configuration history
- One production entry per (unit, machine, date, shift)
- Atomic paired and batch shift writes
- Efficiency derived at write time
"""

__version__ = "0.1.0"
