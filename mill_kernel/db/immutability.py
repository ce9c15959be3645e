"""
ORM-level immutability enforcement for configuration history.

===============================================================================
WHY THIS EXISTS
===============================================================================

Configuration snapshots are the record of how a machine was set up when a
given shift ran.  Reports read historical production against them, so a
snapshot, once written, must never change.  Corrections are made by
appending a new snapshot, never by editing an old one.

SQLAlchemy fires mapper events before UPDATE/DELETE statements are sent:

    session.flush()
         |
         v
    [before_update] --> _check_snapshot_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_snapshot_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
USAGE
===============================================================================

create_tables() registers the listeners and installs the matching
database triggers (db/triggers.py).  Processes that open an existing
database without creating tables register them at startup:

    from mill_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from mill_kernel.exceptions import ImmutabilityViolationError
from mill_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_snapshot_immutability(mapper, connection, target):
    """Prevent any updates to ConfigurationSnapshot records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "ConfigurationSnapshot",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="ConfigurationSnapshot",
        entity_id=str(target.id),
        reason="Configuration snapshots are append-only and cannot be modified",
    )


def _check_snapshot_delete(mapper, connection, target):
    """Prevent deletion of ConfigurationSnapshot records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "ConfigurationSnapshot",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="ConfigurationSnapshot",
        entity_id=str(target.id),
        reason="Configuration snapshots cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once.
    """
    from mill_kernel.models.configuration_snapshot import ConfigurationSnapshot

    if not event.contains(ConfigurationSnapshot, "before_update", _check_snapshot_immutability):
        event.listen(ConfigurationSnapshot, "before_update", _check_snapshot_immutability)
    if not event.contains(ConfigurationSnapshot, "before_delete", _check_snapshot_delete):
        event.listen(ConfigurationSnapshot, "before_delete", _check_snapshot_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate immutability
    rules to verify detection.
    """
    from mill_kernel.models.configuration_snapshot import ConfigurationSnapshot

    _safe_remove_listener(ConfigurationSnapshot, "before_update", _check_snapshot_immutability)
    _safe_remove_listener(ConfigurationSnapshot, "before_delete", _check_snapshot_delete)
