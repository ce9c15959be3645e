"""
Module: mill_kernel.db.triggers
Responsibility: Installing and verifying the database-level append-only
    triggers on configuration_snapshots.  This is the database complement
    to the ORM-level listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    ConfigurationSnapshot rows: no UPDATE, no DELETE, whatever path the
    statement takes (raw SQL, bulk operations, another client).

Failure modes:
    - PostgreSQL RAISE EXCEPTION / SQLite RAISE(ABORT) on a violation,
      surfaced by SQLAlchemy as a DatabaseError subclass.
    - Dialects other than PostgreSQL and SQLite get no triggers; the ORM
      listeners still apply.
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

from mill_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

SNAPSHOT_TABLE = "configuration_snapshots"

ALL_TRIGGER_NAMES = (
    "trg_configuration_snapshot_no_update",
    "trg_configuration_snapshot_no_delete",
)

_POSTGRES_INSTALL = (
    """
    CREATE OR REPLACE FUNCTION prevent_configuration_snapshot_mutation()
    RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION 'configuration snapshots are append-only';
    END;
    $$ LANGUAGE plpgsql
    """,
    f"DROP TRIGGER IF EXISTS trg_configuration_snapshot_no_update ON {SNAPSHOT_TABLE}",
    f"""
    CREATE TRIGGER trg_configuration_snapshot_no_update
    BEFORE UPDATE ON {SNAPSHOT_TABLE}
    FOR EACH ROW EXECUTE FUNCTION prevent_configuration_snapshot_mutation()
    """,
    f"DROP TRIGGER IF EXISTS trg_configuration_snapshot_no_delete ON {SNAPSHOT_TABLE}",
    f"""
    CREATE TRIGGER trg_configuration_snapshot_no_delete
    BEFORE DELETE ON {SNAPSHOT_TABLE}
    FOR EACH ROW EXECUTE FUNCTION prevent_configuration_snapshot_mutation()
    """,
)

_SQLITE_INSTALL = (
    f"""
    CREATE TRIGGER IF NOT EXISTS trg_configuration_snapshot_no_update
    BEFORE UPDATE ON {SNAPSHOT_TABLE}
    BEGIN
        SELECT RAISE(ABORT, 'configuration snapshots are append-only');
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS trg_configuration_snapshot_no_delete
    BEFORE DELETE ON {SNAPSHOT_TABLE}
    BEGIN
        SELECT RAISE(ABORT, 'configuration snapshots cannot be deleted');
    END
    """,
)

_INSTALL_SQL = {
    "postgresql": _POSTGRES_INSTALL,
    "sqlite": _SQLITE_INSTALL,
}


def install_immutability_triggers(engine: Engine) -> bool:
    """
    Install the append-only triggers on configuration_snapshots.

    Preconditions: Tables must exist (call after Base.metadata.create_all).
    Postconditions: Both triggers in ALL_TRIGGER_NAMES exist on PostgreSQL
        and SQLite.  Idempotent.

    Returns:
        True if the dialect is supported and the triggers were installed.
    """
    statements = _INSTALL_SQL.get(engine.dialect.name)
    if statements is None:
        logger.warning(
            "immutability_triggers_unsupported",
            extra={"dialect": engine.dialect.name},
        )
        return False

    with engine.connect() as conn:
        for statement in statements:
            conn.execute(text(statement))
        conn.commit()

    logger.info(
        "immutability_triggers_installed",
        extra={"dialect": engine.dialect.name, "triggers": list(ALL_TRIGGER_NAMES)},
    )
    return True


def get_installed_triggers(engine: Engine) -> list[str]:
    """Names from ALL_TRIGGER_NAMES that currently exist in the database."""
    if engine.dialect.name == "postgresql":
        query = text("SELECT tgname FROM pg_trigger WHERE NOT tgisinternal")
    elif engine.dialect.name == "sqlite":
        query = text("SELECT name FROM sqlite_master WHERE type = 'trigger'")
    else:
        return []

    with engine.connect() as conn:
        present = {row[0] for row in conn.execute(query)}
    return [name for name in ALL_TRIGGER_NAMES if name in present]


def triggers_installed(engine: Engine) -> bool:
    """Check if all append-only triggers are installed."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
