"""
Module: fuel_kernel.db.triggers
Responsibility: Installing, removing and verifying the PostgreSQL triggers
    that keep ledger entries append-only.  Database-level complement to the
    ORM listeners in db/immutability.py.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    selectors/, domain/.

Invariants enforced:
    - ledger_entries rows: no UPDATE, no DELETE, even through raw SQL.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on violation (surfaced by SQLAlchemy as
      InternalError / DBAPIError).
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

ALL_TRIGGER_NAMES = [
    "trg_ledger_entry_immutability_update",
    "trg_ledger_entry_immutability_delete",
]

_INSTALL_SQL = """
CREATE OR REPLACE FUNCTION prevent_ledger_entry_mutation()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: ledger entry % cannot be %ed',
        OLD.id, lower(TG_OP);
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS trg_ledger_entry_immutability_update ON ledger_entries;
CREATE TRIGGER trg_ledger_entry_immutability_update
    BEFORE UPDATE ON ledger_entries
    FOR EACH ROW EXECUTE FUNCTION prevent_ledger_entry_mutation();

DROP TRIGGER IF EXISTS trg_ledger_entry_immutability_delete ON ledger_entries;
CREATE TRIGGER trg_ledger_entry_immutability_delete
    BEFORE DELETE ON ledger_entries
    FOR EACH ROW EXECUTE FUNCTION prevent_ledger_entry_mutation();
"""

_DROP_SQL = """
DROP TRIGGER IF EXISTS trg_ledger_entry_immutability_update ON ledger_entries;
DROP TRIGGER IF EXISTS trg_ledger_entry_immutability_delete ON ledger_entries;
DROP FUNCTION IF EXISTS prevent_ledger_entry_mutation();
"""


def install_immutability_triggers(engine: Engine) -> None:
    """Install the ledger entry triggers (idempotent)."""
    with engine.connect() as conn:
        conn.execute(text(_INSTALL_SQL))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove the ledger entry triggers.

    WARNING: Only for migrations and test teardown.  Re-install immediately.
    """
    with engine.connect() as conn:
        conn.execute(text(_DROP_SQL))
        conn.commit()


def triggers_installed(engine: Engine) -> bool:
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    check_sql = f"SELECT COUNT(*) FROM pg_trigger WHERE tgname IN ({trigger_list});"

    with engine.connect() as conn:
        result = conn.execute(text(check_sql)).scalar()
        return result == len(ALL_TRIGGER_NAMES)
