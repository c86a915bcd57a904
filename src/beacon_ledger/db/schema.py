"""Schema creation and append-only trigger wiring for the SQLite backend.

One table holds every record keyed by ``id``; a composite ``(time_us, id)``
index serves the time seeks.  Triggers reject ``UPDATE`` and ``DELETE`` so the
append-only invariant holds for direct SQL writes too, not only for the
ledger's own code paths.  Rolling back an uncommitted insert is unaffected.
"""

from __future__ import annotations

import sqlite3

RECORD_COLUMNS = "id, bits, time_us, hash, signature"

CREATE_RECORDS_TABLE = """
    CREATE TABLE IF NOT EXISTS records (
        id        INTEGER PRIMARY KEY AUTOINCREMENT,
        bits      BLOB    NOT NULL CHECK (length(bits) > 0),
        time_us   INTEGER NOT NULL,
        hash      BLOB    NOT NULL CHECK (length(hash) = 32),
        signature BLOB    NOT NULL CHECK (length(signature) > 0)
    )
"""

CREATE_TIME_INDEX = "CREATE INDEX IF NOT EXISTS idx_records_time_id ON records(time_us, id)"


def create_append_only_triggers(conn: sqlite3.Connection) -> None:
    """Create triggers that abort any mutation of an existing record."""
    conn.execute("""
        CREATE TRIGGER IF NOT EXISTS records_reject_update
        BEFORE UPDATE ON records
        BEGIN
            SELECT RAISE(ABORT, 'records are append-only: update rejected');
        END
    """)
    conn.execute("""
        CREATE TRIGGER IF NOT EXISTS records_reject_delete
        BEFORE DELETE ON records
        BEGIN
            SELECT RAISE(ABORT, 'records are append-only: delete rejected');
        END
    """)


def init_schema(conn: sqlite3.Connection) -> None:
    """Create the records table, time index and triggers if missing."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        conn.execute(CREATE_RECORDS_TABLE)
        conn.execute(CREATE_TIME_INDEX)
        create_append_only_triggers(conn)
    except sqlite3.Error:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")
