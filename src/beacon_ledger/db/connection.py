"""SQLite connection primitives for the record store.

This module owns connection creation and low-level SQLite runtime pragmas so
the store can stay focused on queries and transaction intent.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

MEMORY_PATH = ":memory:"


def configure_connection(connection: sqlite3.Connection, *, in_memory: bool = False) -> sqlite3.Connection:
    """Apply connection-level SQLite pragmas required by the record store.

    Notes:
        - ``busy_timeout`` lets a second writer on the same file wait for the
          first one's short insert transaction instead of failing at once.
        - ``synchronous=FULL`` makes a committed insert durable before
          ``COMMIT`` returns.
        - WAL lets readers proceed while an insert transaction is open.  It
          does not apply to in-memory databases.
    """
    connection.execute("PRAGMA busy_timeout = 5000")
    connection.execute("PRAGMA synchronous = FULL")
    if not in_memory:
        connection.execute("PRAGMA journal_mode = WAL")
    return connection


def get_connection(path: str | Path) -> sqlite3.Connection:
    """Create and configure a connection shared by all threads of one store.

    ``isolation_level=None`` puts the driver in autocommit mode; the store
    issues ``BEGIN IMMEDIATE`` / ``COMMIT`` / ``ROLLBACK`` itself.
    """
    location = str(path)
    in_memory = location == MEMORY_PATH
    if not in_memory:
        Path(location).parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(
        location,
        isolation_level=None,
        check_same_thread=False,
        timeout=5.0,
    )
    return configure_connection(connection, in_memory=in_memory)
