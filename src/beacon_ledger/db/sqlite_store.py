"""SQLite-backed record store.

One connection is shared by every thread using the store and guarded by a
re-entrant lock held for a single query or a single insert transaction.
Several stores (or processes) may open the same file; SQLite's own locking
then serialises their insert transactions and the ledger's post-insert id
check detects any interleaving.

Id assignment
-------------
``id`` is ``INTEGER PRIMARY KEY AUTOINCREMENT``.  Inside ``BEGIN IMMEDIATE``
the assigned id is ``max(id) + 1`` over committed rows, and a rolled back
insert also rolls back the ``sqlite_sequence`` bump, so ids stay gapless as
long as rows are never deleted (the schema triggers forbid that).
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from beacon_ledger.core.records import Record, RecordDraft, from_epoch_micros, to_epoch_micros
from beacon_ledger.db.connection import get_connection
from beacon_ledger.db.schema import RECORD_COLUMNS, init_schema
from beacon_ledger.errors import (
    StorageOperationContext,
    StorageReadError,
    StorageWriteError,
)

logger = logging.getLogger(__name__)

# Largest value SQLite can bind as an INTEGER.
MAX_ROWID = 2**63 - 1


def _row_to_record(row: tuple | None) -> Record | None:
    if row is None:
        return None
    record_id, bits, time_us, digest, signature = row
    return Record(
        id=int(record_id),
        bits=bytes(bits),
        time=from_epoch_micros(time_us),
        hash=bytes(digest),
        signature=bytes(signature),
    )


class SQLiteRecordStore:
    """Record store on a single SQLite database file (or ``":memory:"``)."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        self._lock = threading.RLock()
        try:
            self._conn = get_connection(self.path)
            init_schema(self._conn)
        except (sqlite3.Error, OSError) as exc:
            raise StorageWriteError(
                context=StorageOperationContext("sqlite.open", details=self.path),
                cause=exc,
            ) from exc

    def __repr__(self) -> str:
        return f"SQLiteRecordStore({self.path!r})"

    # -- reads ---------------------------------------------------------------

    def _query_one(self, operation: str, sql: str, params: tuple = ()) -> Record | None:
        with self._lock:
            try:
                row = self._conn.execute(sql, params).fetchone()
            except sqlite3.Error as exc:
                raise StorageReadError(
                    context=StorageOperationContext(operation, details=str(exc)),
                    cause=exc,
                ) from exc
        return _row_to_record(row)

    def get_max(self) -> Record | None:
        return self._query_one(
            "sqlite.get_max",
            f"SELECT {RECORD_COLUMNS} FROM records ORDER BY id DESC LIMIT 1",
        )

    def get_by_id(self, record_id: int) -> Record | None:
        if record_id > MAX_ROWID:
            return None
        return self._query_one(
            "sqlite.get_by_id",
            f"SELECT {RECORD_COLUMNS} FROM records WHERE id = ? LIMIT 1",
            (record_id,),
        )

    def seek_time_ge(self, moment: datetime) -> Record | None:
        return self._query_one(
            "sqlite.seek_time_ge",
            f"""
            SELECT {RECORD_COLUMNS} FROM records
            WHERE time_us >= ?
            ORDER BY time_us ASC, id ASC
            LIMIT 1
            """,
            (to_epoch_micros(moment),),
        )

    def seek_time_le(self, moment: datetime) -> Record | None:
        return self._query_one(
            "sqlite.seek_time_le",
            f"""
            SELECT {RECORD_COLUMNS} FROM records
            WHERE time_us <= ?
            ORDER BY time_us DESC, id DESC
            LIMIT 1
            """,
            (to_epoch_micros(moment),),
        )

    # -- writes --------------------------------------------------------------

    def _rollback(self) -> None:
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error as exc:
            raise StorageWriteError(
                context=StorageOperationContext("sqlite.rollback", details=str(exc)),
                cause=exc,
            ) from exc

    @contextmanager
    def insert(self, draft: RecordDraft) -> Iterator[int]:
        """Insert ``draft`` inside ``BEGIN IMMEDIATE`` and yield its id.

        The transaction commits when the caller's block finishes and rolls back
        when it raises.
        """
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StorageWriteError(
                    context=StorageOperationContext("sqlite.begin", details=str(exc)),
                    cause=exc,
                ) from exc

            try:
                cursor = self._conn.execute(
                    "INSERT INTO records (bits, time_us, hash, signature) VALUES (?, ?, ?, ?)",
                    (draft.bits, draft.time_us, draft.hash, draft.signature),
                )
                record_id = cursor.lastrowid
                if record_id is None:
                    raise sqlite3.DatabaseError("insert did not report a rowid")
            except sqlite3.Error as exc:
                if self._conn.in_transaction:
                    self._rollback()
                raise StorageWriteError(
                    context=StorageOperationContext("sqlite.insert", details=str(exc)),
                    cause=exc,
                ) from exc

            try:
                yield int(record_id)
            except BaseException:
                logger.debug("Rolling back insert of record id %s", record_id)
                self._rollback()
                raise

            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                if self._conn.in_transaction:
                    self._rollback()
                raise StorageWriteError(
                    context=StorageOperationContext("sqlite.commit", details=str(exc)),
                    cause=exc,
                ) from exc

    def close(self) -> None:
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error as exc:
                raise StorageWriteError(
                    context=StorageOperationContext("sqlite.close", details=str(exc)),
                    cause=exc,
                ) from exc
