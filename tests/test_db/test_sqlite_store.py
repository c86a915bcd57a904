"""Tests specific to the SQLite record store (beacon_ledger/db/sqlite_store.py)."""

import sqlite3
from datetime import timedelta

import pytest

from beacon_ledger.core.records import RecordDraft
from beacon_ledger.db import SQLiteRecordStore
from beacon_ledger.db.connection import get_connection
from beacon_ledger.db.schema import init_schema
from beacon_ledger.db.sqlite_store import MAX_ROWID
from beacon_ledger.errors import StorageWriteError
from tests.constants import T0


def _draft(seconds: float = 0) -> RecordDraft:
    return RecordDraft(
        bits=b"\x01" * 32,
        time=T0 + timedelta(seconds=seconds),
        hash=b"\x02" * 32,
        signature=b"\x03" * 64,
    )


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "nested" / "beacon.db"


@pytest.mark.db
def test_creates_parent_directory_and_persists(db_path):
    store = SQLiteRecordStore(db_path)
    with store.insert(_draft()):
        pass
    store.close()

    reopened = SQLiteRecordStore(db_path)
    try:
        record = reopened.get_max()
        assert record.id == 1
        assert record.time == T0
    finally:
        reopened.close()


@pytest.mark.db
def test_rows_cannot_be_updated_or_deleted(db_path):
    store = SQLiteRecordStore(db_path)
    with store.insert(_draft()):
        pass
    store.close()

    conn = sqlite3.connect(db_path)
    try:
        with pytest.raises(sqlite3.IntegrityError, match="append-only"):
            conn.execute("UPDATE records SET time_us = 0 WHERE id = 1")
        with pytest.raises(sqlite3.IntegrityError, match="append-only"):
            conn.execute("DELETE FROM records WHERE id = 1")
    finally:
        conn.close()


@pytest.mark.db
def test_rolled_back_insert_does_not_burn_an_id(db_path):
    store = SQLiteRecordStore(db_path)
    try:
        with pytest.raises(RuntimeError):
            with store.insert(_draft()):
                raise RuntimeError("abort")
        with store.insert(_draft(1)) as record_id:
            assert record_id == 1
    finally:
        store.close()


@pytest.mark.db
def test_failed_rollback_is_a_storage_write_error(db_path):
    store = SQLiteRecordStore(db_path)
    try:
        with pytest.raises(StorageWriteError) as exc_info:
            with store.insert(_draft()):
                # End the transaction early so the store's ROLLBACK has nothing to undo.
                store._conn.execute("ROLLBACK")
                raise RuntimeError("abort")

        assert exc_info.value.context.operation == "sqlite.rollback"
        assert isinstance(exc_info.value.cause, sqlite3.OperationalError)
        assert isinstance(exc_info.value.__context__, RuntimeError)
        assert store.get_max() is None
    finally:
        store.close()


@pytest.mark.db
def test_ids_beyond_sqlite_integer_range_are_not_found(db_path):
    store = SQLiteRecordStore(db_path)
    try:
        with store.insert(_draft()):
            pass
        assert store.get_by_id(MAX_ROWID) is None
        assert store.get_by_id(MAX_ROWID + 1) is None
        assert store.get_by_id(2**64 - 1) is None
    finally:
        store.close()


@pytest.mark.db
def test_check_constraints_reject_malformed_hash(db_path):
    store = SQLiteRecordStore(db_path)
    bad = RecordDraft(bits=b"\x01", time=T0, hash=b"short", signature=b"\x03")
    try:
        with pytest.raises(StorageWriteError) as exc_info:
            with store.insert(bad):
                pass
        assert exc_info.value.context.operation == "sqlite.insert"
        assert store.get_max() is None
    finally:
        store.close()


@pytest.mark.db
def test_open_failure_is_a_storage_write_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")

    with pytest.raises(StorageWriteError) as exc_info:
        SQLiteRecordStore(blocker / "beacon.db")

    assert exc_info.value.context.operation == "sqlite.open"


@pytest.mark.db
def test_schema_init_is_idempotent_and_uses_wal(db_path):
    conn = get_connection(db_path)
    try:
        init_schema(conn)
        init_schema(conn)
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        triggers = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'trigger'")}
    finally:
        conn.close()

    assert mode == "wal"
    assert triggers == {"records_reject_update", "records_reject_delete"}


@pytest.mark.db
def test_in_memory_database_is_supported():
    store = SQLiteRecordStore(":memory:")
    try:
        with store.insert(_draft()) as record_id:
            assert record_id == 1
        assert store.get_by_id(1) is not None
    finally:
        store.close()
