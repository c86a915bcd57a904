"""Append-only JSONL record store.

Storage
-------
One record per line, in id order::

    {"_checksum": "sha256:…", "bits": "…", "hash": "…", "id": 1,
     "signature": "…", "time": "2026-01-05T12:00:00.123456+00:00"}

``_checksum`` is a SHA-256 over the canonical JSON body (every field except
``_checksum`` itself, ``sort_keys=True``), so a damaged line is detected on
load rather than served.

Concurrency
-----------
``fcntl.flock`` is held for every read refresh (shared) and every insert
(exclusive), so several handles, in one process or many, can share a file.
Each handle keeps an in-memory :class:`RecordIndex` and refreshes it from its
last known offset before answering, so appends made through another handle
are visible.  ``fcntl`` is POSIX-only.

Transactions
------------
An insert yields the next id while holding the exclusive lock and writes the
line only after the caller's block succeeds, followed by ``fsync``.  A rolled
back insert therefore writes nothing.  If the write itself fails the file is
truncated back to the last committed offset.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import logging
import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from beacon_ledger.core.records import Record, RecordDraft, to_epoch_micros
from beacon_ledger.db.memory_store import RecordIndex
from beacon_ledger.errors import StorageOperationContext, StorageReadError, StorageWriteError

logger = logging.getLogger(__name__)

_CHECKSUM_FIELD = "_checksum"


def _compute_checksum(payload: dict[str, Any]) -> str:
    canonical = json.dumps(payload, ensure_ascii=False, sort_keys=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def encode_line(record: Record) -> bytes:
    """Serialise ``record`` as one checksummed, newline-terminated JSON line."""
    body = record.to_dict()
    envelope = {**body, _CHECKSUM_FIELD: f"sha256:{_compute_checksum(body)}"}
    return (json.dumps(envelope, ensure_ascii=False, sort_keys=True) + "\n").encode("utf-8")


def decode_line(line: bytes, lineno: int) -> Record:
    """Parse and checksum-verify one line.

    Raises:
        ValueError: If the line is not valid JSON, the checksum does not
            match, or a record field is malformed.
    """
    try:
        envelope = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"line {lineno} is not valid JSON: {exc}") from exc
    if not isinstance(envelope, dict):
        raise ValueError(f"line {lineno} is not a JSON object")

    recorded = envelope.get(_CHECKSUM_FIELD)
    body = {k: v for k, v in envelope.items() if k != _CHECKSUM_FIELD}
    expected = f"sha256:{_compute_checksum(body)}"
    if recorded != expected:
        raise ValueError(f"line {lineno} checksum mismatch: recorded {recorded!r}, expected {expected!r}")
    return Record.from_dict(body)


class JsonlRecordStore:
    """Record store on a single append-only JSONL file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()
        self._index = RecordIndex()
        self._offset = 0
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, "a+b")  # noqa: SIM115 - closed by close()
        except OSError as exc:
            raise StorageWriteError(
                context=StorageOperationContext("jsonl.open", details=str(self.path)),
                cause=exc,
            ) from exc
        with self._locked("jsonl.open", fcntl.LOCK_SH):
            self._refresh()

    def __repr__(self) -> str:
        return f"JsonlRecordStore({str(self.path)!r})"

    @contextmanager
    def _locked(self, operation: str, mode: int) -> Iterator[None]:
        with self._lock:
            if self._fh.closed:
                raise StorageReadError(context=StorageOperationContext(operation, details="store is closed"))
            try:
                fcntl.flock(self._fh, mode)
            except OSError as exc:
                raise StorageReadError(
                    context=StorageOperationContext(operation, details=f"lock failed: {exc}"),
                    cause=exc,
                ) from exc
            try:
                yield
            finally:
                fcntl.flock(self._fh, fcntl.LOCK_UN)

    def _refresh(self) -> None:
        """Load lines appended since the last refresh into the index."""
        try:
            self._fh.seek(self._offset)
            data = self._fh.read()
        except OSError as exc:
            raise StorageReadError(
                context=StorageOperationContext("jsonl.refresh", details=str(exc)),
                cause=exc,
            ) from exc
        if not data:
            return
        if not data.endswith(b"\n"):
            raise StorageReadError(
                context=StorageOperationContext(
                    "jsonl.refresh", details=f"{self.path} ends with a truncated line"
                )
            )

        for raw in data.splitlines(keepends=True):
            lineno = len(self._index) + 1
            try:
                record = decode_line(raw.rstrip(b"\n"), lineno)
                self._index.add(record)
            except ValueError as exc:
                raise StorageReadError(
                    context=StorageOperationContext("jsonl.refresh", details=f"{self.path}: {exc}"),
                    cause=exc,
                ) from exc
            self._offset += len(raw)

    def _read(self, operation: str, fetch) -> Record | None:
        with self._locked(operation, fcntl.LOCK_SH):
            self._refresh()
            return fetch()

    def get_max(self) -> Record | None:
        return self._read("jsonl.get_max", self._index.last)

    def get_by_id(self, record_id: int) -> Record | None:
        return self._read("jsonl.get_by_id", lambda: self._index.by_id(record_id))

    def seek_time_ge(self, moment: datetime) -> Record | None:
        time_us = to_epoch_micros(moment)
        return self._read("jsonl.seek_time_ge", lambda: self._index.seek_ge(time_us))

    def seek_time_le(self, moment: datetime) -> Record | None:
        time_us = to_epoch_micros(moment)
        return self._read("jsonl.seek_time_le", lambda: self._index.seek_le(time_us))

    def _truncate_to_committed(self) -> None:
        try:
            self._fh.truncate(self._offset)
        except OSError as exc:
            raise StorageWriteError(
                context=StorageOperationContext("jsonl.rollback", details=str(exc)),
                cause=exc,
            ) from exc

    @contextmanager
    def insert(self, draft: RecordDraft) -> Iterator[int]:
        """Yield the next id under an exclusive lock; write the line on success."""
        with self._locked("jsonl.insert", fcntl.LOCK_EX):
            self._refresh()
            record_id = self._index.next_id
            yield record_id

            record = draft.with_id(record_id)
            line = encode_line(record)
            try:
                self._fh.write(line)
                self._fh.flush()
                os.fsync(self._fh.fileno())
            except OSError as exc:
                logger.error("JSONL write of record %d failed, truncating: %s", record_id, exc)
                self._truncate_to_committed()
                raise StorageWriteError(
                    context=StorageOperationContext("jsonl.commit", details=str(exc)),
                    cause=exc,
                ) from exc
            self._offset += len(line)
            self._index.add(record)

    def close(self) -> None:
        with self._lock:
            self._fh.close()
