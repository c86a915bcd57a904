"""In-memory record store and the ordered index shared with the JSONL store.

Nothing here is durable; the memory store exists for tests and for embedding
the ledger where persistence is handled elsewhere.
"""

from __future__ import annotations

import bisect
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from beacon_ledger.core.records import Record, RecordDraft, to_epoch_micros
from beacon_ledger.errors import StorageOperationContext, StorageReadError, StorageWriteError

_MAX_ID = float("inf")


class RecordIndex:
    """Records held in id order plus a sorted ``(time_us, id)`` key list.

    Ids are positional: record ``n`` lives at ``records[n - 1]``.
    """

    def __init__(self) -> None:
        self._records: list[Record] = []
        self._time_keys: list[tuple[int, int]] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def next_id(self) -> int:
        return len(self._records) + 1

    def add(self, record: Record) -> None:
        if record.id != self.next_id:
            raise ValueError(f"record id {record.id} breaks the sequence, expected {self.next_id}")
        self._records.append(record)
        bisect.insort(self._time_keys, (record.time_us, record.id))

    def last(self) -> Record | None:
        return self._records[-1] if self._records else None

    def by_id(self, record_id: int) -> Record | None:
        if 1 <= record_id <= len(self._records):
            return self._records[record_id - 1]
        return None

    def seek_ge(self, time_us: int) -> Record | None:
        pos = bisect.bisect_left(self._time_keys, (time_us, 0))
        if pos >= len(self._time_keys):
            return None
        return self._records[self._time_keys[pos][1] - 1]

    def seek_le(self, time_us: int) -> Record | None:
        pos = bisect.bisect_right(self._time_keys, (time_us, _MAX_ID)) - 1
        if pos < 0:
            return None
        return self._records[self._time_keys[pos][1] - 1]


class MemoryRecordStore:
    """Non-durable record store guarded by a single re-entrant lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._index = RecordIndex()
        self._closed = False

    def __repr__(self) -> str:
        return f"MemoryRecordStore(records={len(self._index)})"

    def _check_open(self, operation: str, error: type[StorageReadError] | type[StorageWriteError]) -> None:
        if self._closed:
            raise error(context=StorageOperationContext(operation, details="store is closed"))

    def get_max(self) -> Record | None:
        with self._lock:
            self._check_open("memory.get_max", StorageReadError)
            return self._index.last()

    def get_by_id(self, record_id: int) -> Record | None:
        with self._lock:
            self._check_open("memory.get_by_id", StorageReadError)
            return self._index.by_id(record_id)

    def seek_time_ge(self, moment: datetime) -> Record | None:
        with self._lock:
            self._check_open("memory.seek_time_ge", StorageReadError)
            return self._index.seek_ge(to_epoch_micros(moment))

    def seek_time_le(self, moment: datetime) -> Record | None:
        with self._lock:
            self._check_open("memory.seek_time_le", StorageReadError)
            return self._index.seek_le(to_epoch_micros(moment))

    @contextmanager
    def insert(self, draft: RecordDraft) -> Iterator[int]:
        """Yield the next id; the record is only stored if the block succeeds."""
        with self._lock:
            self._check_open("memory.insert", StorageWriteError)
            record_id = self._index.next_id
            yield record_id
            self._index.add(draft.with_id(record_id))

    def close(self) -> None:
        with self._lock:
            self._closed = True
