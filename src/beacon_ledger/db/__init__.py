"""Storage backends for the beacon ledger.

Public surface
--------------
- :class:`RecordStore`: the ordered-store protocol the ledger needs.
- :class:`SQLiteRecordStore`: durable, relational backend (default).
- :class:`JsonlRecordStore`: durable, append-only file backend.
- :class:`MemoryRecordStore`: non-durable backend for tests and embedding.
- :func:`open_store`: pick a backend from a storage location string.
"""

from __future__ import annotations

from pathlib import Path

from beacon_ledger.db.jsonl_store import JsonlRecordStore
from beacon_ledger.db.memory_store import MemoryRecordStore
from beacon_ledger.db.protocol import RecordStore
from beacon_ledger.db.sqlite_store import SQLiteRecordStore

MEMORY_LOCATION = "memory:"


def open_store(location: str | Path) -> RecordStore:
    """Open the backend a storage location names.

    - ``"memory:"`` selects :class:`MemoryRecordStore`.
    - ``"jsonl:<path>"`` or any path ending in ``.jsonl`` selects
      :class:`JsonlRecordStore`.
    - ``"sqlite:<path>"`` or any other path (including ``":memory:"``)
      selects :class:`SQLiteRecordStore`.
    """
    text = str(location)
    if text == MEMORY_LOCATION:
        return MemoryRecordStore()
    if text.startswith("jsonl:"):
        return JsonlRecordStore(text.removeprefix("jsonl:"))
    if text.startswith("sqlite:"):
        return SQLiteRecordStore(text.removeprefix("sqlite:"))
    if text.endswith(".jsonl"):
        return JsonlRecordStore(text)
    return SQLiteRecordStore(text)


__all__ = [
    "MEMORY_LOCATION",
    "JsonlRecordStore",
    "MemoryRecordStore",
    "RecordStore",
    "SQLiteRecordStore",
    "open_store",
]
