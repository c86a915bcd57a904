"""Ordered durable store contract used by the ledger.

Backends satisfy :class:`RecordStore` structurally; the ledger never depends on
a concrete class, so SQLite, JSONL and in-memory stores are interchangeable.

Ordering
--------
All backends order records by the composite key ``(time_us, id)``.  Seeking
with that key makes the equal-time tie-break structural: ``seek_time_le``
returns the highest id among equal times, ``seek_time_ge`` the lowest.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from beacon_ledger.core.records import Record, RecordDraft


class RecordStore(Protocol):
    """Capability interface every storage backend implements."""

    def insert(self, draft: RecordDraft) -> AbstractContextManager[int]:
        """Open a write transaction, insert ``draft`` and yield the assigned id.

        Leaving the ``with`` block normally commits durably.  An exception
        raised inside the block rolls the insert back and propagates; if the
        rollback itself fails a ``StorageWriteError`` is raised instead.
        """
        ...

    def get_max(self) -> Record | None:
        """Return the record with the highest id, or ``None`` when empty."""
        ...

    def get_by_id(self, record_id: int) -> Record | None:
        """Return the record with ``record_id``, or ``None``."""
        ...

    def seek_time_ge(self, moment: datetime) -> Record | None:
        """Return the smallest ``(time, id)`` record with ``time >= moment``."""
        ...

    def seek_time_le(self, moment: datetime) -> Record | None:
        """Return the largest ``(time, id)`` record with ``time <= moment``."""
        ...

    def close(self) -> None:
        """Release the backend handle."""
        ...
