"""Typed exceptions raised by the beacon ledger and its storage backends.

Every failure a caller can observe derives from :class:`BeaconError`:

- :class:`NoRecords` is the normal empty-result signal of a read query.
- :class:`EntropyFailure`, :class:`SigningFailure` and :class:`ChainConflict`
  abort a single ``append`` and leave the ledger usable.
- :class:`StorageError` (read/write variants) wraps backend failures with a
  structured :class:`StorageOperationContext`, mirroring how repository code
  reports infrastructure errors.
- :class:`ClosedError` and :class:`OpenError` cover the ledger lifecycle.

Domain outcomes such as "no row for this id" are returned as ``None`` by the
stores; the ledger turns them into :class:`NoRecords`.
"""

from __future__ import annotations

from dataclasses import dataclass


class BeaconError(Exception):
    """Base exception for every beacon ledger failure."""


class NoRecords(BeaconError):
    """A read query found no qualifying record."""


class EntropyFailure(BeaconError):
    """The entropy source returned fewer bytes than required.

    Args:
        requested: Number of bytes the ledger asked for.
        received: Number of bytes actually returned (0 when the source raised).
    """

    def __init__(self, requested: int, received: int, message: str | None = None) -> None:
        super().__init__(
            message or f"entropy source returned {received} of {requested} bytes"
        )
        self.requested = requested
        self.received = received


class SigningFailure(BeaconError):
    """The signer rejected the message or failed to produce a signature."""


class ChainConflict(BeaconError):
    """A concurrent append interleaved between reading the tip and inserting.

    The insert has already been rolled back when this is raised.  The caller
    may retry with fresh chain state.

    Args:
        expected_id: Id the record would have had on an uncontended chain.
        assigned_id: Id the store actually assigned inside the transaction.
    """

    def __init__(self, expected_id: int, assigned_id: int) -> None:
        super().__init__(
            f"chain conflict: expected id {expected_id}, store assigned {assigned_id}"
        )
        self.expected_id = expected_id
        self.assigned_id = assigned_id


@dataclass(slots=True)
class StorageOperationContext:
    """Structured operation metadata carried by storage exceptions.

    Attributes:
        operation: Stable operation identifier (for example
            ``"sqlite.insert"``).
        details: Optional human-readable context for logs and debugging.
    """

    operation: str
    details: str | None = None


class StorageError(BeaconError):
    """The durable backend failed (I/O, corruption, connection loss).

    Args:
        context: Structured operation metadata.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        *,
        context: StorageOperationContext,
        cause: Exception | None = None,
    ) -> None:
        message = context.operation
        if context.details:
            message = f"{message}: {context.details}"
        super().__init__(message)
        self.context = context
        self.cause = cause


class StorageReadError(StorageError):
    """Backend read/query failure."""


class StorageWriteError(StorageError):
    """Backend insert/commit/rollback failure."""


class ClosedError(BeaconError):
    """An operation was attempted on a closed ledger."""


class AlreadyClosedError(ClosedError):
    """``close()`` was called on a ledger that is already closed."""


class OpenError(BeaconError):
    """The ledger could not be opened at the given storage location.

    Args:
        location: Storage location that was being opened.
        cause: Underlying exception.
    """

    def __init__(self, location: str, cause: Exception | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"cannot open beacon ledger at {location!r}{detail}")
        self.location = location
        self.cause = cause


__all__ = [
    "AlreadyClosedError",
    "BeaconError",
    "ChainConflict",
    "ClosedError",
    "EntropyFailure",
    "NoRecords",
    "OpenError",
    "SigningFailure",
    "StorageError",
    "StorageOperationContext",
    "StorageReadError",
    "StorageWriteError",
]
