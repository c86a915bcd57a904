"""The beacon ledger: signed, hash-chained, append-only records.

Overview
--------
:meth:`Ledger.append` is the only write path.  One call walks the states::

    Idle -> EntropyDrawn -> ChainComputed -> Signed -> Appended
                                                    \\-> Aborted (conflict | io-error)

1. Draw ``bits_length`` bytes from the entropy source.
2. Read the chain tip from the store (``None`` means genesis).
3. Compute the link hash (:func:`beacon_ledger.core.chain.link_hash`).
4. Sign ``bits || hash``.
5. Capture the append time, clamped so it never precedes the tip's time.
6. Insert through the store's atomic insert and receive the assigned id.
7. If the id is not exactly ``tip.id + 1`` (``1`` for genesis), roll the
   insert back and raise :class:`~beacon_ledger.errors.ChainConflict`.

Concurrency
-----------
Reading the tip, signing and inserting can not be one database operation
because the hash and signature depend on the tip.  No lock is held across the
signer call; instead the post-insert id check detects any append that
interleaved between steps 2 and 6.  The ledger never retries: conflicts
surface to the caller, and :func:`beacon_ledger.core.retry.append_with_retry`
is the bounded wrapper for callers that want one.

Reads (:meth:`latest`, :meth:`select`, :meth:`before`, :meth:`after`) go
straight to the store and can run from any number of threads.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from beacon_ledger.core.chain import link_hash
from beacon_ledger.core.entropy import EntropySource
from beacon_ledger.core.records import Record, RecordDraft, ensure_utc
from beacon_ledger.core.signing import Signer
from beacon_ledger.db import RecordStore, open_store
from beacon_ledger.errors import (
    AlreadyClosedError,
    BeaconError,
    ChainConflict,
    ClosedError,
    EntropyFailure,
    NoRecords,
    OpenError,
    SigningFailure,
)

logger = logging.getLogger(__name__)

SUPPORTED_BITS_LENGTHS = (32, 64)
DEFAULT_BITS_LENGTH = 32

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class Ledger:
    """Append-only sequence of signed beacon records over a :class:`RecordStore`.

    Args:
        store: Open storage backend.  The ledger takes ownership and closes
            it on :meth:`close`.
        signer: Holder of the beacon private key.
        entropy: Source of the random bits.  If it has a ``close()`` method the
            ledger calls it on :meth:`close`.
        bits_length: Entropy bytes per record, 32 or 64.
        clock: Returns the current time; defaults to ``datetime.now(UTC)``.

    Raises:
        ValueError: If ``bits_length`` is unsupported.
        SigningFailure: If the signer can not report its public key.
    """

    def __init__(
        self,
        store: RecordStore,
        signer: Signer,
        entropy: EntropySource,
        *,
        bits_length: int = DEFAULT_BITS_LENGTH,
        clock: Clock | None = None,
    ) -> None:
        if bits_length not in SUPPORTED_BITS_LENGTHS:
            raise ValueError(f"bits_length must be one of {SUPPORTED_BITS_LENGTHS}, got {bits_length}")
        try:
            public_key = signer.public_key()
        except Exception as exc:
            raise SigningFailure(f"signer could not provide a public key: {exc}") from exc

        self._store = store
        self._signer = signer
        self._entropy = entropy
        self._bits_length = bits_length
        self._clock = clock or utc_now
        self._public_key = bytes(public_key)
        self._closed = False
        self._close_lock = threading.Lock()

    @classmethod
    def open(
        cls,
        location: str | Path,
        signer: Signer,
        entropy: EntropySource,
        *,
        bits_length: int = DEFAULT_BITS_LENGTH,
        clock: Clock | None = None,
    ) -> Ledger:
        """Open (creating if needed) the ledger stored at ``location``.

        See :func:`beacon_ledger.db.open_store` for the accepted locations.

        Raises:
            OpenError: If the store can not be opened or the ledger can not
                be constructed on top of it.
        """
        try:
            store = open_store(location)
        except BeaconError as exc:
            raise OpenError(str(location), exc) from exc
        try:
            ledger = cls(store, signer, entropy, bits_length=bits_length, clock=clock)
        except (BeaconError, ValueError) as exc:
            store.close()
            raise OpenError(str(location), exc) from exc
        logger.info("Opened beacon ledger at %s", location)
        return ledger

    # -- lifecycle -----------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def public_key(self) -> bytes:
        """DER-encoded public key that chains the genesis record."""
        return self._public_key

    @property
    def bits_length(self) -> int:
        return self._bits_length

    @property
    def algorithm(self) -> str:
        """Signature algorithm name reported by the signer."""
        return getattr(self._signer, "algorithm", "unknown")

    def close(self) -> None:
        """Close the ledger, its store and a closable entropy source.

        Raises:
            AlreadyClosedError: If the ledger was already closed.
        """
        with self._close_lock:
            if self._closed:
                raise AlreadyClosedError("ledger is already closed")
            self._closed = True
        try:
            self._store.close()
        finally:
            close_entropy = getattr(self._entropy, "close", None)
            if close_entropy is not None:
                close_entropy()
        logger.debug("Closed beacon ledger")

    def __enter__(self) -> Ledger:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._closed:
            self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedError("ledger is closed")

    # -- append --------------------------------------------------------------

    def _draw_entropy(self) -> bytes:
        want = self._bits_length
        try:
            bits = self._entropy.read(want)
        except Exception as exc:
            raise EntropyFailure(want, 0, f"entropy source failed: {exc}") from exc
        received = len(bits) if bits else 0
        if received < want:
            raise EntropyFailure(want, received)
        return bytes(bits[:want])

    def _sign(self, message: bytes) -> bytes:
        try:
            signature = self._signer.sign(message)
        except Exception as exc:
            raise SigningFailure(f"signer failed: {exc}") from exc
        if not signature:
            raise SigningFailure("signer returned an empty signature")
        return bytes(signature)

    def _append_time(self, previous: Record | None) -> datetime:
        now = ensure_utc(self._clock())
        if previous is not None and now < previous.time:
            logger.warning(
                "Clock is behind record %d (%s < %s); reusing its time",
                previous.id,
                now.isoformat(),
                previous.time.isoformat(),
            )
            return previous.time
        return now

    def append(self) -> Record:
        """Create, sign and durably append the next beacon record.

        Returns:
            The committed record.

        Raises:
            ClosedError: The ledger is closed.
            EntropyFailure: The entropy source failed or returned a short read.
            SigningFailure: The signer failed.
            ChainConflict: Another append won the race for the next id; the
                insert was rolled back and the call may be retried.
            StorageError: The backend failed, including a failed rollback.
        """
        self._ensure_open()

        bits = self._draw_entropy()
        previous = self._store.get_max()
        digest = link_hash(previous, self._public_key, bits)
        signature = self._sign(bits + digest)
        draft = RecordDraft(
            bits=bits,
            time=self._append_time(previous),
            hash=digest,
            signature=signature,
        )

        expected_id = previous.id + 1 if previous is not None else 1
        with self._store.insert(draft) as assigned_id:
            if assigned_id != expected_id:
                logger.warning(
                    "Chain conflict: expected id %d, store assigned %d; rolling back",
                    expected_id,
                    assigned_id,
                )
                raise ChainConflict(expected_id, assigned_id)

        record = draft.with_id(assigned_id)
        logger.info("Appended beacon record %d", record.id)
        return record

    # -- reads ---------------------------------------------------------------

    def latest(self) -> Record:
        """Return the record with the highest id.

        Raises:
            NoRecords: The ledger is empty.
        """
        self._ensure_open()
        record = self._store.get_max()
        if record is None:
            raise NoRecords("ledger is empty")
        return record

    def select(self, record_id: int) -> Record:
        """Return the record with ``record_id``.

        Raises:
            NoRecords: No such record.
        """
        self._ensure_open()
        if record_id < 1:
            raise NoRecords(f"no record with id {record_id}")
        record = self._store.get_by_id(record_id)
        if record is None:
            raise NoRecords(f"no record with id {record_id}")
        return record

    def before(self, moment: datetime) -> Record:
        """Return the latest record with ``time <= moment``.

        Equal times resolve to the highest id.  Naive datetimes are UTC.

        Raises:
            NoRecords: No record is that old.
        """
        self._ensure_open()
        record = self._store.seek_time_le(ensure_utc(moment))
        if record is None:
            raise NoRecords(f"no record at or before {moment.isoformat()}")
        return record

    def after(self, moment: datetime) -> Record:
        """Return the earliest record with ``time >= moment``.

        Equal times resolve to the lowest id.  Naive datetimes are UTC.

        Raises:
            NoRecords: No record is that recent.
        """
        self._ensure_open()
        record = self._store.seek_time_ge(ensure_utc(moment))
        if record is None:
            raise NoRecords(f"no record at or after {moment.isoformat()}")
        return record
