"""Beacon record data model and its JSON representation.

A :class:`Record` is immutable once created.  A :class:`RecordDraft` is the
same record before the store has assigned its id; the ledger builds a draft,
hands it to the store inside the insert transaction, and promotes it to a
``Record`` once the assigned id passes the integrity check.

Time handling
-------------
Record times are timezone-aware UTC :class:`~datetime.datetime` values with
microsecond resolution.  Backends persist them as integer microseconds since
the Unix epoch (:func:`to_epoch_micros`), which gives a totally ordered,
index-friendly key.  The JSON form uses ISO-8601 strings.

Binary fields (``bits``, ``hash``, ``signature``) are serialised with standard
padded base64, the same encoding the chain builder hashes over.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

HASH_LENGTH = 32

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def ensure_utc(moment: datetime) -> datetime:
    """Return ``moment`` as an aware UTC datetime; naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def to_epoch_micros(moment: datetime) -> int:
    """Convert a datetime to integer microseconds since the Unix epoch."""
    delta = ensure_utc(moment) - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


def from_epoch_micros(micros: int) -> datetime:
    """Inverse of :func:`to_epoch_micros`."""
    return _EPOCH + timedelta(microseconds=int(micros))


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(text: str) -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"invalid base64 field: {exc}") from exc


@dataclass(frozen=True, slots=True)
class RecordDraft:
    """A fully computed record that has not been assigned an id yet.

    Attributes:
        bits: Entropy payload.
        time: UTC append time captured by the ledger.
        hash: 32-byte link hash.
        signature: Signature over ``bits || hash``.
    """

    bits: bytes
    time: datetime
    hash: bytes
    signature: bytes

    @property
    def time_us(self) -> int:
        return to_epoch_micros(self.time)

    def with_id(self, record_id: int) -> Record:
        """Promote the draft to a committed record."""
        return Record(
            id=record_id,
            bits=self.bits,
            time=self.time,
            hash=self.hash,
            signature=self.signature,
        )


@dataclass(frozen=True, slots=True)
class Record:
    """One committed beacon record.

    Attributes:
        id: Gapless sequence number starting at 1.
        bits: Entropy payload (32 or 64 bytes).
        time: UTC append time, non-decreasing in id order.
        hash: 32-byte SHA-256 link hash to the predecessor.
        signature: Signature over ``bits || hash``.
    """

    id: int
    bits: bytes
    time: datetime
    hash: bytes
    signature: bytes

    @property
    def time_us(self) -> int:
        return to_epoch_micros(self.time)

    @property
    def signed_message(self) -> bytes:
        """The exact byte string the signature covers."""
        return self.bits + self.hash

    def to_dict(self) -> dict[str, Any]:
        """Return the external JSON representation of the record."""
        return {
            "id": self.id,
            "bits": b64encode(self.bits),
            "time": ensure_utc(self.time).isoformat(),
            "hash": b64encode(self.hash),
            "signature": b64encode(self.signature),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Record:
        """Parse the representation produced by :meth:`to_dict`.

        Raises:
            ValueError: If a field is missing or malformed.
        """
        try:
            record_id = payload["id"]
            bits = payload["bits"]
            moment = payload["time"]
            digest = payload["hash"]
            signature = payload["signature"]
        except KeyError as exc:
            raise ValueError(f"record is missing field {exc.args[0]!r}") from exc
        if not isinstance(record_id, int) or isinstance(record_id, bool) or record_id < 1:
            raise ValueError(f"record id must be a positive integer, got {record_id!r}")
        return cls(
            id=record_id,
            bits=b64decode(bits),
            time=ensure_utc(datetime.fromisoformat(moment)),
            hash=b64decode(digest),
            signature=b64decode(signature),
        )
