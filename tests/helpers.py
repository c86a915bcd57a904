"""
Test doubles and assertions shared across the suite.

- ScriptedEntropy: deterministic or scripted entropy reads
- FakeClock: controllable clock
- Signers that fail in the ways a real key holder can
- assert_chain_valid: walk a ledger and verify every link and signature
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.serialization import load_der_public_key

from beacon_ledger.core.chain import link_hash
from beacon_ledger.core.ledger import Ledger
from beacon_ledger.core.records import Record
from beacon_ledger.db import MEMORY_LOCATION
from tests.constants import T0


class ScriptedEntropy:
    """
    Entropy source returning scripted chunks, then a deterministic counter.

    Each call without a scripted chunk returns ``n`` copies of an incrementing
    byte, so every record gets distinct, predictable bits.
    """

    def __init__(self, chunks: Iterable[bytes | Exception] = ()):
        self._chunks = list(chunks)
        self.calls = 0

    def read(self, n: int) -> bytes:
        self.calls += 1
        if self._chunks:
            chunk = self._chunks.pop(0)
            if isinstance(chunk, Exception):
                raise chunk
            return chunk
        return bytes([self.calls % 256]) * n


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now

    def set(self, moment: datetime) -> None:
        self.now = moment


class RaisingSigner:
    """Signer whose sign() raises; public_key() works."""

    algorithm = "Broken"

    def __init__(self, public_key: bytes, error: Exception | None = None):
        self._public_key = public_key
        self._error = error or RuntimeError("hardware token unplugged")

    def public_key(self) -> bytes:
        return self._public_key

    def sign(self, message: bytes) -> bytes:
        raise self._error


class EmptySigner(RaisingSigner):
    """Signer that returns an empty signature."""

    def sign(self, message: bytes) -> bytes:
        return b""


class NoKeySigner(RaisingSigner):
    """Signer that cannot report its public key."""

    def public_key(self) -> bytes:
        raise self._error


class InterleavingSigner:
    """
    Wraps a real signer and runs ``hook`` once during the first sign() call.

    Used to force another append between the ledger reading the chain tip and
    inserting its own record.
    """

    def __init__(self, inner, hook: Callable[[], object]):
        self._inner = inner
        self._hook: Callable[[], object] | None = hook
        self.algorithm = inner.algorithm

    def public_key(self) -> bytes:
        return self._inner.public_key()

    def sign(self, message: bytes) -> bytes:
        if self._hook is not None:
            hook, self._hook = self._hook, None
            hook()
        return self._inner.sign(message)


def verify_signature(public_key_der: bytes, record: Record) -> None:
    """Verify ``record``'s signature; raises InvalidSignature on mismatch."""
    public_key = load_der_public_key(public_key_der)
    if isinstance(public_key, ed25519.Ed25519PublicKey):
        public_key.verify(record.signature, record.signed_message)
    elif isinstance(public_key, ec.EllipticCurvePublicKey):
        public_key.verify(record.signature, record.signed_message, ec.ECDSA(hashes.SHA256()))
    else:
        raise AssertionError(f"unexpected key type {type(public_key).__name__}")


def assert_chain_valid(ledger: Ledger) -> list[Record]:
    """
    Walk ids 1..latest and check ids, links, times and signatures.

    Returns:
        The records in id order.
    """
    latest = ledger.latest()
    records = [ledger.select(record_id) for record_id in range(1, latest.id + 1)]

    previous: Record | None = None
    for expected_id, record in enumerate(records, start=1):
        assert record.id == expected_id
        assert record.hash == link_hash(previous, ledger.public_key, record.bits)
        verify_signature(ledger.public_key, record)
        if previous is not None:
            assert record.time >= previous.time
        previous = record
    return records


def location_for(backend: str, directory: Path) -> str:
    """Storage location string for ``backend`` inside ``directory``."""
    if backend == "memory":
        return MEMORY_LOCATION
    if backend == "sqlite":
        return str(directory / "beacon.db")
    return str(directory / "beacon.jsonl")
