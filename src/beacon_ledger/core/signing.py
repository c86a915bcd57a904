"""Signers and key handling for the beacon.

The ledger depends only on the :class:`Signer` protocol: a DER-encoded public
key and ``sign(message) -> signature``.  Private key material stays inside the
signer object for the whole process lifetime.

Two implementations are provided on top of ``cryptography``:

- :class:`Ed25519Signer` (default): deterministic signatures, 64 bytes.
- :class:`EcdsaSigner`: NIST P-256 with SHA-256, DER-encoded signatures.

:func:`load_signer` accepts either a PEM private key or an arbitrary secret
file; in the latter case an Ed25519 key is derived from ``SHA-256(contents)``
so the same file always yields the same beacon key.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Literal, Protocol

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519

Curve = Literal["ed25519", "p256"]


class Signer(Protocol):
    """Holder of the beacon's private key."""

    algorithm: str

    def public_key(self) -> bytes:
        """Return the DER SubjectPublicKeyInfo encoding of the public key."""
        ...

    def sign(self, message: bytes) -> bytes:
        """Sign ``message`` and return the signature bytes."""
        ...


def _public_der(public_key: ed25519.Ed25519PublicKey | ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class Ed25519Signer:
    """Ed25519 signer."""

    algorithm = "Ed25519"

    def __init__(self, private_key: ed25519.Ed25519PrivateKey) -> None:
        self._key = private_key
        self._public_der = _public_der(private_key.public_key())

    @classmethod
    def generate(cls) -> Ed25519Signer:
        return cls(ed25519.Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> Ed25519Signer:
        """Derive a key from arbitrary secret bytes (hashed to 32 bytes)."""
        return cls(ed25519.Ed25519PrivateKey.from_private_bytes(hashlib.sha256(seed).digest()))

    def public_key(self) -> bytes:
        return self._public_der

    def sign(self, message: bytes) -> bytes:
        return self._key.sign(message)

    def private_pem(self) -> bytes:
        return self._key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )


class EcdsaSigner:
    """ECDSA P-256 / SHA-256 signer."""

    algorithm = "ECDSA-P256-SHA256"

    def __init__(self, private_key: ec.EllipticCurvePrivateKey) -> None:
        if not isinstance(private_key.curve, ec.SECP256R1):
            raise ValueError(f"unsupported curve {private_key.curve.name}, expected secp256r1")
        self._key = private_key
        self._public_der = _public_der(private_key.public_key())

    @classmethod
    def generate(cls) -> EcdsaSigner:
        return cls(ec.generate_private_key(ec.SECP256R1()))

    def public_key(self) -> bytes:
        return self._public_der

    def sign(self, message: bytes) -> bytes:
        return self._key.sign(message, ec.ECDSA(hashes.SHA256()))

    def private_pem(self) -> bytes:
        return self._key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )


def generate_signer(curve: Curve = "ed25519") -> Ed25519Signer | EcdsaSigner:
    """Create a signer with a fresh random key."""
    if curve == "ed25519":
        return Ed25519Signer.generate()
    if curve == "p256":
        return EcdsaSigner.generate()
    raise ValueError(f"unknown curve {curve!r}")


def save_private_key_pem(signer: Ed25519Signer | EcdsaSigner, path: Path) -> None:
    """Write the signer's private key as unencrypted PKCS#8 PEM (mode 0600)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as fh:
        fh.write(signer.private_pem())
    os.chmod(path, 0o600)


def load_signer(path: str | Path) -> Ed25519Signer | EcdsaSigner:
    """Load a signer from a key file.

    PEM private keys (Ed25519 or P-256) load as the matching signer.  Any other
    file content is treated as a secret seed for :meth:`Ed25519Signer.from_seed`.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file is PEM but holds an unsupported key type.
    """
    data = Path(path).read_bytes()
    if not data.lstrip().startswith(b"-----BEGIN"):
        return Ed25519Signer.from_seed(data)

    key = serialization.load_pem_private_key(data, password=None)
    if isinstance(key, ed25519.Ed25519PrivateKey):
        return Ed25519Signer(key)
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return EcdsaSigner(key)
    raise ValueError(f"unsupported private key type {type(key).__name__}")
