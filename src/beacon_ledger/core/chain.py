"""Link-hash computation for the beacon chain.

The chain input of the genesis record is the signer's DER-encoded public key;
every later record chains off the previous record's *hash*.  The convention is
fixed; mixing conventions inside one chain would make it unverifiable.

Hash input encoding::

    SHA256( b64(chain_input) || b64(new_bits) )

where ``b64`` is standard padded base64 and ``||`` is concatenation of the two
ASCII strings.  ``new_bits`` always has the deployment's fixed length, so its
encoded length is fixed too and the boundary between the two parts is
unambiguous.
"""

from __future__ import annotations

import hashlib

from beacon_ledger.core.records import HASH_LENGTH, Record, b64encode


def encode(data: bytes) -> str:
    """Encode one hash input part."""
    return b64encode(data)


def chain_input(previous: Record | None, public_key: bytes) -> bytes:
    """Return the bytes the next record chains off."""
    if previous is None:
        if not public_key:
            raise ValueError("public key must not be empty for the genesis record")
        return public_key
    if len(previous.hash) != HASH_LENGTH:
        raise ValueError(
            f"previous record {previous.id} has a {len(previous.hash)}-byte hash, "
            f"expected {HASH_LENGTH}"
        )
    return previous.hash


def link_hash(previous: Record | None, public_key: bytes, new_bits: bytes) -> bytes:
    """Compute the link hash for the record that follows ``previous``.

    Args:
        previous: Current chain tip, or ``None`` for the genesis record.
        public_key: DER-encoded public key of the beacon signer.
        new_bits: Entropy payload of the new record.

    Returns:
        32-byte SHA-256 digest.

    Raises:
        ValueError: On empty bits, an empty genesis key, or a malformed
            previous hash.
    """
    if not new_bits:
        raise ValueError("new bits must not be empty")
    material = encode(chain_input(previous, public_key)) + encode(new_bits)
    return hashlib.sha256(material.encode("ascii")).digest()
