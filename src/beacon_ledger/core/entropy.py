"""Entropy sources feeding the beacon.

The ledger only needs ``read(n) -> bytes``.  A source may return fewer bytes
than asked for (a drained device, a closed capture pipe); the ledger treats a
short read as :class:`~beacon_ledger.errors.EntropyFailure` rather than
padding or retrying.
"""

from __future__ import annotations

import secrets
from pathlib import Path
from typing import BinaryIO, Protocol


class EntropySource(Protocol):
    """Anything that can hand out random bytes on demand."""

    def read(self, n: int) -> bytes:
        """Return up to ``n`` random bytes."""
        ...


class SystemEntropySource:
    """Operating-system CSPRNG via :func:`secrets.token_bytes`."""

    def read(self, n: int) -> bytes:
        return secrets.token_bytes(n)


class StreamEntropySource:
    """Read entropy from a binary stream such as a hardware RNG or audio pipe.

    A single ``read`` call is issued per request and whatever it returns is
    passed through, so short reads surface to the ledger unchanged.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    @classmethod
    def from_path(cls, path: str | Path) -> StreamEntropySource:
        """Open a device or file path for unbuffered binary reads."""
        return cls(open(path, "rb", buffering=0))  # noqa: SIM115 - closed by close()

    def read(self, n: int) -> bytes:
        data = self._stream.read(n)
        return data if data is not None else b""

    def close(self) -> None:
        self._stream.close()
