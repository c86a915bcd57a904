"""Beacon Ledger: a signed, hash-chained randomness beacon.

Each beacon record carries a fresh batch of entropy bits, a SHA-256 hash that
links it to its predecessor, and a signature over ``bits || hash`` from the
beacon's key holder.  Records are append-only and gapless, and can be looked up
by id or by time.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("beacon-ledger")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
