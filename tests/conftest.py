"""
Shared pytest fixtures for the beacon ledger test suite.

This module provides fixtures that are automatically available to all test files:
- A deterministic Ed25519 signer and scripted entropy
- A controllable clock
- Storage locations and ledgers for every backend on tmp_path
- FastAPI TestClient instances

Backend-parametrised fixtures run the same test against the memory, SQLite
and JSONL stores so the store contract is checked once for all of them.
"""

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from beacon_ledger.api.server import create_app
from beacon_ledger.config import use_test_storage
from beacon_ledger.core.ledger import Ledger
from beacon_ledger.core.signing import Ed25519Signer
from beacon_ledger.db import MEMORY_LOCATION
from tests.constants import BITS_LENGTH, TEST_SEED
from tests.helpers import FakeClock, ScriptedEntropy, location_for

BACKENDS = ("memory", "sqlite", "jsonl")


# ============================================================================
# BUILDING BLOCKS
# ============================================================================


@pytest.fixture
def signer() -> Ed25519Signer:
    """Deterministic Ed25519 signer; the same key in every test."""
    return Ed25519Signer.from_seed(TEST_SEED)


@pytest.fixture
def entropy() -> ScriptedEntropy:
    return ScriptedEntropy()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# STORAGE FIXTURES
# ============================================================================


@pytest.fixture(params=BACKENDS)
def backend(request) -> str:
    """Name of the storage backend under test."""
    return request.param


@pytest.fixture
def store_location(backend: str, tmp_path: Path) -> str:
    return location_for(backend, tmp_path)


@pytest.fixture
def ledger(store_location, signer, entropy, clock) -> Generator[Ledger, None, None]:
    """Open ledger on the parametrised backend with the fake clock."""
    with Ledger.open(store_location, signer, entropy, bits_length=BITS_LENGTH, clock=clock) as ledger:
        yield ledger


@pytest.fixture
def memory_ledger(signer, entropy, clock) -> Generator[Ledger, None, None]:
    with Ledger.open(MEMORY_LOCATION, signer, entropy, bits_length=BITS_LENGTH, clock=clock) as ledger:
        yield ledger


@pytest.fixture
def temp_storage(tmp_path: Path) -> Generator[str, None, None]:
    """Point the global config at a fresh SQLite file for CLI and server tests."""
    with use_test_storage(tmp_path / "beacon.db") as location:
        yield location


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def test_client(memory_ledger: Ledger) -> Generator[TestClient, None, None]:
    """TestClient over an app serving the in-memory ledger (no generator)."""
    app = create_app(memory_ledger)
    with TestClient(app) as client:
        yield client
