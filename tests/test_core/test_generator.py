"""Tests for the periodic beacon generator (beacon_ledger/core/generator.py)."""

import time

import pytest

from beacon_ledger.core.generator import BeaconGenerator
from beacon_ledger.core.ledger import Ledger
from beacon_ledger.db import MemoryRecordStore
from tests.helpers import ScriptedEntropy


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.mark.unit
def test_run_once_appends_a_record(memory_ledger):
    generator = BeaconGenerator(memory_ledger)

    record = generator.run_once()

    assert record is not None
    assert record.id == 1
    assert generator.appended == 1
    assert generator.failures == 0


@pytest.mark.unit
def test_run_once_counts_failures_and_keeps_going(signer):
    entropy = ScriptedEntropy([b"short"])
    with Ledger(MemoryRecordStore(), signer, entropy) as ledger:
        generator = BeaconGenerator(ledger)

        assert generator.run_once() is None
        assert generator.failures == 1
        assert generator.run_once().id == 1
        assert generator.appended == 1


@pytest.mark.unit
def test_run_once_on_closed_ledger_returns_none(signer):
    ledger = Ledger(MemoryRecordStore(), signer, ScriptedEntropy())
    generator = BeaconGenerator(ledger)
    ledger.close()

    assert generator.run_once() is None
    assert generator.failures == 0


@pytest.mark.unit
def test_interval_must_be_positive(memory_ledger):
    with pytest.raises(ValueError):
        BeaconGenerator(memory_ledger, interval_seconds=0)


@pytest.mark.slow
def test_start_appends_periodically_until_stopped(memory_ledger):
    generator = BeaconGenerator(memory_ledger, interval_seconds=0.01)

    generator.start()
    try:
        assert generator.is_running
        assert _wait_for(lambda: generator.appended >= 3)
    finally:
        generator.stop()

    assert not generator.is_running
    count = generator.appended
    time.sleep(0.05)
    assert generator.appended == count
    assert memory_ledger.latest().id == count


@pytest.mark.slow
def test_start_twice_raises(memory_ledger):
    generator = BeaconGenerator(memory_ledger, interval_seconds=10)
    generator.start()
    try:
        with pytest.raises(RuntimeError):
            generator.start()
    finally:
        generator.stop()


@pytest.mark.slow
def test_generator_stops_when_ledger_closes(signer):
    ledger = Ledger(MemoryRecordStore(), signer, ScriptedEntropy())
    generator = BeaconGenerator(ledger, interval_seconds=0.01)
    generator.start()
    assert _wait_for(lambda: generator.appended >= 1)

    ledger.close()

    assert _wait_for(lambda: not generator.is_running)
    generator.stop()
