"""Background thread that appends one beacon record per interval.

Failed ticks are logged and the loop keeps going.  Only
:class:`~beacon_ledger.errors.BeaconError` failures are absorbed this way, so
programming errors still end the thread loudly.
"""

from __future__ import annotations

import logging
import threading

from beacon_ledger.core.ledger import Ledger
from beacon_ledger.core.records import Record
from beacon_ledger.core.retry import append_with_retry
from beacon_ledger.errors import BeaconError, ClosedError

logger = logging.getLogger(__name__)


class BeaconGenerator:
    """Periodic appender driving a :class:`Ledger`.

    Args:
        ledger: Ledger to append to.
        interval_seconds: Delay between appends.
        max_attempts: Conflict retries per tick (see :func:`append_with_retry`).
    """

    def __init__(self, ledger: Ledger, *, interval_seconds: float = 60.0, max_attempts: int = 3) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._ledger = ledger
        self._interval = interval_seconds
        self._max_attempts = max_attempts
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.appended = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> Record | None:
        """Append one record; return it, or ``None`` if the tick failed."""
        try:
            record = append_with_retry(self._ledger, attempts=self._max_attempts)
        except ClosedError:
            logger.info("Ledger closed; stopping beacon generator")
            self._stop.set()
            return None
        except BeaconError as exc:
            self.failures += 1
            logger.warning("Beacon tick failed: %s", exc)
            return None
        self.appended += 1
        return record

    def _loop(self) -> None:
        logger.info("Beacon generator started (interval %.1fs)", self._interval)
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self._interval)
        logger.info("Beacon generator stopped")

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError("beacon generator is already running")
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="beacon-generator", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
