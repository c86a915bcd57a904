"""Bounded retry around :meth:`Ledger.append`.

Only :class:`~beacon_ledger.errors.ChainConflict` is retried; it is the one
append failure that fresh chain state can fix.  Every other error propagates
on the first occurrence.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from beacon_ledger.errors import ChainConflict

if TYPE_CHECKING:
    from beacon_ledger.core.ledger import Ledger
    from beacon_ledger.core.records import Record

logger = logging.getLogger(__name__)


def append_with_retry(
    ledger: Ledger,
    *,
    attempts: int = 3,
    backoff_seconds: float = 0.0,
) -> Record:
    """Call ``ledger.append()`` up to ``attempts`` times while it conflicts.

    Args:
        ledger: Ledger to append to.
        attempts: Maximum number of append calls (at least 1).
        backoff_seconds: Sleep between attempts, multiplied by the attempt
            number.

    Raises:
        ValueError: If ``attempts`` is below 1.
        ChainConflict: The last attempt still conflicted.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts):
        try:
            return ledger.append()
        except ChainConflict as exc:
            logger.info(
                "Append attempt %d/%d conflicted (expected id %d, got %d); retrying",
                attempt,
                attempts,
                exc.expected_id,
                exc.assigned_id,
            )
            if backoff_seconds > 0:
                time.sleep(backoff_seconds * attempt)

    try:
        return ledger.append()
    except ChainConflict:
        logger.warning("Append still conflicting after %d attempts", attempts)
        raise
