"""Time providers for the issuer.

The issuer reads time through a zero-argument callable returning integer
Unix seconds. ``ManualClock`` is used by the scenario runner and tests.
"""

from __future__ import annotations

import logging
import time

logger = logging.getLogger(__name__)


class SystemClock:
    """Wall-clock time in whole seconds."""

    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """Deterministic clock advanced explicitly by the caller."""

    def __init__(self, start: int = 0):
        if not isinstance(start, int) or start < 0:
            raise ValueError("Clock start must be a non-negative integer.")
        self._now = start

    def __call__(self) -> int:
        return self._now

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if not isinstance(seconds, int) or seconds < 0:
            raise ValueError("Clock can only move forward by a non-negative integer.")
        self._now += seconds
        logger.debug("Clock advanced by %d to %d", seconds, self._now)
        return self._now

    def set(self, timestamp: int) -> int:
        if not isinstance(timestamp, int) or timestamp < self._now:
            raise ValueError("Clock is monotonic; timestamp must not move backwards.")
        self._now = timestamp
        return self._now
