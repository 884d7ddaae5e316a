"""Reserve-ratio oracles.

An oracle reports ``(numerator, denominator)``: how many base units of the
reference asset buy ``denominator / numerator`` base units of the reward
asset. The issuer converts a deposit as
``normalized = value * denominator // numerator``.
"""

from __future__ import annotations

import logging
import time
from fractions import Fraction
from typing import Protocol

from .exceptions import NotAvailableError

logger = logging.getLogger(__name__)


class ReserveOracle(Protocol):
    def get_reserve_ratio(self) -> tuple[int, int]: ...


class StaticReserveOracle:
    """Fixed conversion ratio, 10:1 in the reference deployment."""

    def __init__(self, numerator: int = 10, denominator: int = 1):
        if not isinstance(numerator, int) or numerator <= 0:
            raise ValueError("Ratio numerator must be a positive integer.")
        if not isinstance(denominator, int) or denominator <= 0:
            raise ValueError("Ratio denominator must be a positive integer.")
        self.numerator = numerator
        self.denominator = denominator

    def get_reserve_ratio(self) -> tuple[int, int]:
        return self.numerator, self.denominator


class TWAPReserveOracle:
    """Time-weighted average of recorded reserve ratios over a trailing window.

    The average is computed exactly with ``Fraction`` and reported with its
    denominator capped at ``precision``.
    """

    def __init__(
        self,
        window_size_seconds: int = 3600,
        precision: int = 10**6,
        time_provider=None,
    ):
        if not isinstance(window_size_seconds, int) or window_size_seconds <= 0:
            raise ValueError("Window size must be a positive integer.")
        if not isinstance(precision, int) or precision <= 0:
            raise ValueError("Precision must be a positive integer.")
        self.window_size_seconds = window_size_seconds
        self.precision = precision
        self._time_provider = time_provider or (lambda: int(time.time()))
        # (timestamp, ratio) pairs ordered by timestamp
        self.ratio_data: list[tuple[int, Fraction]] = []

    def record_ratio(self, numerator: int, denominator: int = 1, timestamp: int | None = None) -> None:
        """Record a ratio observation. Uses the time provider when timestamp is None."""
        if not isinstance(numerator, int) or numerator <= 0:
            raise ValueError("Ratio numerator must be a positive integer.")
        if not isinstance(denominator, int) or denominator <= 0:
            raise ValueError("Ratio denominator must be a positive integer.")

        current_timestamp = timestamp if timestamp is not None else self._time_provider()
        if not isinstance(current_timestamp, int) or current_timestamp < 0:
            raise ValueError("Timestamp must be a non-negative integer.")

        self._clean_old_data(current_timestamp)
        self.ratio_data.append((current_timestamp, Fraction(numerator, denominator)))
        self.ratio_data.sort(key=lambda x: x[0])
        logger.debug(
            "Recorded reserve ratio %d/%d at %s (total points %d)",
            numerator, denominator, current_timestamp, len(self.ratio_data),
        )

    def _clean_old_data(self, current_timestamp: int) -> None:
        """Drop observations older than the window, keeping the latest one before
        the cutoff so the start of the window stays priced."""
        cutoff_time = current_timestamp - self.window_size_seconds
        older = [data for data in self.ratio_data if data[0] < cutoff_time]
        recent = [data for data in self.ratio_data if data[0] >= cutoff_time]
        self.ratio_data = older[-1:] + recent

    def get_twap(self, current_timestamp: int | None = None) -> Fraction:
        current_timestamp = (
            current_timestamp if current_timestamp is not None else self._time_provider()
        )
        self._clean_old_data(current_timestamp)

        if not self.ratio_data:
            raise NotAvailableError("No reserve ratio recorded")

        window_start = current_timestamp - self.window_size_seconds
        total_weighted = Fraction(0)
        total_time_weight = 0

        for i, (timestamp_i, ratio_i) in enumerate(self.ratio_data):
            if i < len(self.ratio_data) - 1:
                timestamp_j = self.ratio_data[i + 1][0]
            else:
                timestamp_j = current_timestamp

            segment_start = max(timestamp_i, window_start)
            segment_end = min(timestamp_j, current_timestamp)

            if segment_end > segment_start:
                duration = segment_end - segment_start
                total_weighted += ratio_i * duration
                total_time_weight += duration

        if total_time_weight == 0:
            # Only observations at the current instant: report the latest one
            return self.ratio_data[-1][1]

        return total_weighted / total_time_weight

    def get_reserve_ratio(self) -> tuple[int, int]:
        twap = self.get_twap().limit_denominator(self.precision)
        if twap <= 0:
            raise NotAvailableError("Reserve ratio rounded to zero")
        return twap.numerator, twap.denominator
