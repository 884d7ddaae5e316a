"""Bonus ramp: time-interpolated deposit bonus.

The bonus grows linearly from ``bonus_min`` to ``bonus_max`` percent over
``ramp_duration`` seconds measured from the last bonus-range change, then
stays at ``bonus_max`` until the range is changed again.
"""

from __future__ import annotations

from dataclasses import dataclass

from .exceptions import InvalidRangeError

PERCENT = 100


def validate_bonus_range(bonus_min: int, bonus_max: int, ceiling: int = 255) -> None:
    """Raise InvalidRangeError unless ``0 <= bonus_min < bonus_max <= ceiling``."""
    for value in (bonus_min, bonus_max):
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidRangeError(f"Bonus bounds must be integers, got {value!r}")
    if bonus_min < 0 or bonus_max > ceiling:
        raise InvalidRangeError(
            f"Bonus bounds must lie within 0..{ceiling}",
            details={"bonus_min": bonus_min, "bonus_max": bonus_max},
        )
    if bonus_min >= bonus_max:
        raise InvalidRangeError(
            f"Bonus minimum {bonus_min} must be below maximum {bonus_max}",
            details={"bonus_min": bonus_min, "bonus_max": bonus_max},
        )


def ramp_bonus(now: int, anchor: int, bonus_min: int, bonus_max: int, ramp_duration: int) -> int:
    """
    Bonus percentage at ``now``.

    ``bonus_min + floor((bonus_max - bonus_min) * min(elapsed / ramp_duration, 1))``,
    with a clock reading before the anchor treated as zero elapsed time.
    """
    if ramp_duration <= 0:
        raise ValueError("Ramp duration must be positive.")
    elapsed = min(max(now - anchor, 0), ramp_duration)
    return bonus_min + (bonus_max - bonus_min) * elapsed // ramp_duration


def apply_bonus(amount: int, bonus: int) -> int:
    return amount * (PERCENT + bonus) // PERCENT


@dataclass(frozen=True)
class BonusRamp:
    """Snapshot of the ramp parameters in force."""

    bonus_min: int
    bonus_max: int
    anchor: int
    ramp_duration: int

    def bonus_at(self, now: int) -> int:
        return ramp_bonus(now, self.anchor, self.bonus_min, self.bonus_max, self.ramp_duration)

    def ramp_complete_at(self) -> int:
        return self.anchor + self.ramp_duration
