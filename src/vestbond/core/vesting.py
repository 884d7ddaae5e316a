from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VestingPosition:
    """A depositor's claim and the anchor its linear unlock is measured from.

    ``unlock_anchor`` is an exact rational timestamp: a merge moves the anchor
    back by ``unlocked * window / total`` seconds, which is rarely whole.
    """

    total_claim: int = 0
    unlock_anchor: Fraction | None = None

    @property
    def is_empty(self) -> bool:
        return self.total_claim == 0

    def currently_unlocked(self, now: int, maturation_window: int) -> int:
        """
        Amount of the claim redeemable at ``now``.

        ``total_claim * clamp((now - anchor) / window, 0, 1)``, rounded down so
        the unlocked balance is never overstated.
        """
        if self.total_claim == 0 or self.unlock_anchor is None:
            return 0

        elapsed = now - self.unlock_anchor
        if elapsed <= 0:
            return 0
        if elapsed >= maturation_window:
            return self.total_claim

        return math.floor(self.total_claim * elapsed / maturation_window)

    def merged(self, granted: int, now: int, maturation_window: int) -> "VestingPosition":
        """
        Fold a new grant into the position without changing what is unlocked now.

        The anchor moves so that the enlarged total unlocks exactly the same
        absolute amount at ``now``; from then on it unlocks at the diluted rate.
        """
        if not isinstance(granted, int) or granted <= 0:
            raise ValueError("Granted amount must be a positive integer.")

        unlocked = self.currently_unlocked(now, maturation_window)
        new_total = self.total_claim + granted
        new_anchor = Fraction(now) - Fraction(unlocked * maturation_window, new_total)
        new_anchor = min(new_anchor, Fraction(now))

        logger.debug(
            "Merged grant of %d into position (total %d -> %d, unlocked %d)",
            granted, self.total_claim, new_total, unlocked,
        )
        return VestingPosition(total_claim=new_total, unlock_anchor=new_anchor)

    def redeemed(self, now: int, maturation_window: int) -> tuple[int, "VestingPosition"]:
        """
        Split off the unlocked amount.

        Returns the amount and the remaining position. The remainder restarts a
        full maturation window from ``now``; an emptied position is cleared.
        """
        unlocked = self.currently_unlocked(now, maturation_window)
        remaining = self.total_claim - unlocked
        if remaining == 0:
            return unlocked, VestingPosition()
        return unlocked, VestingPosition(total_claim=remaining, unlock_anchor=Fraction(now))

    def matures_at(self, maturation_window: int) -> int | None:
        """First whole second at which the full claim is unlocked."""
        if self.unlock_anchor is None:
            return None
        return math.ceil(self.unlock_anchor + maturation_window)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_claim": self.total_claim,
            "unlock_anchor": str(self.unlock_anchor) if self.unlock_anchor is not None else None,
        }
