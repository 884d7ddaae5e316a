"""
Two-phase ownership hand-off for the bond issuer.

The owner proposes a candidate, and the candidate must confirm before a
deadline. Until confirmation the candidate holds no privilege; an expired
proposal is discarded and has to be issued again.

States:
- STABLE(owner)
- PENDING(owner, pending_owner, deadline)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .contracts.erc20 import ZERO_ADDRESS
from .exceptions import InvalidAddressError, TimerExpiredError, UnauthorizedError

logger = logging.getLogger(__name__)


class OwnershipPhase(Enum):
    STABLE = "stable"
    PENDING = "pending"


@dataclass
class OwnershipState:
    """
    Owner record with an optional pending hand-off.

    ``pending_deadline`` is inclusive: confirmation at exactly the deadline
    succeeds, one second later fails.
    """

    owner: str
    confirm_window: int
    pending_owner: str | None = None
    pending_deadline: int | None = None

    def __post_init__(self) -> None:
        self.owner = normalize_address(self.owner, "owner")
        if not isinstance(self.confirm_window, int) or self.confirm_window <= 0:
            raise ValueError("Confirm window must be a positive integer.")

    def phase(self, now: int) -> OwnershipPhase:
        if self.pending_owner is None:
            return OwnershipPhase.STABLE
        if self.pending_deadline is not None and now > self.pending_deadline:
            return OwnershipPhase.STABLE
        return OwnershipPhase.PENDING

    def require_owner(self, caller: str, operation: str = "") -> None:
        """Single authorization guard for every privileged entry point."""
        caller_norm = caller.strip().lower() if isinstance(caller, str) else ""
        if caller_norm != self.owner:
            logger.warning(
                "Access denied: caller is not owner",
                extra={
                    "event": "ownership.unauthorized",
                    "caller": caller_norm[:10],
                    "operation": operation,
                }
            )
            raise UnauthorizedError(
                f"Unauthorized: {operation or 'operation'} requires the owner",
                details={"caller": caller_norm, "operation": operation},
            )

    def propose(self, caller: str, candidate: str, now: int) -> int:
        """
        Start a hand-off to ``candidate``; replaces any outstanding proposal.

        Returns:
            The confirmation deadline
        """
        self.require_owner(caller, "transfer_ownership")
        candidate_norm = normalize_address(candidate, "candidate")

        deadline = now + self.confirm_window
        self.pending_owner = candidate_norm
        self.pending_deadline = deadline

        logger.info(
            "Ownership transfer proposed",
            extra={
                "event": "ownership.proposed",
                "owner": self.owner[:10],
                "candidate": candidate_norm[:10],
                "deadline": deadline,
            }
        )
        return deadline

    def confirm(self, caller: str, now: int) -> str:
        """
        Complete the hand-off. Only the pending candidate may call this.

        Raises:
            UnauthorizedError: No proposal, or caller is not the candidate
            TimerExpiredError: Called after the deadline; the proposal is discarded
        """
        caller_norm = caller.strip().lower() if isinstance(caller, str) else ""
        if self.pending_owner is None or caller_norm != self.pending_owner:
            raise UnauthorizedError(
                "Unauthorized: caller is not the pending owner",
                details={"caller": caller_norm},
            )

        if self.pending_deadline is not None and now > self.pending_deadline:
            expired_deadline = self.pending_deadline
            self.clear_pending()
            logger.warning(
                "Ownership confirmation expired",
                extra={
                    "event": "ownership.expired",
                    "candidate": caller_norm[:10],
                    "deadline": expired_deadline,
                    "now": now,
                }
            )
            raise TimerExpiredError(
                "Ownership confirmation window has expired",
                details={"deadline": expired_deadline, "now": now},
            )

        previous = self.owner
        self.owner = caller_norm
        self.clear_pending()

        logger.info(
            "Ownership transferred",
            extra={
                "event": "ownership.confirmed",
                "previous_owner": previous[:10],
                "new_owner": caller_norm[:10],
            }
        )
        return previous

    def cancel(self, caller: str) -> None:
        self.require_owner(caller, "cancel_ownership_transfer")
        self.clear_pending()
        logger.info("Ownership transfer cancelled", extra={"event": "ownership.cancelled"})

    def clear_pending(self) -> None:
        self.pending_owner = None
        self.pending_deadline = None


def normalize_address(address: str, field: str = "address") -> str:
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddressError(f"{field} cannot be empty")
    address_norm = address.strip().lower()
    if address_norm == ZERO_ADDRESS:
        raise InvalidAddressError(f"{field} is zero address")
    return address_norm
