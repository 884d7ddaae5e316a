"""
Bond issuer: converts a reference asset into a vesting claim on a fixed reward pool.

Subsystems sharing one ``IssuerState`` record:
- Reserve accounting: uncommitted pool capacity, top-ups and sweeps
- Bonus ramp: time-interpolated deposit bonus, reset on every range change
- Vesting ledger: per-depositor claim with continuity-preserving merges
- Ownership: two-phase hand-off guarding privileged calls

Every public operation runs under one re-entrant lock, reads the clock and
oracle once, validates before calling a ledger, and mutates state only after
all ledger calls have succeeded. A failed operation leaves no trace.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from .access_control import OwnershipPhase, OwnershipState, normalize_address
from .bonus import BonusRamp, apply_bonus, validate_bonus_range
from .clock import SystemClock
from .config import IssuerConfig
from .contracts.erc20 import AssetLedger
from .exceptions import (
    InvalidAmountError,
    LedgerError,
    NotAvailableError,
    TransferFailedError,
)
from .oracle import ReserveOracle
from .vesting import VestingPosition

logger = logging.getLogger(__name__)


@dataclass
class IssuerState:
    """The issuer's single mutable record."""

    reserve_remaining: int = 0
    bonus_min: int = 0
    bonus_max: int = 0
    bonus_anchor_time: int = 0
    # Deadline of an outstanding ownership proposal, None when stable
    pending_deadline: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reserve_remaining": self.reserve_remaining,
            "bonus_min": self.bonus_min,
            "bonus_max": self.bonus_max,
            "bonus_anchor_time": self.bonus_anchor_time,
            "pending_deadline": self.pending_deadline,
        }


@dataclass(frozen=True)
class StakeQuote:
    """Conversion of an external value into a bonus-adjusted grant."""

    external_value: int
    normalized: int
    bonus: int
    granted: int


@dataclass
class IssuerEvent:
    event_type: str
    account: str
    amount: int
    timestamp: int
    details: dict[str, Any] = field(default_factory=dict)


class BondIssuer:
    def __init__(
        self,
        owner: str,
        reward_token: AssetLedger,
        reference_token: AssetLedger,
        oracle: ReserveOracle,
        config: IssuerConfig | None = None,
        time_provider: Callable[[], int] | None = None,
        address: str | None = None,
    ):
        """
        Args:
            owner: Initial administrator
            reward_token: Ledger of the asset paid out to depositors
            reference_token: Ledger of the asset depositors pay in
            oracle: Reports the reference/reward conversion ratio
            config: Deployment parameters; reference defaults when omitted
            time_provider: Zero-argument callable returning Unix seconds
            address: Issuer account on both ledgers; derived when omitted
        """
        self.config = config or IssuerConfig()
        self.config.validate()

        self.reward_token = reward_token
        self.reference_token = reference_token
        self.oracle = oracle
        self._time_provider = time_provider or SystemClock()

        self.ownership = OwnershipState(owner=owner, confirm_window=self.config.confirm_window)
        self.address = normalize_address(address) if address else self._derive_address()

        now = self._current_time()
        self._state = IssuerState(
            bonus_min=self.config.bonus_min,
            bonus_max=self.config.bonus_max,
            bonus_anchor_time=now,
        )
        self._positions: dict[str, VestingPosition] = {}

        self.total_reserve_added = 0
        self.total_redeemed = 0
        self.total_swept = 0

        self.events: list[IssuerEvent] = []
        self._lock = threading.RLock()

        logger.info(
            "BondIssuer initialized",
            extra={
                "event": "issuer.initialized",
                "address": self.address,
                "owner": self.ownership.owner[:10],
                "reward_token": reward_token.address,
                "reference_token": reference_token.address,
                "bonus_min": self._state.bonus_min,
                "bonus_max": self._state.bonus_max,
            }
        )

    # ==================== Reserve Accounting ====================

    def add_reserve(self, caller: str, amount: int) -> int:
        """
        Top up the uncommitted reserve from the caller's reward-asset balance.

        The caller must have approved the issuer on the reward ledger first.

        Returns:
            The new reserve
        """
        with self._lock:
            now = self._current_time()
            caller_norm = normalize_address(caller, "caller")
            self._validate_amount(amount)
            if amount == 0:
                raise InvalidAmountError("Reserve top-up must be greater than zero")

            self._pull(self.reward_token, caller_norm, amount)

            self._state.reserve_remaining += amount
            self.total_reserve_added += amount
            self._record("reserve_added", caller_norm, amount, now)

            logger.info(
                "Reserve added",
                extra={
                    "event": "issuer.reserve_added",
                    "caller": caller_norm[:10],
                    "amount": amount,
                    "reserve_remaining": self._state.reserve_remaining,
                }
            )
            return self._state.reserve_remaining

    def sweep_asset(self, caller: str, token: AssetLedger) -> int:
        """
        Send recoverable funds to the owner (owner only).

        For the reward asset only the uncommitted reserve is swept; committed
        claims stay in the issuer. Any other asset is swept in full.

        Returns:
            The amount transferred
        """
        with self._lock:
            now = self._current_time()
            self.ownership.require_owner(caller, "sweep_asset")
            owner = self.ownership.owner

            if self._is_reward_token(token):
                amount = self._state.reserve_remaining
                self._push(token, owner, amount)
                self._state.reserve_remaining = 0
                self.total_swept += amount
            else:
                amount = token.balance_of(self.address)
                self._push(token, owner, amount)

            self._record("asset_swept", owner, amount, now, {"token": token.address})
            logger.info(
                "Asset swept",
                extra={
                    "event": "issuer.asset_swept",
                    "token": token.address,
                    "amount": amount,
                    "owner": owner[:10],
                }
            )
            return amount

    # ==================== Bonus Ramp ====================

    def set_bonus_range(self, caller: str, bonus_min: int, bonus_max: int) -> None:
        """Change the bonus bounds (owner only) and restart the ramp from ``bonus_min``."""
        with self._lock:
            now = self._current_time()
            self.ownership.require_owner(caller, "set_bonus_range")
            validate_bonus_range(bonus_min, bonus_max, self.config.bonus_ceiling)

            self._state.bonus_min = bonus_min
            self._state.bonus_max = bonus_max
            self._state.bonus_anchor_time = now

            self._record("bonus_range_set", self.ownership.owner, 0, now,
                         {"bonus_min": bonus_min, "bonus_max": bonus_max})
            logger.info(
                "Bonus range updated",
                extra={
                    "event": "issuer.bonus_range_set",
                    "bonus_min": bonus_min,
                    "bonus_max": bonus_max,
                    "anchor": now,
                }
            )

    @property
    def bonus_ramp(self) -> BonusRamp:
        return BonusRamp(
            bonus_min=self._state.bonus_min,
            bonus_max=self._state.bonus_max,
            anchor=self._state.bonus_anchor_time,
            ramp_duration=self.config.ramp_duration,
        )

    def current_bonus(self) -> int:
        with self._lock:
            return self.bonus_ramp.bonus_at(self._current_time())

    # ==================== Deposits ====================

    def quote(self, external_value: int) -> StakeQuote:
        """Preview the grant ``stake`` would create right now, without bounds checks.

        Pair with ``check_deposit_bounds`` to learn whether ``stake`` would accept it.
        """
        with self._lock:
            return self._quote(external_value, self._current_time())

    def check_deposit_bounds(self, quote: StakeQuote) -> None:
        """Raise NotAvailableError if ``stake`` would refuse ``quote`` on size alone."""
        if quote.normalized > self.config.max_deposit:
            raise NotAvailableError(
                f"Deposit of {quote.normalized} exceeds the maximum of {self.config.max_deposit}",
                details={"normalized": quote.normalized, "max_deposit": self.config.max_deposit},
            )
        # A grant smaller than the window would unlock nothing per second
        if quote.granted * self.config.grant_scale < self.config.maturation_window:
            raise NotAvailableError(
                f"Deposit too small: grant of {quote.granted} cannot vest over "
                f"{self.config.maturation_window} seconds",
                details={"granted": quote.granted, "maturation_window": self.config.maturation_window},
            )

    def stake(self, caller: str, external_value: int) -> StakeQuote:
        """
        Buy a bond with ``external_value`` of the reference asset.

        The value is converted at the oracle ratio, raised by the current
        bonus, checked against the deposit bounds and the reserve, and merged
        into the caller's position.

        Raises:
            InvalidAmountError: Negative or non-integer value
            NotAvailableError: Outside deposit bounds or above the reserve
            TransferFailedError: Reference asset could not be pulled
        """
        with self._lock:
            now = self._current_time()
            caller_norm = normalize_address(caller, "caller")
            quote = self._quote(external_value, now)
            self.check_deposit_bounds(quote)

            if quote.granted > self._state.reserve_remaining:
                raise NotAvailableError(
                    f"Grant of {quote.granted} exceeds reserve of {self._state.reserve_remaining}",
                    details={"granted": quote.granted, "reserve_remaining": self._state.reserve_remaining},
                )

            self._pull(self.reference_token, caller_norm, external_value)

            self._state.reserve_remaining -= quote.granted
            self._merge_position(caller_norm, quote.granted, now)

            self._record("staked", caller_norm, quote.granted, now, {
                "external_value": external_value,
                "normalized": quote.normalized,
                "bonus": quote.bonus,
            })
            logger.info(
                "Bond staked",
                extra={
                    "event": "issuer.stake",
                    "caller": caller_norm[:10],
                    "external_value": external_value,
                    "normalized": quote.normalized,
                    "bonus": quote.bonus,
                    "granted": quote.granted,
                    "reserve_remaining": self._state.reserve_remaining,
                }
            )
            return quote

    def stake_for_remaining(self, caller: str) -> int:
        """
        Claim the entire reserve 1:1, without conversion or bonus (owner only).

        Returns:
            The amount added to the caller's claim
        """
        with self._lock:
            now = self._current_time()
            self.ownership.require_owner(caller, "stake_for_remaining")
            caller_norm = self.ownership.owner

            amount = self._state.reserve_remaining
            if amount == 0:
                raise NotAvailableError("Reserve is empty")

            self._state.reserve_remaining = 0
            self._merge_position(caller_norm, amount, now)

            self._record("staked_remaining", caller_norm, amount, now)
            logger.info(
                "Remaining reserve staked",
                extra={
                    "event": "issuer.stake_for_remaining",
                    "caller": caller_norm[:10],
                    "amount": amount,
                }
            )
            return amount

    # ==================== Redemption ====================

    def withdraw(self, caller: str) -> int:
        """
        Redeem everything unlocked so far.

        The remainder of the claim restarts a full maturation window from now.

        Raises:
            NotAvailableError: Nothing is unlocked
            TransferFailedError: Reward asset could not be sent
        """
        with self._lock:
            now = self._current_time()
            caller_norm = normalize_address(caller, "caller")
            position = self._positions.get(caller_norm, VestingPosition())

            unlocked, remaining = position.redeemed(now, self.config.maturation_window)
            if unlocked == 0:
                raise NotAvailableError(
                    "Nothing unlocked to withdraw",
                    details={"account": caller_norm, "total_claim": position.total_claim},
                )

            self._push(self.reward_token, caller_norm, unlocked)

            if remaining.is_empty:
                self._positions.pop(caller_norm, None)
            else:
                self._positions[caller_norm] = remaining
            self.total_redeemed += unlocked

            self._record("withdrawn", caller_norm, unlocked, now,
                         {"remaining_claim": remaining.total_claim})
            logger.info(
                "Claim withdrawn",
                extra={
                    "event": "issuer.withdraw",
                    "caller": caller_norm[:10],
                    "amount": unlocked,
                    "remaining_claim": remaining.total_claim,
                }
            )
            return unlocked

    # ==================== Ownership ====================

    def transfer_ownership(self, caller: str, candidate: str) -> int:
        """Propose ``candidate`` as the next owner; returns the confirmation deadline."""
        with self._lock:
            now = self._current_time()
            deadline = self.ownership.propose(caller, candidate, now)
            self._state.pending_deadline = deadline
            self._record("ownership_proposed", self.ownership.pending_owner, 0, now,
                         {"deadline": deadline})
            return deadline

    def confirm_ownership(self, caller: str) -> str:
        """Accept a pending proposal; returns the previous owner."""
        with self._lock:
            now = self._current_time()
            try:
                previous = self.ownership.confirm(caller, now)
            finally:
                self._state.pending_deadline = self.ownership.pending_deadline
            self._record("ownership_confirmed", self.ownership.owner, 0, now,
                         {"previous_owner": previous})
            return previous

    def cancel_ownership_transfer(self, caller: str) -> None:
        with self._lock:
            self.ownership.cancel(caller)
            self._state.pending_deadline = None

    @property
    def owner(self) -> str:
        return self.ownership.owner

    @property
    def pending_owner(self) -> str | None:
        return self.ownership.pending_owner

    def ownership_phase(self) -> OwnershipPhase:
        with self._lock:
            return self.ownership.phase(self._current_time())

    # ==================== Queries ====================

    def currently_unlocked(self, account: str) -> int:
        with self._lock:
            position = self._positions.get(normalize_address(account, "account"), VestingPosition())
            return position.currently_unlocked(self._current_time(), self.config.maturation_window)

    def total_claim(self, account: str) -> int:
        with self._lock:
            return self._positions.get(normalize_address(account, "account"), VestingPosition()).total_claim

    def position(self, account: str) -> VestingPosition:
        with self._lock:
            return self._positions.get(normalize_address(account, "account"), VestingPosition())

    def positions(self) -> dict[str, VestingPosition]:
        with self._lock:
            return dict(self._positions)

    def state(self) -> IssuerState:
        """Copy of the packed state record."""
        with self._lock:
            return self._state_snapshot(self._current_time())

    def outstanding_claims(self) -> int:
        with self._lock:
            return sum(p.total_claim for p in self._positions.values())

    def check_conservation(self) -> bool:
        """
        Verify the pool accounting.

        ``claims + reserve + redeemed + swept == added`` must hold exactly, and
        the issuer's reward balance must cover claims plus reserve.
        """
        with self._lock:
            claims = self.outstanding_claims()
            reserve = self._state.reserve_remaining
            balanced = (
                claims + reserve + self.total_redeemed + self.total_swept
                == self.total_reserve_added
            )
            backed = self.reward_token.balance_of(self.address) >= claims + reserve
            if not (balanced and backed):
                logger.error(
                    "Pool accounting violated",
                    extra={
                        "event": "issuer.conservation_violated",
                        "claims": claims,
                        "reserve_remaining": reserve,
                        "redeemed": self.total_redeemed,
                        "swept": self.total_swept,
                        "added": self.total_reserve_added,
                    }
                )
            return balanced and backed

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "address": self.address,
                "owner": self.ownership.owner,
                "pending_owner": self.ownership.pending_owner,
                "state": self._state_snapshot(self._current_time()).to_dict(),
                "positions": {k: v.to_dict() for k, v in self._positions.items()},
                "total_reserve_added": self.total_reserve_added,
                "total_redeemed": self.total_redeemed,
                "total_swept": self.total_swept,
            }

    # ==================== Helpers ====================

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    def _state_snapshot(self, now: int) -> IssuerState:
        # An expired proposal is cleared lazily; report it as already gone
        pending = self.ownership.phase(now) == OwnershipPhase.PENDING
        return replace(self._state, pending_deadline=self._state.pending_deadline if pending else None)

    def _derive_address(self) -> str:
        seed = f"vestbond:{self.reward_token.address}:{self.reference_token.address}:{self.ownership.owner}"
        return f"0x{hashlib.sha3_256(seed.encode()).digest()[-20:].hex()}"

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidAmountError(f"Amount must be an integer, got {amount!r}")
        if amount < 0:
            raise InvalidAmountError(f"Amount cannot be negative: {amount}")

    def _quote(self, external_value: int, now: int) -> StakeQuote:
        self._validate_amount(external_value)
        numerator, denominator = self.oracle.get_reserve_ratio()
        if numerator <= 0 or denominator <= 0:
            raise NotAvailableError(
                f"Oracle reported an unusable ratio {numerator}/{denominator}"
            )

        normalized = external_value * denominator // numerator
        bonus = self.bonus_ramp.bonus_at(now)
        granted = apply_bonus(normalized, bonus)

        logger.debug(
            "Stake quoted",
            extra={
                "event": "issuer.quote",
                "external_value": external_value,
                "ratio": f"{numerator}/{denominator}",
                "bonus": bonus,
                "granted": granted,
            }
        )
        return StakeQuote(
            external_value=external_value,
            normalized=normalized,
            bonus=bonus,
            granted=granted,
        )

    def _merge_position(self, account: str, amount: int, now: int) -> None:
        position = self._positions.get(account, VestingPosition())
        self._positions[account] = position.merged(amount, now, self.config.maturation_window)

    def _is_reward_token(self, token: AssetLedger) -> bool:
        return token is self.reward_token or token.address.lower() == self.reward_token.address.lower()

    def _pull(self, token: AssetLedger, from_addr: str, amount: int) -> None:
        symbol = getattr(token, "symbol", token.address)
        try:
            ok = token.transfer_from(self.address, from_addr, self.address, amount)
        except LedgerError as exc:
            raise TransferFailedError(
                f"{symbol}: could not pull {amount} from {from_addr[:10]}: {exc.message}",
                details={"token": token.address, "from": from_addr, "amount": amount},
            ) from exc
        if not ok:
            raise TransferFailedError(
                f"{symbol}: ledger refused transfer_from of {amount}",
                details={"token": token.address, "from": from_addr, "amount": amount},
            )

    def _push(self, token: AssetLedger, to_addr: str, amount: int) -> None:
        symbol = getattr(token, "symbol", token.address)
        try:
            ok = token.transfer(self.address, to_addr, amount)
        except LedgerError as exc:
            raise TransferFailedError(
                f"{symbol}: could not send {amount} to {to_addr[:10]}: {exc.message}",
                details={"token": token.address, "to": to_addr, "amount": amount},
            ) from exc
        if not ok:
            raise TransferFailedError(
                f"{symbol}: ledger refused transfer of {amount}",
                details={"token": token.address, "to": to_addr, "amount": amount},
            )

    def _record(
        self,
        event_type: str,
        account: str,
        amount: int,
        timestamp: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.events.append(
            IssuerEvent(
                event_type=event_type,
                account=account,
                amount=amount,
                timestamp=timestamp,
                details=details or {},
            )
        )
