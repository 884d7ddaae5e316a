"""
Fungible asset ledger used by the bond issuer.

The issuer never keeps balances of its own; it consumes a ledger with
ERC20 semantics for both the reward asset it pays out and the reference
asset depositors pay in:
- balance_of / allowance views
- transfer, approve, transfer_from
- owner-only minting for funding test and simulation accounts
- Transfer/Approval event log

Balances are integers in base units. Every state-changing call validates
all inputs before touching a balance, so a rejected call leaves the ledger
unchanged.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..exceptions import LedgerError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


class AssetLedger(Protocol):
    """Interface the issuer requires from an asset ledger."""

    address: str

    def balance_of(self, account: str) -> int: ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool: ...

    def transfer_from(
        self, spender: str, from_addr: str, to_addr: str, amount: int
    ) -> bool: ...

    def approve(self, owner: str, spender: str, amount: int) -> bool: ...


@dataclass
class TokenEvent:
    """Represents a ledger event."""

    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ERC20Token:
    """
    In-memory ERC20 ledger.

    Security considerations:
    - 256-bit bound on every amount
    - Zero address checks on recipients and spenders
    - Unlimited allowance (UINT256_MAX) is never decremented
    """

    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0

    address: str = ""

    # Only the owner may mint
    owner: str = ""

    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)

    events: list[TokenEvent] = field(default_factory=list)

    # Supply cap (0 = unlimited)
    max_supply: int = 0

    UINT256_MAX: int = 2**256 - 1

    def __post_init__(self) -> None:
        if not self.address:
            addr_hash = hashlib.sha3_256(f"{self.name}:{self.symbol}".encode()).digest()
            self.address = f"0x{addr_hash[-20:].hex()}"
        self.address = self._normalize(self.address)
        self.owner = self._normalize(self.owner)

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        """Get the token balance of an account."""
        return self.balances.get(self._normalize(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        """Get the allowance granted by owner to spender."""
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)
        return self.allowances.get(owner_norm, {}).get(spender_norm, 0)

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Args:
            sender: Address sending tokens (the caller)
            recipient: Address receiving tokens
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            LedgerError: If the balance is insufficient or inputs are invalid
        """
        sender_norm = self._normalize(sender)
        recipient_norm = self._normalize(recipient)

        self._validate_address(recipient_norm, "recipient")
        self._validate_amount(amount)

        sender_balance = self.balances.get(sender_norm, 0)
        if sender_balance < amount:
            raise LedgerError(
                f"{self.symbol}: transfer amount exceeds balance "
                f"({amount} > {sender_balance})",
                details={"from": sender_norm, "amount": amount, "balance": sender_balance},
            )

        self.balances[sender_norm] = sender_balance - amount
        self.balances[recipient_norm] = self.balances.get(recipient_norm, 0) + amount

        self._emit("Transfer", sender_norm, recipient_norm, amount)

        logger.debug(
            "Ledger transfer",
            extra={
                "event": "ledger.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            }
        )

        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Approve spender to move up to ``amount`` of owner's tokens."""
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)

        self._validate_address(spender_norm, "spender")
        self._validate_amount(amount)

        self.allowances.setdefault(owner_norm, {})[spender_norm] = amount
        self._emit("Approval", owner_norm, spender_norm, amount)

        return True

    def transfer_from(
        self, spender: str, from_addr: str, to_addr: str, amount: int
    ) -> bool:
        """
        Transfer tokens using an allowance.

        Args:
            spender: Address executing the transfer (the caller)
            from_addr: Token owner
            to_addr: Recipient
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            LedgerError: If allowance or balance is insufficient
        """
        spender_norm = self._normalize(spender)
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)

        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        current_allowance = self.allowance(from_norm, spender_norm)
        if current_allowance < amount:
            raise LedgerError(
                f"{self.symbol}: insufficient allowance ({current_allowance} < {amount})",
                details={"owner": from_norm, "spender": spender_norm, "amount": amount},
            )

        from_balance = self.balances.get(from_norm, 0)
        if from_balance < amount:
            raise LedgerError(
                f"{self.symbol}: transfer amount exceeds balance ({amount} > {from_balance})",
                details={"from": from_norm, "amount": amount, "balance": from_balance},
            )

        if current_allowance != self.UINT256_MAX:
            self.allowances[from_norm][spender_norm] = current_allowance - amount

        self.balances[from_norm] = from_balance - amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount

        self._emit("Transfer", from_norm, to_norm, amount)

        return True

    def increase_allowance(self, owner: str, spender: str, added_value: int) -> bool:
        """Increase spender's allowance, saturating at UINT256_MAX."""
        new_allowance = min(self.allowance(owner, spender) + added_value, self.UINT256_MAX)
        return self.approve(owner, spender, new_allowance)

    def decrease_allowance(self, owner: str, spender: str, subtracted_value: int) -> bool:
        """Decrease spender's allowance; fails rather than going below zero."""
        current = self.allowance(owner, spender)
        if subtracted_value > current:
            raise LedgerError(f"{self.symbol}: decreased allowance below zero")
        return self.approve(owner, spender, current - subtracted_value)

    # ==================== Minting ====================

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """
        Mint new tokens (owner only).

        Raises:
            LedgerError: If the caller is not the owner or the cap is exceeded
        """
        if self._normalize(minter) != self.owner:
            raise LedgerError(f"{self.symbol}: caller is not owner")

        to_norm = self._normalize(to)
        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        if self.max_supply > 0 and self.total_supply + amount > self.max_supply:
            raise LedgerError(
                f"{self.symbol}: mint would exceed max supply "
                f"({self.total_supply + amount} > {self.max_supply})"
            )

        self.total_supply += amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount

        self._emit("Transfer", ZERO_ADDRESS, to_norm, amount)

        logger.info(
            "Ledger mint",
            extra={
                "event": "ledger.mint",
                "token": self.symbol,
                "to": to_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

        return True

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return address.lower()

    def _validate_address(self, address: str, field: str) -> None:
        if address == ZERO_ADDRESS or not address:
            raise LedgerError(f"{self.symbol}: {field} is zero address")

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise LedgerError(f"{self.symbol}: amount must be an integer")
        if amount < 0:
            raise LedgerError(f"{self.symbol}: amount cannot be negative")
        if amount > self.UINT256_MAX:
            raise LedgerError(f"{self.symbol}: amount exceeds uint256")

    def _emit(self, event_type: str, from_addr: str, to_addr: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type=event_type,
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
            )
        )

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        """Serialize ledger state to a dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "address": self.address,
            "owner": self.owner,
            "balances": dict(self.balances),
            "allowances": {k: dict(v) for k, v in self.allowances.items()},
            "max_supply": self.max_supply,
        }
