"""
vestbond core: the bond issuer and its collaborators.
"""

from .access_control import OwnershipPhase, OwnershipState
from .bonus import BonusRamp, ramp_bonus, validate_bonus_range
from .clock import ManualClock, SystemClock
from .config import ConfigManager, IssuerConfig, LoggingConfig
from .contracts import ERC20Token
from .exceptions import (
    BondError,
    ConfigurationError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidRangeError,
    LedgerError,
    NotAvailableError,
    TimerExpiredError,
    TransferFailedError,
    UnauthorizedError,
)
from .issuer import BondIssuer, IssuerEvent, IssuerState, StakeQuote
from .oracle import StaticReserveOracle, TWAPReserveOracle
from .vesting import VestingPosition

__all__ = [
    # Issuer
    "BondIssuer",
    "IssuerState",
    "IssuerEvent",
    "StakeQuote",
    # Math
    "BonusRamp",
    "ramp_bonus",
    "validate_bonus_range",
    "VestingPosition",
    # Ownership
    "OwnershipPhase",
    "OwnershipState",
    # Collaborators
    "ERC20Token",
    "StaticReserveOracle",
    "TWAPReserveOracle",
    "ManualClock",
    "SystemClock",
    # Configuration
    "ConfigManager",
    "IssuerConfig",
    "LoggingConfig",
    # Errors
    "BondError",
    "ConfigurationError",
    "InvalidAddressError",
    "InvalidAmountError",
    "InvalidRangeError",
    "LedgerError",
    "NotAvailableError",
    "TimerExpiredError",
    "TransferFailedError",
    "UnauthorizedError",
]
