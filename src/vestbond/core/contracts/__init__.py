"""
Asset ledger contracts consumed by the bond issuer.

- ERC20: fungible token ledger for the reward and reference assets
"""

from .erc20 import ZERO_ADDRESS, AssetLedger, ERC20Token, TokenEvent

__all__ = [
    "AssetLedger",
    "ERC20Token",
    "TokenEvent",
    "ZERO_ADDRESS",
]
