"""
vestbond - vesting bond issuer

Sells bonds: a depositor converts a reference asset into a claim on a
fixed reward pool. The claim unlocks linearly over a maturation window and
earns a time-ramped bonus that favours early deposits in each bonus cycle.

Main Components:
- Issuer: reserve accounting, bonus ramp, vesting ledger, ownership hand-off
- Contracts: ERC20 asset ledger consumed by the issuer
- Oracle: reserve-ratio feeds
- CLI: configuration inspection, quotes and scenario simulation
"""

__version__ = "0.1.0"
__author__ = "vestbond Development Team"

__all__ = []
