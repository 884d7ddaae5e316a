import pytest

from vestbond.core.clock import ManualClock
from vestbond.core.config import IssuerConfig
from vestbond.core.contracts.erc20 import ERC20Token
from vestbond.core.issuer import BondIssuer
from vestbond.core.oracle import StaticReserveOracle

START_TIME = 1_700_000_000
MINTER = "minter"
OWNER = "treasury"
DEPOSITORS = ("alice", "bob")

OWNER_REWARD_BALANCE = 10**24
DEPOSITOR_REFERENCE_BALANCE = 10**22
INITIAL_RESERVE = 10**21


@pytest.fixture
def clock():
    return ManualClock(START_TIME)


@pytest.fixture
def issuer_config():
    return IssuerConfig()


@pytest.fixture
def reward_token():
    return ERC20Token(name="Bond Reward", symbol="RWD", owner=MINTER)


@pytest.fixture
def reference_token():
    return ERC20Token(name="Bond Reference", symbol="REF", owner=MINTER)


@pytest.fixture
def issuer(clock, reward_token, reference_token, issuer_config):
    """Issuer with a funded owner and depositors who approved it on both ledgers."""
    issuer = BondIssuer(
        owner=OWNER,
        reward_token=reward_token,
        reference_token=reference_token,
        oracle=StaticReserveOracle(10, 1),
        config=issuer_config,
        time_provider=clock,
    )
    reward_token.mint(MINTER, OWNER, OWNER_REWARD_BALANCE)
    reward_token.approve(OWNER, issuer.address, reward_token.UINT256_MAX)
    reference_token.approve(OWNER, issuer.address, reference_token.UINT256_MAX)
    for account in DEPOSITORS:
        reference_token.mint(MINTER, account, DEPOSITOR_REFERENCE_BALANCE)
        reference_token.approve(account, issuer.address, reference_token.UINT256_MAX)
    return issuer


@pytest.fixture
def funded_issuer(issuer):
    issuer.add_reserve(OWNER, INITIAL_RESERVE)
    return issuer
