"""
Two-phase ownership hand-off, exercised directly and through the issuer.
"""

import pytest

from vestbond.core.access_control import OwnershipPhase, OwnershipState, normalize_address
from vestbond.core.exceptions import InvalidAddressError, TimerExpiredError, UnauthorizedError

CONFIRM_WINDOW = 129_600
OWNER = "treasury"
CANDIDATE = "council"


@pytest.fixture
def ownership():
    return OwnershipState(owner=OWNER, confirm_window=CONFIRM_WINDOW)


class TestOwnershipState:
    def test_starts_stable(self, ownership):
        assert ownership.phase(0) == OwnershipPhase.STABLE
        assert ownership.pending_owner is None

    def test_propose_and_confirm(self, ownership):
        deadline = ownership.propose(OWNER, CANDIDATE, now=100)

        assert deadline == 100 + CONFIRM_WINDOW
        assert ownership.phase(100) == OwnershipPhase.PENDING
        assert ownership.confirm(CANDIDATE, now=200) == OWNER
        assert ownership.owner == CANDIDATE
        assert ownership.phase(200) == OwnershipPhase.STABLE

    def test_confirm_at_deadline_succeeds(self, ownership):
        deadline = ownership.propose(OWNER, CANDIDATE, now=0)
        ownership.confirm(CANDIDATE, now=deadline)
        assert ownership.owner == CANDIDATE

    def test_confirm_after_deadline_expires_proposal(self, ownership):
        deadline = ownership.propose(OWNER, CANDIDATE, now=0)

        with pytest.raises(TimerExpiredError):
            ownership.confirm(CANDIDATE, now=deadline + 1)

        assert ownership.owner == OWNER
        assert ownership.pending_owner is None
        with pytest.raises(UnauthorizedError):
            ownership.confirm(CANDIDATE, now=deadline + 2)

    def test_phase_reports_stable_after_deadline(self, ownership):
        deadline = ownership.propose(OWNER, CANDIDATE, now=0)
        assert ownership.phase(deadline) == OwnershipPhase.PENDING
        assert ownership.phase(deadline + 1) == OwnershipPhase.STABLE

    def test_only_owner_proposes(self, ownership):
        with pytest.raises(UnauthorizedError):
            ownership.propose(CANDIDATE, CANDIDATE, now=0)

    def test_only_candidate_confirms(self, ownership):
        with pytest.raises(UnauthorizedError):
            ownership.confirm(CANDIDATE, now=0)

        ownership.propose(OWNER, CANDIDATE, now=0)
        with pytest.raises(UnauthorizedError):
            ownership.confirm("mallory", now=1)
        with pytest.raises(UnauthorizedError):
            ownership.confirm(OWNER, now=1)
        assert ownership.pending_owner == CANDIDATE

    def test_new_proposal_replaces_old(self, ownership):
        ownership.propose(OWNER, CANDIDATE, now=0)
        deadline = ownership.propose(OWNER, "auditor", now=50)

        assert ownership.pending_owner == "auditor"
        assert ownership.pending_deadline == deadline
        with pytest.raises(UnauthorizedError):
            ownership.confirm(CANDIDATE, now=60)

    def test_cancel(self, ownership):
        ownership.propose(OWNER, CANDIDATE, now=0)
        with pytest.raises(UnauthorizedError):
            ownership.cancel(CANDIDATE)

        ownership.cancel(OWNER)
        assert ownership.phase(0) == OwnershipPhase.STABLE

    @pytest.mark.parametrize("candidate", ["", "   ", "0x" + "0" * 40, None])
    def test_invalid_candidate(self, ownership, candidate):
        with pytest.raises(InvalidAddressError):
            ownership.propose(OWNER, candidate, now=0)

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            OwnershipState(owner=OWNER, confirm_window=0)


def test_normalize_address():
    assert normalize_address("  Alice ") == "alice"
    with pytest.raises(InvalidAddressError):
        normalize_address("0X" + "0" * 40)


class TestIssuerOwnership:
    def test_handoff_moves_privileges(self, funded_issuer, clock):
        deadline = funded_issuer.transfer_ownership(OWNER, CANDIDATE)

        assert deadline == clock.now + CONFIRM_WINDOW
        assert funded_issuer.state().pending_deadline == deadline
        assert funded_issuer.ownership_phase() == OwnershipPhase.PENDING
        # Candidate holds no privilege before confirming
        with pytest.raises(UnauthorizedError):
            funded_issuer.set_bonus_range(CANDIDATE, 1, 2)

        clock.advance(CONFIRM_WINDOW)
        assert funded_issuer.confirm_ownership(CANDIDATE) == OWNER

        assert funded_issuer.owner == CANDIDATE
        assert funded_issuer.state().pending_deadline is None
        funded_issuer.set_bonus_range(CANDIDATE, 1, 2)
        with pytest.raises(UnauthorizedError):
            funded_issuer.set_bonus_range(OWNER, 1, 2)

    def test_expired_confirmation(self, funded_issuer, clock):
        funded_issuer.transfer_ownership(OWNER, CANDIDATE)
        clock.advance(CONFIRM_WINDOW + 1)

        with pytest.raises(TimerExpiredError):
            funded_issuer.confirm_ownership(CANDIDATE)

        assert funded_issuer.owner == OWNER
        assert funded_issuer.pending_owner is None
        assert funded_issuer.state().pending_deadline is None
        assert funded_issuer.ownership_phase() == OwnershipPhase.STABLE

    def test_cancel_through_issuer(self, funded_issuer):
        funded_issuer.transfer_ownership(OWNER, CANDIDATE)
        funded_issuer.cancel_ownership_transfer(OWNER)

        assert funded_issuer.pending_owner is None
        assert funded_issuer.state().pending_deadline is None
        with pytest.raises(UnauthorizedError):
            funded_issuer.confirm_ownership(CANDIDATE)

    def test_new_owner_receives_sweep(self, funded_issuer, clock, reward_token):
        funded_issuer.transfer_ownership(OWNER, CANDIDATE)
        funded_issuer.confirm_ownership(CANDIDATE)

        swept = funded_issuer.sweep_asset(CANDIDATE, reward_token)

        assert reward_token.balance_of(CANDIDATE) == swept == 10**21

    def test_lapsed_proposal_clears_reported_deadline(self, funded_issuer, clock):
        deadline = funded_issuer.transfer_ownership(OWNER, CANDIDATE)
        assert funded_issuer.to_dict()["state"]["pending_deadline"] == deadline

        clock.advance(CONFIRM_WINDOW + 1)

        assert funded_issuer.ownership_phase() == OwnershipPhase.STABLE
        assert funded_issuer.state().pending_deadline is None
        assert funded_issuer.to_dict()["state"]["pending_deadline"] is None
