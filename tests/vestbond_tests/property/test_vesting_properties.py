"""
Property-based tests for the unlock schedule and bonus ramp.

The unlocked amount must be monotone in time, bounded by the claim, and
complete at maturity. Folding a grant into a position must not change the
amount unlocked at that instant. The bonus must stay inside its bounds and
never decrease as the ramp advances.

Uses Hypothesis for property-based testing with random inputs.
"""

from fractions import Fraction

from hypothesis import assume, given, settings, strategies as st

from vestbond.core.bonus import apply_bonus, ramp_bonus
from vestbond.core.vesting import VestingPosition

claims = st.integers(min_value=1, max_value=10**30)
windows = st.integers(min_value=1, max_value=10**9)
times = st.integers(min_value=0, max_value=10**10)


class TestUnlockSchedule:
    @given(total=claims, window=windows, anchor=times, t1=times, t2=times)
    @settings(max_examples=300)
    def test_unlock_is_monotone_and_bounded(self, total, window, anchor, t1, t2):
        position = VestingPosition(total_claim=total, unlock_anchor=Fraction(anchor))
        early, late = sorted((t1, t2))

        unlocked_early = position.currently_unlocked(early, window)
        unlocked_late = position.currently_unlocked(late, window)

        assert 0 <= unlocked_early <= unlocked_late <= total

    @given(total=claims, window=windows, anchor=times, extra=st.integers(min_value=0, max_value=10**9))
    @settings(max_examples=200)
    def test_full_claim_at_maturity(self, total, window, anchor, extra):
        position = VestingPosition(total_claim=total, unlock_anchor=Fraction(anchor))
        assert position.currently_unlocked(anchor + window + extra, window) == total

    @given(total=claims, window=windows, anchor=times, elapsed=st.integers(min_value=0, max_value=10**9))
    @settings(max_examples=200)
    def test_unlock_never_overstated(self, total, window, anchor, elapsed):
        position = VestingPosition(total_claim=total, unlock_anchor=Fraction(anchor))
        unlocked = position.currently_unlocked(anchor + elapsed, window)
        assert unlocked * window <= total * min(elapsed, window)


class TestMergeContinuity:
    @given(
        total=claims,
        granted=claims,
        window=windows,
        anchor=st.integers(min_value=0, max_value=10**9),
        elapsed=st.integers(min_value=0, max_value=2 * 10**9),
    )
    @settings(max_examples=300)
    def test_merge_preserves_unlocked_now(self, total, granted, window, anchor, elapsed):
        position = VestingPosition(total_claim=total, unlock_anchor=Fraction(anchor))
        now = anchor + elapsed

        merged = position.merged(granted, now, window)

        assert merged.total_claim == total + granted
        assert merged.currently_unlocked(now, window) == position.currently_unlocked(now, window)
        assert merged.unlock_anchor <= now
        assert merged.currently_unlocked(now + window, window) == total + granted

    @given(
        grants=st.lists(st.integers(min_value=1, max_value=10**24), min_size=1, max_size=8),
        gaps=st.lists(st.integers(min_value=0, max_value=10**6), min_size=8, max_size=8),
        window=st.integers(min_value=1, max_value=10**6),
    )
    @settings(max_examples=150)
    def test_repeated_top_ups_stay_continuous(self, grants, gaps, window):
        position = VestingPosition()
        now = 0
        for granted, gap in zip(grants, gaps):
            now += gap
            before = position.currently_unlocked(now, window)
            position = position.merged(granted, now, window)
            assert position.currently_unlocked(now, window) == before

        assert position.total_claim == sum(grants)

    @given(total=claims, window=windows, anchor=times, elapsed=times)
    @settings(max_examples=200)
    def test_redeem_splits_claim_exactly(self, total, window, anchor, elapsed):
        position = VestingPosition(total_claim=total, unlock_anchor=Fraction(anchor))
        now = anchor + elapsed

        unlocked, remaining = position.redeemed(now, window)

        assert unlocked + remaining.total_claim == total
        assert remaining.currently_unlocked(now, window) == 0


class TestBonusRamp:
    @given(
        bonus_min=st.integers(min_value=0, max_value=254),
        span=st.integers(min_value=1, max_value=255),
        ramp=st.integers(min_value=1, max_value=10**8),
        anchor=times,
        t1=times,
        t2=times,
    )
    @settings(max_examples=300)
    def test_bonus_monotone_and_bounded(self, bonus_min, span, ramp, anchor, t1, t2):
        bonus_max = bonus_min + span
        assume(bonus_max <= 255)
        early, late = sorted((t1, t2))

        b_early = ramp_bonus(early, anchor, bonus_min, bonus_max, ramp)
        b_late = ramp_bonus(late, anchor, bonus_min, bonus_max, ramp)

        assert bonus_min <= b_early <= b_late <= bonus_max
        assert ramp_bonus(anchor + ramp, anchor, bonus_min, bonus_max, ramp) == bonus_max

    @given(amount=st.integers(min_value=0, max_value=10**30), bonus=st.integers(min_value=0, max_value=255))
    @settings(max_examples=200)
    def test_bonus_never_shrinks_grant(self, amount, bonus):
        granted = apply_bonus(amount, bonus)
        assert amount <= granted <= amount * 4
