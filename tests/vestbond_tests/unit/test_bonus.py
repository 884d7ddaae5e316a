import pytest

from vestbond.core.bonus import BonusRamp, apply_bonus, ramp_bonus, validate_bonus_range
from vestbond.core.exceptions import InvalidRangeError

RAMP = 4_838_400


class TestRampBonus:
    def test_reference_ramp(self):
        ramp = BonusRamp(bonus_min=5, bonus_max=25, anchor=1000, ramp_duration=RAMP)

        assert ramp.bonus_at(1000) == 5
        assert ramp.bonus_at(1000 + RAMP // 2) == 15
        assert ramp.bonus_at(1000 + RAMP) == 25
        assert ramp.bonus_at(1000 + 10 * RAMP) == 25
        assert ramp.ramp_complete_at() == 1000 + RAMP

    def test_clock_before_anchor_counts_as_zero(self):
        assert ramp_bonus(now=0, anchor=500, bonus_min=5, bonus_max=25, ramp_duration=RAMP) == 5

    def test_interpolation_rounds_down(self):
        # 20 * 1 / 3 = 6.67
        assert ramp_bonus(now=1, anchor=0, bonus_min=0, bonus_max=20, ramp_duration=3) == 6

    def test_zero_duration_rejected(self):
        with pytest.raises(ValueError):
            ramp_bonus(now=0, anchor=0, bonus_min=0, bonus_max=1, ramp_duration=0)


class TestApplyBonus:
    @pytest.mark.parametrize(
        "amount,bonus,expected",
        [
            (10**17, 5, 105 * 10**15),
            (10**17, 25, 125 * 10**15),
            (100, 0, 100),
            (99, 5, 103),
            (1, 255, 3),
        ],
    )
    def test_apply_bonus(self, amount, bonus, expected):
        assert apply_bonus(amount, bonus) == expected


class TestValidateBonusRange:
    @pytest.mark.parametrize("bounds", [(0, 1), (5, 25), (254, 255)])
    def test_valid(self, bounds):
        validate_bonus_range(*bounds)

    @pytest.mark.parametrize("bounds", [(5, 5), (25, 5), (-1, 5), (0, 256), (True, 5), (0, "9")])
    def test_invalid(self, bounds):
        with pytest.raises(InvalidRangeError):
            validate_bonus_range(*bounds)

    def test_custom_ceiling(self):
        validate_bonus_range(0, 1000, ceiling=1000)
        with pytest.raises(InvalidRangeError):
            validate_bonus_range(0, 101, ceiling=100)
