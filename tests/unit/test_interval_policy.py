"""Interval policy transitions and the default bucket curve."""
from datetime import timedelta

import pytest

from conftest import T0, USER
from engines.interval_policy import DefaultIntervalPolicy, PolicyConfig, round_half_up
from engines.item_state import ItemState
from engines.ratings import Rating


@pytest.fixture
def policy():
    return DefaultIntervalPolicy()


class TestRoundHalfUp:
    @pytest.mark.parametrize("value,expected", [(2.5, 3), (3.5, 4), (2.4, 2), (10.4, 10), (1.0, 1)])
    def test_halves_round_up(self, value, expected):
        assert round_half_up(value) == expected


class TestBaseInterval:
    @pytest.mark.parametrize("level,days", [(0, 1), (1, 2), (2, 3), (3, 4), (4, 8), (5, 16)])
    def test_bucket_bases(self, policy, level, days):
        assert policy.base_interval(level, 2.5) == days

    def test_grows_geometrically_past_the_last_bucket(self, policy):
        assert policy.base_interval(6, 2.5) == 40
        assert policy.base_interval(7, 2.0) == 64

    def test_capped_at_max_interval(self, policy):
        assert policy.base_interval(40, 2.5) == 365

    def test_custom_cap(self):
        policy = DefaultIntervalPolicy(PolicyConfig(max_interval_days=30))
        assert policy.base_interval(6, 2.5) == 30


class TestTransitions:
    def test_first_good_review(self, policy):
        t = policy.transition(0, 2.5, None, Rating.GOOD)
        assert t.new_level == 1
        assert t.new_difficulty_factor == 2.5
        assert t.new_interval_days == 3
        assert t.resets_streak is False

    def test_first_good_review_schedules_three_days_out(self, policy):
        state = ItemState.new(USER, "card", T0)
        t = policy.transition(state.level, state.difficulty_factor, state.interval_days, Rating.GOOD)
        updated = state.apply_review(t, Rating.GOOD, "s1", T0)
        assert updated.next_review == T0 + timedelta(days=3)
        assert updated.interval_days == 3

    def test_again_drops_two_levels(self, policy):
        t = policy.transition(5, 2.5, 10, Rating.AGAIN)
        assert t.new_level == 3
        assert t.new_difficulty_factor == 2.3
        assert t.new_interval_days == 1
        assert t.resets_streak is True

    def test_easy_jumps_two_levels(self, policy):
        t = policy.transition(2, 2.0, 4, Rating.EASY)
        assert t.new_level == 4
        assert t.new_difficulty_factor == 2.15
        assert t.new_interval_days == 10

    def test_hard_holds_level_and_stretches_interval(self, policy):
        t = policy.transition(1, 2.5, 5, Rating.HARD)
        assert t.new_level == 1
        assert t.new_difficulty_factor == 2.45
        assert t.new_interval_days == 6
        assert t.resets_streak is False

    def test_hard_interval_is_at_least_one_day(self, policy):
        t = policy.transition(0, 2.5, 0, Rating.HARD)
        assert t.new_interval_days == 1

    def test_again_never_goes_below_level_zero(self, policy):
        t = policy.transition(1, 2.5, 2, Rating.AGAIN)
        assert t.new_level == 0

    def test_difficulty_factor_floor(self, policy):
        t = policy.transition(3, 1.35, 4, Rating.AGAIN)
        assert t.new_difficulty_factor == 1.3
        t = policy.transition(3, 1.3, 4, Rating.HARD)
        assert t.new_difficulty_factor == 1.3

    def test_good_with_zero_interval_uses_next_bucket(self, policy):
        t = policy.transition(2, 2.5, 0, Rating.GOOD)
        assert t.new_interval_days == 4

    def test_interval_capped(self, policy):
        t = policy.transition(10, 2.5, 300, Rating.GOOD)
        assert t.new_interval_days == 365

    @pytest.mark.parametrize("rating", list(Rating))
    @pytest.mark.parametrize("level,df,prev", [(0, 1.3, None), (4, 2.5, 8), (12, 3.1, 200)])
    def test_outputs_stay_within_bounds(self, policy, rating, level, df, prev):
        t = policy.transition(level, df, prev, rating)
        assert 1 <= t.new_interval_days <= 365
        assert t.new_difficulty_factor >= 1.3
        assert t.new_level >= 0
