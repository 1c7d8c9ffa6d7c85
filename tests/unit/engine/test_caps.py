"""
Unit tests for the cap/cooldown guard.

Covers the cooldown window, the daily cap with its calendar-date rollover,
the lifetime cap, and the order in which they short-circuit.
"""

from datetime import datetime, timedelta, timezone

import pytest

from promo_engine.domain.models import PlayerPromotionState
from promo_engine.modules.engine import check_caps
from promo_engine.modules.engine.caps import effective_daily_count
from tests.factories import NOW, make_promotion, minutes, reward


def rewarded_state(last_reward_at=NOW, daily=1, total=1) -> PlayerPromotionState:
    return PlayerPromotionState(
        promotion_id="promo-1",
        last_reward_at=last_reward_at,
        daily_reward_count=daily,
        total_reward_count=total,
        last_updated=last_reward_at,
    )


@pytest.mark.unit
@pytest.mark.engine
class TestCooldown:
    """Minimum gap between two rewards of the same promotion."""

    def test_no_state_passes(self):
        """A player with no history passes every cap."""
        result = check_caps(None, make_promotion(cooldown_minutes=60), reward(), NOW)

        assert result.allowed is True
        assert result.reasons == ("No player state - caps check passed",)

    def test_blocked_inside_cooldown(self):
        """A reward inside the cooldown reports the minutes remaining."""
        # Arrange
        promotion = make_promotion(cooldown_minutes=60)

        # Act
        result = check_caps(rewarded_state(), promotion, reward(), NOW + minutes(30))

        # Assert
        assert result.allowed is False
        assert result.reasons == ("Cooldown active: 30 minutes remaining",)

    def test_remaining_minutes_round_up(self):
        """Partial minutes count as a whole minute remaining."""
        promotion = make_promotion(cooldown_minutes=60)

        result = check_caps(rewarded_state(), promotion, reward(), NOW + minutes(30.5))

        assert result.reasons == ("Cooldown active: 30 minutes remaining",)

    def test_allowed_exactly_at_cooldown_end(self):
        """The cooldown is over the moment its full length has elapsed."""
        promotion = make_promotion(cooldown_minutes=60)

        result = check_caps(rewarded_state(), promotion, reward(), NOW + minutes(60))

        assert result.allowed is True
        assert result.reasons == ("Caps check passed",)

    def test_blocked_just_before_cooldown_end(self):
        """One second short of the cooldown still blocks."""
        promotion = make_promotion(cooldown_minutes=60)

        result = check_caps(
            rewarded_state(), promotion, reward(), NOW + minutes(60) - timedelta(seconds=1)
        )

        assert result.allowed is False
        assert result.reasons == ("Cooldown active: 1 minutes remaining",)


@pytest.mark.unit
@pytest.mark.engine
class TestDailyAndTotalCaps:
    """Per-day and lifetime reward limits."""

    def test_daily_cap_reached(self):
        """Hitting the daily cap blocks further rewards that day."""
        # Arrange
        promotion = make_promotion(max_rewards_per_day=2)

        # Act
        result = check_caps(rewarded_state(daily=2, total=2), promotion, reward(), NOW + minutes(5))

        # Assert
        assert result.allowed is False
        assert result.reasons == ("Daily cap reached: 2/2",)

    def test_daily_cap_resets_on_new_date(self):
        """A count from an earlier date no longer applies."""
        promotion = make_promotion(max_rewards_per_day=2)

        result = check_caps(
            rewarded_state(daily=2, total=2), promotion, reward(), NOW + timedelta(days=2)
        )

        assert result.allowed is True

    def test_total_cap_reached(self):
        """The lifetime cap blocks regardless of the date."""
        promotion = make_promotion(max_rewards_total=3)

        result = check_caps(
            rewarded_state(daily=0, total=3), promotion, reward(), NOW + timedelta(days=2)
        )

        assert result.allowed is False
        assert result.reasons == ("Total cap reached: 3/3",)

    def test_cooldown_checked_first(self):
        """Cooldown short-circuits before the other caps."""
        promotion = make_promotion(cooldown_minutes=10, max_rewards_total=1)

        result = check_caps(rewarded_state(), promotion, reward(), NOW + minutes(1))

        assert result.reasons[0].startswith("Cooldown active")

    def test_effective_daily_count_without_reward(self):
        """A record that never paid out has a zero daily count."""
        state = PlayerPromotionState(promotion_id="promo-1", daily_reward_count=4, last_updated=NOW)

        assert effective_daily_count(state, NOW) == 0


@pytest.mark.unit
@pytest.mark.engine
class TestDailyRollover:
    """The daily counter follows the local calendar date, not a 24-hour window."""

    def test_allowed_just_after_local_midnight(self, fixed_local_timezone):
        """A reward at 23:50 local does not count against 00:10 the next day."""
        # Arrange - 23:50 local (UTC+1) on 15 June
        rewarded_at = datetime(2025, 6, 15, 22, 50, tzinfo=timezone.utc)
        promotion = make_promotion(max_rewards_per_day=1)
        state = rewarded_state(last_reward_at=rewarded_at, daily=1, total=1)

        # Act - 00:10 local on 16 June
        result = check_caps(state, promotion, reward(), rewarded_at + minutes(20))

        # Assert
        assert result.allowed is True
        assert effective_daily_count(state, rewarded_at + minutes(20)) == 0

    def test_blocked_later_on_same_local_date(self, fixed_local_timezone):
        """A reward at 00:30 local still counts at 23:30 the same day."""
        # Arrange - 00:30 local on 16 June
        rewarded_at = datetime(2025, 6, 15, 23, 30, tzinfo=timezone.utc)
        promotion = make_promotion(max_rewards_per_day=1)
        state = rewarded_state(last_reward_at=rewarded_at, daily=1, total=1)

        # Act - 23:30 local on 16 June
        result = check_caps(state, promotion, reward(), rewarded_at + timedelta(hours=23))

        # Assert
        assert result.allowed is False
        assert result.reasons == ("Daily cap reached: 1/1",)
