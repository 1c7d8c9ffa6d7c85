"""
Unit tests for the eligibility filter.

Covers the fixed check order: enabled flag, active window, opt-in gate,
then scope per dimension (game, provider, vertical).
"""

import pytest

from promo_engine.domain.models import PlayerPromotionState, Scope, Vertical
from promo_engine.modules.engine import check_eligibility
from tests.factories import END, NOW, START, make_event, make_promotion, minutes


@pytest.mark.unit
@pytest.mark.engine
class TestEnabledAndWindow:
    """Enabled flag and [start_at, end_at) window."""

    def test_eligible_event(self):
        """An enabled promotion inside its window accepts the event."""
        result = check_eligibility(make_event(), make_promotion(), None, NOW)

        assert result.eligible is True
        assert result.reasons == ("Event is eligible",)

    def test_disabled_promotion(self):
        """A disabled promotion rejects everything."""
        result = check_eligibility(make_event(), make_promotion(enabled=False), None, NOW)

        assert result.eligible is False
        assert result.reasons == ("Promotion is disabled",)

    def test_before_start(self):
        """Events before start_at are rejected with the start time."""
        result = check_eligibility(make_event(), make_promotion(), None, START - minutes(1))

        assert result.eligible is False
        assert result.reasons[0].startswith("Promotion starts at 2025-01-01")

    def test_start_is_inclusive(self):
        """start_at itself is inside the window."""
        result = check_eligibility(make_event(), make_promotion(), None, START)

        assert result.eligible is True

    def test_end_is_exclusive(self):
        """end_at itself is outside the window."""
        result = check_eligibility(make_event(), make_promotion(), None, END)

        assert result.eligible is False
        assert result.reasons[0].startswith("Promotion ended at 2026-01-01")

    def test_disabled_checked_before_window(self):
        """The enabled flag is reported ahead of the window."""
        # Arrange
        promotion = make_promotion(enabled=False)

        # Act
        result = check_eligibility(make_event(), promotion, None, END + minutes(5))

        # Assert
        assert result.reasons == ("Promotion is disabled",)

    @pytest.mark.parametrize(
        "moment",
        [START - minutes(60 * 24), START - minutes(1), END, END + minutes(1)],
    )
    def test_outside_window_never_eligible(self, moment):
        """Opt-in, scope and state cannot rescue an event outside the window."""
        # Arrange
        promotion = make_promotion(requires_opt_in=True)
        state = PlayerPromotionState(promotion_id=promotion.id, joined=True, last_updated=NOW)

        # Act
        result = check_eligibility(make_event(), promotion, state, moment)

        # Assert
        assert result.eligible is False


@pytest.mark.unit
@pytest.mark.engine
class TestOptIn:
    """Opt-in gate."""

    def test_not_joined_without_state(self):
        """No state means the player never joined."""
        result = check_eligibility(make_event(), make_promotion(requires_opt_in=True), None, NOW)

        assert result.eligible is False
        assert result.reasons == ("Player has not joined this opt-in promotion",)

    def test_not_joined_with_state(self):
        """A state without the joined flag is still rejected."""
        promotion = make_promotion(requires_opt_in=True)
        state = PlayerPromotionState(promotion_id=promotion.id, joined=False, last_updated=NOW)

        result = check_eligibility(make_event(), promotion, state, NOW)

        assert result.eligible is False

    def test_joined(self):
        """A joined player passes the gate."""
        promotion = make_promotion(requires_opt_in=True)
        state = PlayerPromotionState(promotion_id=promotion.id, joined=True, last_updated=NOW)

        result = check_eligibility(make_event(), promotion, state, NOW)

        assert result.eligible is True


@pytest.mark.unit
@pytest.mark.engine
class TestScope:
    """Include/exclude lists per dimension."""

    def test_game_not_in_include_list(self):
        """A game missing from a non-empty include list is rejected."""
        promotion = make_promotion(scope=Scope(games=("game-2", "game-3")))

        result = check_eligibility(make_event(game_id="game-1"), promotion, None, NOW)

        assert result.eligible is False
        assert result.reasons == ("Game game-1 not in include list",)

    def test_game_in_include_list(self):
        """A listed game is accepted."""
        promotion = make_promotion(scope=Scope(games=("game-1",)))

        result = check_eligibility(make_event(game_id="game-1"), promotion, None, NOW)

        assert result.eligible is True

    def test_provider_excluded(self):
        """An excluded provider is rejected."""
        promotion = make_promotion(scope=Scope(exclude_providers=("provider-a",)))

        result = check_eligibility(make_event(provider_id="provider-a"), promotion, None, NOW)

        assert result.eligible is False
        assert result.reasons == ("Provider provider-a is excluded",)

    def test_exclude_vetoes_inclusion(self):
        """Exclusion wins over inclusion for the same value."""
        promotion = make_promotion(scope=Scope(games=("game-1",), exclude_games=("game-1",)))

        result = check_eligibility(make_event(game_id="game-1"), promotion, None, NOW)

        assert result.eligible is False
        assert result.reasons == ("Game game-1 is excluded",)

    def test_vertical_not_included(self):
        """Verticals are matched on their string value."""
        promotion = make_promotion(scope=Scope(verticals=("live",)))

        result = check_eligibility(make_event(vertical=Vertical.CRASH), promotion, None, NOW)

        assert result.reasons == ("Vertical crash not in include list",)

    def test_game_checked_before_provider(self):
        """Dimensions are checked game, provider, then vertical."""
        promotion = make_promotion(
            scope=Scope(games=("other",), exclude_providers=("provider-a",))
        )

        result = check_eligibility(make_event(), promotion, None, NOW)

        assert result.reasons == ("Game game-1 not in include list",)

    def test_empty_scope_is_unrestricted(self):
        """Empty lists place no restriction."""
        result = check_eligibility(make_event(), make_promotion(scope=Scope()), None, NOW)

        assert result.eligible is True
