"""
Eligibility filter.

Decides whether an event qualifies for a promotion at all. Checks run in a
fixed order and the first failing check ends the evaluation with its own
reason: enabled flag, active window, opt-in gate, then scope per dimension
(game, provider, vertical). No side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple

from promo_engine.domain.models import GameEvent, PlayerPromotionState, PromotionConfig
from promo_engine.domain.models.base import format_datetime, utc_now


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reasons: Tuple[str, ...]


def _scope_dimensions(
    event: GameEvent, promotion: PromotionConfig
) -> Sequence[Tuple[str, str, Tuple[str, ...], Tuple[str, ...]]]:
    scope = promotion.scope
    if scope is None:
        return ()
    return (
        ("Game", event.game_id, scope.games, scope.exclude_games),
        ("Provider", event.provider_id, scope.providers, scope.exclude_providers),
        ("Vertical", event.vertical.value, scope.verticals, scope.exclude_verticals),
    )


def check_eligibility(
    event: GameEvent,
    promotion: PromotionConfig,
    state: Optional[PlayerPromotionState],
    now: Optional[datetime] = None,
) -> EligibilityResult:
    """
    Check whether ``event`` may be considered by ``promotion``.

    Args:
        event: Incoming gameplay outcome
        promotion: Promotion definition
        state: The player's record for this promotion, if any
        now: Evaluation time; defaults to the current UTC time

    Returns:
        EligibilityResult with a single reason describing the decision
    """
    now = now or utc_now()

    if not promotion.enabled:
        return EligibilityResult(False, ("Promotion is disabled",))

    if now < promotion.start_at:
        return EligibilityResult(
            False, (f"Promotion starts at {format_datetime(promotion.start_at)}",)
        )

    if now >= promotion.end_at:
        return EligibilityResult(
            False, (f"Promotion ended at {format_datetime(promotion.end_at)}",)
        )

    if promotion.requires_opt_in and (state is None or not state.joined):
        return EligibilityResult(False, ("Player has not joined this opt-in promotion",))

    for label, value, include, exclude in _scope_dimensions(event, promotion):
        if include and value not in include:
            return EligibilityResult(False, (f"{label} {value} not in include list",))
        if value in exclude:
            return EligibilityResult(False, (f"{label} {value} is excluded",))

    return EligibilityResult(True, ("Event is eligible",))
