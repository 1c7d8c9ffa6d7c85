"""
Cap and cooldown guard.

Decides whether a reward that would otherwise be granted is currently blocked
by rate limits. Checks, each short-circuiting: cooldown, daily cap, lifetime
cap. Daily counters roll over when the local calendar date changes, not after
a fixed 24 hours. ``progress_only`` rewards never reach this guard.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from promo_engine.domain.models import PlayerPromotionState, PromotionConfig, RewardPayload
from promo_engine.domain.models.base import utc_now


@dataclass(frozen=True)
class CapsResult:
    allowed: bool
    reasons: Tuple[str, ...]


def same_local_day(first: datetime, second: datetime) -> bool:
    """Whether both instants fall on the same calendar date in local time."""
    return first.astimezone().date() == second.astimezone().date()


def effective_daily_count(state: PlayerPromotionState, now: datetime) -> int:
    """Today's reward count, treating a count from an earlier date as zero."""
    if state.last_reward_at is None or not same_local_day(state.last_reward_at, now):
        return 0
    return state.daily_reward_count


def check_caps(
    state: Optional[PlayerPromotionState],
    promotion: PromotionConfig,
    reward: RewardPayload,
    now: Optional[datetime] = None,
) -> CapsResult:
    """
    Check cooldown and caps for a candidate ``reward``.

    No prior state means no history, so every cap passes.
    """
    if state is None:
        return CapsResult(True, ("No player state - caps check passed",))

    now = now or utc_now()

    if promotion.cooldown_minutes and state.last_reward_at is not None:
        minutes_since = (now - state.last_reward_at).total_seconds() / 60
        if minutes_since < promotion.cooldown_minutes:
            remaining = math.ceil(promotion.cooldown_minutes - minutes_since)
            return CapsResult(False, (f"Cooldown active: {remaining} minutes remaining",))

    if promotion.max_rewards_per_day is not None:
        daily = effective_daily_count(state, now)
        if daily >= promotion.max_rewards_per_day:
            return CapsResult(
                False, (f"Daily cap reached: {daily}/{promotion.max_rewards_per_day}",)
            )

    if promotion.max_rewards_total is not None:
        if state.total_reward_count >= promotion.max_rewards_total:
            return CapsResult(
                False,
                (f"Total cap reached: {state.total_reward_count}/{promotion.max_rewards_total}",),
            )

    return CapsResult(True, ("Caps check passed",))
