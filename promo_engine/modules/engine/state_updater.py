"""
State updater.

Commits a fired evaluation to the player's durable state. It is called
exactly once per fired (event, promotion) pair and performs no idempotence
check of its own.

Applied on fire:
- stamp ``last_updated``
- re-apply the mechanic step (ladder level and trigger count, or the new
  collection item and completion flag)
- record the first-occurrence / distinct subject key in ``collected_items``
- for a cap-consuming reward: append history, set ``last_reward_at``, roll
  the daily counter over on a new local date, bump daily and total counters
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from promo_engine.domain.models import (
    EvaluationResult,
    GameEvent,
    MechanicType,
    PlayerState,
    PromotionConfig,
    RewardHistoryEntry,
)
from promo_engine.domain.models.base import utc_now
from promo_engine.modules.engine.caps import effective_daily_count
from promo_engine.modules.engine.mechanics import apply_collection, apply_ladder, collection_item
from promo_engine.modules.engine.triggers import subject_key


def apply_update(
    event: GameEvent,
    promotion: PromotionConfig,
    result: EvaluationResult,
    player_state: Optional[PlayerState],
    now: Optional[datetime] = None,
) -> PlayerState:
    """
    Apply ``result`` to a copy of ``player_state`` and return the copy.

    A result that did not fire leaves the state unchanged.
    """
    now = now or utc_now()
    state = player_state.copy() if player_state is not None else PlayerState(player_id=event.player_id)

    if not result.fired:
        return state

    record = state.ensure(promotion.id, now)
    record.last_updated = now
    progress = record.progress

    if promotion.trigger.progresses_mechanic:
        if promotion.mechanic.type is MechanicType.LADDER:
            ladder = apply_ladder(promotion, record, 1)
            if ladder.progressed:
                progress.current_level = max(progress.current_level, ladder.new_level)
                progress.trigger_count = ladder.trigger_count
        else:
            item = collection_item(event, promotion)
            if item is not None:
                collection = apply_collection(promotion, record, item)
                progress.add_item(item)
                progress.trigger_count += 1
                if collection.completed:
                    progress.completed = True

    key = subject_key(event, promotion.trigger)
    if key is not None:
        progress.add_item(key)

    reward = result.reward
    if reward is not None and reward.counts_against_caps:
        daily = effective_daily_count(record, now)
        record.rewards.append(
            RewardHistoryEntry(
                promotion_id=promotion.id,
                reward=reward,
                timestamp=now,
                reason=result.reason_text,
            )
        )
        record.last_reward_at = now
        record.daily_reward_count = daily + 1
        record.total_reward_count += 1

    return state
