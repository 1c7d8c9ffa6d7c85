"""
Mechanic engine.

Purpose
-------
Turn a fired trigger into progress and, when a threshold is reached, a
reward. A promotion runs exactly one mechanic:

- **Ladder**: levels with cumulative trigger-count requirements. One step
  advances through every newly reached level and returns only the reward of
  the highest one ("fast-forward"); intermediate rewards are skipped.
- **Collection**: distinct items gathered along ``collect_by``. Completion
  is a superset check against ``target_set`` (preferred) or a size check
  against ``target_count``; it pays ``default_reward`` exactly once.

Design Notes
------------
- Functions are pure: they read the state snapshot and describe the outcome.
  ``state_updater.apply_update`` re-applies the outcome to the durable state.
- Malformed definitions degrade to reasons instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from promo_engine.domain.models import (
    CollectBy,
    GameEvent,
    MechanicType,
    PlayerPromotionState,
    PromotionConfig,
    RewardPayload,
)


# ============================================================================
# RESULTS
# ============================================================================


@dataclass(frozen=True)
class LadderOutcome:
    """
    Result of one ladder step.

    ``progressed`` is true whenever the trigger was counted, even if no new
    level was reached.
    """

    reward: Optional[RewardPayload]
    new_level: int
    trigger_count: int
    reasons: Tuple[str, ...]
    progressed: bool = True


@dataclass(frozen=True)
class CollectionOutcome:
    """Result of offering one item to a collection."""

    reward: Optional[RewardPayload]
    completed: bool
    is_new: bool
    reasons: Tuple[str, ...]

    @property
    def progressed(self) -> bool:
        return self.is_new


# ============================================================================
# LADDER
# ============================================================================


def apply_ladder(
    promotion: PromotionConfig,
    state: Optional[PlayerPromotionState],
    increment: int = 1,
) -> LadderOutcome:
    """
    Count ``increment`` triggers and report every level newly reached.

    Args:
        promotion: Promotion with a ladder mechanic
        state: The player's record for this promotion, if any
        increment: Triggers to add (one per event)

    Returns:
        LadderOutcome carrying the highest reached level's reward
    """
    current_level = state.progress.current_level if state is not None else 0
    current_count = state.progress.trigger_count if state is not None else 0

    if promotion.mechanic.type is not MechanicType.LADDER:
        return LadderOutcome(
            reward=None,
            new_level=current_level,
            trigger_count=current_count,
            reasons=("Not a ladder promotion",),
            progressed=False,
        )

    new_count = current_count + increment
    new_level = current_level
    reward: Optional[RewardPayload] = None
    reasons: List[str] = []

    for level in promotion.mechanic.sorted_levels():
        if level.level > current_level and new_count >= level.requirement:
            new_level = level.level
            reward = level.reward
            reasons.append(
                f"Level {level.level} completed "
                f"(requirement: {level.requirement}, current: {new_count})"
            )

    if reward is None:
        reasons.append(f"No new level reached. Current: {current_level}, Triggers: {new_count}")

    return LadderOutcome(
        reward=reward,
        new_level=new_level,
        trigger_count=new_count,
        reasons=tuple(reasons),
    )


# ============================================================================
# COLLECTION
# ============================================================================


def collection_item(event: GameEvent, promotion: PromotionConfig) -> Optional[str]:
    """Item collected by ``event``, derived strictly from ``collect_by``."""
    collection = promotion.mechanic.collection
    if promotion.mechanic.type is not MechanicType.COLLECTION or collection is None:
        return None
    if collection.collect_by is CollectBy.GAME_ID:
        return event.game_id
    if collection.collect_by is CollectBy.PROVIDER_ID:
        return event.provider_id
    if collection.collect_by is CollectBy.VERTICAL:
        return event.vertical.value
    return None


def apply_collection(
    promotion: PromotionConfig,
    state: Optional[PlayerPromotionState],
    item: str,
) -> CollectionOutcome:
    """
    Offer ``item`` to the collection and check completion.

    Re-collecting a known item is not an error; it simply makes no progress.
    A collection that already paid out never returns its reward again.
    """
    collection = promotion.mechanic.collection
    if promotion.mechanic.type is not MechanicType.COLLECTION or collection is None:
        return CollectionOutcome(
            reward=None, completed=False, is_new=False, reasons=("Not a collection promotion",)
        )

    collected: List[str] = list(state.progress.collected_items) if state is not None else []
    already_completed = state.progress.completed if state is not None else False
    reasons: List[str] = []

    is_new = item not in collected
    if is_new:
        collected.append(item)
        reasons.append(f"Collected new item: {item}")
    else:
        reasons.append(f"Item already collected: {item} (no new progress)")

    completed = False
    if collection.target_set:
        missing = [t for t in collection.target_set if t not in collected]
        completed = not missing
        if completed:
            reasons.append(
                f"Collection complete: all {len(collection.target_set)} target items collected"
            )
        else:
            gathered = len(collection.target_set) - len(missing)
            reasons.append(
                f"Collection progress: {gathered}/{len(collection.target_set)} "
                f"(missing: {', '.join(missing)})"
            )
    elif collection.target_count:
        completed = len(collected) >= collection.target_count
        if completed:
            reasons.append(
                f"Collection complete: {len(collected)}/{collection.target_count} items collected"
            )
        else:
            reasons.append(f"Collection progress: {len(collected)}/{collection.target_count}")
    else:
        reasons.append("Collection has no target configured")

    reward: Optional[RewardPayload] = None
    if completed and already_completed:
        reasons.append("Collection already completed; reward was granted before")
    elif completed and is_new:
        reward = promotion.default_reward

    return CollectionOutcome(
        reward=reward,
        completed=completed,
        is_new=is_new,
        reasons=tuple(reasons),
    )
