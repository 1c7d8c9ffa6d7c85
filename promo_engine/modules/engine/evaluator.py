"""
Evaluator.

Purpose
-------
Orchestrate one (event, promotion) evaluation through a strictly sequential
pipeline, ``eligibility -> trigger -> mechanic -> caps -> outcome``, and
produce an ``EvaluationResult`` whose reason trail is the concatenation of
every step's reasons in call order.

Terminal outcomes
-----------------
- ineligible: eligible=False, fired=False
- not triggered: eligible=True, fired=False
- triggered, no progress and no reward: eligible=True, fired=False
- progress without reward: eligible=True, fired=True, reward=None
- reward blocked by caps: eligible=True, fired=False, reward=None
- reward granted: eligible=True, fired=True, reward=<payload>

Design Notes
------------
- A range trigger's instant reward takes priority over the mechanic reward.
  The mechanic still runs when the trigger progresses it (``also_progress``).
- ``evaluate_all`` isolates promotions from each other: one failing
  evaluation is logged and reported, the rest still run.
- The player state passed in is never mutated here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from promo_engine.core.logging import get_logger
from promo_engine.domain.models import (
    EvaluationResult,
    GameEvent,
    MechanicType,
    PlayerPromotionState,
    PlayerState,
    PromotionConfig,
    RewardPayload,
    TriggerKind,
)
from promo_engine.domain.models.base import utc_now
from promo_engine.modules.engine.caps import check_caps
from promo_engine.modules.engine.eligibility import check_eligibility
from promo_engine.modules.engine.mechanics import apply_collection, apply_ladder, collection_item
from promo_engine.modules.engine.state_updater import apply_update
from promo_engine.modules.engine.triggers import check_trigger

logger = get_logger(__name__)


@dataclass(frozen=True)
class _MechanicStep:
    reward: Optional[RewardPayload]
    progressed: bool
    reasons: Tuple[str, ...]


def _run_mechanic(
    event: GameEvent,
    promotion: PromotionConfig,
    state: Optional[PlayerPromotionState],
) -> _MechanicStep:
    if promotion.mechanic.type is MechanicType.LADDER:
        ladder = apply_ladder(promotion, state, 1)
        return _MechanicStep(ladder.reward, ladder.progressed, ladder.reasons)

    item = collection_item(event, promotion)
    if item is None:
        return _MechanicStep(None, False, ("Could not determine collection item from event",))
    collection = apply_collection(promotion, state, item)
    return _MechanicStep(collection.reward, collection.progressed, collection.reasons)


def evaluate(
    event: GameEvent,
    promotion: PromotionConfig,
    player_state: Optional[PlayerState],
    now: Optional[datetime] = None,
) -> EvaluationResult:
    """
    Evaluate ``event`` against ``promotion`` for the player's current state.

    Args:
        event: Incoming gameplay outcome
        promotion: Promotion definition
        player_state: Snapshot of the player's state, if any
        now: Evaluation time; defaults to the current UTC time

    Returns:
        EvaluationResult with the full reason trail
    """
    now = now or utc_now()
    state = player_state.get(promotion.id) if player_state is not None else None
    reasons: List[str] = []

    def result(eligible: bool, fired: bool, reward: Optional[RewardPayload] = None) -> EvaluationResult:
        return EvaluationResult(
            promotion_id=promotion.id,
            eligible=eligible,
            fired=fired,
            reasons=tuple(reasons),
            reward=reward,
        )

    eligibility = check_eligibility(event, promotion, state, now)
    reasons.extend(eligibility.reasons)
    if not eligibility.eligible:
        return result(False, False)

    trigger = check_trigger(event, promotion, state)
    reasons.extend(trigger.reasons)
    if not trigger.triggered:
        return result(True, False)

    reward: Optional[RewardPayload] = None
    progressed = False

    instant_reward = (
        promotion.trigger.instant_reward
        if promotion.trigger.kind is TriggerKind.WIN_MULTIPLIER_RANGE
        else None
    )
    if instant_reward is not None:
        reward = instant_reward
        reasons.append("High-range instant reward triggered")

    if promotion.trigger.progresses_mechanic:
        step = _run_mechanic(event, promotion, state)
        reasons.extend(step.reasons)
        progressed = step.progressed
        if reward is None:
            reward = step.reward

    if reward is not None and reward.counts_against_caps:
        caps = check_caps(state, promotion, reward, now)
        reasons.extend(caps.reasons)
        if not caps.allowed:
            reasons.append("Reward blocked by caps/cooldown")
            return result(True, False)

    if reward is not None:
        reasons.append(f"Reward fired: {reward.label} ({reward.type.value})")
        return result(True, True, reward)

    if progressed:
        reasons.append("Progress made (no reward at this stage)")
        return result(True, True)

    return result(True, False)


def evaluate_all(
    event: GameEvent,
    promotions: Iterable[PromotionConfig],
    player_state: Optional[PlayerState],
    now: Optional[datetime] = None,
) -> Tuple[List[EvaluationResult], PlayerState]:
    """
    Evaluate ``event`` against every enabled promotion in order.

    Each firing evaluation is committed through ``apply_update`` before the
    next promotion is considered.

    Returns:
        The per-promotion results and the updated player state
    """
    now = now or utc_now()
    state = player_state.copy() if player_state is not None else PlayerState(player_id=event.player_id)
    results: List[EvaluationResult] = []

    for promotion in promotions:
        if not promotion.enabled:
            continue
        try:
            evaluation = evaluate(event, promotion, state, now)
            if evaluation.fired:
                state = apply_update(event, promotion, evaluation, state, now)
        except Exception as e:
            logger.error(
                "Promotion evaluation failed",
                extra={
                    "player_id": event.player_id,
                    "promotion_id": promotion.id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            evaluation = EvaluationResult(
                promotion_id=promotion.id,
                eligible=False,
                fired=False,
                reasons=(f"Evaluation failed: {e}",),
            )
        results.append(evaluation)

    state.last_event_at = now
    return results, state
