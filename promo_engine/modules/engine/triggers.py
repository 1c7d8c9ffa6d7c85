"""
Trigger detector.

Decides whether an already-eligible event satisfies the promotion's
activation condition. "Already seen" is read from the state snapshot; this
module never mutates state. A non-match is a normal outcome reported through
reasons, never an exception.

Trigger kinds
-------------
- ``first_win``: a win on a subject value not yet in ``collected_items``.
  The bonus variant keys on ``bonus:<provider_id>`` and needs a bonus trigger
  instead of a win; an outcome filter still gates it.
- ``distinct_items``: a win contributing a subject value not yet collected.
- ``win_multiplier_range``: the multiplier lies in the closed interval
  ``[min_multiplier, max_multiplier]`` (missing min is 0, missing max is
  unbounded).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from promo_engine.domain.models import (
    GameEvent,
    PlayerPromotionState,
    PromotionConfig,
    Trigger,
    TriggerKind,
)

NO_TRIGGER_REASON = "No trigger conditions met"


@dataclass(frozen=True)
class TriggerResult:
    triggered: bool
    reasons: Tuple[str, ...]
    subject_key: Optional[str] = None


def _fmt(value: float) -> str:
    return f"{value:g}"


def subject_key(event: GameEvent, trigger: Trigger) -> Optional[str]:
    """
    The key a first-occurrence or distinct-items trigger records for ``event``.

    Returns ``None`` for range triggers and for triggers missing a subject.
    """
    if trigger.kind is TriggerKind.FIRST_WIN and trigger.bonus:
        return f"bonus:{event.provider_id}"
    if trigger.kind in (TriggerKind.FIRST_WIN, TriggerKind.DISTINCT_ITEMS):
        if trigger.subject is None:
            return None
        return trigger.subject.value_of(event)
    return None


def _not_triggered(*details: str) -> TriggerResult:
    return TriggerResult(False, tuple(details) + (NO_TRIGGER_REASON,))


def _outside_outcome_filter(event: GameEvent, trigger: Trigger) -> Optional[TriggerResult]:
    if trigger.outcome_filter is None or trigger.outcome_filter.matches(event.win_multiplier):
        return None
    return _not_triggered(
        f"Win multiplier {_fmt(event.win_multiplier)} outside outcome filter "
        f"{trigger.outcome_filter.describe()}"
    )


def _check_occurrence(
    event: GameEvent,
    trigger: Trigger,
    state: Optional[PlayerPromotionState],
) -> TriggerResult:
    key = subject_key(event, trigger)
    if key is None:
        return _not_triggered()

    collected: List[str] = state.progress.collected_items if state is not None else []

    if trigger.bonus:
        if not event.bonus_triggered:
            return _not_triggered("No bonus triggered on this event")
        filtered = _outside_outcome_filter(event, trigger)
        if filtered is not None:
            return filtered
        if key in collected:
            return _not_triggered(f"Bonus already triggered on provider {event.provider_id}")
        return TriggerResult(
            True, (f"First bonus trigger on provider {event.provider_id}",), subject_key=key
        )

    subject = trigger.subject.value
    if not event.is_win:
        return _not_triggered("No win on this event")

    filtered = _outside_outcome_filter(event, trigger)
    if filtered is not None:
        return filtered

    if trigger.kind is TriggerKind.FIRST_WIN:
        if key in collected:
            return _not_triggered(f"Already won on {subject} {key}")
        return TriggerResult(True, (f"First win on {subject} {key}",), subject_key=key)

    if key in collected:
        return _not_triggered(f"{subject.capitalize()} {key} already counted")
    return TriggerResult(True, (f"New distinct {subject}: {key}",), subject_key=key)


def _check_range(event: GameEvent, promotion: PromotionConfig) -> TriggerResult:
    trigger = promotion.trigger
    low = trigger.min_multiplier if trigger.min_multiplier is not None else 0.0
    high = trigger.max_multiplier if trigger.max_multiplier is not None else math.inf
    multiplier = event.win_multiplier

    if not low <= multiplier <= high:
        return _not_triggered(
            f"Win multiplier {_fmt(multiplier)} outside range [{_fmt(low)}, {_fmt(high)}]"
        )

    if trigger.instant_reward is not None:
        reason = f"High-range outcome: {_fmt(multiplier)}x (range: {_fmt(low)}-{_fmt(high)})"
    else:
        reason = f"Win multiplier {_fmt(multiplier)} within range [{_fmt(low)}, {_fmt(high)}]"
    return TriggerResult(True, (reason,))


def check_trigger(
    event: GameEvent,
    promotion: PromotionConfig,
    state: Optional[PlayerPromotionState],
) -> TriggerResult:
    """
    Check whether ``event`` activates ``promotion``.

    Args:
        event: Incoming gameplay outcome (already eligible)
        promotion: Promotion definition
        state: The player's record for this promotion, if any

    Returns:
        TriggerResult; ``subject_key`` is set for occurrence/distinct triggers
    """
    trigger = promotion.trigger
    if trigger.kind is TriggerKind.WIN_MULTIPLIER_RANGE:
        return _check_range(event, promotion)
    return _check_occurrence(event, trigger, state)
