"""
Test data factories.

Builders for events, rewards and promotions with sensible defaults so each
test only spells out what it is about.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from promo_engine.domain.models import (
    CollectBy,
    CollectionConfig,
    GameEvent,
    LadderLevel,
    Mechanic,
    MechanicType,
    PromotionConfig,
    RewardPayload,
    RewardType,
    Subject,
    Trigger,
    TriggerKind,
    Vertical,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
START = datetime(2025, 1, 1, tzinfo=timezone.utc)
END = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_event(
    player_id: str = "player-1",
    game_id: str = "game-1",
    provider_id: str = "provider-a",
    vertical: Vertical = Vertical.SLOTS,
    win_multiplier: float = 2.0,
    bonus_triggered: bool = False,
    timestamp: datetime = NOW,
) -> GameEvent:
    return GameEvent(
        player_id=player_id,
        game_id=game_id,
        provider_id=provider_id,
        vertical=vertical,
        win_multiplier=win_multiplier,
        bonus_triggered=bonus_triggered,
        timestamp=timestamp,
    )


def reward(
    label: str = "10 free spins",
    type: RewardType = RewardType.INSTANT_REWARD,
    amount: Optional[float] = 10.0,
) -> RewardPayload:
    return RewardPayload(type=type, label=label, amount=amount)


def first_win(subject: Subject = Subject.GAME, **kwargs: Any) -> Trigger:
    return Trigger(kind=TriggerKind.FIRST_WIN, subject=subject, **kwargs)


def distinct(subject: Subject = Subject.GAME, **kwargs: Any) -> Trigger:
    return Trigger(kind=TriggerKind.DISTINCT_ITEMS, subject=subject, **kwargs)


def win_range(
    min_multiplier: Optional[float] = None,
    max_multiplier: Optional[float] = None,
    **kwargs: Any,
) -> Trigger:
    return Trigger(
        kind=TriggerKind.WIN_MULTIPLIER_RANGE,
        min_multiplier=min_multiplier,
        max_multiplier=max_multiplier,
        **kwargs,
    )


def ladder(*requirements: int) -> Mechanic:
    """Ladder whose level N requires ``requirements[N-1]`` triggers."""
    return Mechanic(
        type=MechanicType.LADDER,
        levels=tuple(
            LadderLevel(level=i, requirement=req, reward=reward(f"Level {i} reward"))
            for i, req in enumerate(requirements, start=1)
        ),
    )


def collection(
    collect_by: CollectBy = CollectBy.GAME_ID,
    target_count: Optional[int] = None,
    target_set: Optional[Sequence[str]] = None,
) -> Mechanic:
    return Mechanic(
        type=MechanicType.COLLECTION,
        collection=CollectionConfig(
            collect_by=collect_by,
            target_count=target_count,
            target_set=tuple(target_set) if target_set is not None else None,
        ),
    )


def make_promotion(
    id: str = "promo-1",
    trigger: Optional[Trigger] = None,
    mechanic: Optional[Mechanic] = None,
    **overrides: Any,
) -> PromotionConfig:
    fields: dict = {
        "name": f"Promotion {id}",
        "enabled": True,
        "start_at": START,
        "end_at": END,
        "default_reward": reward("Collection bonus", amount=25.0),
    }
    fields.update(overrides)
    return PromotionConfig(
        id=id,
        trigger=trigger or first_win(),
        mechanic=mechanic or ladder(1),
        **fields,
    )


def minutes(n: float) -> timedelta:
    return timedelta(minutes=n)
