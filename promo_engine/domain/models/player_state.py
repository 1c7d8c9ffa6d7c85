"""
Per-player promotion state.

Purpose
-------
Hold the durable record the engine reads as a snapshot and the state updater
mutates: progress per promotion, reward history, cooldown timestamp and reward
counters. ``PlayerState`` is the unit of persistence.

Design Notes
------------
- These are mutable dataclasses. The evaluator never mutates them; the state
  updater works on a ``copy()`` and returns it.
- ``collected_items`` keeps insertion order and never holds duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from promo_engine.domain.models.base import (
    format_datetime,
    optional_int,
    parse_bool,
    parse_datetime,
    parse_optional_datetime,
    require,
    utc_now,
)
from promo_engine.domain.models.promotion import RewardPayload


@dataclass
class PromotionProgress:
    """
    Progress inside one promotion.

    Attributes
    ----------
    current_level : int
        Highest ladder level reached (0 when none)
    collected_items : List[str]
        Distinct item or subject keys seen so far, in first-seen order
    trigger_count : int
        Cumulative number of triggers that advanced the mechanic
    completed : bool
        Set once a collection reached its target and paid out
    """

    current_level: int = 0
    collected_items: List[str] = field(default_factory=list)
    trigger_count: int = 0
    completed: bool = False

    def add_item(self, item: str) -> bool:
        """Append ``item`` if new. Returns whether it was added."""
        if item in self.collected_items:
            return False
        self.collected_items.append(item)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_level": self.current_level,
            "collected_items": list(self.collected_items),
            "trigger_count": self.trigger_count,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PromotionProgress:
        items: List[str] = []
        for item in data.get("collected_items") or []:
            if item not in items:
                items.append(str(item))
        return cls(
            current_level=optional_int(data.get("current_level"), "current_level") or 0,
            collected_items=items,
            trigger_count=optional_int(data.get("trigger_count"), "trigger_count") or 0,
            completed=parse_bool(data.get("completed"), "completed"),
        )


@dataclass
class RewardHistoryEntry:
    """One granted reward with the reason trail that produced it."""

    promotion_id: str
    reward: RewardPayload
    timestamp: datetime
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "promotion_id": self.promotion_id,
            "reward": self.reward.to_dict(),
            "timestamp": format_datetime(self.timestamp),
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RewardHistoryEntry:
        return cls(
            promotion_id=str(require(data, "promotion_id")),
            reward=RewardPayload.from_dict(require(data, "reward")),
            timestamp=parse_datetime(require(data, "timestamp"), "timestamp"),
            reason=str(data.get("reason", "")),
        )


@dataclass
class PlayerPromotionState:
    """Durable per-player, per-promotion record."""

    promotion_id: str
    joined: bool = False
    progress: PromotionProgress = field(default_factory=PromotionProgress)
    rewards: List[RewardHistoryEntry] = field(default_factory=list)
    last_reward_at: Optional[datetime] = None
    daily_reward_count: int = 0
    total_reward_count: int = 0
    last_updated: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "promotion_id": self.promotion_id,
            "joined": self.joined,
            "progress": self.progress.to_dict(),
            "rewards": [entry.to_dict() for entry in self.rewards],
            "last_reward_at": format_datetime(self.last_reward_at),
            "daily_reward_count": self.daily_reward_count,
            "total_reward_count": self.total_reward_count,
            "last_updated": format_datetime(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PlayerPromotionState:
        last_updated = data.get("last_updated")
        return cls(
            promotion_id=str(require(data, "promotion_id")),
            joined=parse_bool(data.get("joined"), "joined"),
            progress=PromotionProgress.from_dict(data.get("progress") or {}),
            rewards=[RewardHistoryEntry.from_dict(e) for e in data.get("rewards") or []],
            last_reward_at=parse_optional_datetime(data.get("last_reward_at"), "last_reward_at"),
            daily_reward_count=optional_int(data.get("daily_reward_count"), "daily_reward_count") or 0,
            total_reward_count=optional_int(data.get("total_reward_count"), "total_reward_count") or 0,
            last_updated=parse_datetime(last_updated, "last_updated") if last_updated else utc_now(),
        )


@dataclass
class PlayerState:
    """All promotion records of one player plus the last event timestamp."""

    player_id: str
    promotions: Dict[str, PlayerPromotionState] = field(default_factory=dict)
    last_event_at: Optional[datetime] = None

    def get(self, promotion_id: str) -> Optional[PlayerPromotionState]:
        return self.promotions.get(promotion_id)

    def ensure(self, promotion_id: str, now: Optional[datetime] = None) -> PlayerPromotionState:
        """Return the promotion record, creating an empty one lazily."""
        record = self.promotions.get(promotion_id)
        if record is None:
            record = PlayerPromotionState(
                promotion_id=promotion_id,
                last_updated=now or utc_now(),
            )
            self.promotions[promotion_id] = record
        return record

    def copy(self) -> PlayerState:
        """Deep copy through the dict representation."""
        return PlayerState.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "promotions": {pid: s.to_dict() for pid, s in self.promotions.items()},
            "last_event_at": format_datetime(self.last_event_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PlayerState:
        return cls(
            player_id=str(require(data, "player_id")),
            promotions={
                str(pid): PlayerPromotionState.from_dict(s)
                for pid, s in (data.get("promotions") or {}).items()
            },
            last_event_at=parse_optional_datetime(data.get("last_event_at"), "last_event_at"),
        )
