"""
Promotion definition model.

Purpose
-------
Describe a promotion as the engine reads it: a named, time-bounded rule made
of a trigger (activation condition), an optional scope (include/exclude
filters over games, providers and verticals), a mechanic (ladder or
collection), caps, and an optional default reward.

Design Notes
------------
- One canonical trigger representation: a ``TriggerKind`` plus a ``Subject``
  for first-occurrence and distinct-items triggers, multiplier bounds for the
  range trigger. Older promotion shapes are out of scope.
- Definitions are read-only to the engine. Structural checks live here
  (types, non-negative numbers); cross-field consistency is checked by
  ``PromotionValidator`` before a definition is stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from promo_engine.domain.models.base import (
    DomainValidationError,
    format_datetime,
    optional_float,
    optional_int,
    parse_bool,
    parse_datetime,
    parse_enum,
    require,
    validate_aware,
    validate_non_negative,
    validate_not_empty,
)
from promo_engine.domain.models.event import GameEvent, Vertical


# ============================================================================
# REWARDS
# ============================================================================


class RewardType(str, Enum):
    INSTANT_REWARD = "instant_reward"
    ENTRY = "entry"
    PROGRESS_ONLY = "progress_only"


@dataclass(frozen=True)
class RewardPayload:
    """
    A reward a promotion can grant.

    ``progress_only`` rewards carry no tangible value and never count against
    cooldowns or caps.
    """

    type: RewardType
    label: str
    amount: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, RewardType):
            raise DomainValidationError("type must be a RewardType", field="type")
        if self.amount is not None:
            validate_non_negative(self.amount, "amount")

    @property
    def counts_against_caps(self) -> bool:
        return self.type is not RewardType.PROGRESS_ONLY

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value, "label": self.label}
        if self.amount is not None:
            data["amount"] = self.amount
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RewardPayload:
        return cls(
            type=parse_enum(RewardType, require(data, "type"), "reward.type"),
            label=str(data.get("label", "")),
            amount=optional_float(data.get("amount"), "reward.amount"),
        )


def _optional_reward(data: Any) -> Optional[RewardPayload]:
    if data is None:
        return None
    return RewardPayload.from_dict(data)


# ============================================================================
# TRIGGER
# ============================================================================


class Subject(str, Enum):
    """Dimension along which first occurrence or distinctness is measured."""

    GAME = "game"
    PROVIDER = "provider"
    VERTICAL = "vertical"

    def value_of(self, event: GameEvent) -> str:
        """The event's identifier along this dimension."""
        if self is Subject.GAME:
            return event.game_id
        if self is Subject.PROVIDER:
            return event.provider_id
        return event.vertical.value


class TriggerKind(str, Enum):
    FIRST_WIN = "first_win"
    DISTINCT_ITEMS = "distinct_items"
    WIN_MULTIPLIER_RANGE = "win_multiplier_range"


@dataclass(frozen=True)
class OutcomeFilter:
    """Closed multiplier interval; a missing bound is unbounded."""

    min_multiplier: Optional[float] = None
    max_multiplier: Optional[float] = None

    def matches(self, multiplier: float) -> bool:
        if self.min_multiplier is not None and multiplier < self.min_multiplier:
            return False
        if self.max_multiplier is not None and multiplier > self.max_multiplier:
            return False
        return True

    def describe(self) -> str:
        low = "0" if self.min_multiplier is None else f"{self.min_multiplier:g}"
        high = "inf" if self.max_multiplier is None else f"{self.max_multiplier:g}"
        return f"[{low}, {high}]"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_multiplier": self.min_multiplier,
            "max_multiplier": self.max_multiplier,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> OutcomeFilter:
        return cls(
            min_multiplier=optional_float(data.get("min_multiplier"), "outcome_filter.min_multiplier"),
            max_multiplier=optional_float(data.get("max_multiplier"), "outcome_filter.max_multiplier"),
        )


@dataclass(frozen=True)
class Trigger:
    """
    Activation condition of a promotion.

    Attributes
    ----------
    kind : TriggerKind
        Which condition family applies
    subject : Optional[Subject]
        Dimension for ``first_win`` and ``distinct_items``
    bonus : bool
        ``first_win`` variant keyed on ``bonus:<provider_id>`` that requires a
        bonus trigger instead of a win
    min_multiplier, max_multiplier : Optional[float]
        Closed interval for ``win_multiplier_range``
    instant_reward : Optional[RewardPayload]
        Reward granted directly by a ``win_multiplier_range`` trigger
    also_progress : Optional[bool]
        Whether a range trigger also advances the mechanic. When unset it
        defaults to true only if no instant reward is configured.
    outcome_filter : Optional[OutcomeFilter]
        Extra multiplier gate for ``first_win`` and ``distinct_items``
    """

    kind: TriggerKind
    subject: Optional[Subject] = None
    bonus: bool = False
    min_multiplier: Optional[float] = None
    max_multiplier: Optional[float] = None
    instant_reward: Optional[RewardPayload] = None
    also_progress: Optional[bool] = None
    outcome_filter: Optional[OutcomeFilter] = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, TriggerKind):
            raise DomainValidationError("kind must be a TriggerKind", field="trigger.kind")

    @property
    def progresses_mechanic(self) -> bool:
        """Whether the mechanic runs when this trigger fires."""
        if self.kind is not TriggerKind.WIN_MULTIPLIER_RANGE:
            return True
        if self.also_progress is not None:
            return self.also_progress
        return self.instant_reward is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value}
        if self.subject is not None:
            data["subject"] = self.subject.value
        if self.bonus:
            data["bonus"] = True
        if self.min_multiplier is not None:
            data["min_multiplier"] = self.min_multiplier
        if self.max_multiplier is not None:
            data["max_multiplier"] = self.max_multiplier
        if self.instant_reward is not None:
            data["instant_reward"] = self.instant_reward.to_dict()
        if self.also_progress is not None:
            data["also_progress"] = self.also_progress
        if self.outcome_filter is not None:
            data["outcome_filter"] = self.outcome_filter.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Trigger:
        subject = data.get("subject")
        outcome_filter = data.get("outcome_filter")
        also_progress = data.get("also_progress")
        if also_progress is not None:
            also_progress = parse_bool(also_progress, "trigger.also_progress")
        return cls(
            kind=parse_enum(TriggerKind, require(data, "kind"), "trigger.kind"),
            subject=parse_enum(Subject, subject, "trigger.subject") if subject is not None else None,
            bonus=parse_bool(data.get("bonus"), "trigger.bonus"),
            min_multiplier=optional_float(data.get("min_multiplier"), "trigger.min_multiplier"),
            max_multiplier=optional_float(data.get("max_multiplier"), "trigger.max_multiplier"),
            instant_reward=_optional_reward(data.get("instant_reward")),
            also_progress=also_progress,
            outcome_filter=OutcomeFilter.from_dict(outcome_filter) if outcome_filter is not None else None,
        )


# ============================================================================
# SCOPE
# ============================================================================


def _str_tuple(values: Any) -> Tuple[str, ...]:
    if not values:
        return ()
    return tuple(str(v) for v in values)


@dataclass(frozen=True)
class Scope:
    """
    Include/exclude filters per dimension.

    An empty include list means no restriction on that dimension. Exclude
    lists veto regardless of inclusion.
    """

    games: Tuple[str, ...] = ()
    providers: Tuple[str, ...] = ()
    verticals: Tuple[str, ...] = ()
    exclude_games: Tuple[str, ...] = ()
    exclude_providers: Tuple[str, ...] = ()
    exclude_verticals: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "games": list(self.games),
            "providers": list(self.providers),
            "verticals": list(self.verticals),
            "exclude_games": list(self.exclude_games),
            "exclude_providers": list(self.exclude_providers),
            "exclude_verticals": list(self.exclude_verticals),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Scope:
        verticals = _str_tuple(data.get("verticals"))
        exclude_verticals = _str_tuple(data.get("exclude_verticals"))
        for value in verticals + exclude_verticals:
            parse_enum(Vertical, value, "scope.verticals")
        return cls(
            games=_str_tuple(data.get("games")),
            providers=_str_tuple(data.get("providers")),
            verticals=verticals,
            exclude_games=_str_tuple(data.get("exclude_games")),
            exclude_providers=_str_tuple(data.get("exclude_providers")),
            exclude_verticals=exclude_verticals,
        )


# ============================================================================
# MECHANIC
# ============================================================================


class MechanicType(str, Enum):
    LADDER = "ladder"
    COLLECTION = "collection"


@dataclass(frozen=True)
class LadderLevel:
    """One ladder rung: reached once the cumulative trigger count meets ``requirement``."""

    level: int
    requirement: int
    reward: RewardPayload

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "requirement": self.requirement,
            "reward": self.reward.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> LadderLevel:
        return cls(
            level=optional_int(require(data, "level"), "level.level"),
            requirement=optional_int(require(data, "requirement"), "level.requirement"),
            reward=RewardPayload.from_dict(require(data, "reward")),
        )


class CollectBy(str, Enum):
    GAME_ID = "game_id"
    PROVIDER_ID = "provider_id"
    VERTICAL = "vertical"

    @property
    def subject(self) -> Subject:
        """The trigger subject measured along the same dimension."""
        return {
            CollectBy.GAME_ID: Subject.GAME,
            CollectBy.PROVIDER_ID: Subject.PROVIDER,
            CollectBy.VERTICAL: Subject.VERTICAL,
        }[self]


@dataclass(frozen=True)
class CollectionConfig:
    """
    Collection target.

    ``target_set`` takes precedence over ``target_count`` when both are set.
    """

    collect_by: CollectBy
    target_count: Optional[int] = None
    target_set: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collect_by": self.collect_by.value,
            "target_count": self.target_count,
            "target_set": list(self.target_set) if self.target_set is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CollectionConfig:
        target_set = data.get("target_set")
        return cls(
            collect_by=parse_enum(CollectBy, require(data, "collect_by"), "collection.collect_by"),
            target_count=optional_int(data.get("target_count"), "collection.target_count"),
            target_set=tuple(str(v) for v in target_set) if target_set is not None else None,
        )


@dataclass(frozen=True)
class Mechanic:
    """Progress mechanic: exactly one of ladder levels or a collection config applies."""

    type: MechanicType
    levels: Tuple[LadderLevel, ...] = ()
    collection: Optional[CollectionConfig] = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, MechanicType):
            raise DomainValidationError("type must be a MechanicType", field="mechanic.type")

    def sorted_levels(self) -> Tuple[LadderLevel, ...]:
        return tuple(sorted(self.levels, key=lambda lvl: lvl.level))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.type is MechanicType.LADDER:
            data["levels"] = [lvl.to_dict() for lvl in self.levels]
        if self.collection is not None:
            data["collection"] = self.collection.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Mechanic:
        collection = data.get("collection")
        return cls(
            type=parse_enum(MechanicType, require(data, "type"), "mechanic.type"),
            levels=tuple(LadderLevel.from_dict(lvl) for lvl in data.get("levels") or ()),
            collection=CollectionConfig.from_dict(collection) if collection is not None else None,
        )


# ============================================================================
# PROMOTION
# ============================================================================


@dataclass(frozen=True)
class PromotionConfig:
    """
    A named, time-bounded promotion rule.

    The active window is half-open: ``start_at <= now < end_at``.
    """

    id: str
    name: str
    enabled: bool
    start_at: datetime
    end_at: datetime
    trigger: Trigger
    mechanic: Mechanic
    requires_opt_in: bool = False
    scope: Optional[Scope] = None
    cooldown_minutes: Optional[int] = None
    max_rewards_per_day: Optional[int] = None
    max_rewards_total: Optional[int] = None
    default_reward: Optional[RewardPayload] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        validate_not_empty(self.id, "id")
        validate_aware(self.start_at, "start_at")
        validate_aware(self.end_at, "end_at")
        for name in ("cooldown_minutes", "max_rewards_per_day", "max_rewards_total"):
            value = getattr(self, name)
            if value is not None:
                validate_non_negative(value, name)

    def is_active_at(self, moment: datetime) -> bool:
        return self.start_at <= moment < self.end_at

    def with_enabled(self, enabled: bool) -> PromotionConfig:
        return PromotionConfig.from_dict({**self.to_dict(), "enabled": enabled})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "start_at": format_datetime(self.start_at),
            "end_at": format_datetime(self.end_at),
            "requires_opt_in": self.requires_opt_in,
            "trigger": self.trigger.to_dict(),
            "scope": self.scope.to_dict() if self.scope is not None else None,
            "mechanic": self.mechanic.to_dict(),
            "cooldown_minutes": self.cooldown_minutes,
            "max_rewards_per_day": self.max_rewards_per_day,
            "max_rewards_total": self.max_rewards_total,
            "default_reward": self.default_reward.to_dict() if self.default_reward else None,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PromotionConfig:
        scope = data.get("scope")
        promotion_id = str(require(data, "id"))
        return cls(
            id=promotion_id,
            name=str(data.get("name") or promotion_id),
            enabled=parse_bool(data.get("enabled"), "enabled", default=True),
            start_at=parse_datetime(require(data, "start_at"), "start_at"),
            end_at=parse_datetime(require(data, "end_at"), "end_at"),
            requires_opt_in=parse_bool(data.get("requires_opt_in"), "requires_opt_in"),
            trigger=Trigger.from_dict(require(data, "trigger")),
            scope=Scope.from_dict(scope) if scope is not None else None,
            mechanic=Mechanic.from_dict(require(data, "mechanic")),
            cooldown_minutes=optional_int(data.get("cooldown_minutes"), "cooldown_minutes"),
            max_rewards_per_day=optional_int(data.get("max_rewards_per_day"), "max_rewards_per_day"),
            max_rewards_total=optional_int(data.get("max_rewards_total"), "max_rewards_total"),
            default_reward=_optional_reward(data.get("default_reward")),
            metadata=dict(data.get("metadata") or {}),
        )
