"""
Domain models package for the promotions engine.

Purpose
-------
The promotion data model: gameplay events, promotion definitions, durable
player state and evaluation results. Every model round-trips through
``to_dict()`` / ``from_dict()`` (snake_case keys, ISO-8601 datetimes, enum
values as strings).

Design Notes
------------
Domain models are separate from storage rows:
- Storage backends (promo_engine/storage/): persist ``to_dict()`` documents
- Domain models (promo_engine/domain/models/): typed values with validation
"""

from .base import (
    DomainValidationError,
    validate_non_negative,
    validate_not_empty,
)
from .evaluation import EvaluationResult, LogEntry
from .event import GameEvent, Vertical
from .player_state import (
    PlayerPromotionState,
    PlayerState,
    PromotionProgress,
    RewardHistoryEntry,
)
from .promotion import (
    CollectBy,
    CollectionConfig,
    LadderLevel,
    Mechanic,
    MechanicType,
    OutcomeFilter,
    PromotionConfig,
    RewardPayload,
    RewardType,
    Scope,
    Subject,
    Trigger,
    TriggerKind,
)

__all__ = [
    # Base
    "DomainValidationError",
    "validate_non_negative",
    "validate_not_empty",
    # Events
    "GameEvent",
    "Vertical",
    # Promotions
    "RewardType",
    "RewardPayload",
    "Subject",
    "TriggerKind",
    "OutcomeFilter",
    "Trigger",
    "Scope",
    "MechanicType",
    "LadderLevel",
    "CollectBy",
    "CollectionConfig",
    "Mechanic",
    "PromotionConfig",
    # Player state
    "PromotionProgress",
    "RewardHistoryEntry",
    "PlayerPromotionState",
    "PlayerState",
    # Evaluation
    "EvaluationResult",
    "LogEntry",
]
