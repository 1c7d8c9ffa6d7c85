"""
Gameplay event model.

A ``GameEvent`` is one gameplay outcome reported for a player. It is the only
input the evaluation engine reacts to and is immutable once produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from promo_engine.domain.models.base import (
    DomainValidationError,
    format_datetime,
    parse_bool,
    parse_datetime,
    parse_enum,
    require,
    validate_aware,
    validate_non_negative,
    validate_not_empty,
)


class Vertical(str, Enum):
    """Game categories an event can belong to."""

    SLOTS = "slots"
    LIVE = "live"
    CRASH = "crash"
    TABLE = "table"


@dataclass(frozen=True)
class GameEvent:
    """
    Immutable value object for one gameplay outcome.

    Attributes
    ----------
    player_id : str
        Player the outcome belongs to
    game_id : str
        Game that produced the outcome
    provider_id : str
        Studio/provider of the game
    vertical : Vertical
        Category of the game
    win_multiplier : float
        Win expressed as a multiple of the stake; 0 means no win
    bonus_triggered : bool
        Whether the round triggered the game's bonus feature
    timestamp : datetime
        When the outcome happened (timezone-aware)
    """

    player_id: str
    game_id: str
    provider_id: str
    vertical: Vertical
    win_multiplier: float
    bonus_triggered: bool
    timestamp: datetime

    def __post_init__(self) -> None:
        """Validate event on creation."""
        validate_not_empty(self.player_id, "player_id")
        validate_not_empty(self.game_id, "game_id")
        validate_not_empty(self.provider_id, "provider_id")
        if not isinstance(self.vertical, Vertical):
            raise DomainValidationError("vertical must be a Vertical", field="vertical")
        validate_non_negative(self.win_multiplier, "win_multiplier")
        validate_aware(self.timestamp, "timestamp")

    @property
    def is_win(self) -> bool:
        """A win occurred when the multiplier is strictly positive."""
        return self.win_multiplier > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "game_id": self.game_id,
            "provider_id": self.provider_id,
            "vertical": self.vertical.value,
            "win_multiplier": self.win_multiplier,
            "bonus_triggered": self.bonus_triggered,
            "timestamp": format_datetime(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GameEvent:
        try:
            win_multiplier = float(data.get("win_multiplier", 0) or 0)
        except (TypeError, ValueError) as e:
            raise DomainValidationError(
                f"win_multiplier must be a number, got {data.get('win_multiplier')!r}",
                field="win_multiplier",
            ) from e

        return cls(
            player_id=str(require(data, "player_id")),
            game_id=str(require(data, "game_id")),
            provider_id=str(require(data, "provider_id")),
            vertical=parse_enum(Vertical, require(data, "vertical"), "vertical"),
            win_multiplier=win_multiplier,
            bonus_triggered=parse_bool(data.get("bonus_triggered"), "bonus_triggered"),
            timestamp=parse_datetime(require(data, "timestamp"), "timestamp"),
        )
