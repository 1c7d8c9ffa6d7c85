"""
Evaluation output models.

``EvaluationResult`` is the explainability contract of the engine: every
decision, negative ones included, carries an ordered reason trail.
``LogEntry`` groups the results of one event for the per-player history.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from promo_engine.domain.models.base import format_datetime, parse_bool, parse_datetime, require
from promo_engine.domain.models.event import GameEvent
from promo_engine.domain.models.promotion import RewardPayload


@dataclass(frozen=True)
class EvaluationResult:
    """
    Outcome of evaluating one event against one promotion.

    ``fired`` means progress was recorded and/or a reward granted; ``reward``
    is only set when a reward was actually granted.
    """

    promotion_id: str
    eligible: bool
    fired: bool
    reasons: Tuple[str, ...] = ()
    reward: Optional[RewardPayload] = None

    @property
    def reason_text(self) -> str:
        return "; ".join(self.reasons)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "promotion_id": self.promotion_id,
            "eligible": self.eligible,
            "fired": self.fired,
            "reasons": list(self.reasons),
        }
        if self.reward is not None:
            data["reward"] = self.reward.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EvaluationResult:
        reward = data.get("reward")
        return cls(
            promotion_id=str(require(data, "promotion_id")),
            eligible=parse_bool(data.get("eligible"), "eligible"),
            fired=parse_bool(data.get("fired"), "fired"),
            reasons=tuple(str(r) for r in data.get("reasons") or ()),
            reward=RewardPayload.from_dict(reward) if reward is not None else None,
        )


@dataclass(frozen=True)
class LogEntry:
    """Per-player history record of one processed event."""

    player_id: str
    event: GameEvent
    timestamp: datetime
    evaluations: Tuple[EvaluationResult, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "event": self.event.to_dict(),
            "timestamp": format_datetime(self.timestamp),
            "evaluations": [e.to_dict() for e in self.evaluations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> LogEntry:
        return cls(
            player_id=str(require(data, "player_id")),
            event=GameEvent.from_dict(require(data, "event")),
            timestamp=parse_datetime(require(data, "timestamp"), "timestamp"),
            evaluations=tuple(EvaluationResult.from_dict(e) for e in data.get("evaluations") or ()),
        )
