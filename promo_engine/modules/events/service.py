"""
Event processing service.

Purpose
-------
Drive the engine for incoming gameplay events: load the catalog and the
player's state, evaluate every enabled promotion, persist the new state,
record a per-player log entry, and announce outcomes on the event bus.

Responsibilities
----------------
- Serialize processing per player through ``storage.player_lock``
- Persist state and log atomically with respect to other events of the
  same player
- Publish ``promotion.reward_granted`` for each granted reward and
  ``promotion.progress_recorded`` for progress without a reward
- Provide a read-only player overview (state, active promotions, logs)

Non-Responsibilities
--------------------
- Decision logic (``promo_engine.modules.engine``)
- Catalog management (PromotionService)

Design Notes
------------
Events are published after the lock is released so listeners can safely
call back into the services for the same player.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from promo_engine.core.logging.logger import LogContext, get_logger
from promo_engine.domain.models import (
    EvaluationResult,
    GameEvent,
    LogEntry,
    PlayerState,
    PromotionConfig,
    RewardPayload,
)
from promo_engine.domain.models.base import utc_now
from promo_engine.modules.engine import evaluate_all
from promo_engine.modules.shared.base_service import BaseService

logger = get_logger(__name__)


@dataclass(frozen=True)
class EventProcessingResult:
    """Outcome of processing one event for one player."""

    event: GameEvent
    evaluations: Tuple[EvaluationResult, ...]
    player_state: PlayerState

    @property
    def rewards(self) -> List[Tuple[str, RewardPayload]]:
        """``(promotion_id, reward)`` pairs granted by this event."""
        return [(e.promotion_id, e.reward) for e in self.evaluations if e.reward is not None]

    @property
    def fired(self) -> List[EvaluationResult]:
        return [e for e in self.evaluations if e.fired]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.event.player_id,
            "event": self.event.to_dict(),
            "evaluations": [e.to_dict() for e in self.evaluations],
            "rewards": [
                {"promotion_id": pid, **reward.to_dict()} for pid, reward in self.rewards
            ],
        }


class EventProcessingService(BaseService):
    """Runs incoming events through the engine and records the outcome."""

    def __init__(self, storage, event_bus, logger=logger) -> None:
        super().__init__(storage, event_bus, logger)

    async def process_event(
        self,
        event: GameEvent,
        now: Optional[datetime] = None,
    ) -> EventProcessingResult:
        """
        Evaluate ``event`` against every enabled promotion and commit the result.

        Args:
            event: The gameplay event
            now: Evaluation time; defaults to the current UTC time

        Returns:
            The per-promotion evaluations and the player's updated state
        """
        now = now or utc_now()

        async with LogContext(player_id=event.player_id, component="events", operation="process_event"):
            async with self.storage.player_lock(event.player_id):
                promotions = await self.storage.get_all_promotions()
                state = await self.storage.get_player_state(event.player_id)

                evaluations, new_state = evaluate_all(event, promotions, state, now)

                await self.storage.save_player_state(new_state)
                await self.storage.add_log(
                    LogEntry(
                        player_id=event.player_id,
                        event=event,
                        timestamp=now,
                        evaluations=tuple(evaluations),
                    )
                )

            result = EventProcessingResult(
                event=event,
                evaluations=tuple(evaluations),
                player_state=new_state,
            )

            self.log.info(
                "Event processed",
                extra={
                    "game_id": event.game_id,
                    "evaluated": len(evaluations),
                    "fired": len(result.fired),
                    "rewards": len(result.rewards),
                },
            )
            await self._publish_outcomes(event, result)

        return result

    async def _publish_outcomes(self, event: GameEvent, result: EventProcessingResult) -> None:
        for evaluation in result.fired:
            data = {
                "player_id": event.player_id,
                "promotion_id": evaluation.promotion_id,
                "game_id": event.game_id,
                "reasons": list(evaluation.reasons),
            }
            if evaluation.reward is not None:
                await self.emit_event(
                    "promotion.reward_granted",
                    {**data, "reward": evaluation.reward.to_dict()},
                )
            else:
                await self.emit_event("promotion.progress_recorded", data)

    # ========================================================================
    # QUERIES
    # ========================================================================

    async def get_player_overview(
        self,
        player_id: str,
        log_limit: int = 20,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Snapshot of a player's promotions.

        Returns a mapping with ``player_id``, ``state`` (or None),
        ``promotions`` (every enabled, currently active promotion with the
        player's record for it, if any) and ``logs`` (most recent first).
        """
        now = now or utc_now()
        state = await self.storage.get_player_state(player_id)
        promotions = await self.storage.get_all_promotions()
        logs = await self.storage.get_player_logs(player_id, log_limit)

        return {
            "player_id": player_id,
            "state": state.to_dict() if state is not None else None,
            "promotions": [
                self._promotion_summary(promotion, state)
                for promotion in promotions
                if promotion.enabled and promotion.is_active_at(now)
            ],
            "logs": [entry.to_dict() for entry in logs],
        }

    @staticmethod
    def _promotion_summary(promotion: PromotionConfig, state: Optional[PlayerState]) -> Dict[str, Any]:
        record = state.get(promotion.id) if state is not None else None
        return {
            "id": promotion.id,
            "name": promotion.name,
            "requires_opt_in": promotion.requires_opt_in,
            "trigger_kind": promotion.trigger.kind.value,
            "mechanic_type": promotion.mechanic.type.value,
            "end_at": promotion.end_at.isoformat(),
            "player": record.to_dict() if record is not None else None,
        }

    async def get_player_logs(self, player_id: str, limit: Optional[int] = None) -> List[LogEntry]:
        return await self.storage.get_player_logs(player_id, limit)

    async def reset(self) -> None:
        """Clear every promotion, player state and log."""
        await self.storage.reset()
        self.log_operation("reset")
