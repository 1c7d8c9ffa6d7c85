"""
In-memory storage backend.

Keeps serialized documents in process-local dicts, so every read produces an
independent snapshot. Suitable for tests, demos and the CLI replay.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Optional

from promo_engine.core.logging.logger import get_logger
from promo_engine.domain.models import LogEntry, PlayerState, PromotionConfig
from promo_engine.storage.interface import LocalLockMixin, Storage

logger = get_logger(__name__)


class MemoryStorage(LocalLockMixin, Storage):
    """Process-local storage; promotions keep insertion order."""

    def __init__(self, log_retention: Optional[int] = None) -> None:
        super().__init__(log_retention)
        self._init_locks()
        self._promotions: Dict[str, Dict[str, Any]] = {}
        self._players: Dict[str, Dict[str, Any]] = {}
        self._logs: Dict[str, Deque[Dict[str, Any]]] = {}

    async def get_promotion(self, promotion_id: str) -> Optional[PromotionConfig]:
        data = self._promotions.get(promotion_id)
        return PromotionConfig.from_dict(data) if data is not None else None

    async def get_all_promotions(self) -> List[PromotionConfig]:
        return [PromotionConfig.from_dict(data) for data in self._promotions.values()]

    async def save_promotion(self, promotion: PromotionConfig) -> None:
        self._promotions[promotion.id] = promotion.to_dict()

    async def delete_promotion(self, promotion_id: str) -> bool:
        return self._promotions.pop(promotion_id, None) is not None

    async def get_player_state(self, player_id: str) -> Optional[PlayerState]:
        data = self._players.get(player_id)
        return PlayerState.from_dict(data) if data is not None else None

    async def save_player_state(self, state: PlayerState) -> None:
        self._players[state.player_id] = state.to_dict()

    async def get_all_player_states(self) -> List[PlayerState]:
        return [PlayerState.from_dict(data) for data in self._players.values()]

    async def add_log(self, entry: LogEntry) -> None:
        logs = self._logs.setdefault(entry.player_id, deque(maxlen=self.log_retention))
        logs.appendleft(entry.to_dict())

    async def get_player_logs(self, player_id: str, limit: Optional[int] = None) -> List[LogEntry]:
        logs = self._logs.get(player_id, ())
        return [LogEntry.from_dict(data) for data in list(logs)[: self._resolve_limit(limit)]]

    async def reset(self) -> None:
        self._promotions.clear()
        self._players.clear()
        self._logs.clear()
        logger.info("Memory storage reset")
