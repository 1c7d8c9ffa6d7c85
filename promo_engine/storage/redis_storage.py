"""
Redis storage backend.

Key layout (``prefix`` defaults to ``REDIS_KEY_PREFIX``, "promo:")
------------------------------------------------------------------
- ``{prefix}promotions``        hash: promotion id -> JSON document
- ``{prefix}player:{id}``       string: PlayerState JSON document
- ``{prefix}players``           set: known player ids
- ``{prefix}logs:{id}``         list: LogEntry JSON, newest first, capped
- ``{prefix}lock:player:{id}``  SET NX lock held while processing an event

Driver errors are wrapped in ``StorageError``.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

from redis.exceptions import RedisError

from promo_engine.core.config import Config
from promo_engine.core.exceptions import StorageError
from promo_engine.core.logging.logger import get_logger
from promo_engine.core.redis.service import RedisService
from promo_engine.domain.models import LogEntry, PlayerState, PromotionConfig
from promo_engine.storage.interface import Storage

logger = get_logger(__name__)


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class RedisStorage(Storage):
    """Storage backed by the shared ``RedisService`` client."""

    def __init__(self, prefix: Optional[str] = None, log_retention: Optional[int] = None) -> None:
        super().__init__(log_retention)
        self.prefix = prefix if prefix is not None else Config.REDIS_KEY_PREFIX

    # ------------------------------------------------------------------ #
    # Keys
    # ------------------------------------------------------------------ #

    @property
    def _promotions_key(self) -> str:
        return f"{self.prefix}promotions"

    @property
    def _players_key(self) -> str:
        return f"{self.prefix}players"

    def _player_key(self, player_id: str) -> str:
        return f"{self.prefix}player:{player_id}"

    def _logs_key(self, player_id: str) -> str:
        return f"{self.prefix}logs:{player_id}"

    def _lock_key(self, player_id: str) -> str:
        return f"{self.prefix}lock:player:{player_id}"

    # ------------------------------------------------------------------ #
    # Promotions
    # ------------------------------------------------------------------ #

    async def get_promotion(self, promotion_id: str) -> Optional[PromotionConfig]:
        try:
            raw = await RedisService.client().hget(self._promotions_key, promotion_id)
        except RedisError as e:
            raise StorageError("get_promotion", e) from e
        return PromotionConfig.from_dict(json.loads(raw)) if raw is not None else None

    async def get_all_promotions(self) -> List[PromotionConfig]:
        """All promotions ordered by id."""
        try:
            raw = await RedisService.client().hgetall(self._promotions_key)
        except RedisError as e:
            raise StorageError("get_all_promotions", e) from e
        return [PromotionConfig.from_dict(json.loads(raw[key])) for key in sorted(raw)]

    async def save_promotion(self, promotion: PromotionConfig) -> None:
        try:
            await RedisService.client().hset(
                self._promotions_key, promotion.id, _dumps(promotion.to_dict())
            )
        except RedisError as e:
            raise StorageError("save_promotion", e) from e

    async def delete_promotion(self, promotion_id: str) -> bool:
        try:
            removed = await RedisService.client().hdel(self._promotions_key, promotion_id)
        except RedisError as e:
            raise StorageError("delete_promotion", e) from e
        return bool(removed)

    # ------------------------------------------------------------------ #
    # Player state
    # ------------------------------------------------------------------ #

    async def get_player_state(self, player_id: str) -> Optional[PlayerState]:
        try:
            data = await RedisService.get_json(self._player_key(player_id))
        except RedisError as e:
            raise StorageError("get_player_state", e) from e
        return PlayerState.from_dict(data) if data is not None else None

    async def save_player_state(self, state: PlayerState) -> None:
        try:
            async with RedisService.client().pipeline(transaction=True) as pipe:
                pipe.set(self._player_key(state.player_id), _dumps(state.to_dict()))
                pipe.sadd(self._players_key, state.player_id)
                await pipe.execute()
        except RedisError as e:
            raise StorageError("save_player_state", e) from e

    async def get_all_player_states(self) -> List[PlayerState]:
        try:
            client = RedisService.client()
            player_ids = sorted(await client.smembers(self._players_key))
            if not player_ids:
                return []
            raws = await client.mget([self._player_key(pid) for pid in player_ids])
        except RedisError as e:
            raise StorageError("get_all_player_states", e) from e
        return [PlayerState.from_dict(json.loads(raw)) for raw in raws if raw is not None]

    # ------------------------------------------------------------------ #
    # Logs
    # ------------------------------------------------------------------ #

    async def add_log(self, entry: LogEntry) -> None:
        key = self._logs_key(entry.player_id)
        try:
            async with RedisService.client().pipeline(transaction=True) as pipe:
                pipe.lpush(key, _dumps(entry.to_dict()))
                pipe.ltrim(key, 0, self.log_retention - 1)
                await pipe.execute()
        except RedisError as e:
            raise StorageError("add_log", e) from e

    async def get_player_logs(self, player_id: str, limit: Optional[int] = None) -> List[LogEntry]:
        limit = self._resolve_limit(limit)
        if limit == 0:
            return []
        try:
            raws = await RedisService.client().lrange(self._logs_key(player_id), 0, limit - 1)
        except RedisError as e:
            raise StorageError("get_player_logs", e) from e
        return [LogEntry.from_dict(json.loads(raw)) for raw in raws]

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    async def reset(self) -> None:
        """Delete every key under the prefix."""
        try:
            client = RedisService.client()
            keys = [key async for key in client.scan_iter(match=f"{self.prefix}*")]
            if keys:
                await client.delete(*keys)
        except RedisError as e:
            raise StorageError("reset", e) from e
        logger.info("Redis storage reset", extra={"prefix": self.prefix, "deleted_keys": len(keys)})

    def player_lock(self, player_id: str):
        return RedisService.acquire_lock(self._lock_key(player_id), operation="process_event")

    async def close(self) -> None:
        await RedisService.shutdown()
