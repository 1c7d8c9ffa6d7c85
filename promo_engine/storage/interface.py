"""
Storage interface for promotions, player state and per-player logs.

Purpose
-------
Define the async persistence collaborator the services depend on. The
engine itself never touches storage; services load snapshots, run the
engine, and write the result back under ``player_lock``.

Design Notes
------------
- Every read returns a fresh object; mutating it never changes stored data
  until it is saved again.
- ``get_player_logs`` returns the most recent entries first. Backends keep
  at most ``log_retention`` entries per player.
- ``player_lock`` serializes read-modify-write cycles per player id.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from promo_engine.core.config import Config
from promo_engine.domain.models import LogEntry, PlayerState, PromotionConfig


class Storage(ABC):
    """Abstract async storage for the promotions engine."""

    def __init__(self, log_retention: Optional[int] = None) -> None:
        self.log_retention = log_retention or Config.PLAYER_LOG_RETENTION

    # ------------------------------------------------------------------ #
    # Promotions
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_promotion(self, promotion_id: str) -> Optional[PromotionConfig]:
        ...

    @abstractmethod
    async def get_all_promotions(self) -> List[PromotionConfig]:
        ...

    @abstractmethod
    async def save_promotion(self, promotion: PromotionConfig) -> None:
        ...

    @abstractmethod
    async def delete_promotion(self, promotion_id: str) -> bool:
        """Delete a promotion; returns whether it existed."""

    # ------------------------------------------------------------------ #
    # Player state
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_player_state(self, player_id: str) -> Optional[PlayerState]:
        ...

    @abstractmethod
    async def save_player_state(self, state: PlayerState) -> None:
        ...

    @abstractmethod
    async def get_all_player_states(self) -> List[PlayerState]:
        ...

    # ------------------------------------------------------------------ #
    # Logs
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def add_log(self, entry: LogEntry) -> None:
        ...

    @abstractmethod
    async def get_player_logs(self, player_id: str, limit: Optional[int] = None) -> List[LogEntry]:
        """Most recent entries first; ``limit`` defaults to PLAYER_LOG_DEFAULT_LIMIT."""

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def reset(self) -> None:
        """Remove every promotion, player state and log."""

    async def close(self) -> None:
        """Release backend resources. No-op by default."""

    @abstractmethod
    def player_lock(self, player_id: str):
        """Async context manager serializing updates for ``player_id``."""

    @staticmethod
    def _resolve_limit(limit: Optional[int]) -> int:
        return Config.PLAYER_LOG_DEFAULT_LIMIT if limit is None else max(0, limit)


class LocalLockMixin:
    """
    Per-player ``asyncio.Lock`` for backends running in a single process.

    A lock lives only while some task holds or awaits it, so the map stays
    bounded by the number of players being processed concurrently.
    """

    _player_locks: Dict[str, asyncio.Lock]
    _lock_users: Dict[str, int]

    def _init_locks(self) -> None:
        self._player_locks = {}
        self._lock_users = {}

    @asynccontextmanager
    async def player_lock(self, player_id: str) -> AsyncIterator[None]:
        lock = self._player_locks.setdefault(player_id, asyncio.Lock())
        self._lock_users[player_id] = self._lock_users.get(player_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[player_id] -= 1
            if self._lock_users[player_id] == 0:
                del self._lock_users[player_id]
                del self._player_locks[player_id]
