"""
SQL storage backend (SQLAlchemy async ORM).

Tables
------
- ``promotions``:     one row per promotion, JSON document payload
- ``player_states``:  one row per player, JSON document payload
- ``player_logs``:    append-only log rows per player, trimmed to retention

Per-player serialization uses in-process ``asyncio.Lock``s, so a single
writer process is assumed. Driver errors are wrapped in ``StorageError``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column

from promo_engine.core.database.base import Base
from promo_engine.core.database.service import DatabaseService
from promo_engine.core.exceptions import StorageError
from promo_engine.core.logging.logger import get_logger
from promo_engine.domain.models import LogEntry, PlayerState, PromotionConfig
from promo_engine.storage.interface import LocalLockMixin, Storage

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# TABLES
# ============================================================================


class PromotionRow(Base):
    __tablename__ = "promotions"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class PlayerStateRow(Base):
    __tablename__ = "player_states"

    player_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class PlayerLogRow(Base):
    __tablename__ = "player_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(String(128), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON)


# ============================================================================
# STORAGE
# ============================================================================


class DatabaseStorage(LocalLockMixin, Storage):
    """Storage on the shared ``DatabaseService`` engine."""

    def __init__(self, log_retention: Optional[int] = None) -> None:
        super().__init__(log_retention)
        self._init_locks()

    # ------------------------------------------------------------------ #
    # Promotions
    # ------------------------------------------------------------------ #

    async def get_promotion(self, promotion_id: str) -> Optional[PromotionConfig]:
        try:
            async with DatabaseService.get_session() as session:
                row = await session.get(PromotionRow, promotion_id)
                payload = row.payload if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError("get_promotion", e) from e
        return PromotionConfig.from_dict(payload) if payload is not None else None

    async def get_all_promotions(self) -> List[PromotionConfig]:
        """All promotions ordered by id."""
        try:
            async with DatabaseService.get_session() as session:
                result = await session.execute(
                    select(PromotionRow.payload).order_by(PromotionRow.id)
                )
                payloads = list(result.scalars())
        except SQLAlchemyError as e:
            raise StorageError("get_all_promotions", e) from e
        return [PromotionConfig.from_dict(p) for p in payloads]

    async def save_promotion(self, promotion: PromotionConfig) -> None:
        try:
            async with DatabaseService.get_transaction() as session:
                row = await session.get(PromotionRow, promotion.id, with_for_update=True)
                if row is None:
                    session.add(
                        PromotionRow(
                            id=promotion.id,
                            enabled=promotion.enabled,
                            payload=promotion.to_dict(),
                        )
                    )
                else:
                    row.enabled = promotion.enabled
                    row.payload = promotion.to_dict()
        except SQLAlchemyError as e:
            raise StorageError("save_promotion", e) from e

    async def delete_promotion(self, promotion_id: str) -> bool:
        try:
            async with DatabaseService.get_transaction() as session:
                result = await session.execute(
                    delete(PromotionRow).where(PromotionRow.id == promotion_id)
                )
                removed = result.rowcount
        except SQLAlchemyError as e:
            raise StorageError("delete_promotion", e) from e
        return bool(removed)

    # ------------------------------------------------------------------ #
    # Player state
    # ------------------------------------------------------------------ #

    async def get_player_state(self, player_id: str) -> Optional[PlayerState]:
        try:
            async with DatabaseService.get_session() as session:
                row = await session.get(PlayerStateRow, player_id)
                payload = row.payload if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError("get_player_state", e) from e
        return PlayerState.from_dict(payload) if payload is not None else None

    async def save_player_state(self, state: PlayerState) -> None:
        try:
            async with DatabaseService.get_transaction() as session:
                row = await session.get(PlayerStateRow, state.player_id, with_for_update=True)
                if row is None:
                    session.add(PlayerStateRow(player_id=state.player_id, payload=state.to_dict()))
                else:
                    row.payload = state.to_dict()
        except SQLAlchemyError as e:
            raise StorageError("save_player_state", e) from e

    async def get_all_player_states(self) -> List[PlayerState]:
        try:
            async with DatabaseService.get_session() as session:
                result = await session.execute(
                    select(PlayerStateRow.payload).order_by(PlayerStateRow.player_id)
                )
                payloads = list(result.scalars())
        except SQLAlchemyError as e:
            raise StorageError("get_all_player_states", e) from e
        return [PlayerState.from_dict(p) for p in payloads]

    # ------------------------------------------------------------------ #
    # Logs
    # ------------------------------------------------------------------ #

    async def add_log(self, entry: LogEntry) -> None:
        try:
            async with DatabaseService.get_transaction() as session:
                session.add(
                    PlayerLogRow(
                        player_id=entry.player_id,
                        created_at=entry.timestamp,
                        payload=entry.to_dict(),
                    )
                )
                await session.flush()

                stale = (
                    select(PlayerLogRow.id)
                    .where(PlayerLogRow.player_id == entry.player_id)
                    .order_by(PlayerLogRow.id.desc())
                    .offset(self.log_retention)
                )
                stale_ids = list((await session.execute(stale)).scalars())
                if stale_ids:
                    await session.execute(delete(PlayerLogRow).where(PlayerLogRow.id.in_(stale_ids)))
        except SQLAlchemyError as e:
            raise StorageError("add_log", e) from e

    async def get_player_logs(self, player_id: str, limit: Optional[int] = None) -> List[LogEntry]:
        try:
            async with DatabaseService.get_session() as session:
                result = await session.execute(
                    select(PlayerLogRow.payload)
                    .where(PlayerLogRow.player_id == player_id)
                    .order_by(PlayerLogRow.id.desc())
                    .limit(self._resolve_limit(limit))
                )
                payloads = list(result.scalars())
        except SQLAlchemyError as e:
            raise StorageError("get_player_logs", e) from e
        return [LogEntry.from_dict(p) for p in payloads]

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    async def reset(self) -> None:
        try:
            async with DatabaseService.get_transaction() as session:
                await session.execute(delete(PlayerLogRow))
                await session.execute(delete(PlayerStateRow))
                await session.execute(delete(PromotionRow))
        except SQLAlchemyError as e:
            raise StorageError("reset", e) from e
        logger.info("Database storage reset")

    async def close(self) -> None:
        await DatabaseService.shutdown()
