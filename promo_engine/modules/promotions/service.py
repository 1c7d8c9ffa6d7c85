"""
Promotion catalog and opt-in management.

Purpose
-------
Own the lifecycle of promotion definitions (create/update after a
validation pass, enable/disable, delete, bulk catalog load from YAML or
JSON) and the per-player opt-in flag of promotions that require joining.

Responsibilities
----------------
- Validate definitions before they reach storage
- Raise ``PromotionNotFoundError`` for unknown ids
- Toggle ``joined`` under the storage's per-player lock
- Emit ``promotion.saved`` / ``promotion.deleted`` / ``promotion.joined`` /
  ``promotion.left`` events

Non-Responsibilities
--------------------
- Event evaluation (EventProcessingService)
- Persistence details (storage backends)
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from promo_engine.core.logging.logger import get_logger
from promo_engine.domain.exceptions import (
    InvalidOperationError,
    PromotionNotFoundError,
    ValidationError,
)
from promo_engine.domain.models import (
    DomainValidationError,
    PlayerPromotionState,
    PlayerState,
    PromotionConfig,
)
from promo_engine.domain.models.base import utc_now
from promo_engine.modules.promotions.validator import PromotionValidator
from promo_engine.modules.shared.base_service import BaseService

logger = get_logger(__name__)


class PromotionService(BaseService):
    """Catalog CRUD, catalog loading and opt-in join/leave."""

    def __init__(self, storage, event_bus, logger=logger) -> None:
        super().__init__(storage, event_bus, logger)

    # ========================================================================
    # DEFINITIONS
    # ========================================================================

    async def save_promotion(self, promotion: PromotionConfig) -> PromotionConfig:
        """
        Validate and store a promotion, replacing any definition with the same id.

        Raises:
            ValidationError: If the definition has problems
        """
        PromotionValidator.validate(promotion)
        await self.storage.save_promotion(promotion)

        self.log_operation(
            "save_promotion",
            promotion_id=promotion.id,
            trigger_kind=promotion.trigger.kind.value,
            mechanic_type=promotion.mechanic.type.value,
            enabled=promotion.enabled,
        )
        await self.emit_event(
            "promotion.saved",
            {"promotion_id": promotion.id, "enabled": promotion.enabled},
        )
        return promotion

    async def save_definition(self, data: Dict[str, Any]) -> PromotionConfig:
        """
        Parse a raw definition mapping and save it.

        Raises:
            ValidationError: If the mapping cannot be parsed or fails validation
        """
        return await self.save_promotion(self.parse_definition(data))

    @staticmethod
    def parse_definition(data: Any) -> PromotionConfig:
        if not isinstance(data, dict):
            raise ValidationError("promotion", f"definition must be a mapping, got {type(data).__name__}")
        try:
            return PromotionConfig.from_dict(data)
        except DomainValidationError as e:
            raise ValidationError(e.field or "promotion", str(e)) from e

    async def get_promotion(self, promotion_id: str) -> PromotionConfig:
        """
        Raises:
            PromotionNotFoundError: If no promotion has this id
        """
        promotion = await self.storage.get_promotion(promotion_id)
        if promotion is None:
            raise PromotionNotFoundError(promotion_id)
        return promotion

    async def list_promotions(self, enabled_only: bool = False) -> List[PromotionConfig]:
        promotions = await self.storage.get_all_promotions()
        if enabled_only:
            return [p for p in promotions if p.enabled]
        return promotions

    async def list_active_promotions(self, now: Optional[datetime] = None) -> List[PromotionConfig]:
        """Enabled promotions whose window contains ``now``."""
        now = now or utc_now()
        return [p for p in await self.list_promotions(enabled_only=True) if p.is_active_at(now)]

    async def set_enabled(self, promotion_id: str, enabled: bool) -> PromotionConfig:
        promotion = await self.get_promotion(promotion_id)
        if promotion.enabled == enabled:
            return promotion
        updated = promotion.with_enabled(enabled)
        await self.storage.save_promotion(updated)
        self.log_operation("set_enabled", promotion_id=promotion_id, enabled=enabled)
        return updated

    async def delete_promotion(self, promotion_id: str) -> None:
        """
        Raises:
            PromotionNotFoundError: If no promotion has this id
        """
        if not await self.storage.delete_promotion(promotion_id):
            raise PromotionNotFoundError(promotion_id)
        self.log_operation("delete_promotion", promotion_id=promotion_id)
        await self.emit_event("promotion.deleted", {"promotion_id": promotion_id})

    # ========================================================================
    # CATALOG
    # ========================================================================

    async def load_catalog(self, path: Union[str, Path]) -> List[PromotionConfig]:
        """
        Load promotion definitions from a YAML or JSON file.

        The document is either a list of definitions or a mapping with a
        ``promotions`` list. Every definition is parsed and validated before
        any is saved, so a bad catalog leaves storage untouched.

        Raises:
            ValidationError: If the file is malformed or a definition is invalid
        """
        path = Path(path)
        definitions = self._read_catalog(path)

        promotions: List[PromotionConfig] = []
        problems: List[str] = []
        for index, data in enumerate(definitions):
            try:
                promotion = self.parse_definition(data)
                PromotionValidator.validate(promotion)
            except ValidationError as e:
                problems.extend(f"#{index}: {problem}" for problem in e.problems)
                continue
            promotions.append(promotion)

        if problems:
            error = ValidationError(
                "catalog",
                f"{len(problems)} problem(s) in {path.name}",
                problems,
            )
            self.log_error("load_catalog", error, path=str(path), problem_count=len(problems))
            raise error

        for promotion in promotions:
            await self.save_promotion(promotion)

        logger.info(
            "Promotion catalog loaded",
            extra={"path": str(path), "promotion_count": len(promotions)},
        )
        return promotions

    @staticmethod
    def _read_catalog(path: Path) -> List[Any]:
        try:
            with path.open("r", encoding="utf-8") as handle:
                if path.suffix.lower() == ".json":
                    document = json.load(handle)
                else:
                    document = yaml.safe_load(handle)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ValidationError("catalog", f"cannot read {path}: {e}") from e

        if isinstance(document, dict):
            document = document.get("promotions")
        if document is None:
            return []
        if not isinstance(document, list):
            raise ValidationError(
                "catalog",
                "catalog must be a list of promotions or a mapping with a 'promotions' list",
            )
        return document

    # ========================================================================
    # OPT-IN
    # ========================================================================

    async def join(
        self,
        player_id: str,
        promotion_id: str,
        now: Optional[datetime] = None,
    ) -> PlayerPromotionState:
        """
        Opt a player into a promotion that requires joining.

        Raises:
            PromotionNotFoundError: If no promotion has this id
            InvalidOperationError: If the promotion does not require opt-in
        """
        return await self._set_joined(player_id, promotion_id, True, now)

    async def leave(
        self,
        player_id: str,
        promotion_id: str,
        now: Optional[datetime] = None,
    ) -> PlayerPromotionState:
        """Opt a player out; progress and reward history are kept."""
        return await self._set_joined(player_id, promotion_id, False, now)

    async def _set_joined(
        self,
        player_id: str,
        promotion_id: str,
        joined: bool,
        now: Optional[datetime],
    ) -> PlayerPromotionState:
        action = "join" if joined else "leave"
        promotion = await self.get_promotion(promotion_id)
        if not promotion.requires_opt_in:
            raise InvalidOperationError(action, "Promotion does not require opt-in")

        now = now or utc_now()
        async with self.storage.player_lock(player_id):
            state = await self.storage.get_player_state(player_id) or PlayerState(player_id=player_id)
            record = state.ensure(promotion_id, now)
            record.joined = joined
            record.last_updated = now
            await self.storage.save_player_state(state)

        self.log_operation(action, player_id=player_id, promotion_id=promotion_id)
        await self.emit_event(
            f"promotion.{'joined' if joined else 'left'}",
            {"player_id": player_id, "promotion_id": promotion_id},
        )
        return record
