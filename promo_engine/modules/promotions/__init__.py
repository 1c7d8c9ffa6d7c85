"""Promotion catalog management, definition validation and opt-in."""

from promo_engine.modules.promotions.service import PromotionService
from promo_engine.modules.promotions.validator import PromotionValidator

__all__ = ["PromotionService", "PromotionValidator"]
