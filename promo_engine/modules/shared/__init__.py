"""Shared service foundations."""

from promo_engine.modules.shared.base_service import BaseService

__all__ = ["BaseService"]
