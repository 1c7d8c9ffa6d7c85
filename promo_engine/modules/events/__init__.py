"""Event processing: runs gameplay events through the engine."""

from promo_engine.modules.events.service import EventProcessingResult, EventProcessingService

__all__ = ["EventProcessingService", "EventProcessingResult"]
