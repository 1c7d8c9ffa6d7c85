"""
Base Service Foundation

Purpose
-------
Provides the foundational class for the promotions services. Services load
snapshots from storage, run the pure engine, persist the outcome and emit
domain events.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Event emission helpers
- Shared access to the storage collaborator

What this class does NOT do:
- Evaluate promotions (that's the engine's job)
- Talk to Redis or the database directly (storage backends do)
- Manage per-player locking beyond asking storage for ``player_lock``

Usage
-----
    class EventProcessingService(BaseService):
        async def process_event(self, event: GameEvent):
            async with self.storage.player_lock(event.player_id):
                ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from logging import Logger

    from promo_engine.core.event.bus import EventBus
    from promo_engine.storage.interface import Storage


class BaseService:
    """
    Base class for the promotions services.

    Args:
        storage: Storage backend holding promotions, player state and logs
        event_bus: Event bus for outcome notifications
        logger: Structured logger instance
    """

    def __init__(
        self,
        storage: Storage,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self.storage = storage
        self._events = event_bus
        self.log = logger

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Publish a domain event on the bus.

        Args:
            event_type: Event name, e.g. ``promotion.reward_granted``
            data: Event payload data
            context: Optional additional context merged into the payload
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        """Log a service error with its type and message."""
        self.log.error(
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
