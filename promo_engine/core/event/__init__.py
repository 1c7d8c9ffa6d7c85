"""
Promotions event system.

Usage
-----
>>> from promo_engine.core.event import EventBus, ListenerPriority
>>> bus = EventBus()
>>> bus.subscribe("promotion.reward_granted", fulfil_reward, priority=ListenerPriority.HIGH)
"""

from promo_engine.core.event.bus import EventBus
from promo_engine.core.event.router import EventRouter
from promo_engine.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventRouter",
    "EventListener",
    "EventPayload",
    "ListenerPriority",
    "CallbackType",
]
