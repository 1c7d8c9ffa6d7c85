"""
EventBus: async in-process publish/subscribe.

Purpose
-------
Decouple the event-processing service from whatever reacts to its outcomes
(reward fulfilment, notifications, analytics). Services publish
``promotion.reward_granted`` and ``promotion.progress_recorded``; listeners
subscribe by exact name or wildcard.

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to all matching listeners (exact + wildcard)
- Execute listeners by tier:
  * CRITICAL / HIGH: sequential, awaited with timeout
  * NORMAL: concurrent (gather), awaited
  * LOW: fire-and-forget background tasks
- Error isolation: one failing listener never blocks the others

Design Notes
------------
- Instance-based so tests can build their own bus.
- Designed for single-threaded asyncio usage.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Dict, List, Optional

from promo_engine.core.event.router import EventRouter
from promo_engine.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from promo_engine.core.logging.logger import get_logger

logger = get_logger(__name__)


class EventBus:
    """
    In-process EventBus with tiered listener execution.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("promotion.*", on_promotion_event)
    >>> await bus.publish("promotion.reward_granted", {"player_id": "p1"})
    """

    def __init__(
        self,
        router: Optional[EventRouter] = None,
        *,
        critical_timeout_seconds: float = 5.0,
        high_timeout_seconds: float = 5.0,
    ) -> None:
        self._router = router or EventRouter()
        self._listeners: Dict[str, List[EventListener]] = {}
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._critical_timeout = float(critical_timeout_seconds)
        self._high_timeout = float(high_timeout_seconds)
        self._published: Dict[str, int] = {}
        self._errors: Dict[str, int] = {}

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            # Built-ins may not expose a signature
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            callback_name = getattr(callback, "__qualname__", None) or getattr(
                callback, "__name__", repr(callback)
            )
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{callback_name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns:
            The listener identifier (for unsubscribing later).

        Raises:
            ValueError: If the callback does not take exactly one parameter.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        bucket = self._listeners.setdefault(event_name, [])
        if any(existing.identifier == listener.identifier for existing in bucket):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        bucket.append(listener)
        bucket.sort(key=lambda lst: lst.priority.value)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "once": listener.once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        bucket = self._listeners.get(event_name, [])
        remaining = [lst for lst in bucket if lst.identifier != identifier]
        removed = len(remaining) != len(bucket)
        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)

        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        """Remove all listeners. Primarily intended for tests."""
        total = self.get_listener_count()
        self._listeners.clear()
        logger.info("EventBus: cleared all listeners", extra={"previous_listener_count": total})

    def _extract_listeners(self, event_name: str) -> List[EventListener]:
        matched: List[EventListener] = []
        for pattern, bucket in list(self._listeners.items()):
            if not self._router.matches(event_name, pattern):
                continue
            matched.extend(bucket)
            one_shot = [lst.identifier for lst in bucket if lst.once]
            for identifier in one_shot:
                self.unsubscribe(pattern, identifier)
        matched.sort(key=lambda lst: lst.priority.value)
        return matched

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all subscribed listeners.

        Returns:
            Results from CRITICAL/HIGH/NORMAL listeners. LOW listeners are
            fire-and-forget and not included.
        """
        self._published[event_name] = self._published.get(event_name, 0) + 1
        listeners = self._extract_listeners(event_name)

        if not listeners:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        results: list[Any] = []

        for listener in listeners:
            if listener.priority is ListenerPriority.CRITICAL:
                results.append(await self._run_with_timeout(listener, event_name, data, self._critical_timeout))
        for listener in listeners:
            if listener.priority is ListenerPriority.HIGH:
                results.append(await self._run_with_timeout(listener, event_name, data, self._high_timeout))

        normal = [lst for lst in listeners if lst.priority is ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(*[self._run_listener(lst, event_name, data) for lst in normal])
            )

        loop = asyncio.get_running_loop()
        for listener in listeners:
            if listener.priority is ListenerPriority.LOW:
                task = loop.create_task(
                    self._run_listener(listener, event_name, data),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        timeout: float,
    ) -> Any:
        if timeout <= 0:
            return await self._run_listener(listener, event_name, payload)
        try:
            return await asyncio.wait_for(
                self._run_listener(listener, event_name, payload), timeout=timeout
            )
        except asyncio.TimeoutError:
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            logger.error(
                "EventBus: listener timed out",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "timeout_seconds": timeout,
                },
            )
            return None

    async def _run_listener(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
    ) -> Any:
        try:
            result = listener.callback(payload)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            logger.error(
                "EventBus: listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    async def drain(self) -> None:
        """Wait for outstanding LOW-priority listener tasks."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_metrics_summary(self) -> dict[str, Any]:
        total = sum(self._published.values())
        total_errors = sum(self._errors.values())
        return {
            "total_events_published": total,
            "events_by_type": dict(self._published),
            "total_errors": total_errors,
            "errors_by_event": dict(self._errors),
            "total_listeners": self.get_listener_count(),
        }

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name:
            return sum(
                len(bucket)
                for pattern, bucket in self._listeners.items()
                if self._router.matches(event_name, pattern)
            )
        return sum(len(bucket) for bucket in self._listeners.values())

