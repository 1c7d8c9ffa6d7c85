"""
Unit tests for EventProcessingService over MemoryStorage.

Covers persistence and logging of outcomes, bus publication, per-player
serialization, and the overview and reset queries.
"""

import asyncio

import pytest

from promo_engine.domain.models import CollectBy, Subject
from promo_engine.modules.events import EventProcessingService
from tests.factories import (
    NOW,
    collection,
    first_win,
    ladder,
    make_event,
    make_promotion,
    minutes,
    reward,
    win_range,
)


@pytest.mark.unit
class TestProcessEvent:
    """Single and repeated event processing."""

    async def test_reward_is_persisted_and_logged(self, event_service, memory_storage):
        """A granted reward updates stored state and appends a log entry."""
        # Arrange
        await memory_storage.save_promotion(make_promotion("p1"))

        # Act
        result = await event_service.process_event(make_event(), NOW)

        # Assert
        assert [pid for pid, _ in result.rewards] == ["p1"]
        stored = await memory_storage.get_player_state("player-1")
        assert stored.get("p1").total_reward_count == 1
        assert stored.last_event_at == NOW
        logs = await memory_storage.get_player_logs("player-1")
        assert len(logs) == 1
        assert logs[0].evaluations == result.evaluations

    async def test_publishes_outcomes(self, event_service, memory_storage, mock_event_bus):
        """Rewards and progress are announced on the event bus."""
        await memory_storage.save_promotion(make_promotion("p1"))
        await memory_storage.save_promotion(make_promotion("p2", mechanic=ladder(3)))

        await event_service.process_event(make_event(), NOW)

        published = [call.args[0] for call in mock_event_bus.publish.await_args_list]
        assert published == ["promotion.reward_granted", "promotion.progress_recorded"]
        payload = mock_event_bus.publish.await_args_list[0].args[1]
        assert payload["promotion_id"] == "p1"
        assert payload["reward"]["label"] == "Level 1 reward"

    async def test_nothing_fires_without_promotions(self, event_service, mock_event_bus):
        """An empty catalog yields no evaluations and no publishes."""
        result = await event_service.process_event(make_event(), NOW)

        assert result.evaluations == ()
        assert result.rewards == []
        mock_event_bus.publish.assert_not_awaited()

    async def test_collection_scenario_across_events(self, event_service, memory_storage):
        """A provider collection completes on the third new provider."""
        await memory_storage.save_promotion(
            make_promotion(
                "p1",
                trigger=first_win(Subject.PROVIDER),
                mechanic=collection(CollectBy.PROVIDER_ID, target_count=3),
            )
        )

        results = [
            await event_service.process_event(make_event(provider_id=p), NOW + minutes(i))
            for i, p in enumerate(("A", "B", "A", "C"))
        ]

        assert [len(r.rewards) for r in results] == [0, 0, 0, 1]
        assert [r.evaluations[0].fired for r in results] == [True, True, False, True]
        state = await memory_storage.get_player_state("player-1")
        assert state.get("p1").progress.collected_items == ["A", "B", "C"]

    async def test_concurrent_events_are_serialized(self, event_service, memory_storage):
        """Concurrent events for one player never lose an update."""
        # Arrange
        await memory_storage.save_promotion(
            make_promotion("p1", trigger=win_range(1, 10), mechanic=ladder(1, 2, 3, 4, 5))
        )

        # Act
        await asyncio.gather(*(event_service.process_event(make_event(), NOW) for _ in range(5)))

        # Assert
        state = await memory_storage.get_player_state("player-1")
        assert state.get("p1").progress.trigger_count == 5
        assert state.get("p1").progress.current_level == 5
        assert memory_storage._player_locks == {}

    async def test_cooldown_across_events(self, event_service, memory_storage):
        """The cooldown spans separately processed events."""
        await memory_storage.save_promotion(
            make_promotion(
                "p1",
                trigger=win_range(1, 100, instant_reward=reward()),
                cooldown_minutes=60,
            )
        )

        first = await event_service.process_event(make_event(), NOW)
        second = await event_service.process_event(make_event(), NOW + minutes(30))

        assert len(first.rewards) == 1
        assert second.rewards == []
        assert "Cooldown active: 30 minutes remaining" in second.evaluations[0].reasons


@pytest.mark.unit
class TestQueries:
    """Player overview and reset."""

    async def test_player_overview(self, event_service, memory_storage):
        """The overview lists enabled promotions with the player's record."""
        await memory_storage.save_promotion(make_promotion("p1"))
        await memory_storage.save_promotion(make_promotion("p2", enabled=False))
        await event_service.process_event(make_event(), NOW)

        overview = await event_service.get_player_overview("player-1", now=NOW)

        assert overview["player_id"] == "player-1"
        assert [p["id"] for p in overview["promotions"]] == ["p1"]
        assert overview["promotions"][0]["player"]["total_reward_count"] == 1
        assert len(overview["logs"]) == 1

    async def test_overview_for_unknown_player(self, event_service):
        """Unknown players get an empty overview."""
        overview = await event_service.get_player_overview("nobody", now=NOW)

        assert overview["state"] is None
        assert overview["logs"] == []

    async def test_reset(self, event_service, memory_storage):
        """Reset clears promotions and player state."""
        await memory_storage.save_promotion(make_promotion("p1"))
        await event_service.process_event(make_event(), NOW)

        await event_service.reset()

        assert await memory_storage.get_all_promotions() == []
        assert await memory_storage.get_player_state("player-1") is None


@pytest.mark.unit
class TestEventBusIntegration:
    """Outcomes delivered to real bus listeners."""

    async def test_listener_receives_reward(self, memory_storage, event_bus):
        """A subscribed listener receives the reward payload."""
        received = []

        async def on_reward(payload):
            received.append(payload)

        event_bus.subscribe("promotion.reward_granted", on_reward)
        service = EventProcessingService(memory_storage, event_bus)
        await memory_storage.save_promotion(make_promotion("p1"))

        await service.process_event(make_event(), NOW)
        await event_bus.drain()

        assert len(received) == 1
        assert received[0]["player_id"] == "player-1"
