"""
Integration Tests for the Redis and PostgreSQL Storage Backends
===============================================================

Every test runs once per backend against a real container, through the same
Storage contract the services use.

Test Coverage
-------------
- Promotion CRUD and ordering by id
- Player state persistence
- Log retention (newest first)
- Reset
- Per-player locking
- End-to-end event processing through EventProcessingService
"""

import asyncio

import pytest

from promo_engine.core.database.service import DatabaseService
from promo_engine.core.exceptions import LockAcquisitionError
from promo_engine.core.redis.service import RedisService
from promo_engine.domain.models import CollectBy, LogEntry, PlayerState, Subject
from promo_engine.modules.events import EventProcessingService
from tests.factories import NOW, collection, first_win, make_event, make_promotion, minutes

pytestmark = pytest.mark.integration


@pytest.fixture(
    params=[
        pytest.param("redis_storage", marks=pytest.mark.redis, id="redis"),
        pytest.param("database_storage", marks=pytest.mark.database, id="database"),
    ]
)
def storage(request):
    return request.getfixturevalue(request.param)


class TestPromotionPersistence:
    """Promotion CRUD through each backend."""

    async def test_save_get_delete(self, storage):
        """Save, read back, delete, then confirm absence."""
        promotion = make_promotion("p1", cooldown_minutes=15)

        await storage.save_promotion(promotion)

        assert await storage.get_promotion("p1") == promotion
        assert await storage.delete_promotion("p1") is True
        assert await storage.get_promotion("p1") is None
        assert await storage.delete_promotion("p1") is False

    async def test_save_overwrites(self, storage):
        """Saving an existing id replaces it."""
        await storage.save_promotion(make_promotion("p1"))
        await storage.save_promotion(make_promotion("p1", enabled=False))

        promotions = await storage.get_all_promotions()

        assert len(promotions) == 1
        assert promotions[0].enabled is False

    async def test_all_promotions_ordered_by_id(self, storage):
        """Backends list promotions ordered by id."""
        for promotion_id in ("c", "a", "b"):
            await storage.save_promotion(make_promotion(promotion_id))

        assert [p.id for p in await storage.get_all_promotions()] == ["a", "b", "c"]


class TestPlayerPersistence:
    """Player state, logs and reset."""

    async def test_player_state_round_trip(self, storage):
        """Player state survives storage unchanged."""
        state = PlayerState(player_id="player-1", last_event_at=NOW)
        record = state.ensure("p1", NOW)
        record.progress.add_item("g1")
        record.progress.trigger_count = 1

        await storage.save_player_state(state)

        assert await storage.get_player_state("player-1") == state
        assert await storage.get_player_state("nobody") is None
        assert [s.player_id for s in await storage.get_all_player_states()] == ["player-1"]

    async def test_logs_are_trimmed_newest_first(self, storage):
        """Logs beyond the retention limit are dropped, newest first."""
        for offset in range(7):
            await storage.add_log(
                LogEntry(
                    player_id="player-1",
                    event=make_event(game_id=f"g{offset}"),
                    timestamp=NOW + minutes(offset),
                )
            )

        logs = await storage.get_player_logs("player-1", limit=10)

        assert [entry.event.game_id for entry in logs] == ["g6", "g5", "g4", "g3", "g2"]
        assert len(await storage.get_player_logs("player-1", limit=2)) == 2

    async def test_reset_clears_everything(self, storage):
        """Reset empties promotions, players and logs."""
        await storage.save_promotion(make_promotion("p1"))
        await storage.save_player_state(PlayerState(player_id="player-1"))
        await storage.add_log(LogEntry(player_id="player-1", event=make_event(), timestamp=NOW))

        await storage.reset()

        assert await storage.get_all_promotions() == []
        assert await storage.get_player_state("player-1") is None
        assert await storage.get_player_logs("player-1") == []


class TestLocking:
    """Per-player mutual exclusion."""

    async def test_player_lock_serializes(self, storage):
        """Lock holders for one player never interleave."""
        order = []

        async def worker(name):
            async with storage.player_lock("player-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.05)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    @pytest.mark.database
    async def test_database_lock_map_is_released(self, database_storage, event_bus):
        """In-process locks are dropped once processing finishes."""
        service = EventProcessingService(database_storage, event_bus)
        await database_storage.save_promotion(make_promotion("p1"))

        await asyncio.gather(
            *(service.process_event(make_event(player_id=f"player-{i}"), NOW) for i in range(3))
        )

        assert database_storage._player_locks == {}

    @pytest.mark.redis
    async def test_redis_lock_times_out(self, redis_storage):
        """A held redis lock makes a second acquirer time out."""
        key = redis_storage._lock_key("player-1")

        async with RedisService.acquire_lock(key):
            with pytest.raises(LockAcquisitionError):
                async with RedisService.acquire_lock(key, wait_timeout=0.1):
                    pass


class TestEventProcessing:
    """EventProcessingService over real backends."""

    async def test_collection_scenario(self, storage, event_bus):
        """A two-provider collection completes on the second event."""
        # Arrange
        service = EventProcessingService(storage, event_bus)
        await storage.save_promotion(
            make_promotion(
                "p1",
                trigger=first_win(Subject.PROVIDER),
                mechanic=collection(CollectBy.PROVIDER_ID, target_count=2),
            )
        )

        # Act
        first = await service.process_event(make_event(provider_id="A"), NOW)
        second = await service.process_event(make_event(provider_id="B"), NOW + minutes(1))

        # Assert
        assert first.rewards == []
        assert [pid for pid, _ in second.rewards] == ["p1"]
        state = await storage.get_player_state("player-1")
        assert state.get("p1").progress.completed is True
        assert len(await storage.get_player_logs("player-1")) == 2

    async def test_concurrent_events_are_serialized(self, storage, event_bus):
        """Concurrent events for one player all land."""
        service = EventProcessingService(storage, event_bus)
        await storage.save_promotion(make_promotion("p1", trigger=first_win(Subject.GAME)))

        await asyncio.gather(
            *(service.process_event(make_event(game_id=f"g{i}"), NOW) for i in range(4))
        )

        state = await storage.get_player_state("player-1")
        assert state.get("p1").progress.trigger_count == 4
        assert sorted(state.get("p1").progress.collected_items) == ["g0", "g1", "g2", "g3"]


class TestInfrastructureHealth:
    """Health checks of the shared clients."""

    @pytest.mark.redis
    async def test_redis_health_check(self, redis_storage):
        """Redis answers its health check."""
        assert await RedisService.health_check() is True
        assert RedisService.is_healthy() is True

    @pytest.mark.database
    async def test_database_health_check(self, database_storage):
        """PostgreSQL answers its health check."""
        assert await DatabaseService.health_check() is True
