"""
Unit tests for PromotionService over MemoryStorage.

Covers promotion CRUD, all-or-nothing catalog loading and the opt-in flow.
"""

import json

import pytest
import yaml

from promo_engine.domain.exceptions import (
    InvalidOperationError,
    PromotionNotFoundError,
    ValidationError,
)
from tests.factories import END, NOW, START, make_promotion


def raw_definition(promotion_id: str, **overrides) -> dict:
    data = make_promotion(promotion_id).to_dict()
    data.update(overrides)
    return data


@pytest.mark.unit
class TestPromotionCrud:
    """Save, fetch, list, toggle and delete."""

    async def test_save_and_get(self, promotion_service, mock_event_bus):
        """A saved promotion is readable and announced."""
        promotion = make_promotion("p1")

        await promotion_service.save_promotion(promotion)

        assert await promotion_service.get_promotion("p1") == promotion
        mock_event_bus.publish.assert_awaited_with(
            "promotion.saved", {"promotion_id": "p1", "enabled": True}
        )

    async def test_save_rejects_invalid(self, promotion_service, memory_storage):
        """Invalid promotions never reach storage."""
        promotion = make_promotion("bad", start_at=END, end_at=START)

        with pytest.raises(ValidationError):
            await promotion_service.save_promotion(promotion)

        assert await memory_storage.get_promotion("bad") is None

    async def test_get_unknown_raises(self, promotion_service):
        """Unknown ids raise PromotionNotFoundError."""
        with pytest.raises(PromotionNotFoundError) as exc_info:
            await promotion_service.get_promotion("missing")

        assert exc_info.value.error_code == "PROMOTION_NOT_FOUND"

    async def test_save_definition_wraps_parse_errors(self, promotion_service):
        """Parse errors surface as ValidationError naming the field."""
        with pytest.raises(ValidationError) as exc_info:
            await promotion_service.save_definition({"id": "x", "start_at": "not a date"})

        assert exc_info.value.field == "start_at"

    async def test_list_enabled_only(self, promotion_service):
        """enabled_only filters out disabled promotions."""
        await promotion_service.save_promotion(make_promotion("p1"))
        await promotion_service.save_promotion(make_promotion("p2", enabled=False))

        all_ids = [p.id for p in await promotion_service.list_promotions()]
        enabled_ids = [p.id for p in await promotion_service.list_promotions(enabled_only=True)]

        assert all_ids == ["p1", "p2"]
        assert enabled_ids == ["p1"]

    async def test_list_active(self, promotion_service):
        """Active listing honours the promotion window."""
        await promotion_service.save_promotion(make_promotion("p1"))

        assert await promotion_service.list_active_promotions(END) == []
        assert [p.id for p in await promotion_service.list_active_promotions(NOW)] == ["p1"]

    async def test_set_enabled(self, promotion_service):
        """Toggling persists the new flag."""
        await promotion_service.save_promotion(make_promotion("p1"))

        updated = await promotion_service.set_enabled("p1", False)

        assert updated.enabled is False
        assert (await promotion_service.get_promotion("p1")).enabled is False

    async def test_delete(self, promotion_service):
        """Deleting twice raises on the second call."""
        await promotion_service.save_promotion(make_promotion("p1"))

        await promotion_service.delete_promotion("p1")

        with pytest.raises(PromotionNotFoundError):
            await promotion_service.delete_promotion("p1")


@pytest.mark.unit
class TestCatalogLoading:
    """Bulk catalog loading from YAML and JSON."""

    async def test_load_yaml_mapping(self, promotion_service, tmp_path):
        """A YAML mapping with a promotions list loads in order."""
        path = tmp_path / "catalog.yaml"
        path.write_text(
            yaml.safe_dump({"promotions": [raw_definition("p1"), raw_definition("p2")]}),
            encoding="utf-8",
        )

        loaded = await promotion_service.load_catalog(path)

        assert [p.id for p in loaded] == ["p1", "p2"]
        assert len(await promotion_service.list_promotions()) == 2

    async def test_load_json_list(self, promotion_service, tmp_path):
        """A bare JSON list is accepted."""
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([raw_definition("p1")]), encoding="utf-8")

        loaded = await promotion_service.load_catalog(path)

        assert [p.id for p in loaded] == ["p1"]

    async def test_bad_catalog_saves_nothing(self, promotion_service, tmp_path):
        """One bad definition leaves storage untouched."""
        # Arrange
        path = tmp_path / "catalog.json"
        bad = raw_definition("p2", max_rewards_total=0)
        path.write_text(json.dumps([raw_definition("p1"), bad]), encoding="utf-8")

        # Act
        with pytest.raises(ValidationError) as exc_info:
            await promotion_service.load_catalog(path)

        # Assert
        assert exc_info.value.problems == ["#1: max_rewards_total must be positive when set"]
        assert await promotion_service.list_promotions() == []

    async def test_string_boolean_is_reported(self, promotion_service, tmp_path):
        """A quoted boolean in a trigger is a catalog problem, not a truthy flag."""
        # Arrange
        definition = raw_definition("p1")
        definition["trigger"] = {"kind": "first_win", "subject": "provider", "bonus": "false"}
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([definition]), encoding="utf-8")

        # Act
        with pytest.raises(ValidationError) as exc_info:
            await promotion_service.load_catalog(path)

        # Assert
        assert exc_info.value.problems == ["#0: trigger.bonus must be a boolean, got 'false'"]
        assert await promotion_service.list_promotions() == []

    async def test_catalog_must_be_list(self, promotion_service, tmp_path):
        """A non-list promotions value is rejected."""
        path = tmp_path / "catalog.yaml"
        path.write_text("promotions: 3\n", encoding="utf-8")

        with pytest.raises(ValidationError):
            await promotion_service.load_catalog(path)

    async def test_missing_file(self, promotion_service, tmp_path):
        """A missing file is a validation error."""
        with pytest.raises(ValidationError):
            await promotion_service.load_catalog(tmp_path / "nope.yaml")


@pytest.mark.unit
class TestOptIn:
    """Joining and leaving opt-in promotions."""

    async def test_join_and_leave(self, promotion_service, memory_storage, mock_event_bus):
        """Join then leave flips the stored flag and publishes."""
        await promotion_service.save_promotion(make_promotion("p1", requires_opt_in=True))

        record = await promotion_service.join("player-1", "p1", NOW)

        assert record.joined is True
        stored = await memory_storage.get_player_state("player-1")
        assert stored.get("p1").joined is True
        mock_event_bus.publish.assert_awaited_with(
            "promotion.joined", {"player_id": "player-1", "promotion_id": "p1"}
        )

        await promotion_service.leave("player-1", "p1", NOW)

        stored = await memory_storage.get_player_state("player-1")
        assert stored.get("p1").joined is False

    async def test_join_without_opt_in(self, promotion_service):
        """Promotions without opt-in cannot be joined."""
        await promotion_service.save_promotion(make_promotion("p1"))

        with pytest.raises(InvalidOperationError) as exc_info:
            await promotion_service.join("player-1", "p1")

        assert exc_info.value.reason == "Promotion does not require opt-in"

    async def test_join_unknown_promotion(self, promotion_service):
        """Joining an unknown promotion raises."""
        with pytest.raises(PromotionNotFoundError):
            await promotion_service.join("player-1", "missing")
