"""
Promotion definition validator.

Purpose
-------
Reject promotion definitions the engine cannot evaluate meaningfully before
they reach storage. The engine itself degrades gracefully on malformed
definitions; this pass turns those silent non-firings into explicit errors
at save time.

Design Notes
------------
- Collects every problem instead of stopping at the first one.
- Raises ``ValidationError("promotion", ...)`` with ``problems`` listing them.
- Operates on already-parsed ``PromotionConfig`` values; structural parse
  errors surface earlier as ``DomainValidationError``.

Usage
-----
    PromotionValidator.validate(promotion)   # None, or raises ValidationError
"""

from __future__ import annotations

from typing import List

from promo_engine.domain.exceptions import ValidationError
from promo_engine.domain.models import (
    CollectBy,
    MechanicType,
    PromotionConfig,
    TriggerKind,
    Vertical,
)

_VERTICALS = {v.value for v in Vertical}


class PromotionValidator:
    """Static validation rules for promotion definitions."""

    @classmethod
    def problems(cls, promotion: PromotionConfig) -> List[str]:
        """Every problem found in ``promotion``; empty when valid."""
        problems: List[str] = []
        problems.extend(cls._check_window(promotion))
        problems.extend(cls._check_trigger(promotion))
        problems.extend(cls._check_mechanic(promotion))
        problems.extend(cls._check_combination(promotion))
        problems.extend(cls._check_caps(promotion))
        return problems

    @classmethod
    def validate(cls, promotion: PromotionConfig) -> None:
        """
        Raise when ``promotion`` is not a usable definition.

        Raises:
            ValidationError: Listing every problem in ``problems``
        """
        problems = cls.problems(promotion)
        if problems:
            raise ValidationError(
                "promotion",
                f"Promotion '{promotion.id}' is invalid: {'; '.join(problems)}",
                problems,
            )

    # ------------------------------------------------------------------ #
    # Rules
    # ------------------------------------------------------------------ #

    @staticmethod
    def _check_window(promotion: PromotionConfig) -> List[str]:
        if promotion.start_at >= promotion.end_at:
            return ["start_at must be before end_at"]
        return []

    @staticmethod
    def _check_trigger(promotion: PromotionConfig) -> List[str]:
        trigger = promotion.trigger
        problems: List[str] = []

        if trigger.kind in (TriggerKind.FIRST_WIN, TriggerKind.DISTINCT_ITEMS):
            if trigger.subject is None:
                problems.append(f"{trigger.kind.value} trigger requires a subject")
            if trigger.outcome_filter is not None:
                low = trigger.outcome_filter.min_multiplier
                high = trigger.outcome_filter.max_multiplier
                if low is not None and high is not None and low > high:
                    problems.append("outcome_filter min_multiplier must not exceed max_multiplier")

        if trigger.bonus and trigger.kind is not TriggerKind.FIRST_WIN:
            problems.append("bonus variant is only supported on first_win triggers")

        if trigger.kind is TriggerKind.WIN_MULTIPLIER_RANGE:
            low, high = trigger.min_multiplier, trigger.max_multiplier
            if (low is not None and low < 0) or (high is not None and high < 0):
                problems.append("multiplier range bounds must be non-negative")
            if low is not None and high is not None and low > high:
                problems.append("min_multiplier must not exceed max_multiplier")
            if trigger.instant_reward is None and not trigger.progresses_mechanic:
                problems.append(
                    "win_multiplier_range trigger with also_progress disabled needs an instant_reward"
                )
        return problems

    @staticmethod
    def _check_mechanic(promotion: PromotionConfig) -> List[str]:
        mechanic = promotion.mechanic
        problems: List[str] = []

        if mechanic.type is MechanicType.LADDER:
            if not mechanic.levels:
                problems.append("ladder mechanic requires at least one level")
            numbers = [lvl.level for lvl in mechanic.levels]
            if len(numbers) != len(set(numbers)):
                problems.append("ladder level numbers must be unique")
            if any(lvl.level <= 0 for lvl in mechanic.levels):
                problems.append("ladder level numbers must be positive")
            if any(lvl.requirement <= 0 for lvl in mechanic.levels):
                problems.append("ladder requirements must be positive")
            requirements = [lvl.requirement for lvl in mechanic.sorted_levels()]
            if any(a > b for a, b in zip(requirements, requirements[1:])):
                problems.append("ladder requirements must not decrease as the level rises")
            return problems

        collection = mechanic.collection
        if collection is None:
            return ["collection mechanic requires a collection config"]
        if collection.target_set is None and collection.target_count is None:
            problems.append("collection requires target_count or target_set")
        if collection.target_count is not None and collection.target_count <= 0:
            problems.append("collection target_count must be positive")
        if collection.target_set is not None:
            if not collection.target_set:
                problems.append("collection target_set must not be empty")
            if collection.collect_by is CollectBy.VERTICAL:
                unknown = sorted(set(collection.target_set) - _VERTICALS)
                if unknown:
                    problems.append(
                        f"collection target_set has unknown verticals: {', '.join(unknown)}"
                    )
        if promotion.default_reward is None:
            problems.append("collection mechanic requires a default_reward")
        return problems

    @staticmethod
    def _check_combination(promotion: PromotionConfig) -> List[str]:
        trigger = promotion.trigger
        mechanic = promotion.mechanic
        problems: List[str] = []

        if mechanic.type is not MechanicType.COLLECTION:
            return problems
        if trigger.bonus:
            problems.append("bonus first_win triggers only work with a ladder mechanic")
        collection = mechanic.collection
        if (
            collection is not None
            and trigger.kind in (TriggerKind.FIRST_WIN, TriggerKind.DISTINCT_ITEMS)
            and trigger.subject is not None
            and collection.collect_by.subject is not trigger.subject
        ):
            problems.append(
                f"collection collect_by {collection.collect_by.value} does not match "
                f"trigger subject {trigger.subject.value}"
            )
        return problems

    @staticmethod
    def _check_caps(promotion: PromotionConfig) -> List[str]:
        problems: List[str] = []
        for name in ("cooldown_minutes", "max_rewards_per_day", "max_rewards_total"):
            value = getattr(promotion, name)
            if value is not None and value <= 0:
                problems.append(f"{name} must be positive when set")
        return problems
