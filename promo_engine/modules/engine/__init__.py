"""
Promotion evaluation engine.

Pure, synchronous decision logic: eligibility, triggers, mechanics, caps,
the evaluator that orchestrates them, and the state updater that commits
fired evaluations. Callers are responsible for serializing updates per player.
"""

from promo_engine.modules.engine.caps import CapsResult, check_caps
from promo_engine.modules.engine.eligibility import EligibilityResult, check_eligibility
from promo_engine.modules.engine.evaluator import evaluate, evaluate_all
from promo_engine.modules.engine.mechanics import (
    CollectionOutcome,
    LadderOutcome,
    apply_collection,
    apply_ladder,
    collection_item,
)
from promo_engine.modules.engine.state_updater import apply_update
from promo_engine.modules.engine.triggers import TriggerResult, check_trigger, subject_key

__all__ = [
    "check_eligibility",
    "EligibilityResult",
    "check_trigger",
    "subject_key",
    "TriggerResult",
    "apply_ladder",
    "apply_collection",
    "collection_item",
    "LadderOutcome",
    "CollectionOutcome",
    "check_caps",
    "CapsResult",
    "evaluate",
    "evaluate_all",
    "apply_update",
]
