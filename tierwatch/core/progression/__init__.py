"""Tier classification and progression tracking."""

from .classifier import TIER_RULES, CapBand, TierRule, classify, classify_relaxed, rule_for
from .models import (
    NEXT_TIER,
    TIER_ORDER,
    CycleReport,
    ProgressionState,
    Promotion,
    RemovalReason,
    Tier,
    TrackedToken,
)
from .persistence import (
    STATE_KEY,
    JsonFileStore,
    MemoryStore,
    ProgressionStore,
    RedisStore,
    build_store,
)
from .tracker import (
    BASELINE_FLOOR_USD,
    PROMOTION_RULES,
    REMOVAL_RULES,
    ProgressionPolicy,
    ProgressionTracker,
    advance,
)

__all__ = [
    "TIER_RULES",
    "CapBand",
    "TierRule",
    "classify",
    "classify_relaxed",
    "rule_for",
    "NEXT_TIER",
    "TIER_ORDER",
    "CycleReport",
    "ProgressionState",
    "Promotion",
    "RemovalReason",
    "Tier",
    "TrackedToken",
    "STATE_KEY",
    "JsonFileStore",
    "MemoryStore",
    "ProgressionStore",
    "RedisStore",
    "build_store",
    "BASELINE_FLOOR_USD",
    "PROMOTION_RULES",
    "REMOVAL_RULES",
    "ProgressionPolicy",
    "ProgressionTracker",
    "advance",
]
