"""
Tier Classifier

Maps a token record to its admission tier:
- HighestGainer: market cap above 50k, younger than 48h, more than 30 replies
- FastestRunner: market cap 5k to 50k, younger than 24h, more than 15 replies
- GambleBox: market cap below 5k, younger than 12h

Rules are checked most selective first so a record lands in exactly one tier.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from ...services.token_feed.models import TokenRecord
from .models import Tier


@dataclass(frozen=True)
class CapBand:
    """Market-cap interval in USD; ``None`` bounds are open."""
    low: Optional[float] = None
    high: Optional[float] = None
    low_inclusive: bool = False
    high_inclusive: bool = False

    def contains(self, value: float) -> bool:
        if self.low is not None:
            if value < self.low or (value == self.low and not self.low_inclusive):
                return False
        if self.high is not None:
            if value > self.high or (value == self.high and not self.high_inclusive):
                return False
        return True


@dataclass(frozen=True)
class TierRule:
    tier: Tier
    band: CapBand
    relaxed_band: CapBand
    max_age_hours: float
    min_engagement: Optional[int] = None  # exclusive

    def admits(self, record: TokenRecord, now: datetime, *, relaxed: bool = False) -> bool:
        if record.market_cap_usd is None:
            return False
        age = record.age_hours(now)
        if age is None or age >= self.max_age_hours:
            return False
        if self.min_engagement is not None and (record.engagement_count or 0) <= self.min_engagement:
            return False
        band = self.relaxed_band if relaxed else self.band
        return band.contains(record.market_cap_usd)


TIER_RULES: List[TierRule] = [
    TierRule(
        tier=Tier.HIGHEST_GAINER,
        band=CapBand(low=50_000),
        relaxed_band=CapBand(low=30_000),
        max_age_hours=48,
        min_engagement=30,
    ),
    TierRule(
        tier=Tier.FASTEST_RUNNER,
        band=CapBand(low=5_000, high=50_000, low_inclusive=True, high_inclusive=True),
        relaxed_band=CapBand(low=3_000, high=75_000, low_inclusive=True, high_inclusive=True),
        max_age_hours=24,
        min_engagement=15,
    ),
    TierRule(
        tier=Tier.GAMBLE_BOX,
        band=CapBand(high=5_000),
        relaxed_band=CapBand(high=7_500),
        max_age_hours=12,
    ),
]

_RULES_BY_TIER: Dict[Tier, TierRule] = {rule.tier: rule for rule in TIER_RULES}


def rule_for(tier: Tier) -> TierRule:
    return _RULES_BY_TIER[tier]


def classify(record: TokenRecord, now: datetime) -> Optional[Tier]:
    """Admission tier for ``record`` at ``now``; ``None`` when unclassified."""
    for rule in TIER_RULES:
        if rule.admits(record, now):
            return rule.tier
    return None


def classify_relaxed(record: TokenRecord, tier: Tier, now: datetime) -> bool:
    """
    Whether ``record`` may backfill ``tier`` under the widened market-cap band.

    A record that strictly qualifies for a different tier is never borrowed.
    """
    strict = classify(record, now)
    if strict is not None:
        return strict == tier
    return rule_for(tier).admits(record, now, relaxed=True)
