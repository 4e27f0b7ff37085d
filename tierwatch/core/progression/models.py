"""
Progression Models

Tier rosters, tracked tokens and the persisted progression snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from ...services.token_feed.models import TokenRecord


class Tier(str, Enum):
    """Risk/reward tiers, lowest first."""
    GAMBLE_BOX = "gambleBox"
    FASTEST_RUNNER = "fastestRunner"
    HIGHEST_GAINER = "highestGainer"


# Forward-only promotion path
TIER_ORDER: List[Tier] = [Tier.GAMBLE_BOX, Tier.FASTEST_RUNNER, Tier.HIGHEST_GAINER]
NEXT_TIER: Dict[Tier, Tier] = {
    Tier.GAMBLE_BOX: Tier.FASTEST_RUNNER,
    Tier.FASTEST_RUNNER: Tier.HIGHEST_GAINER,
}


class RemovalReason(str, Enum):
    UNDERPERFORMED = "underperformed"
    EXPIRED = "expired"


@dataclass
class TrackedToken:
    """A token record plus the progression state the tracker owns."""
    record: TokenRecord
    tier: Tier
    first_observed_at: datetime
    first_observed_market_cap: float
    current_gain_multiple: float = 1.0
    peak_gain_multiple: float = 1.0
    days_since_first_observed: float = 0.0
    tier_entered_at: Optional[datetime] = None
    promoted_at: Optional[datetime] = None
    promotion_count: int = 0
    performance_score: float = 0.0
    last_updated_at: Optional[datetime] = None

    # Set once the token leaves every roster
    removed_at: Optional[datetime] = None
    removal_reason: Optional[RemovalReason] = None

    @property
    def identity(self) -> str:
        return self.record.identity

    @property
    def is_removed(self) -> bool:
        return self.removed_at is not None

    def copy(self) -> "TrackedToken":
        return replace(self, record=self.record.copy())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "tier": self.tier.value,
            "record": self.record.to_dict(),
            "firstObservedAt": _iso(self.first_observed_at),
            "firstObservedMarketCap": self.first_observed_market_cap,
            "currentGainMultiple": self.current_gain_multiple,
            "peakGainMultiple": self.peak_gain_multiple,
            "daysSinceFirstObserved": self.days_since_first_observed,
            "tierEnteredAt": _iso(self.tier_entered_at),
            "promotedAt": _iso(self.promoted_at),
            "promotionCount": self.promotion_count,
            "performanceScore": self.performance_score,
            "lastUpdatedAt": _iso(self.last_updated_at),
            "removedAt": _iso(self.removed_at),
            "removalReason": self.removal_reason.value if self.removal_reason else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackedToken":
        return cls(
            record=TokenRecord.from_dict(data["record"]),
            tier=Tier(data["tier"]),
            first_observed_at=_parse_iso(data["firstObservedAt"]),
            first_observed_market_cap=float(data["firstObservedMarketCap"]),
            current_gain_multiple=float(data.get("currentGainMultiple", 1.0)),
            peak_gain_multiple=float(data.get("peakGainMultiple", 1.0)),
            days_since_first_observed=float(data.get("daysSinceFirstObserved", 0.0)),
            tier_entered_at=_parse_iso(data.get("tierEnteredAt")),
            promoted_at=_parse_iso(data.get("promotedAt")),
            promotion_count=int(data.get("promotionCount", 0)),
            performance_score=float(data.get("performanceScore", 0.0)),
            last_updated_at=_parse_iso(data.get("lastUpdatedAt")),
            removed_at=_parse_iso(data.get("removedAt")),
            removal_reason=RemovalReason(data["removalReason"]) if data.get("removalReason") else None,
        )


@dataclass
class ProgressionState:
    """Three ordered tier rosters plus the archive of removed tokens."""
    rosters: Dict[Tier, List[TrackedToken]] = field(
        default_factory=lambda: {tier: [] for tier in TIER_ORDER}
    )
    archive: List[TrackedToken] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    @classmethod
    def empty(cls) -> "ProgressionState":
        return cls()

    def roster(self, tier: Tier) -> List[TrackedToken]:
        return self.rosters.setdefault(tier, [])

    def tracked(self) -> Iterator[TrackedToken]:
        for tier in TIER_ORDER:
            yield from self.roster(tier)

    def tracked_identities(self) -> List[str]:
        return [token.identity for token in self.tracked()]

    def archived_identities(self) -> List[str]:
        return [token.identity for token in self.archive]

    def find(self, identity: str) -> Optional[TrackedToken]:
        """Tracked token first, then the archive."""
        for token in self.tracked():
            if token.identity == identity:
                return token
        for token in self.archive:
            if token.identity == identity:
                return token
        return None

    def is_empty(self) -> bool:
        return not any(self.roster(tier) for tier in TIER_ORDER) and not self.archive

    def copy(self) -> "ProgressionState":
        return ProgressionState(
            rosters={tier: [token.copy() for token in self.roster(tier)] for tier in TIER_ORDER},
            archive=[token.copy() for token in self.archive],
            updated_at=self.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rosters": {tier.value: [token.to_dict() for token in self.roster(tier)] for tier in TIER_ORDER},
            "archive": [token.to_dict() for token in self.archive],
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressionState":
        rosters_data = data.get("rosters") or {}
        return cls(
            rosters={
                tier: [TrackedToken.from_dict(item) for item in rosters_data.get(tier.value, [])]
                for tier in TIER_ORDER
            },
            archive=[TrackedToken.from_dict(item) for item in data.get("archive", [])],
            updated_at=_parse_iso(data.get("updatedAt")),
        )


@dataclass
class Promotion:
    identity: str
    from_tier: Tier
    to_tier: Tier

    def to_dict(self) -> Dict[str, Any]:
        return {"identity": self.identity, "from": self.from_tier.value, "to": self.to_tier.value}


@dataclass
class CycleReport:
    """What one progression cycle changed."""
    at: datetime
    admitted: Dict[Tier, List[str]] = field(default_factory=lambda: {tier: [] for tier in TIER_ORDER})
    backfilled: List[str] = field(default_factory=list)
    promoted: List[Promotion] = field(default_factory=list)
    deferred: List[Promotion] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    updated: int = 0

    @property
    def changed(self) -> bool:
        return bool(
            any(self.admitted.values()) or self.promoted or self.removed
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "at": _iso(self.at),
            "admitted": {tier.value: list(ids) for tier, ids in self.admitted.items()},
            "backfilled": list(self.backfilled),
            "promoted": [p.to_dict() for p in self.promoted],
            "deferred": [p.to_dict() for p in self.deferred],
            "removed": list(self.removed),
            "updated": self.updated,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.astimezone(timezone.utc).isoformat() if value else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
