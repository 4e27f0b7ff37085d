"""
Progression Tracker

Owns the tier rosters and moves tokens through them each refresh cycle:

    GambleBox -> FastestRunner -> HighestGainer -> (Removed)

Per cycle, in order:
1. refresh tracked tokens from the new records (gain, peak, age, score)
2. removal check for every tracked token
3. promotion check against the pre-cycle roster (one tier per cycle at most)
4. admission of new candidates into open capacity, strict rules first then
   the relaxed market-cap band

``advance`` is pure and synchronous; ``ProgressionTracker`` wraps it with the
lock, snapshot reads and persistence.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ...services.token_feed.aggregator import merge_records
from ...services.token_feed.models import TokenRecord
from ..recovery import PersistenceError
from .classifier import classify, classify_relaxed
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
from .persistence import ProgressionStore

logger = logging.getLogger(__name__)

# Baseline market cap never drops below this, so gain is always defined.
BASELINE_FLOOR_USD = 1.0
SECONDS_PER_DAY = 86_400.0


@dataclass(frozen=True)
class PromotionRule:
    target: Tier
    min_gain: float
    min_days: float


@dataclass(frozen=True)
class RemovalRule:
    max_gain: float
    max_days: float


PROMOTION_RULES: Dict[Tier, PromotionRule] = {
    Tier.GAMBLE_BOX: PromotionRule(target=Tier.FASTEST_RUNNER, min_gain=1.5, min_days=0.25),
    Tier.FASTEST_RUNNER: PromotionRule(target=Tier.HIGHEST_GAINER, min_gain=2.5, min_days=0.5),
}

REMOVAL_RULES: Dict[Tier, RemovalRule] = {
    Tier.GAMBLE_BOX: RemovalRule(max_gain=0.3, max_days=3),
    Tier.FASTEST_RUNNER: RemovalRule(max_gain=0.2, max_days=10),
    Tier.HIGHEST_GAINER: RemovalRule(max_gain=0.1, max_days=30),
}


@dataclass(frozen=True)
class ProgressionPolicy:
    tier_capacity: int = 10
    archive_limit: int = 100
    featured_slots: int = 3

    @classmethod
    def from_settings(cls, settings) -> "ProgressionPolicy":
        return cls(
            tier_capacity=settings.tier_capacity,
            archive_limit=settings.archive_limit,
            featured_slots=settings.featured_slots,
        )


# =============================================================================
# Metrics
# =============================================================================


def gain_multiple(market_cap: Optional[float], baseline: float) -> Optional[float]:
    if market_cap is None:
        return None
    return max(0.0, market_cap / max(baseline, BASELINE_FLOOR_USD))


def performance_score(token: TrackedToken) -> float:
    """Gain as a percentage, plus a freshness bonus while in GambleBox."""
    score = token.current_gain_multiple * 100
    if token.tier == Tier.GAMBLE_BOX:
        score += max(0.0, 50 - token.days_since_first_observed * 10)
    return score


def refresh_metrics(token: TrackedToken, now: datetime) -> None:
    """Recompute age and gain. Gain only moves when market cap is known."""
    elapsed = (now - token.first_observed_at).total_seconds()
    token.days_since_first_observed = max(0.0, elapsed / SECONDS_PER_DAY)
    gain = gain_multiple(token.record.market_cap_usd, token.first_observed_market_cap)
    if gain is not None:
        token.current_gain_multiple = gain
        token.peak_gain_multiple = max(token.peak_gain_multiple, gain)
    token.performance_score = performance_score(token)


def removal_reason(token: TrackedToken) -> Optional[RemovalReason]:
    rule = REMOVAL_RULES[token.tier]
    if token.current_gain_multiple <= rule.max_gain:
        return RemovalReason.UNDERPERFORMED
    if token.days_since_first_observed >= rule.max_days:
        return RemovalReason.EXPIRED
    return None


def promotion_target(token: TrackedToken) -> Optional[Tier]:
    rule = PROMOTION_RULES.get(token.tier)
    if rule is None:
        return None
    if token.current_gain_multiple < rule.min_gain or token.days_since_first_observed < rule.min_days:
        return None
    # Needs a newer observation since the last promotion
    if token.promoted_at is not None and token.record.observed_at <= token.promoted_at:
        return None
    return rule.target


def admit(record: TokenRecord, tier: Tier, now: datetime) -> TrackedToken:
    """Capture the baseline and start tracking ``record`` in ``tier``."""
    baseline = max(record.market_cap_usd or 0.0, BASELINE_FLOOR_USD)
    token = TrackedToken(
        record=record.copy(),
        tier=tier,
        first_observed_at=now,
        first_observed_market_cap=baseline,
        tier_entered_at=now,
        last_updated_at=now,
    )
    token.peak_gain_multiple = 0.0
    refresh_metrics(token, now)
    return token


def roster_sort_key(tier: Tier) -> Callable[[TrackedToken], Tuple]:
    if tier == Tier.GAMBLE_BOX:
        return lambda t: (-_created_ts(t.record), t.identity)
    return lambda t: (-(t.record.market_cap_usd or 0.0), t.identity)


def candidate_sort_key(tier: Tier) -> Callable[[TokenRecord], Tuple]:
    if tier == Tier.GAMBLE_BOX:
        return lambda r: (-_created_ts(r), r.identity)
    return lambda r: (-(r.market_cap_usd or 0.0), r.identity)


def _created_ts(record: TokenRecord) -> float:
    return record.created_at.timestamp() if record.created_at else float("-inf")


# =============================================================================
# Cycle
# =============================================================================


def advance(
    state: ProgressionState,
    records: Iterable[TokenRecord],
    now: datetime,
    policy: Optional[ProgressionPolicy] = None,
) -> Tuple[ProgressionState, CycleReport]:
    """
    Apply one progression cycle and return the new state.

    ``state`` is not modified. Applying the same records at the same ``now``
    to the result yields an identical state.
    """
    policy = policy or ProgressionPolicy()
    new_state = state.copy()
    report = CycleReport(at=now)

    latest: Dict[str, TokenRecord] = {}
    for record in records:
        current = latest.get(record.identity)
        latest[record.identity] = record if current is None else merge_records(current, record)

    # 1. Refresh tracked tokens
    for token in new_state.tracked():
        record = latest.get(token.identity)
        if record is not None:
            token.record = merge_records(token.record, record)
            token.last_updated_at = now
            report.updated += 1
        refresh_metrics(token, now)

    # 2. Removal takes precedence over promotion
    removed: List[TrackedToken] = []
    for tier in TIER_ORDER:
        keep: List[TrackedToken] = []
        for token in new_state.roster(tier):
            reason = removal_reason(token)
            if reason is None:
                keep.append(token)
                continue
            token.removed_at = now
            token.removal_reason = reason
            removed.append(token)
            report.removed.append(token.identity)
            logger.info("Removed %s from %s (%s)", token.identity, tier.value, reason.value)
        new_state.rosters[tier] = keep

    # 3. Promotions, evaluated against pre-cycle tiers. Higher tiers first so
    # space they free can be used by the tier below in the same cycle.
    pre_cycle = {tier: list(new_state.roster(tier)) for tier in TIER_ORDER}
    for tier in reversed(TIER_ORDER):
        target = NEXT_TIER.get(tier)
        if target is None:
            continue
        candidates = [t for t in pre_cycle[tier] if promotion_target(t) == target]
        candidates.sort(key=lambda t: (-t.current_gain_multiple, t.identity))
        for token in candidates:
            if len(new_state.roster(target)) >= policy.tier_capacity:
                report.deferred.append(Promotion(token.identity, tier, target))
                continue
            new_state.roster(tier).remove(token)
            token.tier = target
            token.tier_entered_at = now
            token.promoted_at = now
            token.promotion_count += 1
            token.performance_score = performance_score(token)
            new_state.roster(target).append(token)
            report.promoted.append(Promotion(token.identity, tier, target))
            logger.info("Promoted %s %s -> %s", token.identity, tier.value, target.value)

    # 4. Admission into open capacity
    excluded: Set[str] = set(new_state.tracked_identities())
    excluded.update(t.identity for t in removed)
    excluded.update(new_state.archived_identities())
    pool = [
        record for identity, record in latest.items()
        if identity not in excluded and not record.synthetic
    ]

    for tier in reversed(TIER_ORDER):
        _fill_tier(new_state, tier, pool, excluded, now, policy, report)

    for tier in TIER_ORDER:
        new_state.roster(tier).sort(key=roster_sort_key(tier))

    if removed:
        removed.sort(key=lambda t: t.identity)
        new_state.archive = (removed + new_state.archive)[: policy.archive_limit]

    new_state.updated_at = now
    return new_state, report


def _fill_tier(
    state: ProgressionState,
    tier: Tier,
    pool: List[TokenRecord],
    excluded: Set[str],
    now: datetime,
    policy: ProgressionPolicy,
    report: CycleReport,
) -> None:
    open_slots = policy.tier_capacity - len(state.roster(tier))
    if open_slots <= 0:
        return

    strict = [r for r in pool if r.identity not in excluded and classify(r, now) == tier]
    strict.sort(key=candidate_sort_key(tier))
    chosen = _admit_into(state, tier, strict, open_slots, excluded, now, report)
    open_slots -= chosen
    if open_slots <= 0:
        return

    relaxed = [
        r for r in pool
        if r.identity not in excluded and classify(r, now) is None and classify_relaxed(r, tier, now)
    ]
    relaxed.sort(key=candidate_sort_key(tier))
    before = len(report.admitted[tier])
    _admit_into(state, tier, relaxed, open_slots, excluded, now, report)
    report.backfilled.extend(report.admitted[tier][before:])


def _admit_into(
    state: ProgressionState,
    tier: Tier,
    candidates: List[TokenRecord],
    open_slots: int,
    excluded: Set[str],
    now: datetime,
    report: CycleReport,
) -> int:
    admitted = 0
    for record in candidates:
        if admitted >= open_slots:
            break
        token = admit(record, tier, now)
        # Would be evicted on the next cycle; skip so repeated cycles agree
        if removal_reason(token) is not None:
            excluded.add(record.identity)
            continue
        state.roster(tier).append(token)
        excluded.add(record.identity)
        report.admitted[tier].append(record.identity)
        admitted += 1
    return admitted


# =============================================================================
# Owner
# =============================================================================


class ProgressionTracker:
    """Single owner of ``ProgressionState``; readers get deep copies."""

    def __init__(
        self,
        store: ProgressionStore,
        *,
        policy: Optional[ProgressionPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._policy = policy or ProgressionPolicy()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._state = ProgressionState.empty()
        self._lock = asyncio.Lock()
        self._save_lock = asyncio.Lock()
        self._last_report: Optional[CycleReport] = None
        self._last_save_error: Optional[str] = None

    @property
    def policy(self) -> ProgressionPolicy:
        return self._policy

    @property
    def last_report(self) -> Optional[CycleReport]:
        return self._last_report

    @property
    def last_save_error(self) -> Optional[str]:
        return self._last_save_error

    async def load(self) -> ProgressionState:
        """Load the persisted snapshot; any failure starts from empty."""
        try:
            loaded = await self._store.load()
        except PersistenceError as exc:
            logger.warning("Could not load progression state, starting empty: %s", exc.message)
            loaded = None

        async with self._lock:
            self._state = loaded or ProgressionState.empty()
        logger.info(
            "Progression state loaded: %d tracked, %d archived",
            len(self._state.tracked_identities()),
            len(self._state.archive),
        )
        return self.snapshot()

    def snapshot(self) -> ProgressionState:
        return self._state.copy()

    def watch_list(self) -> List[str]:
        return self._state.tracked_identities()

    def lookup(self, identity: str) -> Optional[TrackedToken]:
        token = self._state.find(identity)
        return token.copy() if token else None

    def featured(self, slots: Optional[int] = None) -> Dict[Tier, List[TrackedToken]]:
        """First ``slots`` tokens of each ordered roster."""
        count = slots if slots is not None else self._policy.featured_slots
        state = self._state
        return {tier: [t.copy() for t in state.roster(tier)[:count]] for tier in TIER_ORDER}

    async def run_cycle(
        self,
        records: Iterable[TokenRecord],
        now: Optional[datetime] = None,
    ) -> CycleReport:
        """Advance the rosters with ``records`` and persist the result."""
        now = now or self._clock()
        records = list(records)
        async with self._lock:
            new_state, report = advance(self._state, records, now, self._policy)
            self._state = new_state
            self._last_report = report

        await self.save()
        return report

    async def save(self) -> bool:
        """Best effort; the in-memory state stays authoritative on failure."""
        async with self._save_lock:
            try:
                await self._store.save(self.snapshot())
            except PersistenceError as exc:
                self._last_save_error = exc.message
                logger.error("Progression state save failed, continuing in memory: %s", exc.message)
                return False
        self._last_save_error = None
        return True
