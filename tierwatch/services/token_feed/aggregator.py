"""
Token Aggregator

Collects raw payloads from every configured source concurrently, normalizes
them, and merges overlapping records field by field into one record per
identity.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ...core.recovery import (
    ErrorCategory,
    NoDataAvailableError,
    SourceUnavailableError,
    as_source_error,
)
from .models import Liquidity, SocialLinks, TokenRecord, WindowedMetric
from .normalizer import SourceNormalizer

if TYPE_CHECKING:
    from ...providers.base import TokenSource

logger = logging.getLogger(__name__)

# Fields that keep the first value ever known for an identity.
_IMMUTABLE_FIELDS = {"identity", "created_at"}
# Fields merged by bespoke rules below.
_SPECIAL_FIELDS = {"observed_at", "sources", "social_links", "volume", "price_change", "liquidity", "synthetic"}

FRESHNESS_BUCKET_SECONDS = 60


@dataclass
class SourceOutcome:
    """Result of asking one source for tokens during a cycle."""
    source: str
    ok: bool
    token_count: int = 0
    error: Optional[str] = None
    category: Optional[str] = None
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "source": self.source,
            "ok": self.ok,
            "tokenCount": self.token_count,
            "error": self.error,
            "category": self.category,
            "elapsedMs": self.elapsed_ms,
        }


@dataclass
class AggregationResult:
    """Merged records plus per-source bookkeeping."""
    records: List[TokenRecord]
    outcomes: Dict[str, SourceOutcome] = field(default_factory=dict)
    collected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def successful_sources(self) -> List[str]:
        return [name for name, outcome in self.outcomes.items() if outcome.ok]

    @property
    def failed_sources(self) -> List[str]:
        return [name for name, outcome in self.outcomes.items() if not outcome.ok]


# =============================================================================
# Merge rules
# =============================================================================


def _merge_parts(older, newer, cls):
    """Per-attribute merge for small value objects (links, windowed metrics)."""
    if older is None:
        return newer
    if newer is None:
        return older
    merged = cls()
    for f in fields(cls):
        new_value = getattr(newer, f.name)
        setattr(merged, f.name, new_value if new_value is not None else getattr(older, f.name))
    return merged


def merge_records(older: TokenRecord, newer: TokenRecord) -> TokenRecord:
    """
    Merge two records describing the same identity.

    ``newer`` wins for every field it knows; absent values never erase known ones.
    """
    if older.identity != newer.identity:
        raise ValueError(f"Cannot merge {older.identity} with {newer.identity}")

    if newer.observed_at < older.observed_at:
        older, newer = newer, older

    merged = older.copy()
    for f in fields(TokenRecord):
        name = f.name
        if name in _SPECIAL_FIELDS:
            continue
        if name in _IMMUTABLE_FIELDS:
            if getattr(merged, name) is None:
                setattr(merged, name, getattr(newer, name))
            continue
        value = getattr(newer, name)
        if value is not None:
            setattr(merged, name, value)

    merged.observed_at = newer.observed_at
    merged.sources = list(dict.fromkeys([*older.sources, *newer.sources]))
    merged.social_links = _merge_parts(older.social_links, newer.social_links, SocialLinks) or SocialLinks()
    merged.volume = _merge_parts(older.volume, newer.volume, WindowedMetric)
    merged.price_change = _merge_parts(older.price_change, newer.price_change, WindowedMetric)
    merged.liquidity = _merge_parts(older.liquidity, newer.liquidity, Liquidity)
    merged.synthetic = older.synthetic and newer.synthetic
    return merged


def merge_all(records: Iterable[TokenRecord]) -> List[TokenRecord]:
    """Collapse records to one per identity, applying them oldest first."""
    ordered = sorted(records, key=lambda r: r.observed_at)
    merged: Dict[str, TokenRecord] = {}
    for record in ordered:
        current = merged.get(record.identity)
        merged[record.identity] = record.copy() if current is None else merge_records(current, record)
    return list(merged.values())


def ranking_key(record: TokenRecord) -> Tuple[float, int, float, str]:
    """Freshness first (one-minute buckets), then engagement, then market cap."""
    if record.created_at is not None:
        bucket = int(record.created_at.timestamp() // FRESHNESS_BUCKET_SECONDS)
        freshness = -float(bucket)
    else:
        freshness = float("inf")
    return (
        freshness,
        -(record.engagement_count or 0),
        -(record.market_cap_usd or 0.0),
        record.identity,
    )


def rank_records(records: Iterable[TokenRecord]) -> List[TokenRecord]:
    return sorted(records, key=ranking_key)


# =============================================================================
# Aggregator
# =============================================================================


class TokenAggregator:
    """Fetches every source with a bounded wait and merges the results."""

    def __init__(
        self,
        sources: Sequence[TokenSource],
        *,
        normalizer: Optional[SourceNormalizer] = None,
        fetch_timeout_seconds: float = 12.0,
    ) -> None:
        self._sources = list(sources)
        self._normalizer = normalizer or SourceNormalizer()
        self._timeout = fetch_timeout_seconds

    @property
    def sources(self) -> List[TokenSource]:
        return list(self._sources)

    async def _fetch_one(
        self,
        source: TokenSource,
        watch: Sequence[str],
    ) -> Tuple[SourceOutcome, List[TokenRecord]]:
        started = time.monotonic()
        try:
            payloads = await asyncio.wait_for(source.fetch_tokens(watch=watch), timeout=self._timeout)
        except asyncio.TimeoutError:
            error = SourceUnavailableError(
                source.name,
                f"timed out after {self._timeout:.0f}s",
                category=ErrorCategory.TIMEOUT,
            )
            logger.warning("Source %s timed out", source.name)
            return self._failed(source, error, started), []
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            error = as_source_error(source.name, exc)
            logger.warning("Source %s failed: %s", source.name, error.message)
            return self._failed(source, error, started), []

        records = self._normalizer.normalize_batch(payloads)
        outcome = SourceOutcome(
            source=source.name,
            ok=True,
            token_count=len(records),
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info("Source %s returned %d tokens", source.name, len(records))
        return outcome, records

    @staticmethod
    def _failed(source: TokenSource, error: SourceUnavailableError, started: float) -> SourceOutcome:
        return SourceOutcome(
            source=source.name,
            ok=False,
            error=error.message,
            category=error.category.value,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )

    async def collect(
        self,
        *,
        watch: Sequence[str] = (),
        extra: Optional[Mapping[str, Sequence[TokenRecord]]] = None,
    ) -> AggregationResult:
        """
        Fetch all sources concurrently and merge.

        Args:
            watch: identities already tracked (enrichment sources look these up)
            extra: already-normalized records keyed by pseudo-source (push buffer)

        Raises:
            NoDataAvailableError: every source failed or returned zero tokens
        """
        results = await asyncio.gather(*(self._fetch_one(source, watch) for source in self._sources))

        outcomes: Dict[str, SourceOutcome] = {}
        batches: List[TokenRecord] = []
        for outcome, records in results:
            outcomes[outcome.source] = outcome
            batches.extend(records)

        for name, records in (extra or {}).items():
            if records:
                outcomes[name] = SourceOutcome(source=name, ok=True, token_count=len(records))
                batches.extend(records)

        return self.merge(batches, outcomes)

    def merge(
        self,
        records: Iterable[TokenRecord],
        outcomes: Optional[Dict[str, SourceOutcome]] = None,
    ) -> AggregationResult:
        """Merge already-normalized records; raise if there is nothing to merge."""
        outcomes = outcomes or {}
        merged = merge_all(records)
        if not merged:
            raise NoDataAvailableError(outcomes)
        return AggregationResult(records=rank_records(merged), outcomes=outcomes)
