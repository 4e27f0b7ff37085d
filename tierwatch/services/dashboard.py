"""
Token Dashboard

Builds and owns the long-lived pieces of the service (sources, tracker, store,
scheduler, push feeds) so the API layer gets them from ``app.state`` instead of
module globals.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import Settings
from ..core.progression import (
    ProgressionPolicy,
    ProgressionStore,
    ProgressionTracker,
    build_store,
)
from ..providers import TokenSource, build_sources
from .feeds import PushFeedManager, build_feeds
from .refresh import DataStatus, RefreshScheduler
from .token_feed import SourceNormalizer, SyntheticTokenGenerator, TokenAggregator, TokenRecord

logger = logging.getLogger(__name__)


class TokenDashboard:
    """Service container wired from settings."""

    def __init__(
        self,
        *,
        tracker: ProgressionTracker,
        scheduler: RefreshScheduler,
        feeds: PushFeedManager,
        store: ProgressionStore,
        sources: Optional[List[TokenSource]] = None,
        synthetic: Optional[SyntheticTokenGenerator] = None,
    ) -> None:
        self.tracker = tracker
        self.scheduler = scheduler
        self.feeds = feeds
        self.store = store
        self.sources = list(sources or [])
        self.synthetic = synthetic
        self._started = False

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenDashboard":
        store = build_store(config)
        tracker = ProgressionTracker(store, policy=ProgressionPolicy.from_settings(config))
        sources = build_sources(config)
        normalizer = SourceNormalizer(sol_price_usd=config.sol_price_usd)
        aggregator = TokenAggregator(
            sources,
            normalizer=normalizer,
            fetch_timeout_seconds=config.fetch_timeout_seconds,
        )
        scheduler = RefreshScheduler(
            aggregator,
            tracker,
            interval_seconds=config.refresh_interval_seconds,
            max_backoff_multiplier=config.max_backoff_multiplier,
            normalizer=normalizer,
        )
        feeds = PushFeedManager(
            build_feeds(config, watch_provider=tracker.watch_list),
            handler=scheduler.notify_push,
        )
        scheduler.add_cycle_hook(feeds.watch)
        synthetic = SyntheticTokenGenerator() if config.enable_synthetic_fallback else None
        logger.info(
            "Dashboard wired: sources=%s feeds=%s synthetic_fallback=%s",
            [s.name for s in sources],
            [f.name for f in feeds.feeds],
            synthetic is not None,
        )
        return cls(
            tracker=tracker,
            scheduler=scheduler,
            feeds=feeds,
            store=store,
            sources=sources,
            synthetic=synthetic,
        )

    async def start(self) -> None:
        if self._started:
            return
        await self.tracker.load()
        await self.scheduler.start()
        await self.feeds.start()
        self._started = True

    async def stop(self) -> None:
        await self.feeds.stop()
        await self.scheduler.stop()
        for source in self.sources:
            await source.close()
        await self.store.close()
        self._started = False

    def placeholder_tokens(self) -> Optional[List[TokenRecord]]:
        """Labelled placeholder list, only while live data is unavailable and the fallback is on."""
        if self.synthetic is None or self.scheduler.data_status == DataStatus.LIVE:
            return None
        if not self.tracker.snapshot().is_empty():
            return None
        return self.synthetic.generate()

    async def health(self) -> Dict[str, Any]:
        providers = {source.name: await source.health_check() for source in self.sources}
        return {
            "providers": providers,
            "scheduler": self.scheduler.status(),
            "push": self.feeds.status(),
            "persistence": {
                "backend": self.store.name,
                "last_save_error": self.tracker.last_save_error,
            },
        }
