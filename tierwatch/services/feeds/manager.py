"""
Push Feed Manager

Runs one push feed at a time. When a feed exhausts its reconnects the next
configured feed takes over; when none is left the service keeps going on REST
polling alone.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from .base import PushFeed, PushHandler

logger = logging.getLogger(__name__)


class PushFeedManager:
    """Failover across push feeds."""

    def __init__(self, feeds: Sequence[PushFeed], handler: Optional[PushHandler] = None) -> None:
        self.feeds: List[PushFeed] = list(feeds)
        self.active: Optional[PushFeed] = None
        self.degraded = False
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        if handler is not None:
            self.on_payloads(handler)

    def on_payloads(self, handler: PushHandler) -> None:
        for feed in self.feeds:
            feed.on_payloads(handler)

    async def start(self) -> None:
        if self._task is not None:
            return
        if not self.feeds:
            self.degraded = True
            logger.info("No push feeds configured; REST polling only")
            return
        self._stopping = False
        self._task = asyncio.create_task(self._run(), name="push-feed-manager")

    async def _run(self) -> None:
        for feed in self.feeds:
            if self._stopping:
                return
            self.active = feed
            logger.info("Push feed %s active", feed.name)
            stopped = await feed.run()
            if stopped or self._stopping:
                return
            logger.warning("Push feed %s exhausted, failing over", feed.name)

        self.active = None
        self.degraded = True
        logger.warning("All push feeds exhausted; continuing with REST polling only")

    async def wait(self) -> None:
        """Wait for the failover loop to finish (tests, shutdown)."""
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        self._stopping = True
        for feed in self.feeds:
            await feed.stop()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.active = None

    async def watch(self, keys: Sequence[str]) -> None:
        """Forward tracked identities to the active feed when it supports trade subscriptions."""
        watch = getattr(self.active, "watch", None)
        if watch is not None:
            await watch(keys)

    def status(self) -> Dict[str, Any]:
        return {
            "active": self.active.name if self.active else None,
            "degraded": self.degraded,
            "feeds": [feed.status() for feed in self.feeds],
        }
