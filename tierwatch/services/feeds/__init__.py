"""Push feeds (websocket, server-sent events) with reconnect and failover."""

from typing import List

from ...config import Settings
from ...core.recovery import RetryPolicy
from .base import ConnectionState, PushFeed, PushHandler
from .manager import PushFeedManager
from .pump_portal import PumpPortalFeed
from .sse import SseFeed


def build_feeds(config: Settings, **pump_portal_kwargs) -> List[PushFeed]:
    """Push feeds in failover order: PumpPortal first, then each SSE endpoint."""
    policy = RetryPolicy.from_settings(config)
    feeds: List[PushFeed] = []
    if config.enable_pump_portal_ws:
        feeds.append(PumpPortalFeed(config.pump_portal_ws_url, policy, **pump_portal_kwargs))
    if config.enable_sse_feed:
        feeds.extend(SseFeed(url, policy) for url in config.sse_feed_urls)
    return feeds


__all__ = [
    "ConnectionState",
    "PushFeed",
    "PushHandler",
    "PushFeedManager",
    "PumpPortalFeed",
    "SseFeed",
    "build_feeds",
]
