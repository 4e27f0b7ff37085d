"""
PumpPortal websocket feed.

Subscribes to new-token and migration events, plus trade events for tokens
already tracked so their market cap moves between REST polls.
"""

import json
import logging
from typing import Any, Callable, List, Optional, Sequence

import websockets

from ...config import settings
from ...core.recovery import RetryPolicy
from ..token_feed.models import PumpPortalPayload, PushEventType, RawSourcePayload
from .base import PushFeed

logger = logging.getLogger(__name__)

# txType values sent by PumpPortal when no explicit method envelope is used
_TX_TYPES = {
    "create": PushEventType.NEW_TOKEN,
    "buy": PushEventType.TOKEN_TRADE,
    "sell": PushEventType.TOKEN_TRADE,
    "migrate": PushEventType.MIGRATION,
    "migration": PushEventType.MIGRATION,
}


class PumpPortalFeed(PushFeed):
    """PumpPortal data websocket."""

    name = "pump_portal"

    def __init__(
        self,
        url: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        watch_provider: Optional[Callable[[], Sequence[str]]] = None,
        open_timeout: float = 10.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(retry_policy, **kwargs)
        self.url = url or settings.pump_portal_ws_url
        self.open_timeout = open_timeout
        self._watch_provider = watch_provider
        self._subscribed: set = set()
        self._ws = None

    async def _connect_and_listen(self) -> None:
        async with websockets.connect(self.url, open_timeout=self.open_timeout) as ws:
            self._ws = ws
            self._subscribed = set()
            self._mark_connected()
            try:
                await ws.send(json.dumps({"method": "subscribeNewToken"}))
                await ws.send(json.dumps({"method": "subscribeMigration"}))
                if self._watch_provider is not None:
                    await self.watch(self._watch_provider())

                async for message in ws:
                    await self._handle_message(message)
            finally:
                self._ws = None

    async def watch(self, keys: Sequence[str]) -> None:
        """Subscribe to trade events for identities not yet subscribed."""
        fresh = [key for key in keys if key not in self._subscribed]
        if not fresh or self._ws is None:
            return
        await self._ws.send(json.dumps({"method": "subscribeTokenTrade", "keys": fresh}))
        self._subscribed.update(fresh)
        logger.debug("Subscribed to trades for %d tokens", len(fresh))

    def parse_message(self, raw: Any) -> List[RawSourcePayload]:
        message = json.loads(raw)
        if not isinstance(message, dict):
            raise ValueError("message is not an object")

        if "method" in message:
            event = PushEventType(message["method"])
            data = message.get("data")
        elif "txType" in message:
            event = _TX_TYPES.get(str(message["txType"]).lower())
            if event is None:
                raise ValueError(f"unknown txType {message['txType']!r}")
            data = message
        elif "message" in message or "errors" in message:
            # Subscription acknowledgement
            return []
        else:
            raise ValueError("unrecognised message shape")

        if not isinstance(data, dict) or not data.get("mint"):
            raise ValueError("event carries no mint")
        return [PumpPortalPayload(data=data, event=event, source_name=self.name)]
