"""Server-sent events feed streaming ``initial``/``update`` token batches."""

import json
import logging
from typing import Any, List, Optional
from urllib.parse import urlparse

import httpx

from ...core.recovery import RetryPolicy
from ..token_feed.models import RawSourcePayload, SsePayload
from .base import PushFeed

logger = logging.getLogger(__name__)

_BATCH_TYPES = {"initial", "update"}
_IGNORED_TYPES = {"heartbeat", "ping", "connected"}


class SseFeed(PushFeed):
    """One SSE endpoint."""

    def __init__(
        self,
        url: str,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        connect_timeout: float = 10.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(retry_policy, **kwargs)
        self.url = url
        self.name = f"sse:{urlparse(url).netloc or url}"
        self._client = client
        self._connect_timeout = connect_timeout

    async def _connect_and_listen(self) -> None:
        if self._client is not None:
            await self._stream(self._client)
            return
        timeout = httpx.Timeout(self._connect_timeout, read=None)
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            await self._stream(client)

    async def _stream(self, client: httpx.AsyncClient) -> None:
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        async with client.stream("GET", self.url, headers=headers) as response:
            response.raise_for_status()
            self._mark_connected()

            data_lines: List[str] = []
            async for line in response.aiter_lines():
                if line.startswith("data:"):
                    data_lines.append(line[5:].lstrip())
                elif not line and data_lines:
                    await self._handle_message("\n".join(data_lines))
                    data_lines = []
            if data_lines:
                await self._handle_message("\n".join(data_lines))

    def parse_message(self, raw: Any) -> List[RawSourcePayload]:
        message = json.loads(raw)
        if not isinstance(message, dict):
            raise ValueError("event is not an object")

        event_type = message.get("type")
        if event_type in _IGNORED_TYPES:
            return []
        if event_type not in _BATCH_TYPES:
            raise ValueError(f"unknown event type {event_type!r}")

        tokens = message.get("tokens")
        if not isinstance(tokens, list):
            raise ValueError("batch carries no token list")
        return [
            SsePayload(data=token, source_name=self.name)
            for token in tokens
            if isinstance(token, dict)
        ]
