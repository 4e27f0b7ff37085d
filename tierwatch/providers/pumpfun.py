"""
pump.fun Frontend API Provider

Polls the public coin listings (newest, last traded, most replied) and
returns each coin as a raw payload.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import settings
from ..core.recovery import SourceUnavailableError, as_source_error
from ..services.token_feed.models import PumpFunPayload, RawSourcePayload
from .base import TokenSource

logger = logging.getLogger(__name__)

LISTINGS: List[Dict[str, Any]] = [
    {"sort": "created_timestamp", "limit": 100},
    {"sort": "last_trade_timestamp", "limit": 50},
    {"sort": "reply_count", "limit": 75},
]


class PumpFunProvider(TokenSource):
    """pump.fun coin listings."""

    name = "pumpfun"
    timeout_s = 10

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        super().__init__(client)
        self.base_url = (base_url or settings.pumpfun_base_url).rstrip("/")

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "Mozilla/5.0 (compatible; tierwatch/0.1)",
        }

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def _fetch_listing(self, listing: Dict[str, Any]) -> List[Dict[str, Any]]:
        client = await self._get_client()
        response = await client.get(
            f"{self.base_url}/coins",
            params={
                "offset": 0,
                "limit": listing["limit"],
                "sort": listing["sort"],
                "order": "DESC",
                "includeNsfw": "false",
            },
        )
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict):
            data = data.get("coins") or []
        if not isinstance(data, list):
            raise ValueError("unexpected coin listing body")
        return [item for item in data if isinstance(item, dict)]

    async def fetch_tokens(self, *, watch: Sequence[str] = ()) -> List[RawSourcePayload]:
        observed_at = datetime.now(timezone.utc)
        results = await asyncio.gather(
            *(self._fetch_listing(listing) for listing in LISTINGS),
            return_exceptions=True,
        )

        payloads: List[RawSourcePayload] = []
        errors: List[Exception] = []
        for listing, result in zip(LISTINGS, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning("pump.fun listing %s failed: %s", listing["sort"], result)
                errors.append(result)
                continue
            payloads.extend(
                PumpFunPayload(data=item, observed_at=observed_at, source_name=self.name)
                for item in result
            )

        if errors and len(errors) == len(LISTINGS):
            raise as_source_error(self.name, errors[0])
        if not payloads and errors:
            raise SourceUnavailableError(self.name, "no listing returned coins")
        return payloads
