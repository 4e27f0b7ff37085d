"""
DexScreener API Provider

Enrichment source: looks up pairs for identities that are already tracked to
fill in volume, price change and liquidity windows.

Docs: https://docs.dexscreener.com/api/reference
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import settings
from ..core.recovery import as_source_error
from ..services.token_feed.models import DexScreenerPayload, RawSourcePayload
from .base import TokenSource

logger = logging.getLogger(__name__)

# DexScreener accepts up to 30 comma-separated addresses per lookup.
MAX_ADDRESSES_PER_REQUEST = 30


class DexScreenerProvider(TokenSource):
    """DexScreener token pair lookups."""

    name = "dexscreener"
    timeout_s = 10

    def __init__(
        self,
        base_url: Optional[str] = None,
        chain_id: str = "solana",
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(client)
        self.base_url = (base_url or settings.dexscreener_base_url).rstrip("/")
        self.chain_id = chain_id

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def _lookup(self, addresses: Sequence[str]) -> List[Dict[str, Any]]:
        client = await self._get_client()
        response = await client.get(f"{self.base_url}/latest/dex/tokens/{','.join(addresses)}")
        response.raise_for_status()
        data = response.json()
        pairs = data.get("pairs") if isinstance(data, dict) else None
        return [pair for pair in pairs or [] if isinstance(pair, dict)]

    async def fetch_tokens(self, *, watch: Sequence[str] = ()) -> List[RawSourcePayload]:
        if not watch:
            return []

        observed_at = datetime.now(timezone.utc)
        batches = [
            list(watch[i:i + MAX_ADDRESSES_PER_REQUEST])
            for i in range(0, len(watch), MAX_ADDRESSES_PER_REQUEST)
        ]
        try:
            results = await asyncio.gather(*(self._lookup(batch) for batch in batches))
        except (httpx.HTTPError, ValueError) as exc:
            raise as_source_error(self.name, exc) from exc

        # Keep the most liquid pair per base token
        best: Dict[str, Dict[str, Any]] = {}
        for pairs in results:
            for pair in pairs:
                if pair.get("chainId") not in (None, self.chain_id):
                    continue
                address = (pair.get("baseToken") or {}).get("address")
                if not address:
                    continue
                current = best.get(address)
                if current is None or _liquidity_usd(pair) > _liquidity_usd(current):
                    best[address] = pair

        return [
            DexScreenerPayload(data=pair, observed_at=observed_at, source_name=self.name)
            for pair in best.values()
        ]


def _liquidity_usd(pair: Dict[str, Any]) -> float:
    liquidity = pair.get("liquidity") or {}
    value = liquidity.get("usd") if isinstance(liquidity, dict) else None
    return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0.0
