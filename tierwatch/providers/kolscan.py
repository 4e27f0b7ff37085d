"""KolScan trending tokens provider."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import httpx

from ..config import settings
from ..core.recovery import SourceUnavailableError, as_source_error
from ..services.token_feed.models import KolScanPayload, RawSourcePayload
from .base import TokenSource

logger = logging.getLogger(__name__)


class KolScanProvider(TokenSource):
    """KolScan trending tokens."""

    name = "kolscan"
    timeout_s = 10

    def __init__(
        self,
        base_url: Optional[str] = None,
        limit: int = 50,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(client)
        self.base_url = (base_url or settings.kolscan_base_url).rstrip("/")
        self.limit = limit

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "Mozilla/5.0 (compatible; tierwatch/0.1)",
        }

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def fetch_tokens(self, *, watch: Sequence[str] = ()) -> List[RawSourcePayload]:
        client = await self._get_client()
        observed_at = datetime.now(timezone.utc)
        try:
            response = await client.get(
                f"{self.base_url}/v1/tokens/trending",
                params={"limit": self.limit},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise as_source_error(self.name, exc) from exc

        tokens = data.get("tokens") if isinstance(data, dict) else None
        if not isinstance(tokens, list):
            raise SourceUnavailableError(self.name, "response carried no token list")

        return [
            KolScanPayload(data=item, observed_at=observed_at, source_name=self.name)
            for item in tokens
            if isinstance(item, dict)
        ]
