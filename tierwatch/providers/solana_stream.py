"""
SolanaStream API Provider

Trending Solana tokens. Requires a bearer token.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import httpx

from ..config import settings
from ..core.recovery import ErrorCategory, SourceUnavailableError, as_source_error
from ..services.token_feed.models import RawSourcePayload, SolanaStreamPayload
from .base import TokenSource

logger = logging.getLogger(__name__)


class SolanaStreamProvider(TokenSource):
    """SolanaStream trending tokens."""

    name = "solana_stream"
    timeout_s = 10

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_token = api_token or settings.solana_stream_token
        super().__init__(client)
        self.base_url = (base_url or settings.solana_stream_base_url).rstrip("/")

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def ready(self) -> bool:
        return bool(self.api_token)

    async def fetch_tokens(self, *, watch: Sequence[str] = ()) -> List[RawSourcePayload]:
        if not self.api_token:
            raise SourceUnavailableError(self.name, "no API token configured", category=ErrorCategory.VALIDATION)

        client = await self._get_client()
        observed_at = datetime.now(timezone.utc)
        try:
            response = await client.get(
                f"{self.base_url}/v1/tokens/trending",
                headers=self._build_headers(),
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise as_source_error(self.name, exc) from exc

        tokens = data.get("tokens") if isinstance(data, dict) else None
        if not isinstance(tokens, list):
            raise SourceUnavailableError(self.name, "response carried no token list")

        return [
            SolanaStreamPayload(data=item, observed_at=observed_at, source_name=self.name)
            for item in tokens
            if isinstance(item, dict)
        ]
