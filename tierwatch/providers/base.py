from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..services.token_feed.models import RawSourcePayload


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: int = 10
    base_url: str = ""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_s,
                headers=self._build_headers(),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    def _build_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        if not await self.ready():
            return {"status": "unavailable", "reason": "not configured"}
        return {"status": "healthy", "base_url": self.base_url}


class TokenSource(Provider):
    """Provider that returns raw token payloads for a refresh cycle"""

    @abstractmethod
    async def fetch_tokens(self, *, watch: Sequence[str] = ()) -> List[RawSourcePayload]:
        """
        Fetch the source's current token list.

        Args:
            watch: identities currently tracked; lookup-style sources query these

        Raises:
            SourceUnavailableError: the source could not answer this cycle
        """
        pass
