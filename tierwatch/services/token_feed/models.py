"""
Token Feed Models

Canonical token record and the tagged raw payloads each upstream source produces.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union


DEFAULT_TOTAL_SUPPLY = 1_000_000_000.0


class SourceKind(str, Enum):
    """Upstream feed families."""
    PUMPFUN = "pumpfun"
    SOLANA_STREAM = "solana_stream"
    KOLSCAN = "kolscan"
    DEXSCREENER = "dexscreener"
    PUMP_PORTAL = "pump_portal"
    SSE = "sse"
    SYNTHETIC = "synthetic"


class PushEventType(str, Enum):
    """Push events a feed can deliver."""
    NEW_TOKEN = "newToken"
    TOKEN_TRADE = "tokenTrade"
    MIGRATION = "migration"
    BATCH = "batch"


# =============================================================================
# Raw payload variants
# =============================================================================


@dataclass
class _RawPayload:
    data: Dict[str, Any]
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source_name: Optional[str] = None

    kind: ClassVar[SourceKind]

    @property
    def source(self) -> str:
        return self.source_name or self.kind.value


@dataclass
class PumpFunPayload(_RawPayload):
    """One coin object from the pump.fun frontend API."""
    kind: ClassVar[SourceKind] = SourceKind.PUMPFUN


@dataclass
class SolanaStreamPayload(_RawPayload):
    """One token from SolanaStream's trending endpoint."""
    kind: ClassVar[SourceKind] = SourceKind.SOLANA_STREAM


@dataclass
class KolScanPayload(_RawPayload):
    """One token from KolScan's trending endpoint."""
    kind: ClassVar[SourceKind] = SourceKind.KOLSCAN


@dataclass
class DexScreenerPayload(_RawPayload):
    """One pair object from DexScreener's token lookup."""
    kind: ClassVar[SourceKind] = SourceKind.DEXSCREENER


@dataclass
class PumpPortalPayload(_RawPayload):
    """One websocket message from PumpPortal."""
    event: PushEventType = PushEventType.NEW_TOKEN
    kind: ClassVar[SourceKind] = SourceKind.PUMP_PORTAL


@dataclass
class SsePayload(_RawPayload):
    """One token taken from a server-sent ``initial``/``update`` batch."""
    event: PushEventType = PushEventType.BATCH
    kind: ClassVar[SourceKind] = SourceKind.SSE


RawSourcePayload = Union[
    PumpFunPayload,
    SolanaStreamPayload,
    KolScanPayload,
    DexScreenerPayload,
    PumpPortalPayload,
    SsePayload,
]


# =============================================================================
# Canonical record
# =============================================================================


@dataclass
class SocialLinks:
    """Known social links; ``None`` means not known by any source yet."""
    twitter: Optional[str] = None
    website: Optional[str] = None
    telegram: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.twitter or self.website or self.telegram)

    def to_dict(self) -> Dict[str, Any]:
        return {"twitter": self.twitter, "website": self.website, "telegram": self.telegram}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SocialLinks":
        data = data or {}
        return cls(twitter=data.get("twitter"), website=data.get("website"), telegram=data.get("telegram"))


@dataclass
class WindowedMetric:
    """A metric reported over several horizons (5m, 1h, 6h, 24h)."""
    m5: Optional[float] = None
    h1: Optional[float] = None
    h6: Optional[float] = None
    h24: Optional[float] = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> Dict[str, Any]:
        return {"m5": self.m5, "h1": self.h1, "h6": self.h6, "h24": self.h24}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["WindowedMetric"]:
        if not data:
            return None
        return cls(m5=data.get("m5"), h1=data.get("h1"), h6=data.get("h6"), h24=data.get("h24"))


@dataclass
class Liquidity:
    """Pool liquidity in USD and in base/quote units."""
    usd: Optional[float] = None
    base: Optional[float] = None
    quote: Optional[float] = None

    def is_empty(self) -> bool:
        return self.usd is None and self.base is None and self.quote is None

    def to_dict(self) -> Dict[str, Any]:
        return {"usd": self.usd, "base": self.base, "quote": self.quote}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Liquidity"]:
        if not data:
            return None
        return cls(usd=data.get("usd"), base=data.get("base"), quote=data.get("quote"))


@dataclass
class TokenRecord:
    """Canonical market snapshot of one token."""
    # Core identity
    identity: str
    observed_at: datetime
    sources: List[str] = field(default_factory=list)

    # Metadata
    display_name: Optional[str] = None
    symbol: Optional[str] = None
    description: Optional[str] = None
    image_uri: Optional[str] = None
    created_at: Optional[datetime] = None
    social_links: SocialLinks = field(default_factory=SocialLinks)

    # Market data
    market_cap_usd: Optional[float] = None
    fdv_usd: Optional[float] = None
    total_supply: Optional[float] = None
    engagement_count: Optional[int] = None
    holders: Optional[int] = None
    volume: Optional[WindowedMetric] = None
    price_change: Optional[WindowedMetric] = None
    liquidity: Optional[Liquidity] = None

    # Lifecycle
    is_complete: Optional[bool] = None
    is_live: Optional[bool] = None

    synthetic: bool = False

    @property
    def supply(self) -> float:
        """Total supply, assuming the pump.fun standard when no source reported one."""
        return self.total_supply if self.total_supply is not None else DEFAULT_TOTAL_SUPPLY

    def age_hours(self, now: datetime) -> Optional[float]:
        """Hours since genesis; ``None`` if creation time is unknown."""
        if self.created_at is None:
            return None
        return max(0.0, (now - self.created_at).total_seconds() / 3600.0)

    def copy(self) -> "TokenRecord":
        return replace(
            self,
            sources=list(self.sources),
            social_links=replace(self.social_links),
            volume=replace(self.volume) if self.volume else None,
            price_change=replace(self.price_change) if self.price_change else None,
            liquidity=replace(self.liquidity) if self.liquidity else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "observedAt": _iso(self.observed_at),
            "sources": list(self.sources),
            "displayName": self.display_name,
            "symbol": self.symbol,
            "description": self.description,
            "imageUri": self.image_uri,
            "createdAt": _iso(self.created_at),
            "socialLinks": self.social_links.to_dict(),
            "marketCapUsd": self.market_cap_usd,
            "fdvUsd": self.fdv_usd,
            "totalSupply": self.supply,
            "totalSupplyReported": self.total_supply is not None,
            "engagementCount": self.engagement_count,
            "holders": self.holders,
            "volume": self.volume.to_dict() if self.volume else None,
            "priceChange": self.price_change.to_dict() if self.price_change else None,
            "liquidity": self.liquidity.to_dict() if self.liquidity else None,
            "isComplete": self.is_complete,
            "isLive": self.is_live,
            "synthetic": self.synthetic,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenRecord":
        return cls(
            identity=data["identity"],
            observed_at=_parse_iso(data.get("observedAt")) or datetime.now(timezone.utc),
            sources=list(data.get("sources") or []),
            display_name=data.get("displayName"),
            symbol=data.get("symbol"),
            description=data.get("description"),
            image_uri=data.get("imageUri"),
            created_at=_parse_iso(data.get("createdAt")),
            social_links=SocialLinks.from_dict(data.get("socialLinks")),
            market_cap_usd=data.get("marketCapUsd"),
            fdv_usd=data.get("fdvUsd"),
            total_supply=data.get("totalSupply") if data.get("totalSupplyReported", True) else None,
            engagement_count=data.get("engagementCount"),
            holders=data.get("holders"),
            volume=WindowedMetric.from_dict(data.get("volume")),
            price_change=WindowedMetric.from_dict(data.get("priceChange")),
            liquidity=Liquidity.from_dict(data.get("liquidity")),
            is_complete=data.get("isComplete"),
            is_live=data.get("isLive"),
            synthetic=bool(data.get("synthetic", False)),
        )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.astimezone(timezone.utc).isoformat() if value else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
