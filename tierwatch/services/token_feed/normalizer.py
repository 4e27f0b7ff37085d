"""
Source Normalizer

One adapter per upstream payload variant, each producing a canonical
``TokenRecord``. Unknown fields stay ``None`` so the aggregator can tell
"unknown" from "zero". Payloads without an identity are dropped.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type

from .models import (
    DexScreenerPayload,
    KolScanPayload,
    Liquidity,
    PumpFunPayload,
    PumpPortalPayload,
    PushEventType,
    RawSourcePayload,
    SocialLinks,
    SolanaStreamPayload,
    SsePayload,
    TokenRecord,
    WindowedMetric,
)

logger = logging.getLogger(__name__)

# Anything above this is treated as epoch milliseconds.
_EPOCH_MS_THRESHOLD = 10_000_000_000


# =============================================================================
# Defensive coercion
# =============================================================================


def to_float(value: Any) -> Optional[float]:
    """Finite, non-negative float or ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", ""))
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def to_signed_float(value: Any) -> Optional[float]:
    """Like ``to_float`` but keeps negative values (price changes)."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("-"):
            magnitude = to_float(stripped[1:])
            return -magnitude if magnitude is not None else None
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value < 0:
        magnitude = to_float(-value)
        return -magnitude if magnitude is not None else None
    return to_float(value)


def to_int(value: Any) -> Optional[int]:
    number = to_float(value)
    return int(number) if number is not None else None


def to_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
    return None


def to_datetime(value: Any) -> Optional[datetime]:
    """Accept epoch seconds, epoch milliseconds or ISO-8601 strings."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    number = to_float(value) if not isinstance(value, str) or _looks_numeric(value) else None
    if number is not None:
        if number <= 0:
            return None
        if number > _EPOCH_MS_THRESHOLD:
            number /= 1000.0
        try:
            return datetime.fromtimestamp(number, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _looks_numeric(value: str) -> bool:
    return to_float(value) is not None


def _windowed(data: Any, signed: bool = False) -> Optional[WindowedMetric]:
    if not isinstance(data, Mapping):
        return None
    coerce = to_signed_float if signed else to_float
    metric = WindowedMetric(
        m5=coerce(data.get("m5")),
        h1=coerce(data.get("h1")),
        h6=coerce(data.get("h6")),
        h24=coerce(data.get("h24")),
    )
    return None if metric.is_empty() else metric


def _liquidity(data: Any) -> Optional[Liquidity]:
    if isinstance(data, Mapping):
        liquidity = Liquidity(
            usd=to_float(data.get("usd")),
            base=to_float(data.get("base")),
            quote=to_float(data.get("quote")),
        )
    else:
        liquidity = Liquidity(usd=to_float(data))
    return None if liquidity.is_empty() else liquidity


def _single_h24(value: Any, signed: bool = False) -> Optional[WindowedMetric]:
    number = to_signed_float(value) if signed else to_float(value)
    return WindowedMetric(h24=number) if number is not None else None


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


# =============================================================================
# Adapters
# =============================================================================


def _from_pumpfun_shape(data: Mapping[str, Any], payload: RawSourcePayload) -> Optional[TokenRecord]:
    """pump.fun coin objects (also the shape streamed by SSE batches)."""
    identity = to_str(data.get("mint"))
    if identity is None:
        return None
    complete = to_bool(data.get("complete"))
    live = to_bool(data.get("is_currently_live"))
    return TokenRecord(
        identity=identity,
        observed_at=payload.observed_at,
        sources=[payload.source],
        display_name=to_str(data.get("name")),
        symbol=to_str(data.get("symbol")),
        description=to_str(data.get("description")),
        image_uri=to_str(data.get("image_uri")),
        created_at=to_datetime(data.get("created_timestamp")),
        social_links=SocialLinks(
            twitter=to_str(data.get("twitter")),
            website=to_str(data.get("website")),
            telegram=to_str(data.get("telegram")),
        ),
        market_cap_usd=to_float(data.get("usd_market_cap")),
        fdv_usd=to_float(data.get("fdv")),
        total_supply=to_float(data.get("total_supply")),
        engagement_count=to_int(data.get("reply_count")),
        holders=to_int(data.get("holders")),
        volume=_windowed(data.get("volume")),
        price_change=_windowed(data.get("priceChange"), signed=True),
        liquidity=_liquidity(data.get("liquidity")),
        is_complete=complete,
        is_live=live,
    )


def normalize_pumpfun(payload: PumpFunPayload) -> Optional[TokenRecord]:
    return _from_pumpfun_shape(payload.data, payload)


def normalize_sse(payload: SsePayload) -> Optional[TokenRecord]:
    return _from_pumpfun_shape(payload.data, payload)


def normalize_solana_stream(payload: SolanaStreamPayload) -> Optional[TokenRecord]:
    data = payload.data
    identity = to_str(data.get("mint"))
    if identity is None:
        return None
    holders = to_int(data.get("holders"))
    return TokenRecord(
        identity=identity,
        observed_at=payload.observed_at,
        sources=[payload.source],
        display_name=to_str(data.get("name")),
        symbol=to_str(data.get("symbol")),
        description=to_str(data.get("description")),
        image_uri=to_str(data.get("image")),
        created_at=to_datetime(data.get("createdAt")),
        social_links=SocialLinks(
            twitter=to_str(data.get("twitter")),
            website=to_str(data.get("website")),
            telegram=to_str(data.get("telegram")),
        ),
        market_cap_usd=to_float(data.get("marketCap")),
        fdv_usd=to_float(data.get("fdv")),
        total_supply=to_float(data.get("totalSupply")),
        # holder count is the only community signal this feed carries
        engagement_count=holders,
        holders=holders,
        volume=_single_h24(data.get("volume24h")),
        price_change=_single_h24(data.get("priceChange24h"), signed=True),
        liquidity=_liquidity(data.get("liquidity")),
    )


def normalize_kolscan(payload: KolScanPayload) -> Optional[TokenRecord]:
    data = payload.data
    identity = to_str(data.get("mint"))
    if identity is None:
        return None
    social = data.get("social") if isinstance(data.get("social"), Mapping) else {}
    metrics = data.get("metrics") if isinstance(data.get("metrics"), Mapping) else {}
    holders = to_int(data.get("holders"))
    return TokenRecord(
        identity=identity,
        observed_at=payload.observed_at,
        sources=[payload.source],
        display_name=to_str(data.get("name")),
        symbol=to_str(data.get("symbol")),
        description=to_str(data.get("description")),
        image_uri=to_str(data.get("image")),
        created_at=to_datetime(data.get("createdAt")),
        social_links=SocialLinks(
            twitter=to_str(social.get("twitter")),
            website=to_str(social.get("website")),
            telegram=to_str(social.get("telegram")),
        ),
        market_cap_usd=to_float(data.get("marketCap")),
        fdv_usd=to_float(metrics.get("fdv")),
        engagement_count=holders,
        holders=holders,
        volume=_single_h24(data.get("volume24h")),
        price_change=_single_h24(data.get("priceChange24h"), signed=True),
        liquidity=_liquidity(metrics.get("liquidity")),
    )


def normalize_dexscreener(payload: DexScreenerPayload) -> Optional[TokenRecord]:
    data = payload.data
    base = data.get("baseToken") if isinstance(data.get("baseToken"), Mapping) else {}
    identity = to_str(base.get("address"))
    if identity is None:
        return None

    info = data.get("info") if isinstance(data.get("info"), Mapping) else {}
    socials = {}
    for entry in _as_list(info.get("socials")):
        if isinstance(entry, Mapping):
            kind = to_str(entry.get("type"))
            url = to_str(entry.get("url"))
            if kind and url:
                socials.setdefault(kind.lower(), url)
    website = None
    for entry in _as_list(info.get("websites")):
        if isinstance(entry, Mapping) and to_str(entry.get("url")):
            website = to_str(entry.get("url"))
            break

    return TokenRecord(
        identity=identity,
        observed_at=payload.observed_at,
        sources=[payload.source],
        display_name=to_str(base.get("name")),
        symbol=to_str(base.get("symbol")),
        image_uri=to_str(info.get("imageUrl")),
        social_links=SocialLinks(
            twitter=socials.get("twitter"),
            website=website,
            telegram=socials.get("telegram"),
        ),
        market_cap_usd=to_float(data.get("marketCap")),
        fdv_usd=to_float(data.get("fdv")),
        volume=_windowed(data.get("volume")),
        price_change=_windowed(data.get("priceChange"), signed=True),
        liquidity=_liquidity(data.get("liquidity")),
    )


class PumpPortalNormalizer:
    """PumpPortal quotes market cap in SOL; USD needs a configured SOL price."""

    def __init__(self, sol_price_usd: Optional[float] = None):
        self.sol_price_usd = sol_price_usd

    def __call__(self, payload: PumpPortalPayload) -> Optional[TokenRecord]:
        data = payload.data
        identity = to_str(data.get("mint"))
        if identity is None:
            return None

        market_cap = to_float(data.get("usd_market_cap"))
        if market_cap is None and self.sol_price_usd:
            cap_in_sol = to_float(data.get("marketCapSol"))
            if cap_in_sol is not None:
                market_cap = cap_in_sol * self.sol_price_usd

        record = TokenRecord(
            identity=identity,
            observed_at=payload.observed_at,
            sources=[payload.source],
            display_name=to_str(data.get("name")),
            symbol=to_str(data.get("symbol")),
            image_uri=to_str(data.get("image_uri")),
            social_links=SocialLinks(
                twitter=to_str(data.get("twitter")),
                website=to_str(data.get("website")),
                telegram=to_str(data.get("telegram")),
            ),
            market_cap_usd=market_cap,
        )

        if payload.event == PushEventType.NEW_TOKEN:
            record.created_at = to_datetime(data.get("created_timestamp")) or payload.observed_at
            record.is_complete = False
            record.is_live = True
        elif payload.event == PushEventType.MIGRATION:
            record.is_complete = True
            record.is_live = False
        return record


_ADAPTERS: Dict[Type[Any], Callable[[Any], Optional[TokenRecord]]] = {
    PumpFunPayload: normalize_pumpfun,
    SolanaStreamPayload: normalize_solana_stream,
    KolScanPayload: normalize_kolscan,
    DexScreenerPayload: normalize_dexscreener,
    PumpPortalPayload: PumpPortalNormalizer(),
    SsePayload: normalize_sse,
}


class SourceNormalizer:
    """Dispatches tagged payloads to their adapter."""

    def __init__(self, *, sol_price_usd: Optional[float] = None):
        self._adapters = dict(_ADAPTERS)
        self._adapters[PumpPortalPayload] = PumpPortalNormalizer(sol_price_usd)

    def _adapter_for(self, payload: RawSourcePayload) -> Callable[[Any], Optional[TokenRecord]]:
        adapter = self._adapters.get(type(payload))
        if adapter is None:
            raise TypeError(f"No adapter registered for {type(payload).__name__}")
        return adapter

    def normalize(self, payload: RawSourcePayload) -> Optional[TokenRecord]:
        """Canonical record, or ``None`` when the payload is malformed."""
        adapter = self._adapter_for(payload)
        if not isinstance(payload.data, Mapping):
            return None
        try:
            return adapter(payload)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.debug("Dropping malformed %s payload: %s", payload.source, exc)
            return None

    def normalize_batch(self, payloads: Iterable[RawSourcePayload]) -> List[TokenRecord]:
        records: List[TokenRecord] = []
        dropped = 0
        for payload in payloads:
            record = self.normalize(payload)
            if record is None:
                dropped += 1
                continue
            records.append(record)
        if dropped:
            logger.debug("Dropped %d malformed payloads", dropped)
        return records


def normalize(payload: RawSourcePayload) -> Optional[TokenRecord]:
    """Module-level helper using the default adapters."""
    return SourceNormalizer().normalize(payload)
