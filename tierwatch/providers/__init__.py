"""REST token sources polled on every refresh cycle."""

from typing import List

from ..config import Settings
from .base import Provider, TokenSource
from .dexscreener import DexScreenerProvider
from .kolscan import KolScanProvider
from .pumpfun import PumpFunProvider
from .solana_stream import SolanaStreamProvider


def build_sources(config: Settings) -> List[TokenSource]:
    """Instantiate the REST sources enabled in ``config``."""
    sources: List[TokenSource] = []
    if config.enable_pumpfun:
        sources.append(PumpFunProvider(base_url=config.pumpfun_base_url))
    if config.enable_solana_stream:
        sources.append(
            SolanaStreamProvider(
                api_token=config.solana_stream_token,
                base_url=config.solana_stream_base_url,
            )
        )
    if config.enable_kolscan:
        sources.append(KolScanProvider(base_url=config.kolscan_base_url))
    if config.enable_dexscreener:
        sources.append(DexScreenerProvider(base_url=config.dexscreener_base_url))
    return sources


__all__ = [
    "Provider",
    "TokenSource",
    "DexScreenerProvider",
    "KolScanProvider",
    "PumpFunProvider",
    "SolanaStreamProvider",
    "build_sources",
]
