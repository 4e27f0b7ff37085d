"""
Token Feed

Raw source payloads, the canonical token record, normalization and
cross-source aggregation.
"""

from .models import (
    DEFAULT_TOTAL_SUPPLY,
    DexScreenerPayload,
    KolScanPayload,
    Liquidity,
    PumpFunPayload,
    PumpPortalPayload,
    PushEventType,
    RawSourcePayload,
    SocialLinks,
    SolanaStreamPayload,
    SourceKind,
    SsePayload,
    TokenRecord,
    WindowedMetric,
)
from .normalizer import PumpPortalNormalizer, SourceNormalizer, normalize
from .aggregator import (
    AggregationResult,
    SourceOutcome,
    TokenAggregator,
    merge_all,
    merge_records,
    rank_records,
)
from .synthetic import SyntheticTokenGenerator

__all__ = [
    "DEFAULT_TOTAL_SUPPLY",
    "DexScreenerPayload",
    "KolScanPayload",
    "Liquidity",
    "PumpFunPayload",
    "PumpPortalPayload",
    "PushEventType",
    "RawSourcePayload",
    "SocialLinks",
    "SolanaStreamPayload",
    "SourceKind",
    "SsePayload",
    "TokenRecord",
    "WindowedMetric",
    "PumpPortalNormalizer",
    "SourceNormalizer",
    "normalize",
    "AggregationResult",
    "SourceOutcome",
    "TokenAggregator",
    "merge_all",
    "merge_records",
    "rank_records",
    "SyntheticTokenGenerator",
]
