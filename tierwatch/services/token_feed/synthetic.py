"""
Placeholder tokens for demo mode.

Only produced when ``ENABLE_SYNTHETIC_FALLBACK`` is on and every source failed.
Every record is flagged ``synthetic=True`` and is never handed to the
progression tracker.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .models import SocialLinks, SourceKind, TokenRecord, WindowedMetric

_NAMES = [
    ("Bonk Killer", "BKILL"),
    ("Ape Escape", "ESCAPE"),
    ("Solana Wizard", "WIZARD"),
    ("Pump Destroyer", "DESTROY"),
    ("Moon Mission", "MOON"),
    ("Diamond Hands", "DHANDS"),
    ("Degen Dragon", "DDRAG"),
    ("Rug Resistant", "NORUG"),
]


class SyntheticTokenGenerator:
    """Seedable generator of clearly labelled placeholder records."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def generate(self, count: int = 9, now: Optional[datetime] = None) -> List[TokenRecord]:
        now = now or datetime.now(timezone.utc)
        records: List[TokenRecord] = []
        for index in range(count):
            name, symbol = _NAMES[index % len(_NAMES)]
            records.append(
                TokenRecord(
                    identity=f"placeholder-{index:03d}",
                    observed_at=now,
                    sources=[SourceKind.SYNTHETIC.value],
                    display_name=f"{name} (placeholder)",
                    symbol=symbol,
                    description="Placeholder data, not a live token",
                    created_at=now - timedelta(minutes=self._rng.randint(1, 24 * 60)),
                    social_links=SocialLinks(),
                    market_cap_usd=float(self._rng.randint(1_000, 1_000_000)),
                    engagement_count=self._rng.randint(0, 500),
                    volume=WindowedMetric(h24=float(self._rng.randint(1_000, 250_000))),
                    price_change=WindowedMetric(h24=round(self._rng.uniform(-50.0, 150.0), 2)),
                    synthetic=True,
                )
            )
        return records
