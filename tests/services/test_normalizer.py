"""
Tests for source normalization

Each upstream shape maps onto TokenRecord with unknown fields left as None.
"""

import pytest
from datetime import datetime, timezone

from tierwatch.services.token_feed.models import (
    DEFAULT_TOTAL_SUPPLY,
    DexScreenerPayload,
    KolScanPayload,
    PumpFunPayload,
    PumpPortalPayload,
    PushEventType,
    SolanaStreamPayload,
    SsePayload,
)
from tierwatch.services.token_feed.normalizer import (
    SourceNormalizer,
    normalize,
    to_datetime,
    to_float,
    to_signed_float,
)


OBSERVED = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestCoercion:

    @pytest.mark.parametrize(
        "value,expected",
        [
            (12, 12.0),
            ("1,500.5", 1500.5),
            (None, None),
            (True, None),
            ("abc", None),
            (float("nan"), None),
            (float("inf"), None),
            (-5, None),
        ],
    )
    def test_to_float(self, value, expected):
        assert to_float(value) == expected

    def test_signed_float_keeps_negatives(self):
        assert to_signed_float(-12.5) == -12.5
        assert to_signed_float("-3") == -3.0
        assert to_signed_float("x") is None

    def test_timestamps(self):
        expected = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        seconds = expected.timestamp()
        assert to_datetime(seconds) == expected
        assert to_datetime(seconds * 1000) == expected
        assert to_datetime("2026-03-01T12:00:00Z") == expected
        assert to_datetime("2026-03-01T12:00:00") == expected
        assert to_datetime("yesterday") is None
        assert to_datetime(0) is None


class TestAdapters:

    def test_pumpfun_coin(self):
        payload = PumpFunPayload(
            data={
                "mint": "MintA",
                "name": "Bonk Killer",
                "symbol": "BKILL",
                "created_timestamp": int(OBSERVED.timestamp() * 1000),
                "usd_market_cap": 234000,
                "reply_count": 1456,
                "complete": False,
                "is_currently_live": True,
                "twitter": "https://twitter.com/bonkkiller",
            },
            observed_at=OBSERVED,
        )
        record = normalize(payload)

        assert record.identity == "MintA"
        assert record.sources == ["pumpfun"]
        assert record.created_at == OBSERVED
        assert record.market_cap_usd == 234000.0
        assert record.engagement_count == 1456
        assert record.total_supply is None
        assert record.supply == DEFAULT_TOTAL_SUPPLY
        assert record.social_links.twitter == "https://twitter.com/bonkkiller"
        assert record.social_links.telegram is None
        assert record.is_complete is False
        assert record.is_live is True
        assert record.volume is None

    def test_unknown_numbers_stay_absent(self):
        record = normalize(PumpFunPayload(data={"mint": "M", "usd_market_cap": "n/a", "reply_count": None}))
        assert record.market_cap_usd is None
        assert record.engagement_count is None

    def test_solana_stream_holders_drive_engagement(self):
        payload = SolanaStreamPayload(
            data={
                "mint": "MintB",
                "symbol": "WIZ",
                "marketCap": "45600",
                "holders": 88,
                "createdAt": "2026-03-01T11:00:00Z",
                "liquidity": 1200,
                "priceChange24h": -4.5,
            }
        )
        record = normalize(payload)
        assert record.engagement_count == 88
        assert record.holders == 88
        assert record.liquidity.usd == 1200.0
        assert record.price_change.h24 == -4.5
        assert record.created_at == datetime(2026, 3, 1, 11, 0, tzinfo=timezone.utc)

    def test_kolscan_nested_social_and_metrics(self):
        payload = KolScanPayload(
            data={
                "mint": "MintC",
                "marketCap": 9000,
                "social": {"telegram": "https://t.me/c"},
                "metrics": {"liquidity": 500, "fdv": 12000},
            }
        )
        record = normalize(payload)
        assert record.social_links.telegram == "https://t.me/c"
        assert record.fdv_usd == 12000.0
        assert record.liquidity.usd == 500.0

    def test_dexscreener_pair(self):
        payload = DexScreenerPayload(
            data={
                "chainId": "solana",
                "baseToken": {"address": "MintD", "name": "Dex Token", "symbol": "DEX"},
                "marketCap": 70000,
                "volume": {"m5": 10, "h1": 100, "h24": 2400},
                "priceChange": {"h1": -3.2, "h24": 15},
                "liquidity": {"usd": 8000, "base": 1e6, "quote": 40},
                "info": {
                    "socials": [{"type": "twitter", "url": "https://x.com/dex"}],
                    "websites": [{"label": "Website", "url": "https://dex.example"}],
                },
            }
        )
        record = normalize(payload)
        assert record.identity == "MintD"
        assert record.market_cap_usd == 70000.0
        assert record.volume.h24 == 2400.0
        assert record.price_change.h1 == -3.2
        assert record.liquidity.quote == 40.0
        assert record.social_links.twitter == "https://x.com/dex"
        assert record.social_links.website == "https://dex.example"

    def test_pump_portal_new_token_uses_sol_price(self):
        payload = PumpPortalPayload(
            data={"mint": "MintE", "name": "Fresh", "symbol": "FRSH", "marketCapSol": 30},
            observed_at=OBSERVED,
            event=PushEventType.NEW_TOKEN,
        )
        record = SourceNormalizer(sol_price_usd=150.0).normalize(payload)
        assert record.market_cap_usd == 4500.0
        assert record.created_at == OBSERVED
        assert record.is_complete is False
        assert record.is_live is True

    def test_pump_portal_without_sol_price_leaves_cap_unknown(self):
        payload = PumpPortalPayload(data={"mint": "MintE", "marketCapSol": 30})
        assert normalize(payload).market_cap_usd is None

    def test_pump_portal_migration_marks_complete(self):
        payload = PumpPortalPayload(data={"mint": "MintF"}, event=PushEventType.MIGRATION)
        record = normalize(payload)
        assert record.is_complete is True
        assert record.is_live is False
        assert record.created_at is None

    def test_sse_batch_item_uses_pumpfun_shape(self):
        payload = SsePayload(data={"mint": "MintG", "usd_market_cap": 1000}, source_name="sse:feed.example")
        record = normalize(payload)
        assert record.market_cap_usd == 1000.0
        assert record.sources == ["sse:feed.example"]


class TestMalformedPayloads:

    def test_missing_identity_returns_none(self):
        assert normalize(PumpFunPayload(data={"name": "no mint"})) is None
        assert normalize(DexScreenerPayload(data={"baseToken": {}})) is None

    def test_non_mapping_data_returns_none(self):
        assert normalize(KolScanPayload(data=["not", "a", "dict"])) is None

    def test_batch_drops_bad_records(self):
        payloads = [
            PumpFunPayload(data={"mint": "ok"}),
            PumpFunPayload(data={"mint": ""}),
            PumpFunPayload(data={}),
        ]
        records = SourceNormalizer().normalize_batch(payloads)
        assert [r.identity for r in records] == ["ok"]

    @pytest.mark.parametrize("socials,websites", [(5, None), (None, True), ("twitter", 7)])
    def test_dexscreener_non_list_links_are_ignored(self, socials, websites):
        payload = DexScreenerPayload(
            data={
                "baseToken": {"address": "MintD"},
                "marketCap": 1200,
                "info": {"socials": socials, "websites": websites},
            }
        )
        record = normalize(payload)
        assert record.identity == "MintD"
        assert record.market_cap_usd == 1200.0
        assert record.social_links.twitter is None
        assert record.social_links.website is None

    def test_batch_drops_record_whose_adapter_raises(self, monkeypatch):
        normalizer = SourceNormalizer()

        def explode(payload):
            raise AttributeError("unexpected shape")

        monkeypatch.setitem(normalizer._adapters, KolScanPayload, explode)
        payloads = [
            PumpFunPayload(data={"mint": "ok"}),
            KolScanPayload(data={"mint": "broken"}),
            PumpFunPayload(data={"mint": "also-ok"}),
        ]
        records = normalizer.normalize_batch(payloads)
        assert [r.identity for r in records] == ["ok", "also-ok"]

    def test_unknown_variant_is_a_programming_error(self):
        with pytest.raises(TypeError):
            SourceNormalizer().normalize(object())
