"""
Tests for the REST token sources.

Each provider gets an httpx client backed by MockTransport so the request
shape and failure handling can be checked without the network.
"""

import pytest

import httpx

from tierwatch.config import Settings
from tierwatch.core.recovery import ErrorCategory, SourceUnavailableError
from tierwatch.providers import (
    DexScreenerProvider,
    KolScanProvider,
    PumpFunProvider,
    SolanaStreamProvider,
    build_sources,
)
from tierwatch.providers.pumpfun import LISTINGS
from tierwatch.services.token_feed.models import (
    DexScreenerPayload,
    KolScanPayload,
    PumpFunPayload,
    SolanaStreamPayload,
)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestPumpFunProvider:

    @pytest.mark.asyncio
    async def test_fetches_every_listing(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(dict(request.url.params))
            sort = request.url.params["sort"]
            return httpx.Response(200, json=[{"mint": f"{sort}-mint", "usd_market_cap": 1000}])

        provider = PumpFunProvider(base_url="https://pump.test", client=mock_client(handler))
        payloads = await provider.fetch_tokens()

        assert len(payloads) == len(LISTINGS)
        assert all(isinstance(p, PumpFunPayload) for p in payloads)
        assert {p.data["mint"] for p in payloads} == {f"{l['sort']}-mint" for l in LISTINGS}
        assert {params["sort"] for params in seen} == {l["sort"] for l in LISTINGS}
        assert all(params["order"] == "DESC" and params["includeNsfw"] == "false" for params in seen)

    @pytest.mark.asyncio
    async def test_one_failed_listing_is_tolerated(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["sort"] == "reply_count":
                return httpx.Response(500)
            return httpx.Response(200, json={"coins": [{"mint": "A"}]})

        provider = PumpFunProvider(base_url="https://pump.test", client=mock_client(handler))
        payloads = await provider.fetch_tokens()
        assert len(payloads) == 2

    @pytest.mark.asyncio
    async def test_all_listings_failing_raises_source_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, headers={"retry-after": "12"})

        provider = PumpFunProvider(base_url="https://pump.test", client=mock_client(handler))
        with pytest.raises(SourceUnavailableError) as excinfo:
            await provider.fetch_tokens()

        assert excinfo.value.source == "pumpfun"
        assert excinfo.value.category == ErrorCategory.RATE_LIMIT
        assert excinfo.value.retry_after == 12.0


class TestSolanaStreamProvider:

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer jwt-123"
            assert request.url.path == "/v1/tokens/trending"
            return httpx.Response(200, json={"tokens": [{"mint": "S1"}, "junk", {"mint": "S2"}]})

        provider = SolanaStreamProvider(
            api_token="jwt-123", base_url="https://stream.test", client=mock_client(handler)
        )
        payloads = await provider.fetch_tokens()

        assert [p.data["mint"] for p in payloads] == ["S1", "S2"]
        assert all(isinstance(p, SolanaStreamPayload) for p in payloads)
        assert await provider.ready() is True

    @pytest.mark.asyncio
    async def test_missing_token_fails_without_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        provider = SolanaStreamProvider(base_url="https://stream.test", client=mock_client(handler))
        provider.api_token = ""

        assert await provider.ready() is False
        with pytest.raises(SourceUnavailableError) as excinfo:
            await provider.fetch_tokens()
        assert excinfo.value.category == ErrorCategory.VALIDATION

    @pytest.mark.asyncio
    async def test_body_without_token_list(self):
        provider = SolanaStreamProvider(
            api_token="jwt",
            base_url="https://stream.test",
            client=mock_client(lambda request: httpx.Response(200, json={"error": "nope"})),
        )
        with pytest.raises(SourceUnavailableError):
            await provider.fetch_tokens()


class TestKolScanProvider:

    @pytest.mark.asyncio
    async def test_fetches_trending(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["limit"] == "50"
            return httpx.Response(200, json={"tokens": [{"mint": "K1", "social": {"twitter": "t"}}]})

        provider = KolScanProvider(base_url="https://kol.test", client=mock_client(handler))
        payloads = await provider.fetch_tokens()

        assert len(payloads) == 1
        assert isinstance(payloads[0], KolScanPayload)
        assert payloads[0].source == "kolscan"

    @pytest.mark.asyncio
    async def test_invalid_json_is_source_error(self):
        provider = KolScanProvider(
            base_url="https://kol.test",
            client=mock_client(lambda request: httpx.Response(200, content=b"<html>")),
        )
        with pytest.raises(SourceUnavailableError) as excinfo:
            await provider.fetch_tokens()
        assert excinfo.value.category == ErrorCategory.VALIDATION

    @pytest.mark.asyncio
    async def test_connection_error_is_network(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = KolScanProvider(base_url="https://kol.test", client=mock_client(handler))
        with pytest.raises(SourceUnavailableError) as excinfo:
            await provider.fetch_tokens()
        assert excinfo.value.category == ErrorCategory.NETWORK


class TestDexScreenerProvider:

    @pytest.mark.asyncio
    async def test_nothing_watched_means_no_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        provider = DexScreenerProvider(base_url="https://dex.test", client=mock_client(handler))
        assert await provider.fetch_tokens(watch=[]) == []

    @pytest.mark.asyncio
    async def test_batches_and_keeps_most_liquid_solana_pair(self):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={"pairs": [
                {"chainId": "solana", "baseToken": {"address": "M0"}, "liquidity": {"usd": 100}},
                {"chainId": "solana", "baseToken": {"address": "M0"}, "liquidity": {"usd": 900}},
                {"chainId": "ethereum", "baseToken": {"address": "M1"}, "liquidity": {"usd": 5000}},
            ]})

        watch = [f"M{i}" for i in range(31)]
        provider = DexScreenerProvider(base_url="https://dex.test", client=mock_client(handler))
        payloads = await provider.fetch_tokens(watch=watch)

        assert sorted(paths) == [
            "/latest/dex/tokens/" + ",".join(watch[:30]),
            "/latest/dex/tokens/M30",
        ]
        assert len(payloads) == 1
        assert isinstance(payloads[0], DexScreenerPayload)
        assert payloads[0].data["liquidity"]["usd"] == 900


class TestBuildSources:

    def test_enabled_sources_only(self):
        config = Settings(
            enable_pumpfun=True,
            enable_solana_stream=False,
            enable_kolscan=False,
            enable_dexscreener=True,
        )
        assert [source.name for source in build_sources(config)] == ["pumpfun", "dexscreener"]
