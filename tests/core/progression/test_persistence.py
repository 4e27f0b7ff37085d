"""
Tests for progression snapshot storage.
"""

import json
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from tierwatch.config import Settings
from tierwatch.core.progression import (
    STATE_KEY,
    JsonFileStore,
    MemoryStore,
    ProgressionState,
    RedisStore,
    RemovalReason,
    Tier,
    TrackedToken,
    advance,
    build_store,
)
from tierwatch.core.recovery import PersistenceError
from tierwatch.services.token_feed.models import Liquidity, SocialLinks, TokenRecord, WindowedMetric


T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def sample_state() -> ProgressionState:
    record = TokenRecord(
        identity="So1aNaMint",
        observed_at=T0,
        sources=["pumpfun", "dexscreener"],
        display_name="Moon Mission",
        symbol="MOON",
        created_at=T0 - timedelta(hours=2),
        social_links=SocialLinks(twitter="https://x.com/moon"),
        market_cap_usd=3_000.0,
        engagement_count=12,
        volume=WindowedMetric(h1=120.0, h24=5_000.0),
        price_change=WindowedMetric(h24=-12.5),
        liquidity=Liquidity(usd=900.0),
        is_complete=False,
        is_live=True,
    )
    state, _ = advance(ProgressionState.empty(), [record], T0)

    archived = TrackedToken(
        record=TokenRecord(identity="gone", observed_at=T0, market_cap_usd=100.0),
        tier=Tier.FASTEST_RUNNER,
        first_observed_at=T0 - timedelta(days=11),
        first_observed_market_cap=10_000.0,
        current_gain_multiple=0.01,
        peak_gain_multiple=2.25,
        days_since_first_observed=11.0,
        promoted_at=T0 - timedelta(days=10),
        promotion_count=1,
        removed_at=T0,
        removal_reason=RemovalReason.UNDERPERFORMED,
    )
    state.archive.append(archived)
    return state


class TestSerialization:

    def test_state_round_trips_losslessly(self):
        state = sample_state()
        restored = ProgressionState.from_dict(json.loads(json.dumps(state.to_dict())))

        assert restored.to_dict() == state.to_dict()
        token = restored.roster(Tier.GAMBLE_BOX)[0]
        assert token.first_observed_at == T0
        assert token.record.created_at == T0 - timedelta(hours=2)
        assert token.record.volume.h24 == 5_000.0
        assert restored.archive[0].removal_reason == RemovalReason.UNDERPERFORMED
        assert restored.archive[0].peak_gain_multiple == 2.25


class TestMemoryStore:

    @pytest.mark.asyncio
    async def test_empty_store_loads_none(self):
        assert await MemoryStore().load() is None

    @pytest.mark.asyncio
    async def test_corrupt_payload_raises_persistence_error(self):
        with pytest.raises(PersistenceError):
            await MemoryStore('{"rosters": {"gambleBox": [{"tier": "gambleBox"}]}}').load()


class TestJsonFileStore:

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path):
        path = tmp_path / "state" / "progression.json"
        store = JsonFileStore(path)
        state = sample_state()

        await store.save(state)
        loaded = await store.load()

        assert loaded.to_dict() == state.to_dict()
        document = json.loads(path.read_text())
        assert list(document) == [STATE_KEY]
        assert not path.with_suffix(".json.tmp").exists()

    @pytest.mark.asyncio
    async def test_missing_file_loads_none(self, tmp_path):
        assert await JsonFileStore(tmp_path / "absent.json").load() is None

    @pytest.mark.asyncio
    async def test_unreadable_file_raises(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{oops")
        with pytest.raises(PersistenceError):
            await JsonFileStore(path).load()


class TestRedisStore:

    @pytest.mark.asyncio
    async def test_save_and_load_use_fixed_key(self):
        client = MagicMock()
        client.set = AsyncMock()
        store = RedisStore(client=client)
        state = sample_state()

        await store.save(state)
        key, payload = client.set.call_args.args
        assert key == STATE_KEY

        client.get = AsyncMock(return_value=payload)
        loaded = await store.load()
        client.get.assert_awaited_once_with(STATE_KEY)
        assert loaded.to_dict() == state.to_dict()

    @pytest.mark.asyncio
    async def test_connection_failure_raises_persistence_error(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("refused"))
        store = RedisStore(client=client)

        with pytest.raises(PersistenceError) as excinfo:
            await store.load()
        assert excinfo.value.context.details == {"backend": "redis"}


class TestBuildStore:

    def test_file_store_by_default(self, tmp_path):
        config = Settings(redis_url="", progression_state_path=tmp_path / "state.json")
        store = build_store(config)
        assert isinstance(store, JsonFileStore)
        assert store.path == tmp_path / "state.json"

    def test_redis_store_when_url_set(self):
        config = Settings(redis_url="redis://localhost:6379/0")
        assert isinstance(build_store(config), RedisStore)
