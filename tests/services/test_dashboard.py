"""
Tests for service wiring, the placeholder generator and the seen-token cache.
"""

import time
import pytest
from datetime import datetime, timezone

from tierwatch.cache import TTLCache
from tierwatch.config import Settings
from tierwatch.core.progression import JsonFileStore
from tierwatch.services.dashboard import TokenDashboard
from tierwatch.services.refresh import DataStatus
from tierwatch.services.token_feed import SyntheticTokenGenerator


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestSyntheticTokenGenerator:

    def test_records_are_labelled(self):
        records = SyntheticTokenGenerator(seed=1).generate(now=NOW)

        assert len(records) == 9
        assert all(r.synthetic for r in records)
        assert all(r.sources == ["synthetic"] for r in records)
        assert all(r.identity.startswith("placeholder-") for r in records)
        assert all("(placeholder)" in r.display_name for r in records)

    def test_seed_is_deterministic(self):
        first = SyntheticTokenGenerator(seed=3).generate(count=4, now=NOW)
        second = SyntheticTokenGenerator(seed=3).generate(count=4, now=NOW)
        assert [r.to_dict() for r in first] == [r.to_dict() for r in second]


class TestTTLCache:

    @pytest.mark.asyncio
    async def test_set_then_get(self):
        cache = TTLCache(default_ttl=60)
        assert await cache.get("mint") is None
        await cache.set("mint", (False, True))
        assert await cache.get("mint") == (False, True)

    @pytest.mark.asyncio
    async def test_expired_entry_is_gone(self, monkeypatch):
        cache = TTLCache(default_ttl=60)
        await cache.set("mint", (False, True))

        later = time.time() + 61
        monkeypatch.setattr("tierwatch.cache.time.time", lambda: later)

        assert await cache.get("mint") is None
        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_evicts_least_recently_used(self):
        cache = TTLCache(default_ttl=60, max_size=2)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")
        await cache.set("c", 3)

        assert await cache.get("b") is None
        assert await cache.get("a") == 1
        assert cache.size() == 2

    @pytest.mark.asyncio
    async def test_clear(self):
        cache = TTLCache()
        await cache.set("a", 1)
        await cache.clear()
        assert cache.size() == 0


class TestTokenDashboard:

    def _config(self, tmp_path, **overrides):
        values = dict(
            redis_url="",
            progression_state_path=tmp_path / "state.json",
            enable_pumpfun=True,
            enable_solana_stream=False,
            enable_kolscan=False,
            enable_dexscreener=False,
            enable_pump_portal_ws=False,
            enable_sse_feed=False,
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)

    def test_from_settings_wires_components(self, tmp_path):
        dashboard = TokenDashboard.from_settings(self._config(tmp_path, enable_pump_portal_ws=True))

        assert isinstance(dashboard.store, JsonFileStore)
        assert [s.name for s in dashboard.sources] == ["pumpfun"]
        assert [f.name for f in dashboard.feeds.feeds] == ["pump_portal"]
        assert dashboard.synthetic is None

    def test_synthetic_fallback_flag(self, tmp_path):
        dashboard = TokenDashboard.from_settings(self._config(tmp_path, enable_synthetic_fallback=True))
        assert dashboard.synthetic is not None
        # Warming up with an empty tracker: placeholders are offered
        assert dashboard.scheduler.data_status == DataStatus.WARMING_UP
        assert len(dashboard.placeholder_tokens()) == 9

    def test_no_placeholder_without_flag(self, tmp_path):
        dashboard = TokenDashboard.from_settings(self._config(tmp_path))
        assert dashboard.placeholder_tokens() is None

    @pytest.mark.asyncio
    async def test_health_reports_persistence_backend(self, tmp_path):
        dashboard = TokenDashboard.from_settings(self._config(tmp_path))
        details = await dashboard.health()

        assert details["persistence"] == {"backend": "file", "last_save_error": None}
        assert details["providers"]["pumpfun"]["status"] == "healthy"
        assert details["push"]["feeds"] == []
        await dashboard.stop()
