"""
Tests for the tier classifier.
"""

import pytest
from datetime import datetime, timedelta, timezone

from tierwatch.core.progression import Tier, classify, classify_relaxed
from tierwatch.core.progression.classifier import CapBand
from tierwatch.services.token_feed.models import TokenRecord


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_record(identity="tok", market_cap=None, age_hours=1.0, engagement=None):
    return TokenRecord(
        identity=identity,
        observed_at=NOW,
        created_at=NOW - timedelta(hours=age_hours) if age_hours is not None else None,
        market_cap_usd=market_cap,
        engagement_count=engagement,
    )


class TestClassify:
    """Strict admission rules."""

    def test_small_young_token_is_gamble_box(self):
        record = make_record(market_cap=3_000, age_hours=2, engagement=5)
        assert classify(record, NOW) == Tier.GAMBLE_BOX

    def test_mid_cap_engaged_token_is_fastest_runner(self):
        record = make_record(market_cap=20_000, age_hours=10, engagement=16)
        assert classify(record, NOW) == Tier.FASTEST_RUNNER

    def test_large_cap_engaged_token_is_highest_gainer(self):
        record = make_record(market_cap=80_000, age_hours=30, engagement=31)
        assert classify(record, NOW) == Tier.HIGHEST_GAINER

    def test_fastest_runner_band_is_inclusive(self):
        assert classify(make_record(market_cap=5_000, engagement=20), NOW) == Tier.FASTEST_RUNNER
        assert classify(make_record(market_cap=50_000, engagement=40), NOW) == Tier.FASTEST_RUNNER

    def test_engagement_threshold_is_exclusive(self):
        assert classify(make_record(market_cap=20_000, engagement=15), NOW) is None
        assert classify(make_record(market_cap=90_000, engagement=30), NOW) is None

    def test_age_limits(self):
        assert classify(make_record(market_cap=3_000, age_hours=12), NOW) is None
        assert classify(make_record(market_cap=20_000, age_hours=24, engagement=99), NOW) is None
        assert classify(make_record(market_cap=90_000, age_hours=48, engagement=99), NOW) is None

    def test_missing_market_cap_is_unclassified(self):
        assert classify(make_record(market_cap=None, engagement=100), NOW) is None

    def test_missing_created_at_is_unclassified(self):
        assert classify(make_record(market_cap=3_000, age_hours=None), NOW) is None

    def test_missing_engagement_blocks_engagement_tiers(self):
        assert classify(make_record(market_cap=20_000, engagement=None), NOW) is None


class TestClassifyRelaxed:
    """Backfill band used only when strict candidates run out."""

    def test_highest_gainer_relaxes_to_30k(self):
        record = make_record(market_cap=35_000, age_hours=30, engagement=40)
        # 30h is past FastestRunner's age limit so it is strictly unclassified
        assert classify(record, NOW) is None
        assert classify_relaxed(record, Tier.HIGHEST_GAINER, NOW) is True

    def test_fastest_runner_relaxed_band(self):
        low = make_record(market_cap=3_500, age_hours=13, engagement=20)
        high = make_record(market_cap=70_000, age_hours=10, engagement=20)
        assert classify_relaxed(low, Tier.FASTEST_RUNNER, NOW) is True
        # 70k strictly classifies as HighestGainer only with engagement > 30
        assert classify(high, NOW) is None
        assert classify_relaxed(high, Tier.FASTEST_RUNNER, NOW) is True

    def test_gamble_box_relaxes_to_7500(self):
        record = make_record(market_cap=6_000, age_hours=3, engagement=2)
        assert classify(record, NOW) is None
        assert classify_relaxed(record, Tier.GAMBLE_BOX, NOW) is True

    def test_never_borrows_a_strictly_classified_record(self):
        record = make_record(market_cap=3_000, age_hours=2, engagement=50)
        assert classify(record, NOW) == Tier.GAMBLE_BOX
        assert classify_relaxed(record, Tier.FASTEST_RUNNER, NOW) is False
        assert classify_relaxed(record, Tier.GAMBLE_BOX, NOW) is True

    def test_relaxed_keeps_age_and_engagement(self):
        record = make_record(market_cap=40_000, age_hours=60, engagement=100)
        assert classify_relaxed(record, Tier.HIGHEST_GAINER, NOW) is False


class TestCapBand:

    @pytest.mark.parametrize(
        "value,expected",
        [(4_999.0, False), (5_000.0, True), (50_000.0, True), (50_000.01, False)],
    )
    def test_inclusive_band(self, value, expected):
        band = CapBand(low=5_000, high=50_000, low_inclusive=True, high_inclusive=True)
        assert band.contains(value) is expected

    def test_open_band(self):
        band = CapBand(low=50_000)
        assert band.contains(50_000) is False
        assert band.contains(1e12) is True
