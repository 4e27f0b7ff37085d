from tierwatch.config import Settings


def test_solana_stream_token_alias(monkeypatch):
    """SolanaStream token should load from legacy JWT aliases when present."""

    monkeypatch.setenv("SOLANA_STREAM_TOKEN", "")
    monkeypatch.setenv("SOLANASTREAM_JWT", "alias-from-legacy")
    monkeypatch.delenv("SOLANA_STREAM_JWT", raising=False)

    settings = Settings(_env_file=None)

    assert settings.solana_stream_token == "alias-from-legacy"
    assert settings.has_solana_stream_token is True


def test_solana_stream_token_direct_env(monkeypatch):
    """Environment-provided token remains the primary source."""

    monkeypatch.setenv("SOLANA_STREAM_TOKEN", "primary-token")
    monkeypatch.setenv("SOLANASTREAM_JWT", "alias-from-legacy")

    settings = Settings(_env_file=None)

    assert settings.solana_stream_token == "primary-token"


def test_progression_defaults(monkeypatch):
    """Tier capacity, featured slots and archive bound default to the documented values."""

    for name in ("TIER_CAPACITY", "FEATURED_SLOTS", "ARCHIVE_LIMIT", "REFRESH_INTERVAL_SECONDS", "REDIS_URL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.tier_capacity == 10
    assert settings.featured_slots == 3
    assert settings.archive_limit == 100
    assert settings.refresh_interval_seconds == 30.0
    assert settings.has_redis is False
    assert settings.enable_synthetic_fallback is False


def test_redis_url_from_env(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")

    settings = Settings(_env_file=None)

    assert settings.has_redis is True
