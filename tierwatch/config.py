import os

from pathlib import Path
from typing import Any, List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Ensure we pick up legacy environment variable aliases."""

        super().model_post_init(__context)

        if not self.solana_stream_token:
            fallback = os.getenv("SOLANASTREAM_JWT") or os.getenv("SOLANA_STREAM_JWT")
            if fallback:
                object.__setattr__(self, "solana_stream_token", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="auto", description="json, console, or auto (console at DEBUG)")

    # Refresh Loop
    refresh_interval_seconds: float = Field(
        default=30.0,
        ge=1.0,
        description="Seconds between scheduled refresh cycles",
    )
    fetch_timeout_seconds: float = Field(
        default=12.0,
        ge=1.0,
        le=60.0,
        description="Upper bound for a single upstream fetch before it counts as failed",
    )
    max_backoff_multiplier: int = Field(
        default=5,
        ge=1,
        description="Cap on interval stretching after consecutive failed cycles",
    )
    seen_token_ttl_seconds: int = Field(
        default=3600,
        description="How long a pushed identity counts as already seen",
    )

    # Progression
    tier_capacity: int = Field(default=10, ge=1, description="Maximum tracked tokens per tier")
    featured_slots: int = Field(default=3, ge=1, description="Featured display slots per tier")
    archive_limit: int = Field(default=100, ge=0, description="Removed tokens kept in the archive")

    # Persistence
    progression_state_path: Path = Field(
        default=BASE_DIR / "data" / "progression_state.json",
        description="JSON file used for the progression snapshot when Redis is not configured",
    )
    redis_url: str = Field(
        default="",
        description="Redis connection string used for the progression snapshot",
    )

    # Provider Toggles
    enable_pumpfun: bool = Field(default=True, description="Enable pump.fun REST provider")
    enable_solana_stream: bool = Field(default=False, description="Enable SolanaStream REST provider")
    enable_kolscan: bool = Field(default=True, description="Enable KolScan REST provider")
    enable_dexscreener: bool = Field(default=True, description="Enable DexScreener enrichment for tracked tokens")
    enable_pump_portal_ws: bool = Field(default=True, description="Enable PumpPortal websocket push feed")
    enable_sse_feed: bool = Field(default=False, description="Enable server-sent events push feed")

    pumpfun_base_url: str = Field(default="https://frontend-api.pump.fun", description="pump.fun frontend API")
    solana_stream_base_url: str = Field(default="https://api.solanastream.xyz", description="SolanaStream API")
    solana_stream_token: str = Field(
        default="",
        description="Bearer token for SolanaStream",
        validation_alias=AliasChoices("solana_stream_token", "SOLANA_STREAM_TOKEN"),
    )
    kolscan_base_url: str = Field(default="https://api.kolscan.io", description="KolScan API")
    dexscreener_base_url: str = Field(default="https://api.dexscreener.com", description="DexScreener API")
    pump_portal_ws_url: str = Field(default="wss://pumpportal.fun/api/data", description="PumpPortal websocket")
    sse_feed_urls: List[str] = Field(
        default_factory=list,
        description="Server-sent event endpoints streaming token batches",
    )
    sol_price_usd: Optional[float] = Field(
        default=None,
        gt=0,
        description="SOL/USD used to estimate market cap from websocket events quoted in SOL",
    )

    # Reconnect Policy
    reconnect_max_attempts: int = Field(default=5, ge=1, description="Reconnect attempts before failing over")
    reconnect_initial_delay_seconds: float = Field(default=1.0, description="First reconnect delay")
    reconnect_max_delay_seconds: float = Field(default=30.0, description="Ceiling for reconnect delay")

    # Feature Flags
    enable_synthetic_fallback: bool = Field(
        default=False,
        description="Serve clearly labelled placeholder tokens when every source fails",
    )

    @property
    def has_redis(self) -> bool:
        return bool(self.redis_url)

    @property
    def has_solana_stream_token(self) -> bool:
        return bool(self.solana_stream_token)


# Global settings instance
settings = Settings()
