"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class RateApiSettings(BaseSettings):
    """Remote exchange-rate endpoint settings."""

    model_config = SettingsConfigDict(env_prefix="RATES_")

    base_url: str = "https://api.exchangerate-api.com/v4"
    timeout_seconds: float = 10.0
    max_concurrent_requests: int = 8  # per-day fetches in flight for one series


class CacheSettings(BaseSettings):
    """Time-to-live for the rate and historical-series caches."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    rate_ttl_seconds: int = 30 * 60
    series_ttl_seconds: int = 60 * 60


class StorageSettings(BaseSettings):
    """Key/value persistence backend configuration.

    "memory" keeps everything in-process (lost on exit); "sqlite" persists
    through aiosqlite to db_path.
    """

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    backend: Literal["memory", "sqlite"] = "sqlite"
    db_path: str = "data/fxsync.db"
    capacity_bytes: int = 5 * 1024 * 1024  # reported capacity, not enforced


class SynthesisSettings(BaseSettings):
    """Synthetic fallback data generation.

    The seed makes mock historical series reproducible across runs.
    """

    model_config = SettingsConfigDict(env_prefix="SYNTH_")

    seed: int = 20240101
    point_volatility: float = 0.01  # +-0.5% around the mock rate
    series_volatility: float = 0.02  # +-1% per day for whole-series synthesis


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] | None = None  # falls back to LOG_FORMAT
    rates: RateApiSettings = RateApiSettings()
    cache: CacheSettings = CacheSettings()
    storage: StorageSettings = StorageSettings()
    synthesis: SynthesisSettings = SynthesisSettings()
