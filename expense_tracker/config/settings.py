"""
Configuration Management for Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The exchange rate API key and the preferred base currency are the only
values a user normally touches; everything else has a working default.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def normalize_currency_code(value: str) -> str:
    """Upper-case and validate a three-letter ISO 4217 code."""
    code = (value or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError(
            f"Invalid currency code: {value!r}. Expected a 3-letter ISO 4217 code."
        )
    return code


class ExchangeRateSettings(BaseSettings):
    """Remote exchange rate service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXCHANGE_RATE_",
        extra="ignore"
    )

    api_key: str = Field(
        default="",
        description="API key for exchangerate-api.com (blank = not configured)"
    )
    api_base_url: str = Field(
        default="https://v6.exchangerate-api.com/v6",
        description="Base URL of the exchange rate API"
    )
    timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="HTTP timeout for a rate refresh"
    )
    refresh_interval_hours: int = Field(
        default=24,
        ge=1,
        description="Cached rates older than this are stale"
    )
    retention_days: int = Field(
        default=30,
        ge=1,
        description="Cached rates dated before today minus this are pruned"
    )

    @field_validator('api_base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class StorageSettings(BaseSettings):
    """Local persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="sqlite",
        pattern="^(memory|sqlite)$",
        description="Storage backend to use"
    )
    sqlite_path: str = Field(
        default="expense_tracker.db",
        description="Path to the SQLite database file"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )

    # Currency
    base_currency: str = Field(
        default="USD",
        description="Preferred base currency for reports and conversion"
    )

    @field_validator('base_currency')
    @classmethod
    def validate_base_currency(cls, v: str) -> str:
        return normalize_currency_code(v)


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def exchange_rate(self) -> ExchangeRateSettings:
        return ExchangeRateSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing failures. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("exchange_rate", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    if results.get("exchange_rate"):
        results["exchange_rate_api_configured"] = bool(
            settings.exchange_rate.api_key.strip()
        )

    return results
