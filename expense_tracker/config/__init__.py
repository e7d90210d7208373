"""Configuration package."""

from expense_tracker.config.settings import (
    AppSettings,
    ExchangeRateSettings,
    Settings,
    StorageSettings,
    get_settings,
    normalize_currency_code,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ExchangeRateSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "normalize_currency_code",
    "validate_all_settings",
]
