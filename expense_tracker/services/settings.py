"""
Settings Provider

The rate resolver needs a few user-editable values at call time: the
preferred base currency, the API key and URL, and a place to record when
rates were last refreshed. This module defines that seam.

DESIGN DECISION: The provider is an injected instance, not a global.
Environment configuration only seeds its initial values.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from expense_tracker.config import Settings, get_settings, normalize_currency_code


class SettingsProvider(ABC):
    """Read access to user settings, plus the refresh timestamp."""

    @abstractmethod
    async def get_base_currency(self) -> str:
        pass

    @abstractmethod
    async def set_base_currency(self, currency: str) -> None:
        pass

    @abstractmethod
    async def get_api_key(self) -> str:
        pass

    @abstractmethod
    async def get_api_base_url(self) -> str:
        pass

    @abstractmethod
    async def get_last_exchange_rate_update(self) -> Optional[datetime]:
        pass

    @abstractmethod
    async def update_last_exchange_rate_update(
        self,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Record a successful refresh (now when timestamp is None)."""
        pass

    async def is_api_configured(self) -> bool:
        return bool((await self.get_api_key()).strip())


class InMemorySettingsProvider(SettingsProvider):
    """
    Settings held in memory for the lifetime of the process.

    Seeded from environment configuration unless values are passed in.
    """

    def __init__(
        self,
        base_currency: Optional[str] = None,
        api_key: Optional[str] = None,
        api_base_url: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        rate_settings = settings.exchange_rate

        self._base_currency = normalize_currency_code(
            base_currency or settings.app.base_currency
        )
        self._api_key = api_key if api_key is not None else rate_settings.api_key
        self._api_base_url = (api_base_url or rate_settings.api_base_url).rstrip("/")
        self._last_exchange_rate_update: Optional[datetime] = None

    async def get_base_currency(self) -> str:
        return self._base_currency

    async def set_base_currency(self, currency: str) -> None:
        self._base_currency = normalize_currency_code(currency)

    async def get_api_key(self) -> str:
        return self._api_key

    async def get_api_base_url(self) -> str:
        return self._api_base_url

    async def get_last_exchange_rate_update(self) -> Optional[datetime]:
        return self._last_exchange_rate_update

    async def update_last_exchange_rate_update(
        self,
        timestamp: Optional[datetime] = None,
    ) -> None:
        self._last_exchange_rate_update = timestamp or datetime.now()
