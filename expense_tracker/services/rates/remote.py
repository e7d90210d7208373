"""
Remote Exchange Rate Source (exchangerate-api.com v6)

DESIGN DECISION: One request per base currency.
GET {base_url}/{api_key}/latest/{base} returns the rate to EVERY supported
currency, so a single round trip gives a complete rate set for that base.
Any other pair is then derived locally by the resolver.

This service handles:
1. Input checks (blank key or base never reach the network)
2. The HTTP call, with a timeout
3. Parsing and validating the payload into LatestRates

CRITICAL: This layer never retries. A failure is raised as a typed error
and the caller decides what to do (the resolver turns it into a
RefreshResult; retry policy belongs to the UI).
"""

from typing import Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from expense_tracker.config import get_settings, normalize_currency_code
from expense_tracker.models.rates import LatestRates


logger = structlog.get_logger(__name__)


class RateSourceError(Exception):
    """Base exception for remote rate source errors."""
    pass


class InvalidInputError(RateSourceError):
    """Request rejected before any network call (blank key or base)."""
    pass


class RemoteFailureError(RateSourceError):
    """Network, HTTP, timeout or payload failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ExchangeRateApiResponse(BaseModel):
    """
    Body of a successful latest-rates response.

    Example:
        {
          "result": "success",
          "base_code": "USD",
          "time_last_update_utc": "Fri, 01 Nov 2024 00:00:01 +0000",
          "conversion_rates": {"USD": 1, "EUR": 0.92, "GBP": 0.77}
        }

    Error bodies carry "result": "error" and an "error-type" such as
    "invalid-key" or "quota-reached".
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    result: str
    base_code: Optional[str] = None
    time_last_update_utc: Optional[str] = None
    time_last_update_unix: Optional[int] = None
    conversion_rates: dict[str, float] = Field(default_factory=dict)
    error_type: Optional[str] = Field(default=None, alias="error-type")

    def is_success(self) -> bool:
        return self.result == "success"


class RemoteRateSource:
    """
    Client for the latest-rates endpoint.

    Pass an httpx.AsyncClient to share a connection pool (or a mock
    transport in tests); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = get_settings().exchange_rate
        self._timeout = timeout if timeout is not None else self._settings.timeout_seconds
        self._client = client

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url)

    async def fetch_latest(
        self,
        api_key: str,
        base_currency: str,
        api_base_url: Optional[str] = None,
    ) -> LatestRates:
        """
        Fetch every rate for base_currency.

        Raises:
            InvalidInputError: blank API key or base currency
            RemoteFailureError: anything that went wrong after that
        """
        if not api_key or not api_key.strip():
            raise InvalidInputError("API key cannot be empty")
        if not base_currency or not base_currency.strip():
            raise InvalidInputError("Base currency cannot be empty")

        base = base_currency.strip().upper()
        base_url = (api_base_url or self._settings.api_base_url).rstrip("/")
        url = f"{base_url}/{api_key.strip()}/latest/{base}"

        try:
            response = await self._get(url)
        except httpx.TimeoutException as e:
            logger.warning("rate_fetch_timeout", base_currency=base, error=str(e))
            raise RemoteFailureError(
                "Request timeout: The API server took too long to respond"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("rate_fetch_network_error", base_currency=base, error=str(e))
            raise RemoteFailureError(f"Network error: {e}") from e

        if response.status_code != 200:
            detail = self._error_detail(response)
            logger.warning(
                "rate_fetch_http_error",
                base_currency=base,
                status_code=response.status_code,
                detail=detail,
            )
            raise RemoteFailureError(
                f"API returned status {response.status_code}: {detail}",
                status_code=response.status_code,
            )

        return self._parse(response, base)

    def _error_detail(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase or "unknown error"
        if isinstance(body, dict) and body.get("error-type"):
            return str(body["error-type"])
        return response.reason_phrase or "unknown error"

    def _parse(self, response: httpx.Response, base: str) -> LatestRates:
        try:
            payload = ExchangeRateApiResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning("rate_fetch_malformed_payload", base_currency=base, error=str(e))
            raise RemoteFailureError(
                f"Failed to parse API response: Invalid JSON format. {e}"
            ) from e

        if not payload.is_success():
            reason = payload.error_type or payload.result
            raise RemoteFailureError(f"API returned error: {reason}")

        if not payload.conversion_rates:
            raise RemoteFailureError("Failed to parse API response: no conversion rates")

        rates = {}
        for code, rate in payload.conversion_rates.items():
            try:
                target = normalize_currency_code(code)
            except ValueError:
                target = None
            if target is None or rate <= 0:
                logger.warning("rate_fetch_skipped_rate", target_currency=code, rate=rate)
                continue
            rates[target] = rate

        try:
            return LatestRates(
                base_currency=payload.base_code or base,
                as_of=payload.time_last_update_utc,
                rates=rates,
            )
        except ValidationError as e:
            raise RemoteFailureError(f"Failed to parse API response: {e}") from e
