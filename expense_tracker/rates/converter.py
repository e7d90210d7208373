"""
Currency Converter

Applies resolved rates to amounts and transactions.

CRITICAL: When no rate can be resolved the amount is reported as
unconverted (None, or the "unconverted" list). A foreign amount is never
passed off as a base-currency amount.
"""

import math
from typing import Optional

import structlog

from expense_tracker.config import normalize_currency_code
from expense_tracker.models.transaction import ConvertedTransaction, Transaction
from expense_tracker.rates.resolver import DateLike, RateResolver
from expense_tracker.services.settings import SettingsProvider


logger = structlog.get_logger(__name__)


class CurrencyConverter:
    """Converts amounts using rates from a RateResolver."""

    def __init__(self, resolver: RateResolver, settings: SettingsProvider):
        self._resolver = resolver
        self._settings = settings

    async def convert_amount(
        self,
        amount: float,
        from_currency: str,
        to_currency: str,
        on: DateLike = None,
    ) -> Optional[float]:
        """
        Convert an amount between two currencies.

        Returns:
            The converted amount, or None when no usable rate exists
        """
        if normalize_currency_code(from_currency) == normalize_currency_code(to_currency):
            return amount

        rate = await self._resolver.resolve_rate(from_currency, to_currency, on)
        if rate is None or not math.isfinite(rate):
            return None
        return amount * rate

    async def _base(self, base_currency: Optional[str]) -> str:
        if base_currency:
            return normalize_currency_code(base_currency)
        return await self._settings.get_base_currency()

    async def convert_transaction(
        self,
        transaction: Transaction,
        base_currency: Optional[str] = None,
    ) -> ConvertedTransaction:
        """Convert at the rate for the day the expense was made."""
        base = await self._base(base_currency)
        converted = await self.convert_amount(
            transaction.amount,
            transaction.currency,
            base,
            transaction.timestamp,
        )
        return ConvertedTransaction(
            transaction=transaction,
            converted_amount=converted,
            base_currency=base,
        )

    async def convert_transactions(
        self,
        transactions: list[Transaction],
        base_currency: Optional[str] = None,
    ) -> list[ConvertedTransaction]:
        base = await self._base(base_currency)
        return [await self.convert_transaction(tx, base) for tx in transactions]

    async def to_base_currency(
        self,
        transactions: list[Transaction],
        base_currency: Optional[str] = None,
    ) -> tuple[list[Transaction], list[Transaction]]:
        """
        Restate transactions in the base currency.

        Returns:
            (converted, unconverted). Converted copies keep their id,
            category, description and timestamp but carry the base currency
            and converted amount. Unconverted are the originals that had no
            usable rate.
        """
        converted: list[Transaction] = []
        unconverted: list[Transaction] = []

        for item in await self.convert_transactions(transactions, base_currency):
            if item.converted_amount is None:
                unconverted.append(item.transaction)
                continue
            converted.append(item.transaction.model_copy(update={
                "amount": item.converted_amount,
                "currency": item.base_currency,
            }))

        if unconverted:
            logger.warning(
                "transactions_not_converted",
                base_currency=await self._base(base_currency),
                count=len(unconverted),
            )
        return converted, unconverted
