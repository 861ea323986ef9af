"""Conversion of ledger amounts into the reporting base currency."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from crossledger.backend.app.models.records import MAX_AMOUNT

from .utils import round_half_up

MAX_EXCHANGE_RATE = Decimal(1_000_000)


class MissingExchangeRateError(ValueError):
    """Raised when a foreign-currency amount arrives without a rate."""

    def __init__(self, currency: str, base_currency: str) -> None:
        super().__init__(
            f"An exchange rate from {currency} to {base_currency} is required"
        )
        self.currency = currency
        self.base_currency = base_currency


def parse_exchange_rate(value: Any) -> Decimal:
    """Return ``value`` as a positive :class:`Decimal` exchange rate."""

    if isinstance(value, bool):
        raise ValueError("Exchange rate must be a decimal number")
    if isinstance(value, float):
        value = str(value)
    try:
        rate = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as error:
        raise ValueError(f"Invalid exchange rate: {value!r}") from error
    if not rate.is_finite() or rate <= 0:
        raise ValueError("Exchange rate must be a positive decimal number")
    if rate > MAX_EXCHANGE_RATE:
        raise ValueError(f"Exchange rate must not exceed {MAX_EXCHANGE_RATE}")
    return rate


def normalize_amount(
    amount: int,
    currency: str,
    exchange_rate: Any = None,
    *,
    base_currency: str,
) -> int:
    """Return ``amount`` expressed in minor units of ``base_currency``.

    Base-currency amounts pass through unchanged. Foreign amounts are
    multiplied by ``exchange_rate`` and rounded half-up; a missing rate raises
    :class:`MissingExchangeRateError` rather than assuming parity.
    """

    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError("Amount must be an integer number of minor units")
    if not 0 <= amount <= MAX_AMOUNT:
        raise ValueError(f"Amount must be between 0 and {MAX_AMOUNT} minor units")

    if currency.strip().upper() == base_currency.strip().upper():
        return amount

    if exchange_rate is None or (isinstance(exchange_rate, str) and not exchange_rate.strip()):
        raise MissingExchangeRateError(currency.upper(), base_currency.upper())

    converted = Decimal(amount) * parse_exchange_rate(exchange_rate)
    if converted > MAX_AMOUNT:
        raise ValueError(
            f"Converted amount exceeds {MAX_AMOUNT} minor units of {base_currency.upper()}"
        )
    return round_half_up(converted)


__all__ = [
    "MAX_EXCHANGE_RATE",
    "MissingExchangeRateError",
    "normalize_amount",
    "parse_exchange_rate",
]
