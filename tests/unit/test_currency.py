"""Unit coverage for base-currency normalisation."""

from __future__ import annotations

from decimal import Decimal

import pytest

from crossledger.backend.app.models import MAX_AMOUNT
from crossledger.backend.app.services.calculators import (
    MAX_EXCHANGE_RATE,
    MissingExchangeRateError,
    normalize_amount,
    parse_exchange_rate,
)


def test_base_currency_amount_passes_through() -> None:
    assert normalize_amount(12345, "GBP", base_currency="GBP") == 12345
    assert normalize_amount(12345, "gbp", "1.5", base_currency="GBP") == 12345


def test_foreign_amount_is_converted_and_rounded_half_up() -> None:
    assert normalize_amount(10000, "EUR", "0.85", base_currency="GBP") == 8500
    # 101 * 0.845 = 85.345 -> 85
    assert normalize_amount(101, "EUR", "0.845", base_currency="GBP") == 85
    # 10 * 0.85 = 8.5 -> 9
    assert normalize_amount(10, "EUR", Decimal("0.85"), base_currency="GBP") == 9


def test_numeric_rates_are_accepted() -> None:
    assert normalize_amount(10000, "EUR", 0.85, base_currency="GBP") == 8500
    assert normalize_amount(10000, "USD", 1, base_currency="GBP") == 10000


@pytest.mark.parametrize("rate", [None, "", "   "])
def test_missing_rate_for_foreign_currency_is_an_error(rate) -> None:
    with pytest.raises(MissingExchangeRateError) as excinfo:
        normalize_amount(10000, "eur", rate, base_currency="GBP")

    assert excinfo.value.currency == "EUR"
    assert excinfo.value.base_currency == "GBP"
    assert isinstance(excinfo.value, ValueError)


@pytest.mark.parametrize("rate", ["abc", "0", "-1.2", "NaN", "Infinity", True])
def test_invalid_rates_are_rejected(rate) -> None:
    with pytest.raises(ValueError):
        parse_exchange_rate(rate)


def test_amount_must_be_integer_minor_units() -> None:
    with pytest.raises(ValueError):
        normalize_amount(10.5, "GBP", base_currency="GBP")  # type: ignore[arg-type]


def test_rates_above_the_ceiling_are_rejected() -> None:
    assert parse_exchange_rate(MAX_EXCHANGE_RATE) == MAX_EXCHANGE_RATE

    with pytest.raises(ValueError, match="must not exceed"):
        parse_exchange_rate("1E+999999")


@pytest.mark.parametrize("amount", [-1, MAX_AMOUNT + 1, 10**30])
def test_amounts_outside_the_storable_range_are_rejected(amount: int) -> None:
    with pytest.raises(ValueError, match="Amount must be between 0 and"):
        normalize_amount(amount, "GBP", base_currency="GBP")


def test_conversion_cannot_push_an_amount_past_the_bound() -> None:
    assert normalize_amount(MAX_AMOUNT, "EUR", "1", base_currency="GBP") == MAX_AMOUNT

    with pytest.raises(ValueError, match="Converted amount exceeds"):
        normalize_amount(MAX_AMOUNT, "EUR", "1.0000001", base_currency="GBP")
