"""Utility helpers for calculator modules."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from crossledger.backend.config.rule_config import WageTaxBracket

MINOR_UNITS_PER_MAJOR = 100
_CENT = Decimal("0.01")


class BracketSlice(NamedTuple):
    """Portion of taxable income that fell into a single bracket."""

    threshold: int
    upper: int | None
    rate: Decimal
    amount: int
    tax: int


def round_half_up(value: Decimal) -> int:
    """Round ``value`` to a whole number of minor units, halves away from zero."""

    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def apply_rate(amount: int, rate: Decimal) -> int:
    """Return ``amount * rate`` rounded half-up to whole minor units."""

    return round_half_up(Decimal(amount) * rate)


def to_major_units(amount: int) -> Decimal:
    """Convert integer minor units (cents/pence) to a two-place decimal."""

    return (Decimal(amount) / MINOR_UNITS_PER_MAJOR).quantize(_CENT)


def format_percentage(value: Decimal | float) -> str:
    """Return a human-readable percentage label for ``value``."""

    percentage = Decimal(str(value)) * 100
    if percentage == percentage.to_integral_value():
        return f"{int(percentage)}%"
    return f"{percentage.normalize():f}%"


def allocate_progressive_tax(
    taxable_income: int, brackets: Sequence[WageTaxBracket]
) -> list[BracketSlice]:
    """Split ``taxable_income`` across ``brackets`` and tax each slice.

    Brackets are walked in ascending threshold order; the slice for bracket
    ``i`` is ``clamp(income - threshold_i, 0, threshold_{i+1} - threshold_i)``
    with the last bracket unbounded. Each slice is rounded on its own so the
    sum of ``tax`` values is the withheld amount.
    """

    slices: list[BracketSlice] = []
    for index, bracket in enumerate(brackets):
        upper = brackets[index + 1].threshold if index + 1 < len(brackets) else None
        amount = max(taxable_income - bracket.threshold, 0)
        if upper is not None:
            amount = min(amount, upper - bracket.threshold)
        slices.append(
            BracketSlice(
                threshold=bracket.threshold,
                upper=upper,
                rate=bracket.rate,
                amount=amount,
                tax=apply_rate(amount, bracket.rate),
            )
        )
    return slices
