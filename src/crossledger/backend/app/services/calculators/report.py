"""Period report aggregation over base-currency ledger amounts."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping

from crossledger.backend.app.models.records import EntryType, LedgerEntry

from .utils import to_major_units


class UnconvertedEntryError(ValueError):
    """Raised when a foreign-currency entry has no stored base amount."""

    def __init__(self, entry: LedgerEntry, base_currency: str) -> None:
        label = f"#{entry.id}" if entry.id is not None else f"dated {entry.entry_date}"
        super().__init__(
            f"Ledger entry {label} in {entry.currency} has no {base_currency} amount"
        )
        self.entry = entry


@dataclass(frozen=True)
class JurisdictionTotals:
    """Income and expenses booked against one jurisdiction."""

    income: Decimal
    expenses: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {"income": self.income, "expenses": self.expenses}


@dataclass(frozen=True)
class ReportSummary:
    """Totals for a reporting period in major units of the base currency."""

    period_start: date
    period_end: date
    jurisdiction: str | None
    base_currency: str
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    by_jurisdiction: Mapping[str, JurisdictionTotals]
    by_category: Mapping[str, Decimal]
    transaction_count: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "jurisdiction": self.jurisdiction,
            "base_currency": self.base_currency,
            "total_income": self.total_income,
            "total_expenses": self.total_expenses,
            "net_profit": self.net_profit,
            "by_jurisdiction": {
                code: totals.as_dict() for code, totals in self.by_jurisdiction.items()
            },
            "by_category": dict(self.by_category),
            "transaction_count": self.transaction_count,
        }


def resolve_base_amount(entry: LedgerEntry, base_currency: str) -> int:
    """Return the base-currency amount of ``entry`` in minor units."""

    if entry.amount_base is not None:
        return entry.amount_base
    if entry.currency.upper() == base_currency.upper():
        return entry.amount
    raise UnconvertedEntryError(entry, base_currency)


def summarize(
    entries: Iterable[LedgerEntry],
    period_start: date,
    period_end: date,
    jurisdiction: str | None = None,
    *,
    base_currency: str = "GBP",
) -> ReportSummary:
    """Fold ``entries`` into a :class:`ReportSummary`.

    The caller supplies entries already restricted to the period and, when
    requested, the jurisdiction; the per-jurisdiction breakdown reflects each
    entry's own jurisdiction. Categories combine income and expense lines.
    """

    if period_start > period_end:
        raise ValueError("Report period start must not be after its end")

    total_income = 0
    total_expenses = 0
    count = 0
    by_jurisdiction: dict[str, list[int]] = {}
    by_category: dict[str, int] = {}

    for entry in entries:
        amount = resolve_base_amount(entry, base_currency)
        bucket = by_jurisdiction.setdefault(entry.jurisdiction, [0, 0])
        if entry.entry_type is EntryType.INCOME:
            total_income += amount
            bucket[0] += amount
        else:
            total_expenses += amount
            bucket[1] += amount
        by_category[entry.category] = by_category.get(entry.category, 0) + amount
        count += 1

    return ReportSummary(
        period_start=period_start,
        period_end=period_end,
        jurisdiction=jurisdiction,
        base_currency=base_currency,
        total_income=to_major_units(total_income),
        total_expenses=to_major_units(total_expenses),
        net_profit=to_major_units(total_income - total_expenses),
        by_jurisdiction=MappingProxyType(
            {
                code: JurisdictionTotals(
                    income=to_major_units(income), expenses=to_major_units(expenses)
                )
                for code, (income, expenses) in by_jurisdiction.items()
            }
        ),
        by_category=MappingProxyType(
            {label: to_major_units(amount) for label, amount in by_category.items()}
        ),
        transaction_count=count,
    )


__all__ = [
    "JurisdictionTotals",
    "ReportSummary",
    "UnconvertedEntryError",
    "resolve_base_amount",
    "summarize",
]
