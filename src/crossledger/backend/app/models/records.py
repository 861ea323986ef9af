"""Persisted domain records shared by the services and repositories."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

# Largest money amount (minor units) accepted anywhere; keeps SQLite INTEGER
# and 28-digit Decimal arithmetic in range.
MAX_AMOUNT = 10**15


class EntryType(str, Enum):
    """Direction of a ledger entry."""

    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True)
class LedgerEntry:
    """Income or expense line, stored in minor units of its own currency.

    ``amount_base`` carries the amount converted into the reporting base
    currency at creation time.
    """

    entry_type: EntryType
    entry_date: date
    amount: int
    currency: str
    amount_base: int | None
    jurisdiction: str
    category: str
    exchange_rate: str | None = None
    description: str | None = None
    document_id: int | None = None
    id: int | None = None
    created_at: datetime | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entry_type": self.entry_type.value,
            "entry_date": self.entry_date.isoformat(),
            "amount": self.amount,
            "currency": self.currency,
            "amount_base": self.amount_base,
            "exchange_rate": self.exchange_rate,
            "jurisdiction": self.jurisdiction,
            "category": self.category,
            "description": self.description,
            "document_id": self.document_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class PayrollCalculationRecord:
    """Immutable snapshot of a payroll calculation and its rounded breakdown."""

    employee_name: str
    jurisdiction: str
    currency: str
    gross_salary: int
    wage_tax: int
    social_security: int
    net_salary: int
    thirty_percent_ruling: bool
    period_start: date
    period_end: date
    status: str
    details: Mapping[str, Any] = field(default_factory=dict)
    id: int | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "employee_name": self.employee_name,
            "jurisdiction": self.jurisdiction,
            "currency": self.currency,
            "gross_salary": self.gross_salary,
            "wage_tax": self.wage_tax,
            "social_security": self.social_security,
            "net_salary": self.net_salary,
            "thirty_percent_ruling": self.thirty_percent_ruling,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "status": self.status,
            "details": dict(self.details),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only trace of a bookkeeping action."""

    action: str
    entity_type: str
    entity_id: int | None
    changes: Mapping[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    id: int | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.changes is not None:
            object.__setattr__(self, "changes", MappingProxyType(dict(self.changes)))

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "changes": dict(self.changes) if self.changes is not None else None,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


__all__ = [
    "AuditLogEntry",
    "EntryType",
    "LedgerEntry",
    "MAX_AMOUNT",
    "PayrollCalculationRecord",
]
